# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

# Appended to an import stub to take it out of the linker's view.
DISABLED_SUFFIX = ".disabled"


@dataclass(frozen=True)
class ArchiveLayout:
	"""
	File-name conventions for one toolchain's libraries.

	Patterns contain `{name}`, the logical library name (`x264` for libx264.a).
	"""

	archive_patterns: tuple[str, ...]
	stub_patterns: tuple[str, ...]

	def archives(self, directory: Path, name: str) -> list[Path]:
		return _existing(directory, self.archive_patterns, name)

	def stubs(self, directory: Path, name: str) -> list[Path]:
		return _existing(directory, self.stub_patterns, name)

	def disabled_stubs(self, directory: Path) -> list[Path]:
		if not directory.is_dir():
			return []
		out: list[Path] = []
		for p in sorted(directory.iterdir()):
			if not p.is_file() or not p.name.endswith(DISABLED_SUFFIX):
				continue
			original = p.name[: -len(DISABLED_SUFFIX)]
			if any(_matches(pattern, original) for pattern in self.stub_patterns):
				out.append(p)
		return out

	@classmethod
	def from_dict(cls, raw: dict[str, Any]) -> "ArchiveLayout":
		unknown = sorted(set(raw.keys()) - {"archive", "stub"})
		if unknown:
			raise ValueError(f"layout has unknown fields: {', '.join(unknown)}")
		archive = raw.get("archive")
		stub = raw.get("stub")
		for what, patterns in (("archive", archive), ("stub", stub)):
			if not isinstance(patterns, list) or not patterns:
				raise ValueError(f"layout '{what}' must be a non-empty list of patterns")
			if any(not isinstance(p, str) or "{name}" not in p for p in patterns):
				raise ValueError(f"layout '{what}' patterns must be strings containing '{{name}}'")
		overlap = set(archive) & set(stub)
		if overlap:
			raise ValueError(f"layout patterns used for both archive and stub: {', '.join(sorted(overlap))}")
		return cls(archive_patterns=tuple(archive), stub_patterns=tuple(stub))


def _existing(directory: Path, patterns: tuple[str, ...], name: str) -> list[Path]:
	out: list[Path] = []
	for pattern in patterns:
		p = directory / pattern.format(name=name)
		if p.is_file():
			out.append(p)
	return out


def _matches(pattern: str, filename: str) -> bool:
	prefix, _, suffix = pattern.partition("{name}")
	return len(filename) > len(prefix) + len(suffix) and filename.startswith(prefix) and filename.endswith(suffix)


# MinGW / MSYS2: libfoo.a is the archive, libfoo.dll.a the import stub.
MINGW_LAYOUT = ArchiveLayout(archive_patterns=("lib{name}.a",), stub_patterns=("lib{name}.dll.a",))
