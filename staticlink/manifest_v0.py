# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Library manifest (v0).

Declares every external library the final binary links against, with its
linkage mode. Declaration order is preserved everywhere because directive
order depends on it.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from staticlink.errors import DuplicateEntry
from staticlink.layout import ArchiveLayout, MINGW_LAYOUT
from staticlink.predicate import PlatformPredicate, Predicate, always, parse_predicate
from staticlink.target import TargetTriple

LinkMode = Literal["static", "dynamic"]
LibraryGroup = Literal["primary", "codec", "system", "runtime"]

LINK_MODES: tuple[str, ...] = ("static", "dynamic")
GROUP_PRECEDENCE: tuple[str, ...] = ("primary", "codec", "system", "runtime")


@dataclass(frozen=True)
class LibraryEntry:
	name: str
	mode: LinkMode
	enabled: bool = True
	platform: PlatformPredicate = field(default=always, compare=False)
	group: LibraryGroup = "primary"
	search_path: Path | None = None  # custom install prefix (lib dir)
	probe: str | None = None  # toolchain artifact whose directory must be searched

	def applies_to(self, target: TargetTriple) -> bool:
		return self.enabled and self.platform(target)

	def to_dict(self) -> dict[str, Any]:
		return {
			"name": self.name,
			"mode": self.mode,
			"enabled": self.enabled,
			"platform": self.platform.source if isinstance(self.platform, Predicate) else None,
			"group": self.group,
			"search_path": str(self.search_path) if self.search_path is not None else None,
			"probe": self.probe,
		}


@dataclass(frozen=True)
class SearchPath:
	path: Path
	rank: int = 0


class Manifest:
	def __init__(self, *, layout: ArchiveLayout = MINGW_LAYOUT) -> None:
		self.layout = layout
		self._entries: list[LibraryEntry] = []
		self._names: set[str] = set()
		self._search_paths: list[SearchPath] = []

	def register(
		self,
		name: str,
		mode: LinkMode,
		platform: PlatformPredicate | str | None = None,
		*,
		enabled: bool = True,
		group: LibraryGroup = "primary",
		search_path: Path | None = None,
		probe: str | None = None,
	) -> LibraryEntry:
		if not name:
			raise ValueError("library name must be non-empty")
		if mode not in LINK_MODES:
			raise ValueError(f"library '{name}' has unknown link mode '{mode}'")
		if group not in GROUP_PRECEDENCE:
			raise ValueError(f"library '{name}' has unknown group '{group}'")
		if name in self._names:
			raise DuplicateEntry.for_name(name)
		if isinstance(platform, str):
			platform = parse_predicate(platform)
		entry = LibraryEntry(
			name=name,
			mode=mode,
			enabled=enabled,
			platform=platform if platform is not None else always,
			group=group,
			search_path=search_path,
			probe=probe,
		)
		self._entries.append(entry)
		self._names.add(name)
		return entry

	def add_search_path(self, path: Path, rank: int = 0) -> SearchPath:
		sp = SearchPath(path=Path(path), rank=rank)
		self._search_paths.append(sp)
		return sp

	def search_paths(self) -> list[SearchPath]:
		# sorted() is stable: equal ranks keep declaration order.
		return sorted(self._search_paths, key=lambda sp: sp.rank)

	def entries(self) -> list[LibraryEntry]:
		return list(self._entries)

	def enabled_entries(self, target: TargetTriple) -> list[LibraryEntry]:
		return [e for e in self._entries if e.applies_to(target)]

	def search_dirs_for(self, entry: LibraryEntry) -> list[Path]:
		"""Directories scanned for `entry`, most preferred first, without duplicates."""
		out: list[Path] = []
		candidates = ([entry.search_path] if entry.search_path is not None else []) + [sp.path for sp in self.search_paths()]
		for d in candidates:
			if d not in out:
				out.append(d)
		return out


_TOP_FIELDS = {"format", "version", "search_paths", "layout", "libraries", "x"}
_LIB_FIELDS = {"name", "mode", "enabled", "platform", "group", "search_path", "probe", "x"}


def _resolve_path(base: Path, raw: Any, *, what: str) -> Path:
	if not isinstance(raw, str) or not raw:
		raise ValueError(f"{what} must be a non-empty string")
	p = Path(raw)
	return p if p.is_absolute() else base / p


def load_manifest_v0(path: Path) -> Manifest:
	data = json.loads(path.read_text(encoding="utf-8"))
	if not isinstance(data, dict):
		raise ValueError("manifest must be a JSON object")
	if data.get("format") != "staticlink-manifest" or data.get("version") != 0:
		raise ValueError("unsupported manifest format/version")
	unknown_top = sorted(set(data.keys()) - _TOP_FIELDS)
	if unknown_top:
		raise ValueError(f"manifest has unknown top-level fields: {', '.join(unknown_top)}")
	if "x" in data and not isinstance(data.get("x"), dict):
		raise ValueError("manifest top-level 'x' must be an object")

	base = path.parent
	layout = MINGW_LAYOUT
	raw_layout = data.get("layout")
	if raw_layout is not None:
		if not isinstance(raw_layout, dict):
			raise ValueError("manifest 'layout' must be an object")
		layout = ArchiveLayout.from_dict(raw_layout)
	manifest = Manifest(layout=layout)

	raw_paths = data.get("search_paths") or []
	if not isinstance(raw_paths, list):
		raise ValueError("manifest 'search_paths' must be a list")
	for i, raw in enumerate(raw_paths):
		if isinstance(raw, str):
			raw = {"path": raw}
		if not isinstance(raw, dict):
			raise ValueError(f"manifest search_paths[{i}] must be a string or an object")
		rank = raw.get("rank", 0)
		if not isinstance(rank, int) or isinstance(rank, bool):
			raise ValueError(f"manifest search_paths[{i}] rank must be an integer")
		manifest.add_search_path(_resolve_path(base, raw.get("path"), what=f"manifest search_paths[{i}] path"), rank)

	libs = data.get("libraries")
	if not isinstance(libs, list):
		raise ValueError("manifest 'libraries' must be a list")
	for i, raw in enumerate(libs):
		if not isinstance(raw, dict):
			raise ValueError(f"manifest libraries[{i}] must be an object")
		unknown = sorted(set(raw.keys()) - _LIB_FIELDS)
		if unknown:
			raise ValueError(f"manifest libraries[{i}] has unknown fields: {', '.join(unknown)}")
		if "x" in raw and not isinstance(raw.get("x"), dict):
			raise ValueError(f"manifest libraries[{i}] field 'x' must be an object")
		name = raw.get("name")
		if not isinstance(name, str) or not name:
			raise ValueError(f"manifest libraries[{i}] is missing name")
		enabled = raw.get("enabled", True)
		if not isinstance(enabled, bool):
			raise ValueError(f"manifest library '{name}' field 'enabled' must be a boolean")
		platform = raw.get("platform")
		if platform is not None and not isinstance(platform, str):
			raise ValueError(f"manifest library '{name}' field 'platform' must be a string")
		probe = raw.get("probe")
		if probe is not None and (not isinstance(probe, str) or not probe):
			raise ValueError(f"manifest library '{name}' field 'probe' must be a non-empty string")
		search_path = raw.get("search_path")
		manifest.register(
			name,
			raw.get("mode", "static"),
			platform,
			enabled=enabled,
			group=raw.get("group", "primary"),
			search_path=_resolve_path(base, search_path, what=f"manifest library '{name}' search_path")
			if search_path is not None
			else None,
			probe=probe,
		)
	return manifest
