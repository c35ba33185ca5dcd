# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Target triples.

Both GNU-style (`x86_64-w64-mingw32`) and Rust-style (`x86_64-pc-windows-gnu`)
spellings are accepted and normalised to the same fields so platform
predicates can be written once.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from llvmlite import binding as llvm

_WINDOWS_OS_ALIASES = {"windows", "win32", "mingw32", "mingw64", "cygwin", "msys"}
_DARWIN_OS_ALIASES = {"darwin", "macos", "macosx", "ios"}


@dataclass(frozen=True)
class TargetTriple:
	arch: str
	vendor: str
	os: str
	env: str
	raw: str

	@property
	def family(self) -> str:
		return "windows" if self.os == "windows" else "unix"

	@classmethod
	def parse(cls, text: str) -> "TargetTriple":
		raw = text.strip()
		parts = raw.lower().split("-")
		if len(parts) < 2 or any(not p for p in parts):
			raise ValueError(f"malformed target triple: {text!r}")
		arch = parts[0]
		if len(parts) == 2:
			vendor, os_part, env = "unknown", parts[1], ""
		elif len(parts) == 3:
			vendor, os_part, env = parts[1], parts[2], ""
		else:
			vendor, os_part, env = parts[1], parts[2], "-".join(parts[3:])
		os_name, env = _normalize_os(os_part, env)
		return cls(arch=arch, vendor=vendor, os=os_name, env=env, raw=raw)

	def cfg_value(self, key: str) -> str | None:
		"""Value for a `key = "..."` predicate, or None for unknown keys."""
		return {
			"target_arch": self.arch,
			"target_vendor": self.vendor,
			"target_os": self.os,
			"target_env": self.env,
			"target_family": self.family,
		}.get(key)

	def to_dict(self) -> dict[str, Any]:
		return {"arch": self.arch, "vendor": self.vendor, "os": self.os, "env": self.env, "triple": self.raw}

	def __str__(self) -> str:
		return self.raw


def _normalize_os(os_part: str, env: str) -> tuple[str, str]:
	# Strip version suffixes such as darwin23.1.0 or linux5.
	base = os_part.rstrip("0123456789.")
	if os_part in _WINDOWS_OS_ALIASES or base in _WINDOWS_OS_ALIASES:
		if os_part.startswith("mingw") and not env:
			env = "gnu"
		return "windows", env
	if base in _DARWIN_OS_ALIASES:
		return "macos" if base in {"darwin", "macos", "macosx"} else base, env
	return base or os_part, env


def host_triple() -> TargetTriple:
	return TargetTriple.parse(llvm.get_default_triple())
