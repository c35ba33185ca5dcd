# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Allow-list of dynamic imports a "fully static" binary may still carry (v0).

Which system libraries are acceptable depends on the target OS version and
toolchain, so the list is configuration, not code. Entries are exact names or
shell-style patterns (`api-ms-win-crt-*.dll`); matching ignores case because
the Windows loader does.
"""

from __future__ import annotations

import fnmatch
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

_PATTERN_CHARS = set("*?[")


@dataclass(frozen=True)
class AllowList:
	names: frozenset[str]
	patterns: tuple[str, ...] = ()

	@classmethod
	def of(cls, entries: Iterable[str]) -> "AllowList":
		names: set[str] = set()
		patterns: list[str] = []
		for e in entries:
			if not isinstance(e, str) or not e:
				raise ValueError("allow-list entries must be non-empty strings")
			if _PATTERN_CHARS & set(e):
				patterns.append(e.casefold())
			else:
				names.add(e.casefold())
		return cls(names=frozenset(names), patterns=tuple(sorted(set(patterns))))

	def allows(self, name: str) -> bool:
		key = name.casefold()
		return key in self.names or any(fnmatch.fnmatchcase(key, p) for p in self.patterns)

	def to_dict(self) -> dict[str, Any]:
		return {"names": sorted(self.names), "patterns": list(self.patterns)}


def load_allowlist_v0(path: Path) -> AllowList:
	data = json.loads(path.read_text(encoding="utf-8"))
	if not isinstance(data, dict):
		raise ValueError("allow-list must be a JSON object")
	if data.get("format") != "staticlink-allowlist" or data.get("version") != 0:
		raise ValueError("unsupported allow-list format/version")
	unknown = sorted(set(data.keys()) - {"format", "version", "allow", "x"})
	if unknown:
		raise ValueError(f"allow-list has unknown top-level fields: {', '.join(unknown)}")
	if "x" in data and not isinstance(data.get("x"), dict):
		raise ValueError("allow-list top-level 'x' must be an object")
	allow = data.get("allow")
	if not isinstance(allow, list):
		raise ValueError("allow-list 'allow' must be a list of names")
	return AllowList.of(allow)
