# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class LinkError(Exception):
	"""
	A structured, serializable error for the static-linkage resolver.

	`reason_code` is stable and machine-matchable; `message` is for humans.
	"""

	reason_code: str
	message: str
	library: str | None = None
	path: str | None = None
	paths: list[str] | None = None
	names: list[str] | None = None

	def __str__(self) -> str:
		return self.format_human()

	def to_dict(self) -> dict[str, Any]:
		return {
			"reason_code": self.reason_code,
			"message": self.message,
			"library": self.library,
			"path": self.path,
			"paths": list(self.paths) if self.paths is not None else None,
			"names": list(self.names) if self.names is not None else None,
		}

	def format_human(self) -> str:
		parts: list[str] = [f"[{self.reason_code}] {self.message}"]
		if self.library:
			parts.append(f"library={self.library}")
		if self.path:
			parts.append(f"path={self.path}")
		if self.paths:
			parts.append(f"paths={','.join(self.paths)}")
		if self.names:
			parts.append(f"names={','.join(self.names)}")
		return " ".join(parts)


class DuplicateEntry(LinkError):
	@classmethod
	def for_name(cls, name: str) -> "DuplicateEntry":
		return cls(reason_code="DUPLICATE_ENTRY", message=f"library '{name}' registered twice", library=name)


class AmbiguousLinkTarget(LinkError):
	"""
	Both a true archive and something else linkable are reachable under one name,
	and the conflict was not (or could not be) repaired.
	"""

	@classmethod
	def for_name(cls, name: str, *, message: str, paths: list[str]) -> "AmbiguousLinkTarget":
		return cls(reason_code="AMBIGUOUS_LINK_TARGET", message=message, library=name, paths=sorted(paths))


class MissingStaticArchive(LinkError):
	@classmethod
	def for_name(cls, name: str, *, paths: list[str]) -> "MissingStaticArchive":
		return cls(
			reason_code="MISSING_STATIC_ARCHIVE",
			message=f"static library '{name}' has an import stub but no static archive",
			library=name,
			paths=sorted(paths),
		)


class ProbeUnavailable(LinkError):
	"""Non-fatal: the compiler could not report where a runtime artifact lives."""

	@classmethod
	def for_name(cls, name: str, *, message: str) -> "ProbeUnavailable":
		return cls(reason_code="PROBE_UNAVAILABLE", message=message, library=name)


class UnexpectedDynamicImport(LinkError):
	@classmethod
	def for_names(cls, names: list[str], *, path: str | None = None) -> "UnexpectedDynamicImport":
		return cls(
			reason_code="UNEXPECTED_DYNAMIC_IMPORT",
			message=f"binary imports {len(names)} library(s) outside the allow-list",
			path=path,
			names=list(names),
		)


def sort_errors(errors: list[LinkError]) -> list[LinkError]:
	return sorted(errors, key=lambda e: (e.reason_code, e.library or "", e.path or ""))
