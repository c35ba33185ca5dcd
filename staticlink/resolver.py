# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Ambiguity resolver.

A MinGW-style prefix commonly ships both `libfoo.a` (the real archive) and
`libfoo.dll.a` (an import stub). The linker prefers the stub, so a "static"
build silently picks up a runtime dependency on foo.dll. For every enabled
static library this pass makes the stub unreachable by renaming it, and
refuses to continue if it cannot.

Per-library state: clean -> conflicted -> resolved. A second run over a
resolved tree sees every library as clean and touches nothing.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from staticlink.errors import AmbiguousLinkTarget, MissingStaticArchive
from staticlink.layout import DISABLED_SUFFIX, ArchiveLayout
from staticlink.manifest_v0 import LibraryEntry, Manifest
from staticlink.target import TargetTriple

logger = logging.getLogger(__name__)

ResolveState = Literal["clean", "resolved"]


@dataclass(frozen=True)
class Rename:
	src: Path
	dst: Path

	def to_dict(self) -> dict[str, str]:
		return {"src": str(self.src), "dst": str(self.dst)}


@dataclass(frozen=True)
class ResolvedLibrary:
	entry: LibraryEntry
	state: ResolveState
	directory: Path | None  # where the linkable file was found; None if not in any search dir
	path: Path | None
	disabled: list[Rename]

	def to_dict(self) -> dict[str, Any]:
		return {
			"name": self.entry.name,
			"mode": self.entry.mode,
			"state": self.state,
			"directory": str(self.directory) if self.directory is not None else None,
			"path": str(self.path) if self.path is not None else None,
			"disabled": [r.to_dict() for r in self.disabled],
		}


@dataclass(frozen=True)
class ResolveReport:
	libraries: list[ResolvedLibrary]

	@property
	def mutations(self) -> list[Rename]:
		return [r for lib in self.libraries for r in lib.disabled]

	def get(self, name: str) -> ResolvedLibrary | None:
		return next((lib for lib in self.libraries if lib.entry.name == name), None)

	def to_dict(self) -> dict[str, Any]:
		return {
			"libraries": [lib.to_dict() for lib in self.libraries],
			"mutations": [r.to_dict() for r in self.mutations],
		}


@dataclass(frozen=True)
class _StaticScan:
	entry: LibraryEntry
	archive: Path | None
	stubs: list[Path]


def resolve_ambiguities(
	manifest: Manifest,
	target: TargetTriple,
	*,
	layout: ArchiveLayout | None = None,
	repair: bool = True,
) -> ResolveReport:
	"""
	Make every enabled static library resolve to exactly one true archive.

	Every entry is checked before any stub is renamed, so a failure leaves the
	tree as it was. If a rename fails, the renames already done are undone.

	Raises:
	  AmbiguousLinkTarget: an archive and a stub coexist and `repair` is False or
	    the stub could not be renamed, or two archives are reachable under one name.
	  MissingStaticArchive: a static library has only an import stub.
	"""
	layout = layout or manifest.layout
	scanned: list[_StaticScan | ResolvedLibrary] = []
	for entry in manifest.enabled_entries(target):
		dirs = manifest.search_dirs_for(entry)
		if entry.mode == "static":
			scanned.append(_scan_static(entry, dirs, layout, repair=repair))
		else:
			scanned.append(_locate_dynamic(entry, dirs, layout))

	out: list[ResolvedLibrary] = []
	done: list[Rename] = []
	for item in scanned:
		if isinstance(item, ResolvedLibrary):
			out.append(item)
			continue
		try:
			out.append(_disable_stubs(item, done))
		except AmbiguousLinkTarget:
			_undo(done)
			raise
	return ResolveReport(libraries=out)


def _scan_static(entry: LibraryEntry, dirs: list[Path], layout: ArchiveLayout, *, repair: bool) -> _StaticScan:
	archives = [a for d in dirs for a in layout.archives(d, entry.name)]
	stubs = [s for d in dirs for s in layout.stubs(d, entry.name)]

	if len(archives) > 1:
		raise AmbiguousLinkTarget.for_name(
			entry.name,
			message=f"static library '{entry.name}' has more than one archive in the search path",
			paths=[str(a) for a in archives],
		)
	if not archives:
		if stubs:
			raise MissingStaticArchive.for_name(entry.name, paths=[str(s) for s in stubs])
		# Not ours to find (e.g. a system library in the toolchain's own lib dir).
		return _StaticScan(entry=entry, archive=None, stubs=[])

	archive = archives[0]
	if stubs:
		logger.debug("conflicted: %s has archive %s and stub(s) %s", entry.name, archive, ", ".join(str(s) for s in stubs))
		if not repair:
			raise AmbiguousLinkTarget.for_name(
				entry.name,
				message=f"static library '{entry.name}' has both an archive and an import stub",
				paths=[str(archive), *(str(s) for s in stubs)],
			)
	return _StaticScan(entry=entry, archive=archive, stubs=stubs)


def _disable_stubs(scan: _StaticScan, done: list[Rename]) -> ResolvedLibrary:
	entry, archive = scan.entry, scan.archive
	directory = archive.parent if archive is not None else None
	if not scan.stubs:
		return ResolvedLibrary(entry=entry, state="clean", directory=directory, path=archive, disabled=[])

	renames: list[Rename] = []
	for stub in scan.stubs:
		dst = stub.with_name(stub.name + DISABLED_SUFFIX)
		try:
			os.replace(stub, dst)
		except OSError as err:
			raise AmbiguousLinkTarget.for_name(
				entry.name,
				message=f"cannot disable import stub for '{entry.name}': {err}",
				paths=[str(archive), str(stub)],
			) from err
		logger.info("disabled import stub %s (static archive %s)", stub, archive)
		rename = Rename(src=stub, dst=dst)
		renames.append(rename)
		done.append(rename)
	return ResolvedLibrary(entry=entry, state="resolved", directory=directory, path=archive, disabled=renames)


def _undo(done: list[Rename]) -> None:
	for r in reversed(done):
		try:
			os.replace(r.dst, r.src)
		except OSError as err:
			logger.warning("cannot put back import stub %s: %s", r.src, err)
		else:
			logger.info("put back import stub %s", r.src)


def _locate_dynamic(entry: LibraryEntry, dirs: list[Path], layout: ArchiveLayout) -> ResolvedLibrary:
	for d in dirs:
		found = layout.stubs(d, entry.name) or layout.archives(d, entry.name)
		if found:
			return ResolvedLibrary(entry=entry, state="clean", directory=d, path=found[0], disabled=[])
	return ResolvedLibrary(entry=entry, state="clean", directory=None, path=None, disabled=[])


def restore_disabled_stubs(dirs: list[Path], *, layout: ArchiveLayout) -> list[Rename]:
	"""Undo `resolve_ambiguities`: rename every `*.disabled` stub in `dirs` back."""
	restored: list[Rename] = []
	for d in dirs:
		for p in layout.disabled_stubs(d):
			dst = p.with_name(p.name[: -len(DISABLED_SUFFIX)])
			if dst.exists():
				logger.warning("not restoring %s: %s already exists", p, dst)
				continue
			try:
				os.replace(p, dst)
			except OSError as err:
				logger.warning("not restoring %s: %s", p, err)
				continue
			logger.info("restored import stub %s", dst)
			restored.append(Rename(src=p, dst=dst))
	return restored
