# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Directive emitters.

An emitter turns a manifest plus the resolver's findings into the ordered
directive stream. Emitters are pluggable: `UpstreamEmitter` reproduces what a
stock build script does (declaration order, whatever the linker finds), and
`StaticEmitter` is the one this project runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from staticlink.context import BuildContext
from staticlink.directives import AddSearchPath, DirectiveLog
from staticlink.errors import AmbiguousLinkTarget, LinkError, ProbeUnavailable, sort_errors
from staticlink.manifest_v0 import GROUP_PRECEDENCE, LibraryEntry, Manifest
from staticlink.resolver import ResolveReport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmitResult:
	directives: DirectiveLog
	findings: list[LinkError]  # non-fatal only (ProbeUnavailable)

	def to_dict(self) -> dict[str, Any]:
		return {
			"directives": self.directives.to_list(),
			"fingerprint": self.directives.fingerprint(),
			"findings": [f.to_dict() for f in sort_errors(self.findings)],
		}


class DirectiveEmitter:
	name = "base"

	def emit(self, manifest: Manifest, context: BuildContext, resolution: ResolveReport | None = None) -> EmitResult:
		raise NotImplementedError


class UpstreamEmitter(DirectiveEmitter):
	"""Declaration order, explicit install prefixes only, no toolchain probing."""

	name = "upstream"

	def emit(self, manifest: Manifest, context: BuildContext, resolution: ResolveReport | None = None) -> EmitResult:
		log = DirectiveLog()
		for entry in manifest.enabled_entries(context.target):
			if entry.search_path is not None:
				log.add_search_path(entry.search_path)
			log.link_library(entry.name, entry.mode)
		return EmitResult(directives=log, findings=[])


class StaticEmitter(DirectiveEmitter):
	"""
	Emit in fixed group precedence: primary, codec, system, runtime.

	Within a group declaration order is kept. A library's search directory
	(install prefix, resolver-found directory, or probe result) is added
	immediately before the first library that needs it, and only once.

	The linker walks every search directory in emission order for every
	library, so ranked manifest directories are emitted in rank order: a
	needed directory is preceded by every needed directory that outranks it.
	A directory emitted ahead of the one the resolver chose must not offer
	another file under the same name.
	"""

	name = "static"

	def emit(self, manifest: Manifest, context: BuildContext, resolution: ResolveReport | None = None) -> EmitResult:
		log = DirectiveLog()
		findings: dict[str, LinkError] = {}
		probe = context.probe()
		entries = sorted(manifest.enabled_entries(context.target), key=lambda e: GROUP_PRECEDENCE.index(e.group))
		ranked = [sp.path for sp in manifest.search_paths()]
		needed = {d for entry in entries for d in self._search_dirs(entry, resolution)}
		for entry in entries:
			for d in self._search_dirs(entry, resolution):
				if d in ranked:
					for better in ranked[: ranked.index(d)]:
						if better in needed and log.add_search_path(better):
							logger.debug("emit: search path %s (outranks %s)", better, d)
				if log.add_search_path(d):
					logger.debug("emit: search path %s (for %s)", d, entry.name)
			if entry.probe is not None:
				try:
					probed = probe.locate(entry.probe)
				except ProbeUnavailable as err:
					# Left to the link step to fail with the missing library.
					findings.setdefault(entry.probe, err)
				else:
					log.add_search_path(probed)
			log.link_library(entry.name, entry.mode)
			logger.debug("emit: link %s (%s)", entry.name, entry.mode)
		if resolution is not None:
			_check_shadowing(log, manifest, resolution)
		return EmitResult(directives=log, findings=list(findings.values()))

	def _search_dirs(self, entry: LibraryEntry, resolution: ResolveReport | None) -> list[Path]:
		out: list[Path] = []
		if entry.search_path is not None:
			out.append(entry.search_path)
		resolved = resolution.get(entry.name) if resolution is not None else None
		if resolved is not None and resolved.directory is not None and resolved.directory not in out:
			out.append(resolved.directory)
		return out


def _check_shadowing(log: DirectiveLog, manifest: Manifest, resolution: ResolveReport) -> None:
	dirs = [Path(d.path) for d in log.entries if isinstance(d, AddSearchPath)]
	for lib in resolution.libraries:
		if lib.directory is None or lib.directory not in dirs:
			continue
		for d in dirs[: dirs.index(lib.directory)]:
			found = manifest.layout.stubs(d, lib.entry.name) + manifest.layout.archives(d, lib.entry.name)
			if found:
				raise AmbiguousLinkTarget.for_name(
					lib.entry.name,
					message=f"library '{lib.entry.name}' resolves to {lib.path}, but search path {d} is searched first",
					paths=[str(lib.path), *(str(f) for f in found)],
				)


EMITTERS: dict[str, type[DirectiveEmitter]] = {
	StaticEmitter.name: StaticEmitter,
	UpstreamEmitter.name: UpstreamEmitter,
}

DEFAULT_EMITTER = StaticEmitter.name


def get_emitter(name: str = DEFAULT_EMITTER) -> DirectiveEmitter:
	cls = EMITTERS.get(name)
	if cls is None:
		raise ValueError(f"unknown emitter '{name}' (known: {', '.join(sorted(EMITTERS))})")
	return cls()
