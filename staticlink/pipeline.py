# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
End-to-end stages for one build: plan (manifest -> resolver -> emitter) before
the link, verify (import table vs. allow-list) after it.

Both entry points return a report instead of raising: a fatal LinkError stops
the remaining stages and is recorded in `errors`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from staticlink.allowlist_v0 import AllowList, load_allowlist_v0
from staticlink.context import BuildContext
from staticlink.directives import DirectiveLog
from staticlink.emitter import DEFAULT_EMITTER, get_emitter
from staticlink.errors import LinkError, sort_errors
from staticlink.manifest_v0 import Manifest, load_manifest_v0
from staticlink.resolver import ResolveReport, resolve_ambiguities
from staticlink.verifier import read_import_table, unexpected_imports, verify_import_table

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanOptions:
	manifest_path: Path
	target: str | None = None
	emitter: str = DEFAULT_EMITTER
	repair: bool = True
	extra_search_paths: tuple[Path, ...] = ()
	compiler: str | None = None


@dataclass(frozen=True)
class PlanReport:
	ok: bool
	target: str | None
	emitter: str
	resolution: ResolveReport | None
	directives: DirectiveLog | None
	findings: list[LinkError]  # non-fatal
	errors: list[LinkError]  # fatal

	def to_dict(self) -> dict[str, Any]:
		return {
			"ok": self.ok,
			"target": self.target,
			"emitter": self.emitter,
			"resolution": self.resolution.to_dict() if self.resolution is not None else None,
			"directives": self.directives.to_list() if self.directives is not None else None,
			"fingerprint": self.directives.fingerprint() if self.directives is not None else None,
			"findings": [f.to_dict() for f in sort_errors(self.findings)],
			"errors": [e.to_dict() for e in sort_errors(self.errors)],
		}


def plan(manifest: Manifest, context: BuildContext, *, emitter: str = DEFAULT_EMITTER, repair: bool = True) -> PlanReport:
	resolution: ResolveReport | None = None
	try:
		impl = get_emitter(emitter)
		resolution = resolve_ambiguities(manifest, context.target, repair=repair)
		result = impl.emit(manifest, context, resolution)
	except LinkError as err:
		logger.error("%s", err.format_human())
		return PlanReport(
			ok=False,
			target=str(context.target),
			emitter=emitter,
			resolution=resolution,
			directives=None,
			findings=[],
			errors=[err],
		)
	return PlanReport(
		ok=True,
		target=str(context.target),
		emitter=emitter,
		resolution=resolution,
		directives=result.directives,
		findings=result.findings,
		errors=[],
	)


def plan_v0(opts: PlanOptions, *, context: BuildContext | None = None) -> PlanReport:
	try:
		manifest = load_manifest_v0(opts.manifest_path)
	except LinkError as err:
		logger.error("%s", err.format_human())
		return PlanReport(
			ok=False,
			target=opts.target,
			emitter=opts.emitter,
			resolution=None,
			directives=None,
			findings=[],
			errors=[err],
		)
	for p in opts.extra_search_paths:
		manifest.add_search_path(p)
	if context is None:
		context = BuildContext.create(opts.target, compiler=opts.compiler)
	return plan(manifest, context, emitter=opts.emitter, repair=opts.repair)


@dataclass(frozen=True)
class VerifyOptions:
	binary: Path
	allowlist_path: Path
	objdump: str | None = None


@dataclass(frozen=True)
class VerifyReport:
	ok: bool
	binary: str
	imports: list[str]
	unexpected: list[str]
	errors: list[LinkError]

	def to_dict(self) -> dict[str, Any]:
		return {
			"ok": self.ok,
			"binary": self.binary,
			"imports": list(self.imports),
			"unexpected": list(self.unexpected),
			"errors": [e.to_dict() for e in sort_errors(self.errors)],
		}


def verify(binary: Path, allowlist: AllowList, context: BuildContext) -> VerifyReport:
	table = read_import_table(binary, objdump=context.objdump, runner=context.runner)
	imports = sorted(table, key=lambda n: (n.casefold(), n))
	try:
		verify_import_table(table, allowlist, binary=binary)
	except LinkError as err:
		logger.error("%s", err.format_human())
		return VerifyReport(
			ok=False,
			binary=str(binary),
			imports=imports,
			unexpected=unexpected_imports(table, allowlist),
			errors=[err],
		)
	return VerifyReport(ok=True, binary=str(binary), imports=imports, unexpected=[], errors=[])


def verify_v0(opts: VerifyOptions, *, context: BuildContext | None = None) -> VerifyReport:
	allowlist = load_allowlist_v0(opts.allowlist_path)
	if context is None:
		# Import inspection does not depend on the target; avoid asking LLVM for the host.
		context = BuildContext.create("unknown-unknown", objdump=opts.objdump)
	return verify(opts.binary, allowlist, context)
