# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from staticlink.context import BuildContext
from staticlink.directives import render_cargo, render_link_args, render_text
from staticlink.emitter import DEFAULT_EMITTER, EMITTERS
from staticlink.errors import LinkError, ProbeUnavailable, sort_errors
from staticlink.log import configure_logging
from staticlink.manifest_v0 import load_manifest_v0
from staticlink.pipeline import PlanOptions, VerifyOptions, plan_v0, verify_v0
from staticlink.resolver import resolve_ambiguities, restore_disabled_stubs
from staticlink.verifier import ImportTableUnavailable

_DEFAULT_MANIFEST = Path("staticlink-manifest.json")


def _build_parser() -> argparse.ArgumentParser:
	p = argparse.ArgumentParser(prog="staticlink", description="Static-linkage resolver (plan link directives, verify imports)")
	p.add_argument("-v", "--verbose", action="store_true", help="Log every step to stderr")
	p.add_argument("--log-file", type=Path, default=None, help="Also write JSON-lines logs to this file")
	sub = p.add_subparsers(dest="cmd", required=True)

	plan = sub.add_parser("plan", help="Resolve stub/archive conflicts and print the ordered link directives")
	plan.add_argument("--manifest", type=Path, default=_DEFAULT_MANIFEST, help="Path to the library manifest")
	plan.add_argument("--target", type=str, default=None, help="Target triple (default: LLVM host triple)")
	plan.add_argument("--emitter", choices=sorted(EMITTERS), default=DEFAULT_EMITTER, help="Directive emitter")
	plan.add_argument(
		"--search-path",
		dest="search_paths",
		type=Path,
		action="append",
		default=None,
		help="Extra library search directory, lowest priority (repeatable)",
	)
	plan.add_argument("--cc", type=str, default=None, help="Compiler used for toolchain probes (default: $CC or cc)")
	plan.add_argument("--check", action="store_true", help="Do not rename import stubs; fail on any conflict")
	plan.add_argument(
		"--format",
		choices=["text", "cargo", "args"],
		default="text",
		help="Directive output format (args: linker arguments after the --object files)",
	)
	plan.add_argument("--object", dest="objects", action="append", default=None, help="Object file (repeatable, --format args)")
	plan.add_argument("--json", action="store_true", help="Emit machine-readable JSON report")

	resolve = sub.add_parser("resolve", help="Only run the stub/archive ambiguity resolver")
	resolve.add_argument("--manifest", type=Path, default=_DEFAULT_MANIFEST, help="Path to the library manifest")
	resolve.add_argument("--target", type=str, default=None, help="Target triple (default: LLVM host triple)")
	resolve.add_argument("--check", action="store_true", help="Do not rename import stubs; fail on any conflict")
	resolve.add_argument("--restore", action="store_true", help="Rename previously disabled import stubs back")
	resolve.add_argument("--json", action="store_true", help="Emit machine-readable JSON report")

	probe = sub.add_parser("probe", help="Ask the compiler where its runtime artifacts live")
	probe.add_argument("artifacts", nargs="+", help="Artifact file names (e.g. libgcc_eh.a)")
	probe.add_argument("--cc", type=str, default=None, help="Compiler to ask (default: $CC or cc)")
	probe.add_argument("--json", action="store_true", help="Emit machine-readable JSON report")

	verify = sub.add_parser("verify", help="Check a built binary's dynamic imports against an allow-list")
	verify.add_argument("binary", type=Path, help="Built executable")
	verify.add_argument("--allowlist", type=Path, required=True, help="Path to the allow-list JSON file")
	verify.add_argument("--objdump", type=str, default=None, help="objdump to use (default: $OBJDUMP or objdump)")
	verify.add_argument("--json", action="store_true", help="Emit machine-readable JSON report")
	return p


def _print_json(obj: object) -> None:
	print(json.dumps(obj, sort_keys=True, separators=(",", ":")))


def _print_errors(errors: list[LinkError]) -> None:
	for err in sort_errors(errors):
		print(err.format_human(), file=sys.stderr)


def main(argv: list[str] | None = None) -> int:
	p = _build_parser()
	args = p.parse_args(argv)
	configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

	if args.cmd == "plan":
		opts = PlanOptions(
			manifest_path=args.manifest,
			target=args.target,
			emitter=args.emitter,
			repair=not args.check,
			extra_search_paths=tuple(args.search_paths or ()),
			compiler=args.cc,
		)
		try:
			report = plan_v0(opts)
		except (OSError, ValueError) as err:
			p.error(str(err))
			return 2
		if args.json:
			_print_json(report.to_dict())
			return 0 if report.ok else 2
		if not report.ok or report.directives is None:
			_print_errors(report.errors)
			return 2
		_print_errors(report.findings)
		if args.format == "cargo":
			lines = render_cargo(report.directives)
		elif args.format == "args":
			lines = render_link_args(list(args.objects or []), report.directives)
		else:
			lines = render_text(report.directives)
		for line in lines:
			print(line)
		return 0

	if args.cmd == "resolve":
		try:
			ctx = BuildContext.create(args.target)
			manifest = load_manifest_v0(args.manifest)
		except (OSError, ValueError, LinkError) as err:
			p.error(str(err))
			return 2
		if args.restore:
			dirs = [sp.path for sp in manifest.search_paths()]
			for e in manifest.entries():
				if e.search_path is not None and e.search_path not in dirs:
					dirs.append(e.search_path)
			restored = restore_disabled_stubs(dirs, layout=manifest.layout)
			if args.json:
				_print_json({"ok": True, "restored": [r.to_dict() for r in restored]})
			else:
				for r in restored:
					print(f"restored {r.dst}")
			return 0
		try:
			res = resolve_ambiguities(manifest, ctx.target, repair=not args.check)
		except LinkError as err:
			if args.json:
				_print_json({"ok": False, "errors": [err.to_dict()]})
			else:
				_print_errors([err])
			return 2
		if args.json:
			_print_json({"ok": True, **res.to_dict()})
		else:
			for r in res.mutations:
				print(f"disabled {r.src} -> {r.dst}")
		return 0

	if args.cmd == "probe":
		# Probing needs no target; skip asking LLVM for the host triple.
		ctx = BuildContext.create("unknown-unknown", compiler=args.cc)
		probe = ctx.probe()
		found: dict[str, str | None] = {}
		findings: list[LinkError] = []
		for name in args.artifacts:
			try:
				found[name] = str(probe.locate(name))
			except ProbeUnavailable as err:
				found[name] = None
				findings.append(err)
		ok = not findings
		if args.json:
			_print_json({"ok": ok, "artifacts": found, "findings": [f.to_dict() for f in sort_errors(findings)]})
			return 0 if ok else 1
		for name in args.artifacts:
			if found[name] is not None:
				print(f"{name}: {found[name]}")
		_print_errors(findings)
		return 0 if ok else 1

	if args.cmd == "verify":
		opts = VerifyOptions(binary=args.binary, allowlist_path=args.allowlist, objdump=args.objdump)
		try:
			report = verify_v0(opts)
		except (OSError, ValueError, ImportTableUnavailable) as err:
			p.error(str(err))
			return 2
		if args.json:
			_print_json(report.to_dict())
			return 0 if report.ok else 2
		if report.ok:
			print(f"verify: {report.binary}: {len(report.imports)} import(s), all allowed")
			return 0
		_print_errors(report.errors)
		for name in report.unexpected:
			print(f"  - {name}", file=sys.stderr)
		return 2

	raise AssertionError("unreachable")
