# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import logging
import re
import subprocess
from pathlib import Path

from staticlink.allowlist_v0 import AllowList
from staticlink.errors import UnexpectedDynamicImport
from staticlink.probe import Runner

logger = logging.getLogger(__name__)

ImportTable = frozenset[str]

# `objdump -p` prints "DLL Name: KERNEL32.dll" for PE images and
# "NEEDED               libc.so.6" for ELF dynamic sections.
_PE_IMPORT_RE = re.compile(r"^\s*DLL Name:\s*(\S+)\s*$")
_ELF_NEEDED_RE = re.compile(r"^\s*NEEDED\s+(\S+)\s*$")


class ImportTableUnavailable(RuntimeError):
	pass


def parse_objdump_imports(text: str) -> ImportTable:
	names: set[str] = set()
	for line in text.splitlines():
		m = _PE_IMPORT_RE.match(line) or _ELF_NEEDED_RE.match(line)
		if m:
			names.add(m.group(1))
	return frozenset(names)


def read_import_table(binary: Path, *, objdump: str = "objdump", runner: Runner = subprocess.run) -> ImportTable:
	if not binary.is_file():
		raise ImportTableUnavailable(f"binary not found: {binary}")
	cmd = [objdump, "-p", str(binary)]
	logger.debug("verify: %s", " ".join(cmd))
	try:
		res = runner(cmd, capture_output=True, text=True)
	except OSError as err:
		raise ImportTableUnavailable(f"cannot run '{objdump}': {err}") from err
	if res.returncode != 0:
		raise ImportTableUnavailable(f"'{' '.join(cmd)}' failed: {(res.stderr or '').strip()}")
	table = parse_objdump_imports(res.stdout or "")
	logger.info("verify: %s imports %d librar(ies)", binary, len(table))
	return table


def unexpected_imports(table: ImportTable, allowlist: AllowList) -> list[str]:
	return sorted((name for name in table if not allowlist.allows(name)), key=lambda n: (n.casefold(), n))


def verify_import_table(table: ImportTable, allowlist: AllowList, *, binary: Path | None = None) -> None:
	"""Raise UnexpectedDynamicImport naming every import outside `allowlist`."""
	offending = unexpected_imports(table, allowlist)
	if offending:
		raise UnexpectedDynamicImport.for_names(offending, path=str(binary) if binary is not None else None)
