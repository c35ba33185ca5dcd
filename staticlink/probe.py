# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Toolchain probe.

Runtime archives that ship with the compiler (libgcc_eh.a, libgcc.a, ...) live
in a version-specific directory that is not on the default library path. The
compiler knows where; `cc -print-file-name=<artifact>` asks it.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Callable

from staticlink.errors import ProbeUnavailable

logger = logging.getLogger(__name__)

Runner = Callable[..., "subprocess.CompletedProcess[str]"]


class ProbeCache:
	"""
	Per-build cache of probe results, keyed by requested artifact name.

	Failures are cached too. Lives only in memory; each BuildContext owns one.
	"""

	def __init__(self) -> None:
		self._entries: dict[str, Path | ProbeUnavailable] = {}

	def __contains__(self, name: str) -> bool:
		return name in self._entries

	def __len__(self) -> int:
		return len(self._entries)

	def get(self, name: str) -> Path | ProbeUnavailable | None:
		return self._entries.get(name)

	def put(self, name: str, result: Path | ProbeUnavailable) -> None:
		self._entries[name] = result

	def clear(self) -> None:
		self._entries.clear()


class ToolchainProbe:
	def __init__(self, compiler: str, cache: ProbeCache, *, runner: Runner = subprocess.run) -> None:
		self.compiler = compiler
		self.cache = cache
		self._runner = runner

	def locate(self, name: str) -> Path:
		"""
		Return the directory containing toolchain artifact `name`.

		Raises ProbeUnavailable when the compiler cannot say; callers treat that
		as non-fatal.
		"""
		cached = self.cache.get(name)
		if cached is None:
			cached = self._run(name)
			self.cache.put(name, cached)
		if isinstance(cached, ProbeUnavailable):
			raise cached
		return cached

	def _run(self, name: str) -> Path | ProbeUnavailable:
		cmd = [self.compiler, f"-print-file-name={name}"]
		logger.debug("probe: %s", " ".join(cmd))
		try:
			res = self._runner(cmd, capture_output=True, text=True)
		except OSError as err:
			return self._unavailable(name, f"cannot run compiler '{self.compiler}': {err}")
		if res.returncode != 0:
			stderr = (res.stderr or "").strip()
			return self._unavailable(name, f"'{' '.join(cmd)}' exited with {res.returncode}: {stderr}")

		lines = [ln.strip() for ln in (res.stdout or "").splitlines() if ln.strip()]
		if len(lines) != 1:
			return self._unavailable(name, f"expected a single path from '{' '.join(cmd)}', got {len(lines)} line(s)")
		found = Path(lines[0])
		# gcc echoes the bare name back when it cannot find the file.
		if not found.is_absolute() or not found.is_file():
			return self._unavailable(name, f"compiler does not know where '{name}' is (reported '{lines[0]}')")
		directory = found.resolve().parent
		logger.info("probe: %s -> %s", name, directory)
		return directory

	def _unavailable(self, name: str, message: str) -> ProbeUnavailable:
		logger.warning("probe unavailable for %s: %s", name, message)
		return ProbeUnavailable.for_name(name, message=message)
