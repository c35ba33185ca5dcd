# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass, field

from staticlink.probe import ProbeCache, Runner, ToolchainProbe
from staticlink.target import TargetTriple, host_triple


@dataclass
class BuildContext:
	"""
	Everything one build invocation shares between stages.

	The probe cache is owned here rather than at module level so independent
	builds in one process (tests, parallel builds) never see each other's results.
	"""

	target: TargetTriple
	compiler: str = "cc"
	objdump: str = "objdump"
	probe_cache: ProbeCache = field(default_factory=ProbeCache)
	runner: Runner = subprocess.run

	@classmethod
	def create(
		cls,
		target: TargetTriple | str | None = None,
		*,
		compiler: str | None = None,
		objdump: str | None = None,
		runner: Runner = subprocess.run,
	) -> "BuildContext":
		if target is None:
			target = host_triple()
		elif isinstance(target, str):
			target = TargetTriple.parse(target)
		return cls(
			target=target,
			compiler=compiler or os.environ.get("CC") or "cc",
			objdump=objdump or os.environ.get("OBJDUMP") or "objdump",
			runner=runner,
		)

	def probe(self) -> ToolchainProbe:
		return ToolchainProbe(self.compiler, self.probe_cache, runner=self.runner)
