# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import pytest

from staticlink.context import BuildContext
from staticlink.target import TargetTriple
from staticlink.tests.resolver_test_helpers import FakeRunner


@pytest.fixture
def mingw_target() -> TargetTriple:
	return TargetTriple.parse("x86_64-w64-mingw32")


@pytest.fixture
def fake_runner() -> FakeRunner:
	return FakeRunner()


@pytest.fixture
def context(mingw_target: TargetTriple, fake_runner: FakeRunner) -> BuildContext:
	return BuildContext.create(mingw_target, compiler="x86_64-w64-mingw32-gcc", objdump="objdump", runner=fake_runner)
