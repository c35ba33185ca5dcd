# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from pathlib import Path

import pytest

from staticlink.context import BuildContext
from staticlink.directives import AddSearchPath, LinkLibrary
from staticlink.emitter import StaticEmitter, UpstreamEmitter, get_emitter
from staticlink.manifest_v0 import Manifest
from staticlink.pipeline import plan
from staticlink.resolver import resolve_ambiguities
from staticlink.target import TargetTriple
from staticlink.tests.resolver_test_helpers import FakeRunner, touch


def _ffmpeg_manifest(lib: Path) -> Manifest:
	m = Manifest()
	m.add_search_path(lib)
	m.register("gcc_eh", "static", group="runtime", probe="libgcc_eh.a")
	m.register("bcrypt", "static", "windows", group="system")
	m.register("x264", "static", group="codec")
	m.register("avcodec", "static")
	m.register("z", "static", group="codec")
	m.register("ws2_32", "static", "windows", group="system")
	m.register("avutil", "static")
	return m


def test_scenario_x264_z_bcrypt(tmp_path: Path, context: BuildContext) -> None:
	lib = tmp_path / "installed" / "lib"
	for name in ("x264", "z"):
		touch(lib / f"lib{name}.a")
		touch(lib / f"lib{name}.dll.a")
	m = Manifest()
	m.add_search_path(lib)
	m.register("x264", "static", group="codec")
	m.register("z", "static", group="codec")
	m.register("bcrypt", "static", 'target_os = "windows"', group="system")

	report = plan(m, context)

	assert report.ok
	assert not (lib / "libx264.dll.a").exists()
	assert not (lib / "libz.dll.a").exists()
	assert (lib / "libx264.a").exists() and (lib / "libz.a").exists()
	assert report.directives is not None
	assert list(report.directives.entries) == [
		AddSearchPath(str(lib)),
		LinkLibrary("x264", "static"),
		LinkLibrary("z", "static"),
		LinkLibrary("bcrypt", "static"),
	]


def test_group_precedence_and_probe_dir(tmp_path: Path, mingw_target: TargetTriple) -> None:
	lib = tmp_path / "lib"
	for name in ("avcodec", "avutil", "x264", "z"):
		touch(lib / f"lib{name}.a")
	gcc = tmp_path / "gcc" / "14.2.0"
	touch(gcc / "libgcc_eh.a")
	runner = FakeRunner({"-print-file-name=libgcc_eh.a": (0, str(gcc / "libgcc_eh.a"), "")})
	ctx = BuildContext.create(mingw_target, compiler="gcc", runner=runner)
	m = _ffmpeg_manifest(lib)

	result = StaticEmitter().emit(m, ctx, resolve_ambiguities(m, ctx.target))

	assert [str(d) for d in result.directives.entries] == [
		f"AddSearchPath({lib})",
		"LinkLibrary(avcodec,static)",
		"LinkLibrary(avutil,static)",
		"LinkLibrary(x264,static)",
		"LinkLibrary(z,static)",
		"LinkLibrary(bcrypt,static)",
		"LinkLibrary(ws2_32,static)",
		f"AddSearchPath({gcc.resolve()})",
		"LinkLibrary(gcc_eh,static)",
	]
	assert result.findings == []


def test_probe_failure_skips_search_path_only(tmp_path: Path, context: BuildContext, fake_runner: FakeRunner) -> None:
	lib = tmp_path / "lib"
	m = _ffmpeg_manifest(lib)

	result = StaticEmitter().emit(m, context, resolve_ambiguities(m, context.target))

	assert not any(isinstance(d, AddSearchPath) for d in result.directives.entries)
	assert result.directives.entries[-1] == LinkLibrary("gcc_eh", "static")
	assert [f.reason_code for f in result.findings] == ["PROBE_UNAVAILABLE"]
	assert len(fake_runner.calls) == 1


def test_identical_inputs_give_identical_streams(tmp_path: Path) -> None:
	lib = tmp_path / "lib"
	for name in ("avcodec", "x264"):
		touch(lib / f"lib{name}.a")
	streams = []
	for _ in range(2):
		ctx = BuildContext.create("x86_64-w64-mingw32", compiler="gcc", runner=FakeRunner())
		m = _ffmpeg_manifest(lib)
		report = plan(m, ctx)
		assert report.directives is not None
		streams.append(report.directives.canonical_bytes())
	assert streams[0] == streams[1]


def test_static_entries_never_emitted_dynamic(tmp_path: Path, context: BuildContext) -> None:
	m = _ffmpeg_manifest(tmp_path / "lib")
	m.register("vulkan-1", "dynamic", group="system")
	static_names = {e.name for e in m.enabled_entries(context.target) if e.mode == "static"}

	for emitter in (StaticEmitter(), UpstreamEmitter()):
		result = emitter.emit(m, BuildContext.create(context.target, compiler="gcc", runner=FakeRunner()))
		for d in result.directives.entries:
			if isinstance(d, LinkLibrary) and d.name in static_names:
				assert d.mode == "static"
		assert LinkLibrary("vulkan-1", "dynamic") in result.directives.entries


def test_upstream_emitter_keeps_declaration_order(tmp_path: Path, context: BuildContext, fake_runner: FakeRunner) -> None:
	prefix = tmp_path / "x264"
	m = Manifest()
	m.register("bcrypt", "static", group="system")
	m.register("x264", "static", group="codec", search_path=prefix)
	m.register("avcodec", "static")

	result = get_emitter("upstream").emit(m, context)

	assert [str(d) for d in result.directives.entries] == [
		"LinkLibrary(bcrypt,static)",
		f"AddSearchPath({prefix})",
		"LinkLibrary(x264,static)",
		"LinkLibrary(avcodec,static)",
	]
	assert fake_runner.calls == []


def test_search_path_emitted_once_before_first_user(tmp_path: Path, context: BuildContext) -> None:
	prefix = tmp_path / "prefix"
	m = Manifest()
	m.register("avformat", "static")
	m.register("x264", "static", group="codec", search_path=prefix)
	m.register("x265", "static", group="codec", search_path=prefix)

	result = StaticEmitter().emit(m, context)

	assert [str(d) for d in result.directives.entries] == [
		"LinkLibrary(avformat,static)",
		f"AddSearchPath({prefix})",
		"LinkLibrary(x264,static)",
		"LinkLibrary(x265,static)",
	]


def test_unknown_emitter() -> None:
	with pytest.raises(ValueError):
		get_emitter("meson")


def test_plan_stops_at_ambiguity(tmp_path: Path, context: BuildContext, fake_runner: FakeRunner) -> None:
	lib = tmp_path / "lib"
	touch(lib / "libz.a")
	touch(lib / "libz.dll.a")
	m = Manifest()
	m.add_search_path(lib)
	m.register("z", "static")
	m.register("gcc_eh", "static", group="runtime", probe="libgcc_eh.a")

	report = plan(m, context, repair=False)

	assert not report.ok
	assert report.directives is None
	assert [e.reason_code for e in report.errors] == ["AMBIGUOUS_LINK_TARGET"]
	assert fake_runner.calls == []
	assert (lib / "libz.dll.a").exists()


def test_ranked_dirs_emitted_in_rank_order(tmp_path: Path, context: BuildContext) -> None:
	vendor = tmp_path / "vendor"
	build = tmp_path / "build"
	touch(vendor / "libvulkan-1.dll.a")
	touch(build / "libavcodec.a")
	touch(build / "libvulkan-1.a")
	m = Manifest()
	m.add_search_path(build, rank=1)
	m.add_search_path(vendor, rank=0)
	m.register("avcodec", "static")
	m.register("vulkan-1", "dynamic", group="system")

	report = plan(m, context)

	assert report.ok
	assert report.resolution is not None
	vk = report.resolution.get("vulkan-1")
	assert vk is not None and vk.path == vendor / "libvulkan-1.dll.a"
	assert report.directives is not None
	assert [str(d) for d in report.directives.entries] == [
		f"AddSearchPath({vendor})",
		f"AddSearchPath({build})",
		"LinkLibrary(avcodec,static)",
		"LinkLibrary(vulkan-1,dynamic)",
	]


def test_prefix_dir_shadowing_resolved_file_is_ambiguous(tmp_path: Path, context: BuildContext) -> None:
	prefix = tmp_path / "x264"
	lib = tmp_path / "lib"
	touch(prefix / "libx264.a")
	touch(prefix / "libvulkan-1.a")
	touch(lib / "libvulkan-1.dll.a")
	m = Manifest()
	m.add_search_path(lib)
	m.register("x264", "static", group="codec", search_path=prefix)
	m.register("vulkan-1", "dynamic", group="system")

	report = plan(m, context)

	assert not report.ok
	assert [e.reason_code for e in report.errors] == ["AMBIGUOUS_LINK_TARGET"]
	assert report.errors[0].library == "vulkan-1"
	assert report.directives is None


def test_shared_probe_failure_reported_once(tmp_path: Path, context: BuildContext, fake_runner: FakeRunner) -> None:
	m = Manifest()
	m.register("gcc_eh", "static", group="runtime", probe="libgcc_eh.a")
	m.register("gcc", "static", group="runtime", probe="libgcc_eh.a")

	result = StaticEmitter().emit(m, context)

	assert [f.reason_code for f in result.findings] == ["PROBE_UNAVAILABLE"]
	assert len(fake_runner.calls) == 1
	assert [str(d) for d in result.directives.entries] == ["LinkLibrary(gcc_eh,static)", "LinkLibrary(gcc,static)"]


def test_plan_failure_leaves_tree_untouched(tmp_path: Path, context: BuildContext) -> None:
	lib = tmp_path / "lib"
	touch(lib / "libx264.a")
	touch(lib / "libx264.dll.a")
	touch(lib / "libiconv.dll.a")
	m = Manifest()
	m.add_search_path(lib)
	m.register("x264", "static", group="codec")
	m.register("iconv", "static", group="codec")

	report = plan(m, context)

	assert not report.ok
	assert [e.reason_code for e in report.errors] == ["MISSING_STATIC_ARCHIVE"]
	assert (lib / "libx264.dll.a").exists()
	assert not (lib / "libx264.dll.a.disabled").exists()
