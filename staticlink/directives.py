# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Link directives and the ordered log that carries them to the build tool.

Linkers resolve symbols in one left-to-right pass: a library only satisfies
references from inputs that appear before it. Every renderer here therefore
places the directive stream after all object files, and the stream itself is
consumed exactly once, in order.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Union

from staticlink.manifest_v0 import LinkMode


@dataclass(frozen=True)
class AddSearchPath:
	path: str

	def to_dict(self) -> dict[str, Any]:
		return {"kind": "search_path", "path": self.path}

	def __str__(self) -> str:
		return f"AddSearchPath({self.path})"


@dataclass(frozen=True)
class LinkLibrary:
	name: str
	mode: LinkMode

	def to_dict(self) -> dict[str, Any]:
		return {"kind": "link_library", "name": self.name, "mode": self.mode}

	def __str__(self) -> str:
		return f"LinkLibrary({self.name},{self.mode})"


Directive = Union[AddSearchPath, LinkLibrary]


class DirectiveLog:
	"""Append-only, ordered directive stream; produced once and consumed once."""

	def __init__(self) -> None:
		self._items: list[Directive] = []
		self._paths: set[str] = set()
		self._modes: dict[str, str] = {}
		self._consumed = False

	def add_search_path(self, path: Path | str) -> bool:
		"""Append AddSearchPath unless the path was already added. Returns True if appended."""
		self._check_open()
		p = str(path)
		if p in self._paths:
			return False
		self._paths.add(p)
		self._items.append(AddSearchPath(p))
		return True

	def link_library(self, name: str, mode: LinkMode) -> None:
		self._check_open()
		prev = self._modes.get(name)
		if prev is not None and prev != mode:
			raise ValueError(f"library '{name}' already linked as {prev}, refusing to link it as {mode}")
		self._modes[name] = mode
		self._items.append(LinkLibrary(name, mode))

	@property
	def entries(self) -> tuple[Directive, ...]:
		return tuple(self._items)

	@property
	def consumed(self) -> bool:
		return self._consumed

	def consume(self) -> Iterator[Directive]:
		if self._consumed:
			raise RuntimeError("directive stream has already been consumed")
		self._consumed = True
		return iter(tuple(self._items))

	def to_list(self) -> list[dict[str, Any]]:
		return [d.to_dict() for d in self._items]

	def canonical_bytes(self) -> bytes:
		return json.dumps(self.to_list(), sort_keys=True, separators=(",", ":")).encode("utf-8")

	def fingerprint(self) -> str:
		return "sha256:" + hashlib.sha256(self.canonical_bytes()).hexdigest()

	def __len__(self) -> int:
		return len(self._items)

	def _check_open(self) -> None:
		if self._consumed:
			raise RuntimeError("directive stream is closed: it has already been consumed")


def render_cargo(log: DirectiveLog) -> list[str]:
	"""Render as `cargo:` build-script lines."""
	out: list[str] = []
	for d in log.consume():
		if isinstance(d, AddSearchPath):
			out.append(f"cargo:rustc-link-search=native={d.path}")
		else:
			kind = "static" if d.mode == "static" else "dylib"
			out.append(f"cargo:rustc-link-lib={kind}={d.name}")
	return out


def render_link_args(objects: list[str], log: DirectiveLog) -> list[str]:
	"""
	Linker arguments: every object first, then the directive stream.

	Static and dynamic libraries are bracketed with -Wl,-Bstatic / -Wl,-Bdynamic;
	the final state is always dynamic so the driver's own trailing libraries link normally.
	"""
	args: list[str] = [str(o) for o in objects]
	current = "dynamic"
	for d in log.consume():
		if isinstance(d, AddSearchPath):
			args.append(f"-L{d.path}")
			continue
		if d.mode != current:
			args.append("-Wl,-Bstatic" if d.mode == "static" else "-Wl,-Bdynamic")
			current = d.mode
		args.append(f"-l{d.name}")
	if current != "dynamic":
		args.append("-Wl,-Bdynamic")
	return args


def link_command(compiler: str, objects: list[str], log: DirectiveLog, output: Path | str) -> list[str]:
	return [compiler, "-o", str(output), *render_link_args(objects, log)]


def render_text(log: DirectiveLog) -> list[str]:
	return [str(d) for d in log.consume()]
