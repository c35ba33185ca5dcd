# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import codecs
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from lark import Lark, Token, Tree
from lark.exceptions import UnexpectedInput

from staticlink.target import TargetTriple

_GRAMMAR_PATH = Path(__file__).with_name("predicate.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text()

_PARSER = Lark(
	_GRAMMAR_SRC,
	parser="lalr",
	lexer="basic",
	start="start",
	propagate_positions=True,
	maybe_placeholders=False,
)

_KNOWN_KEYS = {"target_arch", "target_vendor", "target_os", "target_env", "target_family"}
_KNOWN_FLAGS = {"windows", "unix"}

PlatformPredicate = Callable[[TargetTriple], bool]


class PredicateError(ValueError):
	"""User-facing error for a platform predicate that does not parse or names an unknown key."""

	def __init__(self, message: str, *, source: str) -> None:
		super().__init__(f"{message} in platform predicate {source!r}")
		self.source = source


@dataclass(frozen=True)
class Predicate:
	"""A parsed platform predicate; callable on a `TargetTriple`."""

	source: str
	_fn: PlatformPredicate = field(repr=False, compare=False)

	def __call__(self, target: TargetTriple) -> bool:
		return self._fn(target)


def always(_target: TargetTriple) -> bool:
	return True


def parse_predicate(source: str) -> Predicate:
	try:
		tree = _PARSER.parse(source)
	except UnexpectedInput as err:
		raise PredicateError(f"syntax error at column {getattr(err, 'column', '?')}", source=source) from err
	return Predicate(source=source, _fn=_build(tree, source))


def _name(node: Tree) -> str:
	return node.data.value if isinstance(node.data, Token) else str(node.data)


def _build(node: Tree | Token, source: str) -> PlatformPredicate:
	if isinstance(node, Token):
		raise PredicateError(f"unexpected token {node.value!r}", source=source)
	kind = _name(node)
	if kind == "all_":
		parts = [_build(c, source) for c in node.children]
		return lambda t: all(p(t) for p in parts)
	if kind == "any_":
		parts = [_build(c, source) for c in node.children]
		return lambda t: any(p(t) for p in parts)
	if kind == "not_":
		inner = _build(node.children[0], source)
		return lambda t: not inner(t)
	if kind == "cmp":
		key_tok, value_tok = node.children
		key = str(key_tok)
		if key not in _KNOWN_KEYS:
			raise PredicateError(f"unknown key '{key}'", source=source)
		value = codecs.decode(value_tok.value[1:-1], "unicode_escape").lower()
		return lambda t: t.cfg_value(key) == value
	if kind == "flag":
		flag = str(node.children[0])
		if flag not in _KNOWN_FLAGS:
			raise PredicateError(f"unknown flag '{flag}'", source=source)
		return lambda t: t.family == flag
	raise PredicateError(f"unsupported construct '{kind}'", source=source)
