# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Parser for LLVM metadata node definitions.

Only the printed node syntax is handled (the right-hand side of a
`!N = ...` line, or an inline `!DIExpression(...)` operand). Parsing is lazy:
a module's metadata table keeps the raw text and only the nodes a debug record
actually references go through the grammar.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from lark import Lark, Token, Transformer
from lark.exceptions import LarkError

from .diagnostics import MetadataShapeError

_GRAMMAR_PATH = Path(__file__).with_name("metadata.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text()

_PARSER = Lark(
	_GRAMMAR_SRC,
	parser="lalr",
	start="node",
	maybe_placeholders=False,
)

_HEX_ESCAPE = re.compile(r"\\([0-9A-Fa-f]{2})")
_REF = re.compile(r"^!(\d+)$")


def unescape(text: str) -> str:
	"""
	Decode the `\\XX` escapes the assembly writer uses inside quoted strings.

	Escapes stand for bytes, so a name spelled `\\C3\\A9` decodes to `é`.
	"""
	if "\\" not in text:
		return text
	out = bytearray()
	pos = 0
	for m in _HEX_ESCAPE.finditer(text):
		out += text[pos : m.start()].encode("utf-8")
		out.append(int(m.group(1), 16))
		pos = m.end()
	out += text[pos:].encode("utf-8")
	return out.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class MetadataRef:
	"""Reference to a numbered node (`!15`)."""

	id: int

	def __str__(self) -> str:  # pragma: no cover - trivial repr
		return f"!{self.id}"


@dataclass(frozen=True)
class MetadataNode:
	"""
	One parsed metadata node.

	`kind` is the specialized node name without the `!` (`DILocalVariable`),
	`tuple` for `!{...}` and `string` for `!"..."`. Keyed operands land in
	`fields`; positional ones (tuple elements, DIExpression opcodes) in `items`.
	"""

	kind: str
	fields: Mapping[str, Any] = field(default_factory=dict)
	items: tuple[Any, ...] = ()
	distinct: bool = False

	def get(self, key: str, default: Any = None) -> Any:
		return self.fields.get(key, default)

	@property
	def name(self) -> Optional[str]:
		value = self.fields.get("name")
		return value if isinstance(value, str) else None


class _NodeBuilder(Transformer):
	def node(self, children):
		body = children[-1]
		if len(children) == 2:
			return replace(body, distinct=True)
		return body

	def specialized(self, children):
		kind = str(children[0])[1:]
		fields: Dict[str, Any] = {}
		items = []
		for child in children[1:]:
			if isinstance(child, tuple) and len(child) == 3 and child[0] is _FIELD:
				fields[child[1]] = child[2]
			else:
				items.append(child)
		return MetadataNode(kind=kind, fields=fields, items=tuple(items))

	def tuple(self, children):
		return MetadataNode(kind="tuple", items=tuple(children))

	def string_node(self, children):
		return MetadataNode(kind="string", items=(self.string(children),))

	def field(self, children):
		return (_FIELD, str(children[0]), children[1])

	def string(self, children):
		text = str(children[0])
		if text.startswith("!"):
			text = text[1:]
		return unescape(text[1:-1])

	def ref(self, children):
		return MetadataRef(int(str(children[0])[1:]))

	def integer(self, children):
		return int(str(children[0]))

	def flags(self, children):
		names = [str(tok) for tok in children if isinstance(tok, Token)]
		if len(names) == 1:
			return _KEYWORDS.get(names[0], names[0])
		return tuple(names)

	def typed(self, children):
		return " ".join(str(tok) for tok in children)


_FIELD = object()
_KEYWORDS: Dict[str, Any] = {"null": None, "true": True, "false": False}
_BUILDER = _NodeBuilder()


def parse_node(text: str) -> MetadataNode:
	"""Parse one printed node; raises `LarkError` on malformed input."""
	return _BUILDER.transform(_PARSER.parse(text))


class MetadataTable:
	"""
	Numbered metadata definitions of one printed module.

	Definitions are kept as raw text and parsed on first lookup.
	"""

	def __init__(self, definitions: Optional[Mapping[int, str]] = None) -> None:
		self._definitions: Dict[int, str] = dict(definitions or {})
		self._parsed: Dict[int, MetadataNode] = {}

	def __len__(self) -> int:
		return len(self._definitions)

	def __contains__(self, ref: int) -> bool:
		return ref in self._definitions

	def lookup(self, ref: int) -> MetadataNode:
		node = self._parsed.get(ref)
		if node is not None:
			return node
		text = self._definitions.get(ref)
		if text is None:
			raise MetadataShapeError(f"metadata !{ref} is referenced but never defined")
		try:
			node = parse_node(text)
		except LarkError as err:
			detail = str(err).strip().splitlines()
			raise MetadataShapeError(f"metadata !{ref} could not be parsed", notes=[text, *detail[:1]]) from err
		self._parsed[ref] = node
		return node

	def resolve_operand(self, operand: str) -> MetadataNode:
		"""
		Resolve a metadata operand as it appears on a debug record.

		Accepts both the intrinsic spelling (`metadata !15`) and the debug
		record spelling (`!15`); inline nodes are parsed directly.
		"""
		text = operand.strip()
		if text.startswith("metadata "):
			text = text[len("metadata ") :].strip()
		m = _REF.match(text)
		if m:
			return self.lookup(int(m.group(1)))
		if text.startswith("!"):
			try:
				return parse_node(text)
			except LarkError as err:
				raise MetadataShapeError(f"malformed inline metadata operand '{text}'") from err
		raise MetadataShapeError(f"operand '{operand.strip()}' is not metadata")


__all__ = ["MetadataRef", "MetadataNode", "MetadataTable", "parse_node", "unescape"]
