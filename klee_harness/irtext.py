# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Readers for the textual form of a module.

The loader prints a module once and reads function bodies and metadata
definitions from that single rendering, so `!N` references on debug records
and the `!N = ...` definitions share one numbering.
"""

from __future__ import annotations

import re
from typing import Dict, List, Optional

from .ir import Instruction
from .metadata import unescape

_PLAIN_NAME = re.compile(r"^[-a-zA-Z$._][-a-zA-Z$._0-9]*$")
_LABEL = re.compile(r'^(?:"[^"]*"|[-a-zA-Z$._0-9]+):')
_METADATA_DEF = re.compile(r"^!(\d+) = (.+)$")
_RECORD = re.compile(r"^#dbg_(\w+)\(")
_CALL = re.compile(r"^(?:%\S+ = )?(?:(?:tail|musttail|notail) )?call\b")
_CALLEE = re.compile(r'@("(?:[^"\\]|\\.)*"|[-a-zA-Z$._0-9]+)\(')

_OPEN = "([{<"
_CLOSE = ")]}>"


def spell_global(name: str) -> str:
	"""Spell a global name the way the assembly writer prints it (`@f`, `@"a b"`)."""
	if _PLAIN_NAME.match(name):
		return f"@{name}"
	# Escapes are per UTF-8 byte.
	escaped = "".join(
		chr(b) if 0x20 <= b < 0x7F and b not in b'"\\' else f"\\{b:02X}"
		for b in name.encode("utf-8")
	)
	return f'@"{escaped}"'


def _global_name(spelled: str) -> str:
	if spelled.startswith('"'):
		return unescape(spelled[1:-1])
	return spelled


def matching_close(text: str, open_index: int) -> int:
	"""
	Index of the bracket closing the one at `open_index`.

	Quoted strings are skipped; raises ValueError when the text is unbalanced.
	"""
	depth = 0
	in_string = False
	for i in range(open_index, len(text)):
		ch = text[i]
		if in_string:
			if ch == '"':
				in_string = False
			continue
		if ch == '"':
			in_string = True
		elif ch in _OPEN:
			depth += 1
		elif ch in _CLOSE:
			depth -= 1
			if depth == 0:
				return i
	raise ValueError(f"unbalanced operand list: {text}")


def split_operands(text: str) -> List[str]:
	"""Split an operand list on its top-level commas."""
	operands: List[str] = []
	depth = 0
	in_string = False
	start = 0
	for i, ch in enumerate(text):
		if in_string:
			if ch == '"':
				in_string = False
			continue
		if ch == '"':
			in_string = True
		elif ch in _OPEN:
			depth += 1
		elif ch in _CLOSE:
			depth -= 1
		elif ch == "," and depth == 0:
			operands.append(text[start:i].strip())
			start = i + 1
	tail = text[start:].strip()
	if tail or operands:
		operands.append(tail)
	return operands


def parse_instruction(line: str) -> Instruction:
	"""Classify one entry-block line."""
	text = line.strip()
	m = _RECORD.match(text)
	if m:
		close = matching_close(text, m.end() - 1)
		return Instruction(
			text=text,
			callee=f"llvm.dbg.{m.group(1)}",
			operands=tuple(split_operands(text[m.end() : close])),
		)
	if not _CALL.match(text):
		return Instruction(text=text)
	callee = _CALLEE.search(text)
	if callee is None:
		# Indirect call through a local value.
		return Instruction(text=text)
	open_index = callee.end() - 1
	close = matching_close(text, open_index)
	return Instruction(
		text=text,
		callee=_global_name(callee.group(1)),
		operands=tuple(split_operands(text[open_index + 1 : close])),
	)


def function_body(module_text: str, name: str) -> Optional[List[str]]:
	"""Lines between `define ... @name(...) {` and the closing `}`."""
	needle = f"{spell_global(name)}("
	lines = module_text.splitlines()
	for idx, line in enumerate(lines):
		if not line.startswith("define ") or needle not in line:
			continue
		# The defined name is the first global on the line; later ones are operands.
		if line.index(needle) != line.index("@"):
			continue
		body: List[str] = []
		for inner in lines[idx + 1 :]:
			if inner.startswith("}"):
				return body
			body.append(inner)
		return body
	return None


def entry_block(body: List[str]) -> List[str]:
	"""The instruction and debug-record lines of the first basic block."""
	lines: List[str] = []
	for line in body:
		stripped = line.strip()
		if not stripped or stripped.startswith(";"):
			continue
		if not line[0].isspace() and _LABEL.match(line):
			if lines:
				break
			continue
		lines.append(stripped)
	return lines


def metadata_definitions(module_text: str) -> Dict[int, str]:
	"""Map `!N` to the printed node text of every numbered definition."""
	defs: Dict[int, str] = {}
	for line in module_text.splitlines():
		m = _METADATA_DEF.match(line)
		if m:
			defs[int(m.group(1))] = m.group(2).strip()
	return defs


__all__ = [
	"spell_global",
	"matching_close",
	"split_operands",
	"parse_instruction",
	"function_body",
	"entry_block",
	"metadata_definitions",
]
