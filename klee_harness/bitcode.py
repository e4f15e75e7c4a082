# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Top-level layout of an LLVM bitcode container.

A container holds one or more modules. Each module is an IDENTIFICATION block
followed by its MODULE block; the next STRTAB block holds the names of every
module written since the previous STRTAB. llvmlite parses a single module per
buffer, so `split_modules` cuts a container into standalone buffers, each one
`magic + IDENTIFICATION + MODULE + STRTAB`.

Only the top-level block headers are decoded; block contents are copied
verbatim.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Dict, List, Optional

BITCODE_MAGIC = b"BC\xc0\xde"
# Little-endian 0x0B17C0DE, used by Darwin-style bitcode wrappers.
WRAPPER_MAGIC = b"\xde\xc0\x17\x0b"

# Wrapper header layout: magic(u32), version(u32), offset(u32), size(u32),
# cputype(u32)
_WRAPPER_STRUCT = struct.Struct("<IIIII")

MODULE_BLOCK_ID = 8
IDENTIFICATION_BLOCK_ID = 13
STRTAB_BLOCK_ID = 23
SYMTAB_BLOCK_ID = 25

_TOP_LEVEL_ABBREV_WIDTH = 2
_ENTER_SUBBLOCK = 1


@dataclass(frozen=True)
class Block:
	"""One top-level block; `start`/`end` are byte offsets into the stream."""

	block_id: int
	start: int
	end: int


class _BitReader:
	"""LSB-first bit cursor over a bitstream."""

	def __init__(self, data: bytes, pos: int = 0) -> None:
		self.data = data
		self.pos = pos

	@property
	def remaining(self) -> int:
		return len(self.data) * 8 - self.pos

	def read(self, width: int) -> int:
		if width > self.remaining:
			raise ValueError("truncated bitcode stream")
		value = 0
		for i in range(width):
			bit = self.pos + i
			value |= ((self.data[bit >> 3] >> (bit & 7)) & 1) << i
		self.pos += width
		return value

	def read_vbr(self, width: int) -> int:
		hi = 1 << (width - 1)
		value = 0
		shift = 0
		while True:
			chunk = self.read(width)
			value |= (chunk & (hi - 1)) << shift
			if not chunk & hi:
				return value
			shift += width - 1

	def align32(self) -> None:
		self.pos = (self.pos + 31) & ~31


def unwrap(data: bytes) -> bytes:
	"""Strip a bitcode wrapper header; raw bitcode is returned unchanged."""
	if data[:4] != WRAPPER_MAGIC:
		return data
	if len(data) < _WRAPPER_STRUCT.size:
		raise ValueError("truncated bitcode wrapper header")
	_magic, _version, offset, size, _cputype = _WRAPPER_STRUCT.unpack_from(data)
	if offset + size > len(data):
		raise ValueError("bitcode wrapper points past the end of the input")
	return data[offset : offset + size]


def top_level_blocks(data: bytes) -> List[Block]:
	"""
	Return the top-level blocks of raw bitcode, in stream order.

	Scanning stops at the first entry that is not a block, which covers the
	zero padding some producers leave at the end.
	"""
	if data[:4] != BITCODE_MAGIC:
		raise ValueError("missing bitcode magic")
	reader = _BitReader(data, 32)
	blocks: List[Block] = []
	# Every top-level block needs at least its header word and length word.
	while reader.remaining >= 64:
		start = reader.pos
		if reader.read(_TOP_LEVEL_ABBREV_WIDTH) != _ENTER_SUBBLOCK:
			break
		block_id = reader.read_vbr(8)
		reader.read_vbr(4)
		reader.align32()
		num_words = reader.read(32)
		end = reader.pos + num_words * 32
		if end > len(data) * 8:
			raise ValueError(f"bitcode block {block_id} runs past the end of the input")
		blocks.append(Block(block_id=block_id, start=start // 8, end=end // 8))
		reader.pos = end
	return blocks


def split_modules(data: bytes) -> List[bytes]:
	"""
	Split a bitcode container into one single-module buffer per module.

	A container holding at most one module is returned as-is (unwrapped), so
	the parser sees the original bytes and reports its own errors.
	"""
	data = unwrap(data)
	blocks = top_level_blocks(data)
	spans: List[tuple[int, int]] = []
	strtabs: Dict[int, bytes] = {}
	waiting: List[int] = []
	ident_start: Optional[int] = None
	for block in blocks:
		if block.block_id == IDENTIFICATION_BLOCK_ID:
			ident_start = block.start
		elif block.block_id == MODULE_BLOCK_ID:
			start = ident_start if ident_start is not None else block.start
			ident_start = None
			waiting.append(len(spans))
			spans.append((start, block.end))
		elif block.block_id == STRTAB_BLOCK_ID:
			for idx in waiting:
				strtabs[idx] = data[block.start : block.end]
			waiting = []
	if len(spans) <= 1:
		return [data]
	return [BITCODE_MAGIC + data[start:end] + strtabs.get(idx, b"") for idx, (start, end) in enumerate(spans)]


__all__ = [
	"BITCODE_MAGIC",
	"WRAPPER_MAGIC",
	"Block",
	"unwrap",
	"top_level_blocks",
	"split_modules",
]
