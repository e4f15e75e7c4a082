# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Module loader backed by llvmlite.

Accepts LLVM bitcode (raw or wrapped, one or more modules) or textual IR,
parses and verifies each module, applies the triple override, and exposes the
results as `IRModule`s in container order.
Parameter types come from llvmlite's value API; entry blocks and metadata come
from one printed rendering of the module.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Dict, List, Optional

from llvmlite import binding as llvm  # type: ignore

from . import bitcode, irtext
from .config import HarnessConfig
from .diagnostics import LoaderError
from .ir import FormalParam, IRModule, IRType, TargetFunction
from .metadata import MetadataTable

STDIN = "-"


def read_input(path: str) -> bytes:
	"""Read raw module bytes from a file, or from stdin for `-`."""
	if path == STDIN:
		return sys.stdin.buffer.read()
	try:
		return Path(path).read_bytes()
	except OSError as err:
		raise LoaderError(f"could not read input: {err.strerror or err}", file=path) from err


def is_bitcode(data: bytes) -> bool:
	return data[:4] in (bitcode.BITCODE_MAGIC, bitcode.WRAPPER_MAGIC)


def _attribute_text(attr) -> str:
	# llvmlite yields attributes as bytes.
	return attr.decode("utf-8") if isinstance(attr, bytes) else str(attr)


class LlvmliteModule(IRModule):
	"""`IRModule` over a parsed llvmlite `ModuleRef`; functions are built on lookup."""

	def __init__(self, ref, *, source_file: Optional[str] = None) -> None:
		super().__init__(ref.name, triple=ref.triple, source_file=source_file)
		self._ref = ref
		self._text = str(ref)
		self._metadata = MetadataTable(irtext.metadata_definitions(self._text))
		self._cache: Dict[str, Optional[TargetFunction]] = {}

	def get_function(self, name: str) -> Optional[TargetFunction]:
		if name not in self._cache:
			self._cache[name] = self._build_function(name)
		return self._cache[name]

	def _build_function(self, name: str) -> Optional[TargetFunction]:
		try:
			value = self._ref.get_function(name)
		except NameError:
			return None
		if value.is_declaration:
			return None
		params = tuple(
			FormalParam(
				index=idx,
				type=IRType.from_text(str(arg.type), is_pointer=arg.type.is_pointer),
				value_name=arg.name,
				attributes=tuple(_attribute_text(attr) for attr in arg.attributes),
			)
			for idx, arg in enumerate(value.arguments)
		)
		body = irtext.function_body(self._text, name)
		if body is None:
			raise LoaderError(f"could not locate the body of '{name}' in the printed module", file=self.source_file)
		entry = tuple(irtext.parse_instruction(line) for line in irtext.entry_block(body))
		return TargetFunction(name=name, params=params, entry_block=entry, metadata=self._metadata)


def parse_module(data: bytes, *, source: str):
	"""Parse one module of bitcode or textual IR into a verified llvmlite `ModuleRef`."""
	try:
		if is_bitcode(data):
			ref = llvm.parse_bitcode(data)
		else:
			ref = llvm.parse_assembly(data.decode("utf-8"))
		ref.verify()
	except UnicodeDecodeError as err:
		raise LoaderError("input is neither LLVM bitcode nor UTF-8 textual IR", file=source) from err
	except RuntimeError as err:
		lines = [line for line in str(err).strip().splitlines() if line.strip()]
		message = lines[0] if lines else "invalid module"
		raise LoaderError(message, file=source, notes=lines[1:]) from err
	return ref


def module_buffers(data: bytes, *, source: str) -> List[bytes]:
	"""One buffer per module: bitcode containers are split, textual IR is one module."""
	if not is_bitcode(data):
		return [data]
	try:
		return bitcode.split_modules(data)
	except ValueError as err:
		raise LoaderError(f"malformed bitcode container: {err}", file=source) from err


def load_modules(data: bytes, config: HarnessConfig, *, source: str = "<stdin>") -> List[IRModule]:
	"""Load every module in `data`, in container order."""
	if not data:
		raise LoaderError("input is empty", file=source)
	buffers = module_buffers(data, source=source)
	modules: List[IRModule] = []
	for idx, buf in enumerate(buffers):
		ref = parse_module(buf, source=source)
		if config.target_triple is not None:
			ref.triple = config.target_triple
		module = LlvmliteModule(ref, source_file=source)
		if len(buffers) > 1 and not module.name:
			module.name = f"{source}#{idx}"
		modules.append(module)
	return modules


def load_path(path: str, config: HarnessConfig) -> List[IRModule]:
	source = "<stdin>" if path == STDIN else path
	return load_modules(read_input(path), config, source=source)


__all__ = ["STDIN", "read_input", "is_bitcode", "LlvmliteModule", "parse_module", "module_buffers", "load_modules", "load_path"]
