# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
In-memory view of a loaded module, as consumed by the harness stages.

The loader fills these from llvmlite; tests build them directly. Nothing here
knows about llvmlite.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Mapping, Optional, Tuple

from .metadata import MetadataTable


class TypeKind(Enum):
	INTEGER = "integer"
	POINTER = "pointer"
	OTHER = "other"


_INT_TYPE = re.compile(r"^i(\d+)$")


@dataclass(frozen=True)
class IRType:
	"""Static type of a formal parameter, keyed by its LLVM spelling."""

	kind: TypeKind
	text: str
	width: Optional[int] = None  # bit width, integers only

	@classmethod
	def from_text(cls, text: str, *, is_pointer: bool = False) -> "IRType":
		text = text.strip()
		m = _INT_TYPE.match(text)
		if m:
			return cls(TypeKind.INTEGER, text, int(m.group(1)))
		# Opaque (`ptr`, `ptr addrspace(N)`) and typed (`i8*`) pointers.
		if is_pointer or text == "ptr" or text.startswith("ptr addrspace(") or text.endswith("*"):
			return cls(TypeKind.POINTER, text)
		return cls(TypeKind.OTHER, text)

	@property
	def is_integer(self) -> bool:
		return self.kind is TypeKind.INTEGER

	@property
	def is_pointer(self) -> bool:
		return self.kind is TypeKind.POINTER

	def __str__(self) -> str:  # pragma: no cover - trivial repr
		return self.text


@dataclass(frozen=True)
class FormalParam:
	index: int
	type: IRType
	value_name: str = ""
	# Parameter attributes as printed: `noundef`, `byval(%struct.S)`, `align 8`.
	attributes: Tuple[str, ...] = ()

	def attribute(self, kind: str) -> Optional[str]:
		"""The spelled attribute of this kind, or None when absent."""
		for attr in self.attributes:
			if attr == kind or attr.startswith((f"{kind}(", f"{kind}=", f"{kind} ")):
				return attr
		return None


@dataclass(frozen=True)
class Instruction:
	"""
	One entry-block line, classified as a call or as anything else.

	`callee` is the called global's name for direct calls and `None` otherwise.
	Debug records (`#dbg_declare(...)`) are reported as calls to the
	equivalent intrinsic so both IR spellings scan the same way.
	"""

	text: str
	callee: Optional[str] = None
	operands: Tuple[str, ...] = ()

	@property
	def is_call(self) -> bool:
		return self.callee is not None

	def calls(self, names: Iterable[str]) -> bool:
		return self.callee is not None and self.callee in names


@dataclass(frozen=True)
class TargetFunction:
	"""A defined function: ordered formal parameters plus its entry block."""

	name: str
	params: Tuple[FormalParam, ...]
	entry_block: Tuple[Instruction, ...]
	metadata: MetadataTable = field(default_factory=MetadataTable, compare=False, repr=False)

	@property
	def param_count(self) -> int:
		return len(self.params)


class IRModule:
	"""One loaded module: identity, triple and lookup-function-by-name."""

	def __init__(
		self,
		name: str,
		*,
		triple: str = "",
		functions: Optional[Mapping[str, TargetFunction]] = None,
		source_file: Optional[str] = None,
	) -> None:
		self.name = name
		self.triple = triple
		self.source_file = source_file
		self._functions: Dict[str, TargetFunction] = dict(functions or {})

	def get_function(self, name: str) -> Optional[TargetFunction]:
		"""Return the defined function called `name`, or None."""
		return self._functions.get(name)

	def __repr__(self) -> str:  # pragma: no cover - debugging aid
		return f"IRModule({self.name!r}, triple={self.triple!r})"


__all__ = ["TypeKind", "IRType", "FormalParam", "Instruction", "TargetFunction", "IRModule"]
