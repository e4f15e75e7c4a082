# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .config import HarnessConfig
from .diagnostics import UnsupportedTypeError
from .ir import IRType, TargetFunction
from .metadata import MetadataNode

SUPPORTED_INT_WIDTHS = (8, 16, 32, 64, 128)
AGGREGATE_TAGS = {
	"DW_TAG_structure_type": "struct",
	"DW_TAG_union_type": "union",
	"DW_TAG_class_type": "class",
}
INDIRECT_ATTRIBUTES = ("sret", "byval", "inalloca", "preallocated")


class RepresentationKind(Enum):
	BYTE_BUFFER = "byte_buffer"
	SCALAR_INT = "scalar_int"


@dataclass(frozen=True)
class Representation:
	"""
	Concrete C storage for one parameter.

	`size` is a byte count for buffers and a bit width for integers.
	"""

	kind: RepresentationKind
	size: int

	@classmethod
	def byte_buffer(cls, size: int) -> "Representation":
		return cls(RepresentationKind.BYTE_BUFFER, size)

	@classmethod
	def scalar_int(cls, bit_width: int) -> "Representation":
		return cls(RepresentationKind.SCALAR_INT, bit_width)

	@property
	def c_type(self) -> str:
		if self.kind is RepresentationKind.BYTE_BUFFER:
			return "char"
		return f"i{self.size}"

	@property
	def byte_extent(self) -> int:
		if self.kind is RepresentationKind.BYTE_BUFFER:
			return self.size
		return self.size // 8


def select_representation(
	ty: IRType,
	config: HarnessConfig,
	*,
	name: Optional[str] = None,
	source_type: Optional[MetadataNode] = None,
) -> Representation:
	"""
	Choose the storage shape for a parameter of static type `ty`.

	Pointers become a `config.buffer_size` byte buffer whatever they point to;
	integers keep their width. Every other type is rejected, and so is a
	parameter whose declared source type is a struct, union or class: the
	lowered `ty` is then only the calling convention's coercion of it.
	"""
	what = f"parameter '{name}'" if name else "parameter"
	if source_type is not None and source_type.kind == "DICompositeType":
		noun = AGGREGATE_TAGS.get(source_type.get("tag"))
		if noun is not None:
			label = f" '{source_type.name}'" if source_type.name else ""
			raise UnsupportedTypeError(
				f"{what} is a {noun}{label} passed by value",
				notes=[f"lowered to '{ty.text}'"],
			)
	if ty.is_pointer:
		return Representation.byte_buffer(config.buffer_size)
	if ty.is_integer:
		if ty.width not in SUPPORTED_INT_WIDTHS:
			raise UnsupportedTypeError(
				f"{what} has unsupported integer width {ty.width}",
				notes=["supported widths: " + ", ".join(str(w) for w in SUPPORTED_INT_WIDTHS)],
			)
		return Representation.scalar_int(ty.width)
	raise UnsupportedTypeError(f"{what} has unsupported type '{ty.text}'")


def check_parameter_passing(fn: TargetFunction) -> None:
	"""
	Reject formals that do not correspond one-to-one with source arguments.

	`sret` is a hidden slot for an aggregate return value; `byval` and friends
	carry an aggregate argument through a pointer the caller never sees.
	"""
	for param in fn.params:
		for kind in INDIRECT_ATTRIBUTES:
			spelled = param.attribute(kind)
			if spelled is None:
				continue
			if kind == "sret":
				message = f"'{fn.name}' returns an aggregate through hidden parameter {param.index}"
			else:
				message = f"parameter {param.index} of '{fn.name}' is an aggregate passed by value"
			raise UnsupportedTypeError(message, notes=[f"lowered to '{param.type.text} {spelled}'"])


__all__ = [
	"SUPPORTED_INT_WIDTHS",
	"AGGREGATE_TAGS",
	"INDIRECT_ATTRIBUTES",
	"RepresentationKind",
	"Representation",
	"select_representation",
	"check_parameter_passing",
]
