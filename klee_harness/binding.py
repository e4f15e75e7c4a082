# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Parameter binding resolution.

Binding is positional: the Nth qualifying debug record in the entry block names
the Nth formal parameter. The record's own address/value operand is never used
to pick the slot. Scanning stops once every parameter has a name, so records
for later locals are ignored; if the entry block holds fewer records than the
function has parameters, the trailing parameters stay unbound and emission
rejects the function.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Optional

from .diagnostics import Diagnostic, MetadataShapeError
from .ir import FormalParam, Instruction, TargetFunction
from .metadata import MetadataNode, MetadataRef

DEBUG_INTRINSICS = frozenset({"llvm.dbg.declare", "llvm.dbg.value"})
# Operand slot of the DILocalVariable on both intrinsics and records.
VARIABLE_OPERAND = 1
# DIDerivedType tags that rename or qualify a type without changing its shape.
TRANSPARENT_TYPE_TAGS = frozenset(
	{
		"DW_TAG_typedef",
		"DW_TAG_const_type",
		"DW_TAG_volatile_type",
		"DW_TAG_restrict_type",
		"DW_TAG_atomic_type",
	}
)


@dataclass(frozen=True)
class ParameterBinding:
	index: int
	name: str
	param: FormalParam
	variable: MetadataNode
	# Declared source type with typedefs and qualifiers removed; None for `void` or when absent.
	source_type: Optional[MetadataNode] = None


def debug_records(fn: TargetFunction) -> Iterator[Instruction]:
	"""Qualifying debug-declare/debug-value records of the entry block, in order."""
	for inst in fn.entry_block:
		if inst.calls(DEBUG_INTRINSICS):
			yield inst


def local_variable(fn: TargetFunction, record: Instruction) -> MetadataNode:
	"""Return the named DILocalVariable a debug record refers to."""
	if len(record.operands) <= VARIABLE_OPERAND:
		raise MetadataShapeError(
			f"debug record in '{fn.name}' has no variable operand",
			notes=[record.text],
		)
	node = fn.metadata.resolve_operand(record.operands[VARIABLE_OPERAND])
	if node.kind != "DILocalVariable":
		raise MetadataShapeError(
			f"debug record in '{fn.name}' refers to {node.kind} metadata, expected DILocalVariable",
			notes=[record.text],
		)
	if not node.name:
		raise MetadataShapeError(
			f"debug record in '{fn.name}' refers to an unnamed DILocalVariable",
			notes=[record.text],
		)
	return node


def source_type(fn: TargetFunction, variable: MetadataNode) -> Optional[MetadataNode]:
	"""
	Follow a variable's `type:` through typedefs and qualifiers.

	Returns the first node that is not a transparent DIDerivedType, or None
	when the chain ends in `null`.
	"""
	value = variable.get("type")
	seen = set()
	while value is not None:
		if isinstance(value, MetadataRef):
			if value.id in seen:
				raise MetadataShapeError(f"type of '{variable.name}' in '{fn.name}' refers to itself")
			seen.add(value.id)
			node = fn.metadata.lookup(value.id)
		elif isinstance(value, MetadataNode):
			node = value
		else:
			raise MetadataShapeError(f"type of '{variable.name}' in '{fn.name}' is not metadata")
		if node.kind == "DIDerivedType" and node.get("tag") in TRANSPARENT_TYPE_TAGS:
			value = node.get("baseType")
			continue
		return node
	return None


def resolve_bindings(fn: TargetFunction, diagnostics: Optional[List[Diagnostic]] = None) -> List[ParameterBinding]:
	"""
	Bind recovered source names to parameter indices by scan order.

	At most `fn.param_count` bindings are returned, indices 0..n-1 in order.
	When `diagnostics` is given, a warning is appended for every binding whose
	variable does not declare the same argument number; the binding itself is
	kept.
	"""
	bindings: List[ParameterBinding] = []
	for record in debug_records(fn):
		if len(bindings) >= fn.param_count:
			break
		variable = local_variable(fn, record)
		index = len(bindings)
		binding = ParameterBinding(
			index=index,
			name=variable.name,
			param=fn.params[index],
			variable=variable,
			source_type=source_type(fn, variable),
		)
		bindings.append(binding)
		if diagnostics is not None:
			warning = _arg_number_warning(fn, binding)
			if warning is not None:
				diagnostics.append(warning)
	return bindings


def _arg_number_warning(fn: TargetFunction, binding: ParameterBinding) -> Optional[Diagnostic]:
	arg = binding.variable.get("arg")
	expected = binding.index + 1
	if arg == expected:
		return None
	if arg is None:
		detail = f"'{binding.name}' is a local variable, not an argument"
	else:
		detail = f"'{binding.name}' is declared as argument {arg}"
	return Diagnostic(
		message=f"parameter {binding.index} of '{fn.name}' bound to {detail}",
		code="binding-arg-mismatch",
		phase="binding",
		severity="warning",
	)


__all__ = [
	"DEBUG_INTRINSICS",
	"TRANSPARENT_TYPE_TAGS",
	"ParameterBinding",
	"debug_records",
	"local_variable",
	"source_type",
	"resolve_bindings",
]
