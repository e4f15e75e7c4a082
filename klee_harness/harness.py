# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Harness generation pipeline.

binding (entry-block debug records -> names)
   -> representation (static type -> C storage)
   -> emission (fixed C template)

Each module is processed independently; nothing is cached across modules.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .binding import resolve_bindings
from .config import HarnessConfig
from .diagnostics import Diagnostic, FunctionNotFoundError
from .emit import HarnessDocument, emit_harness
from .ir import IRModule, TargetFunction
from .representation import check_parameter_passing, select_representation


@dataclass(frozen=True)
class HarnessResult:
	module: str
	function: str
	document: HarnessDocument
	diagnostics: Tuple[Diagnostic, ...] = ()


def build_harness(
	fn: TargetFunction,
	config: HarnessConfig,
	diagnostics: Optional[List[Diagnostic]] = None,
) -> HarnessDocument:
	"""Run binding, representation and emission for one function."""
	check_parameter_passing(fn)
	bindings = resolve_bindings(fn, diagnostics)
	bound = [
		(
			binding,
			select_representation(binding.param.type, config, name=binding.name, source_type=binding.source_type),
		)
		for binding in bindings
	]
	return emit_harness(fn.name, bound, fn.param_count)


def generate_harness(module: IRModule, function_name: str, config: HarnessConfig) -> HarnessResult:
	fn = module.get_function(function_name)
	if fn is None:
		raise FunctionNotFoundError(
			f"function '{function_name}' is not defined in module '{module.name}'",
			file=module.source_file,
		)
	diagnostics: List[Diagnostic] = []
	document = build_harness(fn, config, diagnostics)
	for diag in diagnostics:
		if diag.file is None:
			diag.file = module.source_file
	return HarnessResult(module=module.name, function=fn.name, document=document, diagnostics=tuple(diagnostics))


def generate_harnesses(modules: Sequence[IRModule], function_name: str, config: HarnessConfig) -> List[HarnessResult]:
	"""
	One harness per module that defines `function_name`, in module order.

	Modules without a definition are skipped; it is an error if none has one.
	"""
	results = [
		generate_harness(module, function_name, config)
		for module in modules
		if module.get_function(function_name) is not None
	]
	if not results:
		source = modules[0].source_file if modules else None
		raise FunctionNotFoundError(f"function '{function_name}' not found", file=source)
	return results


__all__ = ["HarnessResult", "build_harness", "generate_harness", "generate_harnesses"]
