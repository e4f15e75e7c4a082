# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Harness emission.

The document layout is fixed: preamble, `main` gated on `__KLEE__`, one
declaration + `klee_make_symbolic` pair per parameter in binding order, the
call, then the gate close and `return 0;`. Without `-D__KLEE__` the harness
still compiles and does nothing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import IO, Sequence, Tuple

from .binding import ParameterBinding
from .diagnostics import BindingUndercountError, NameCollisionError
from .representation import Representation, RepresentationKind

BUILD_FLAG = "__KLEE__"

PREAMBLE: Tuple[str, ...] = (
	"#include <stdint.h>",
	"#include <stdlib.h>",
	"",
	f"#ifdef {BUILD_FLAG}",
	"#include <klee/klee.h>",
	"#endif",
	"",
	"#define i8 int8_t",
	"#define i16 int16_t",
	"#define i32 int32_t",
	"#define i64 int64_t",
	"#define i128 __int128",
	"",
)

# Identifiers the harness declares, defines or calls itself.
RESERVED_NAMES = frozenset(
	{"main", "argc", "argv", "klee_make_symbolic"}
	| {f"i{w}" for w in (8, 16, 32, 64, 128)}
	| {f"int{w}_t" for w in (8, 16, 32, 64)}
)


@dataclass(frozen=True)
class HarnessDocument:
	"""Rendered harness, one entry per output line."""

	lines: Tuple[str, ...]

	def render(self) -> str:
		return "".join(f"{line}\n" for line in self.lines)

	def write(self, stream: IO[str]) -> None:
		stream.write(self.render())


def declare_parameter(name: str, rep: Representation) -> Tuple[str, str]:
	"""Declaration and symbolization lines for one parameter."""
	if rep.kind is RepresentationKind.BYTE_BUFFER:
		return (
			f"  {rep.c_type} {name}[{rep.size}];",
			f'  klee_make_symbolic({name}, sizeof({name}), "{name}");',
		)
	return (
		f"  {rep.c_type} {name};",
		f'  klee_make_symbolic(&{name}, sizeof({name}), "{name}");',
	)


def call_line(function_name: str, args: Sequence[str]) -> str:
	return f"  {function_name}({', '.join(args)});"


def check_names(function_name: str, names: Sequence[str]) -> None:
	"""Reject names that would clash with the harness or with each other once declared in `main`."""
	seen = set()
	for name in names:
		if name in RESERVED_NAMES:
			raise NameCollisionError(
				f"parameter name '{name}' of '{function_name}' collides with an identifier the harness uses",
				notes=["reserved: " + ", ".join(sorted(RESERVED_NAMES))],
			)
		if name == function_name:
			raise NameCollisionError(f"parameter name '{name}' shadows the function it is passed to")
		if name in seen:
			raise NameCollisionError(f"parameter name '{name}' of '{function_name}' is bound more than once")
		seen.add(name)


def emit_harness(
	function_name: str,
	bound: Sequence[Tuple[ParameterBinding, Representation]],
	param_count: int,
) -> HarnessDocument:
	"""
	Render the harness for `function_name`.

	`bound` must cover parameters 0..param_count-1 in order; a shorter list
	means some parameter had no debug record and nothing can be passed for it.
	"""
	indices = [binding.index for binding, _ in bound]
	if indices != list(range(param_count)):
		missing = [i for i in range(param_count) if i not in indices]
		raise BindingUndercountError(
			f"'{function_name}' has {param_count} parameter(s) but only {len(bound)} debug record(s) name them",
			notes=[f"no name recovered for parameter index(es) {', '.join(str(i) for i in missing)}"] if missing else [],
		)
	check_names(function_name, [binding.name for binding, _ in bound])
	lines = list(PREAMBLE)
	lines.append("int main(int argc, char** argv) {")
	lines.append(f"#ifdef {BUILD_FLAG}")
	for binding, rep in bound:
		lines.extend(declare_parameter(binding.name, rep))
	lines.append(call_line(function_name, [binding.name for binding, _ in bound]))
	lines.append("#endif")
	lines.append("")
	lines.append("  return 0;")
	lines.append("}")
	return HarnessDocument(tuple(lines))


__all__ = [
	"BUILD_FLAG",
	"PREAMBLE",
	"RESERVED_NAMES",
	"HarnessDocument",
	"declare_parameter",
	"call_line",
	"check_names",
	"emit_harness",
]
