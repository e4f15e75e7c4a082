# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
`klee-harness`: print a KLEE harness for one function of an LLVM module.

With --json, diagnostics are reported as a single JSON object on stderr
(`{"exit_code": N, "diagnostics": [...]}`); stdout only ever carries harness
source.
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import IO, List, Sequence

from .config import DEFAULT_BUFFER_SIZE, DEFAULT_TARGET_TRIPLE, HarnessConfig
from .diagnostics import Diagnostic, HarnessError
from .harness import generate_harnesses
from .loader import STDIN, load_path

PROG = "klee-harness"


def _build_parser() -> argparse.ArgumentParser:
	p = argparse.ArgumentParser(prog=PROG, description="LLVM module function -> KLEE harness (C source on stdout)")
	p.add_argument("input", nargs="?", default=STDIN, help="Input bitcode or textual IR (default: - for stdin)")
	p.add_argument("function", help="Name of the function to harness")
	p.add_argument(
		"-s",
		"--array-size",
		type=int,
		default=DEFAULT_BUFFER_SIZE,
		help=f"Byte size of the buffer declared for pointer parameters (default: {DEFAULT_BUFFER_SIZE})",
	)
	p.add_argument(
		"-t",
		"--target-triple",
		default=DEFAULT_TARGET_TRIPLE,
		help=f"Target triple applied to the loaded module (default: {DEFAULT_TARGET_TRIPLE})",
	)
	p.add_argument("--json", action="store_true", help="Emit diagnostics as JSON on stderr")
	return p


def report(diagnostics: Sequence[Diagnostic], *, exit_code: int, as_json: bool, prog: str = PROG, stream: IO[str] | None = None) -> None:
	"""Write diagnostics to `stream` (stderr by default)."""
	out = stream if stream is not None else sys.stderr
	if as_json:
		print(json.dumps({"exit_code": exit_code, "diagnostics": [d.to_dict() for d in diagnostics]}), file=out)
		return
	for diag in diagnostics:
		print(diag.format_human(prog), file=out)


def main(argv: list[str] | None = None) -> int:
	parser = _build_parser()
	args = parser.parse_args(argv)

	diagnostics: List[Diagnostic] = []
	try:
		config = HarnessConfig(buffer_size=args.array_size, target_triple=args.target_triple)
		modules = load_path(args.input, config)
		results = generate_harnesses(modules, args.function, config)
	except HarnessError as err:
		report([err.to_diagnostic()], exit_code=1, as_json=args.json, prog=parser.prog)
		return 1

	for result in results:
		diagnostics.extend(result.diagnostics)
		result.document.write(sys.stdout)
	sys.stdout.flush()
	if diagnostics or args.json:
		report(diagnostics, exit_code=0, as_json=args.json, prog=parser.prog)
	return 0


if __name__ == "__main__":
	raise SystemExit(main())
