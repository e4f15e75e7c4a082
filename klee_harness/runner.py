# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
`klee-harness-run`: generate a harness, link it with the module and run KLEE.

main.c    <- harness for FUNCTION
main.bc   <- clang -c -emit-llvm main.c -D__KLEE__
single.bc <- llvm-link main.bc BITCODE
klee --libc=uclibc --posix-runtime single.bc
"""

from __future__ import annotations

import argparse
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from .cli import report
from .config import DEFAULT_BUFFER_SIZE, HarnessConfig
from .diagnostics import Diagnostic, HarnessError, RunError
from .emit import BUILD_FLAG
from .harness import generate_harnesses
from .loader import load_path

PROG = "klee-harness-run"
DEFAULT_KLEE_ARGS: Tuple[str, ...] = ("--libc=uclibc", "--posix-runtime")


@dataclass(frozen=True)
class RunOptions:
	module_path: Path
	function: str
	buffer_size: int = DEFAULT_BUFFER_SIZE
	work_dir: Path = Path(".")
	clang: Optional[str] = None
	llvm_link: Optional[str] = None
	klee: Optional[str] = None
	klee_args: Tuple[str, ...] = DEFAULT_KLEE_ARGS


@dataclass(frozen=True)
class RunResult:
	harness_path: Path
	linked_path: Path
	klee_returncode: int
	diagnostics: Tuple[Diagnostic, ...] = ()


def find_tool(override: Optional[str], *names: str) -> str:
	"""Resolve a tool from an explicit override or the first of `names` on PATH."""
	if override:
		return override
	for name in names:
		found = shutil.which(name)
		if found:
			return found
	raise RunError(f"{names[0]} not found on PATH")


def _step(cmd: List[str], what: str, cwd: Path) -> None:
	res = subprocess.run(cmd, capture_output=True, text=True, cwd=cwd)
	if res.returncode != 0:
		detail = res.stderr.strip() or res.stdout.strip()
		raise RunError(
			f"{what} failed with exit code {res.returncode}",
			notes=[" ".join(cmd)] + ([detail] if detail else []),
		)


def run_harness(opts: RunOptions) -> RunResult:
	config = HarnessConfig(buffer_size=opts.buffer_size)
	modules = load_path(str(opts.module_path), config)
	results = generate_harnesses(modules, opts.function, config)

	clang = find_tool(opts.clang, "clang")
	llvm_link = find_tool(opts.llvm_link, "llvm-link")
	klee = find_tool(opts.klee, "klee")

	work_dir = opts.work_dir
	work_dir.mkdir(parents=True, exist_ok=True)
	harness_path = work_dir / "main.c"
	harness_bc = work_dir / "main.bc"
	linked_path = work_dir / "single.bc"
	harness_path.write_text("".join(r.document.render() for r in results))

	_step([clang, "-c", "-emit-llvm", str(harness_path), "-o", str(harness_bc), f"-D{BUILD_FLAG}"], "clang", work_dir)
	_step([llvm_link, str(harness_bc), str(opts.module_path.resolve()), "-o", str(linked_path)], "llvm-link", work_dir)
	# KLEE output goes straight to the terminal.
	klee_res = subprocess.run([klee, *opts.klee_args, str(linked_path)], cwd=work_dir)
	diagnostics = tuple(d for r in results for d in r.diagnostics)
	return RunResult(
		harness_path=harness_path,
		linked_path=linked_path,
		klee_returncode=klee_res.returncode,
		diagnostics=diagnostics,
	)


def _build_parser() -> argparse.ArgumentParser:
	p = argparse.ArgumentParser(prog=PROG, description="Harness FUNCTION from MODULE and run it under KLEE")
	p.add_argument("module", type=Path, help="Input bitcode or textual IR")
	p.add_argument("function", help="Name of the function to harness")
	p.add_argument("size", nargs="?", type=int, default=DEFAULT_BUFFER_SIZE, help="Pointer buffer size in bytes")
	p.add_argument("--work-dir", type=Path, default=Path("."), help="Directory for main.c, main.bc and single.bc")
	p.add_argument("--clang", help="clang executable (default: from PATH)")
	p.add_argument("--llvm-link", dest="llvm_link", help="llvm-link executable (default: from PATH)")
	p.add_argument("--klee", help="klee executable (default: from PATH)")
	p.add_argument("--json", action="store_true", help="Emit diagnostics as JSON on stderr")
	return p


def main(argv: Sequence[str] | None = None) -> int:
	parser = _build_parser()
	args = parser.parse_args(argv)
	try:
		opts = RunOptions(
			module_path=args.module,
			function=args.function,
			buffer_size=args.size,
			work_dir=args.work_dir,
			clang=args.clang,
			llvm_link=args.llvm_link,
			klee=args.klee,
		)
		result = run_harness(opts)
	except HarnessError as err:
		report([err.to_diagnostic()], exit_code=1, as_json=args.json, prog=parser.prog)
		return 1
	if result.diagnostics or args.json:
		report(list(result.diagnostics), exit_code=result.klee_returncode, as_json=args.json, prog=parser.prog)
	return result.klee_returncode


if __name__ == "__main__":
	raise SystemExit(main())
