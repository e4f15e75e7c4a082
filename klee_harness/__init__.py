# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
klee_harness: turn one function of an LLVM module into a KLEE harness.

Stages:
  binding:        entry-block debug records -> parameter names (positional)
  representation: parameter IR type -> C storage (byte buffer / sized int)
  emit:           fixed C template on stdout

The CLI entrypoints are `klee_harness.cli:main` and `klee_harness.runner:main`.
"""

from .config import HarnessConfig
from .harness import HarnessResult, build_harness, generate_harness, generate_harnesses

__all__ = ["HarnessConfig", "HarnessResult", "build_harness", "generate_harness", "generate_harnesses"]
