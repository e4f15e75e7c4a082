# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from dataclasses import dataclass

from .diagnostics import ConfigError

DEFAULT_BUFFER_SIZE = 1024
DEFAULT_TARGET_TRIPLE = "x86_64-pc-linux-gnu"


@dataclass(frozen=True)
class HarnessConfig:
	"""
	Options threaded through loading and representation selection.

	`buffer_size` is the byte extent given to every pointer-typed parameter.
	The pointee extent cannot be recovered from the IR type alone, so one size
	is used for all of them. `target_triple` only rewrites module metadata;
	`None` keeps the triple the module was built with.
	"""

	buffer_size: int = DEFAULT_BUFFER_SIZE
	target_triple: str | None = DEFAULT_TARGET_TRIPLE

	def __post_init__(self) -> None:
		size = self.buffer_size
		if isinstance(size, bool) or not isinstance(size, int) or size <= 0:
			raise ConfigError(f"buffer size must be a positive integer (got {size!r})")
		if self.target_triple is not None and not self.target_triple.strip():
			raise ConfigError("target triple must not be empty")


__all__ = ["DEFAULT_BUFFER_SIZE", "DEFAULT_TARGET_TRIPLE", "HarnessConfig"]
