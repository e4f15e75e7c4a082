# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Diagnostics and the error hierarchy shared by every harness stage.

Stages never terminate the process. They raise a `HarnessError` subclass (or
append warnings to a caller-provided sink) and the CLI turns the result into
human-readable lines or a JSON report.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar


@dataclass
class Diagnostic:
	"""Represents a tool diagnostic (error/warning/note)."""

	message: str
	code: str | None = None
	# Stage that produced the diagnostic: input, binding, representation, emit, run.
	phase: str | None = None
	severity: str = "error"
	file: str | None = None
	notes: list[str] = field(default_factory=list)

	def to_dict(self) -> dict[str, Any]:
		return {
			"phase": self.phase,
			"code": self.code,
			"message": self.message,
			"severity": self.severity,
			"file": self.file,
			"notes": list(self.notes),
		}

	def format_human(self, prog: str) -> str:
		where = f"{self.file}: " if self.file else ""
		lines = [f"{prog}: {where}{self.severity}: {self.message}"]
		lines.extend(f"{prog}: note: {note}" for note in self.notes)
		return "\n".join(lines)


@dataclass(eq=False)
class HarnessError(Exception):
	"""Base class for every fatal condition raised while building a harness."""

	message: str
	file: str | None = None
	notes: list[str] = field(default_factory=list)

	phase: ClassVar[str] = "harness"
	code: ClassVar[str] = "harness-error"

	def __str__(self) -> str:
		return self.message

	def to_diagnostic(self) -> Diagnostic:
		return Diagnostic(
			message=self.message,
			code=self.code,
			phase=self.phase,
			severity="error",
			file=self.file,
			notes=list(self.notes),
		)


class ConfigError(HarnessError):
	phase = "config"
	code = "invalid-config"


class LoaderError(HarnessError):
	"""Input could not be read, decoded, parsed or verified."""

	phase = "input"
	code = "load-failed"


class FunctionNotFoundError(LoaderError):
	code = "function-not-found"


class MetadataShapeError(HarnessError):
	"""A debug record does not reference a named DILocalVariable."""

	phase = "binding"
	code = "metadata-shape"


class UnsupportedTypeError(HarnessError):
	phase = "representation"
	code = "unsupported-type"


class BindingUndercountError(HarnessError):
	"""Fewer debug records than formal parameters were found."""

	phase = "emit"
	code = "binding-undercount"


class NameCollisionError(HarnessError):
	"""A recovered name cannot be declared inside the generated `main`."""

	phase = "emit"
	code = "name-collision"


class RunError(HarnessError):
	phase = "run"
	code = "run-failed"


__all__ = [
	"Diagnostic",
	"HarnessError",
	"ConfigError",
	"LoaderError",
	"FunctionNotFoundError",
	"MetadataShapeError",
	"UnsupportedTypeError",
	"BindingUndercountError",
	"NameCollisionError",
	"RunError",
]
