# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Loader tests: real modules parsed by llvmlite, then the full pipeline.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from llvmlite import binding as llvm  # type: ignore

from klee_harness import HarnessConfig, generate_harnesses
from klee_harness.diagnostics import BindingUndercountError, LoaderError, UnsupportedTypeError
from klee_harness.ir import TypeKind
from klee_harness.loader import is_bitcode, load_modules, load_path
from klee_harness.tests.ir_samples import (
	ADD_LL,
	BYVAL_LL,
	COERCED_LL,
	FILL_LL,
	MIXED_LL,
	NODEBUG_LL,
	SRET_LL,
	UNICODE_LL,
)


def _load(text: str, config: HarnessConfig | None = None):
	modules = load_modules(text.encode("utf-8"), config or HarnessConfig(), source="sample.ll")
	assert len(modules) == 1
	return modules[0]


def test_add_function_is_recovered():
	module = _load(ADD_LL)
	fn = module.get_function("add")
	assert fn is not None
	assert [p.type.text for p in fn.params] == ["i32", "i32"]
	assert [p.value_name for p in fn.params] == ["a", "b"]
	records = [inst for inst in fn.entry_block if inst.callee == "llvm.dbg.declare"]
	assert len(records) == 2


def test_scenario_add():
	(result,) = generate_harnesses([_load(ADD_LL)], "add", HarnessConfig())
	lines = result.document.lines
	assert "  i32 a;" in lines
	assert "  i32 b;" in lines
	assert '  klee_make_symbolic(&a, sizeof(a), "a");' in lines
	assert '  klee_make_symbolic(&b, sizeof(b), "b");' in lines
	assert "  add(a, b);" in lines
	assert result.diagnostics == ()


def test_scenario_fill_with_default_and_override():
	(result,) = generate_harnesses([_load(FILL_LL)], "fill", HarnessConfig())
	assert "  char buf[1024];" in result.document.lines
	assert '  klee_make_symbolic(buf, sizeof(buf), "buf");' in result.document.lines
	assert "  fill(buf);" in result.document.lines

	config = HarnessConfig(buffer_size=64)
	(result,) = generate_harnesses([_load(FILL_LL, config)], "fill", config)
	assert "  char buf[64];" in result.document.lines


def test_mixed_parameters_stop_before_locals():
	(result,) = generate_harnesses([_load(MIXED_LL)], "mixed", HarnessConfig())
	body = result.document.lines[result.document.lines.index("#ifdef __KLEE__", 5) + 1 :]
	assert body[:7] == (
		"  i8 c;",
		'  klee_make_symbolic(&c, sizeof(c), "c");',
		"  i64 n;",
		'  klee_make_symbolic(&n, sizeof(n), "n");',
		"  char p[1024];",
		'  klee_make_symbolic(p, sizeof(p), "p");',
		"  mixed(c, n, p);",
	)
	assert not any("local" in line for line in result.document.lines)


def test_function_without_debug_info_is_rejected():
	module = _load(NODEBUG_LL)
	fn = module.get_function("one")
	assert fn is not None
	assert fn.params[0].type.kind is TypeKind.INTEGER
	with pytest.raises(BindingUndercountError):
		generate_harnesses([module], "one", HarnessConfig())


def test_declarations_and_unknown_names_are_not_found():
	module = _load(NODEBUG_LL)
	assert module.get_function("external") is None
	assert module.get_function("nope") is None


def test_triple_override():
	assert _load(ADD_LL, HarnessConfig(target_triple="aarch64-unknown-linux-gnu")).triple == "aarch64-unknown-linux-gnu"
	assert _load(ADD_LL, HarnessConfig(target_triple=None)).triple == "x86_64-pc-linux-gnu"


def test_bitcode_input_matches_textual_input():
	bitcode = llvm.parse_assembly(ADD_LL).as_bitcode()
	assert is_bitcode(bitcode)
	assert not is_bitcode(ADD_LL.encode("utf-8"))
	from_bc = load_modules(bitcode, HarnessConfig(), source="sample.bc")
	from_ll = load_modules(ADD_LL.encode("utf-8"), HarnessConfig(), source="sample.ll")
	config = HarnessConfig()
	assert generate_harnesses(from_bc, "add", config)[0].document == generate_harnesses(from_ll, "add", config)[0].document


def test_invalid_inputs_raise_loader_errors(tmp_path: Path):
	with pytest.raises(LoaderError) as excinfo:
		load_modules(b"define i32 @broken( {", HarnessConfig(), source="broken.ll")
	assert excinfo.value.file == "broken.ll"
	with pytest.raises(LoaderError, match="empty"):
		load_modules(b"", HarnessConfig())
	with pytest.raises(LoaderError, match="neither LLVM bitcode"):
		load_modules(b"\xff\xfe\x00garbage", HarnessConfig())
	with pytest.raises(LoaderError, match="could not read input"):
		load_path(str(tmp_path / "missing.bc"), HarnessConfig())


def test_load_path_reads_files(tmp_path: Path):
	path = tmp_path / "add.ll"
	path.write_text(ADD_LL, encoding="utf-8")
	(module,) = load_path(str(path), HarnessConfig())
	assert module.source_file == str(path)
	assert module.get_function("add") is not None


def test_byval_struct_parameter_is_rejected():
	module = _load(BYVAL_LL)
	fn = module.get_function("take")
	assert fn is not None
	assert fn.params[0].attribute("byval").startswith("byval")
	with pytest.raises(UnsupportedTypeError, match="parameter 0 of 'take' is an aggregate passed by value") as excinfo:
		generate_harnesses([module], "take", HarnessConfig())
	assert excinfo.value.to_diagnostic().phase == "representation"


def test_coerced_struct_parameter_is_rejected():
	module = _load(COERCED_LL)
	assert module.get_function("sum").params[0].type.text == "i64"
	with pytest.raises(UnsupportedTypeError, match="parameter 'p' is a struct 'P' passed by value") as excinfo:
		generate_harnesses([module], "sum", HarnessConfig())
	assert "lowered to 'i64'" in excinfo.value.notes


def test_sret_return_slot_is_rejected():
	module = _load(SRET_LL)
	fn = module.get_function("make")
	assert fn.params[0].attribute("sret") is not None
	assert fn.params[1].attribute("sret") is None
	with pytest.raises(UnsupportedTypeError, match="returns an aggregate through hidden parameter 0"):
		generate_harnesses([module], "make", HarnessConfig())


def test_non_ascii_names_round_trip():
	(result,) = generate_harnesses([_load(UNICODE_LL)], "café", HarnessConfig())
	assert "  i32 été;" in result.document.lines
	assert '  klee_make_symbolic(&été, sizeof(été), "été");' in result.document.lines
	assert "  café(été);" in result.document.lines


def test_multi_module_container_yields_one_module_each():
	add_bc = llvm.parse_assembly(ADD_LL).as_bitcode()
	fill_bc = llvm.parse_assembly(FILL_LL).as_bitcode()
	container = add_bc + fill_bc[4:] + add_bc[4:]

	modules = load_modules(container, HarnessConfig(), source="multi.bc")
	assert len(modules) == 3
	assert [m.get_function("add") is not None for m in modules] == [True, False, True]
	assert [m.get_function("fill") is not None for m in modules] == [False, True, False]
	assert all(m.source_file == "multi.bc" for m in modules)

	results = generate_harnesses(modules, "add", HarnessConfig())
	assert len(results) == 2
	assert results[0].document == results[1].document
	(fill,) = generate_harnesses(modules, "fill", HarnessConfig())
	assert "  fill(buf);" in fill.document.lines


def test_truncated_bitcode_is_a_loader_error():
	add_bc = llvm.parse_assembly(ADD_LL).as_bitcode()
	with pytest.raises(LoaderError, match="malformed bitcode container"):
		load_modules(add_bc[:16], HarnessConfig(), source="short.bc")
