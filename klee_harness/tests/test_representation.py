# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import pytest

from klee_harness.config import HarnessConfig
from klee_harness.diagnostics import ConfigError, UnsupportedTypeError
from klee_harness.ir import IRType
from klee_harness.metadata import parse_node
from klee_harness.representation import (
	Representation,
	RepresentationKind,
	check_parameter_passing,
	select_representation,
)
from klee_harness.tests.ir_samples import make_function


@pytest.mark.parametrize("width", [8, 16, 32, 64, 128])
def test_integer_widths_map_to_sized_aliases(width):
	rep = select_representation(IRType.from_text(f"i{width}"), HarnessConfig())
	assert rep == Representation.scalar_int(width)
	assert rep.c_type == f"i{width}"
	assert rep.byte_extent == width // 8


def test_pointers_use_configured_buffer_size():
	default = select_representation(IRType.from_text("ptr"), HarnessConfig())
	assert default.kind is RepresentationKind.BYTE_BUFFER
	assert default.size == 1024
	assert default.c_type == "char"
	assert default.byte_extent == 1024

	small = select_representation(IRType.from_text("i32*"), HarnessConfig(buffer_size=64))
	assert small == Representation.byte_buffer(64)


def test_integer_representation_ignores_buffer_size():
	assert select_representation(IRType.from_text("i16"), HarnessConfig(buffer_size=64)) == Representation.scalar_int(16)


@pytest.mark.parametrize("text", ["i1", "i24", "i256"])
def test_unsupported_integer_width_is_rejected(text):
	with pytest.raises(UnsupportedTypeError, match="unsupported integer width"):
		select_representation(IRType.from_text(text), HarnessConfig(), name="flag")


@pytest.mark.parametrize("text", ["double", "float", "<4 x i32>", "%struct.S", "{ i32, i32 }"])
def test_other_types_are_rejected(text):
	with pytest.raises(UnsupportedTypeError) as excinfo:
		select_representation(IRType.from_text(text), HarnessConfig(), name="v")
	assert f"'{text}'" in str(excinfo.value)
	assert excinfo.value.to_diagnostic().phase == "representation"


@pytest.mark.parametrize("size", [0, -1, True, "1024"])
def test_config_rejects_bad_buffer_sizes(size):
	with pytest.raises(ConfigError):
		HarnessConfig(buffer_size=size)


def test_config_rejects_blank_triple():
	with pytest.raises(ConfigError):
		HarnessConfig(target_triple="  ")
	assert HarnessConfig(target_triple=None).target_triple is None


@pytest.mark.parametrize(
	"tag, noun",
	[("DW_TAG_structure_type", "struct"), ("DW_TAG_union_type", "union"), ("DW_TAG_class_type", "class")],
)
def test_aggregate_source_types_are_rejected(tag, noun):
	agg = parse_node(f'distinct !DICompositeType(tag: {tag}, name: "P", file: !1, line: 1, size: 64, elements: !5)')
	for lowered in ["i64", "ptr"]:
		with pytest.raises(UnsupportedTypeError, match=f"parameter 'p' is a {noun} 'P' passed by value") as excinfo:
			select_representation(IRType.from_text(lowered), HarnessConfig(), name="p", source_type=agg)
		assert f"lowered to '{lowered}'" in excinfo.value.notes


def test_scalar_and_enum_source_types_are_accepted():
	basic = parse_node('!DIBasicType(name: "long", size: 64, encoding: DW_ATE_signed)')
	assert select_representation(IRType.from_text("i64"), HarnessConfig(), source_type=basic) == Representation.scalar_int(64)
	enum = parse_node('!DICompositeType(tag: DW_TAG_enumeration_type, name: "E", file: !1, line: 1, baseType: !3, size: 32, elements: !4)')
	assert select_representation(IRType.from_text("i32"), HarnessConfig(), source_type=enum) == Representation.scalar_int(32)


@pytest.mark.parametrize(
	"attrs, message",
	[
		(["noundef", "byval(%struct.S)", "align 8"], "parameter 0 of 'take' is an aggregate passed by value"),
		(["noalias", "sret(%struct.S)", "align 4"], "'take' returns an aggregate through hidden parameter 0"),
		(["inalloca(%struct.S)"], "parameter 0 of 'take' is an aggregate passed by value"),
	],
)
def test_indirect_parameters_are_rejected(attrs, message):
	fn = make_function("take", ["ptr", "i32"], [], attributes={0: attrs})
	with pytest.raises(UnsupportedTypeError, match=message):
		check_parameter_passing(fn)


def test_plain_attributes_pass():
	fn = make_function("f", ["ptr", "i32"], [], attributes={0: ["noundef", "nonnull"], 1: ["signext"]})
	check_parameter_passing(fn)
	assert fn.params[0].attribute("nonnull") == "nonnull"
	assert fn.params[0].attribute("byval") is None
