# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Schemas for Reduce* and ArgMax/ArgMin operators."""

from __future__ import annotations

__all__ = [
    "ARG_REDUCE_OPS",
    "REDUCE_OPS",
    "arg_reduce_doc_generator",
    "infer_arg_reduce",
    "infer_reduce",
    "reduce_doc_generator",
    "register_reduction_schemas",
]

import onnx_ir as ir

from onnx_op_schemas import _context, _registry, _schema, _types
from onnx_op_schemas._defs._utils import normalize_axis

# (op_type, name substituted into the doc)
REDUCE_OPS: tuple[tuple[str, str], ...] = (
    ("ReduceMax", "max"),
    ("ReduceMin", "min"),
    ("ReduceSum", "sum"),
    ("ReduceSumSquare", "sum square"),
    ("ReduceMean", "mean"),
    ("ReduceProd", "product"),
    ("ReduceLogSum", "log sum"),
    ("ReduceLogSumExp", "log sum exponent"),
    ("ReduceL1", "L1 norm"),
    ("ReduceL2", "L2 norm"),
)

ARG_REDUCE_OPS: tuple[tuple[str, str], ...] = (
    ("ArgMax", "max"),
    ("ArgMin", "min"),
)

_REDUCE_DOC = """
Computes the {name} of the input tensor's element along the provided axes. The resulted
tensor has the same rank as the input if keepdims equal 1. If keepdims equal 0, then
the resulted tensor have the reduced dimension pruned.

The above behavior is similar to numpy, with the exception that numpy default keepdims to
False instead of True."""

_ARG_REDUCE_DOC = """
Computes the indices of the {name} elements of the input tensor's element along the
provided axis. The resulted tensor has the same rank as the input if keepdims equal 1.
If keepdims equal 0, then the resulted tensor have the reduced dimension pruned.
The type of the output tensor is integer."""

_KEEPDIMS_DOC = "Keep the reduced dimension or not, default 1 mean keep reduced dimension."


def _keepdims(ctx: _context.InferenceContext) -> bool:
    # Only the literal value 1 keeps reduced dims
    attr = ctx.get_attribute("keepdims")
    return attr is None or attr.as_int() == 1


def infer_reduce(ctx: _context.InferenceContext) -> None:
    """Infer shape and dtype for a Reduce operator.

    The output element type is the input's. An empty or absent ``axes``
    reduces every dimension. Reduced dimensions become 1 when ``keepdims``
    is 1 and are dropped otherwise.
    """
    ctx.propagate_elem_type(0, 0)

    if not ctx.has_n_input_shapes(1):
        return

    input_shape = ctx.get_input_shape(0)
    assert input_shape is not None
    rank = input_shape.rank()
    keepdims = _keepdims(ctx)

    axes_attr = ctx.get_attribute("axes")
    axes = list(axes_attr.as_ints()) if axes_attr is not None else []
    try:
        reduced_axes = {normalize_axis(axis, rank) for axis in axes}
    except ValueError as e:
        ctx.record_error(str(e))
        return

    new_dims: list[int | ir.SymbolicDim] = []
    for i in range(rank):
        if reduced_axes and i not in reduced_axes:
            new_dims.append(input_shape[i])
        elif keepdims:
            new_dims.append(1)

    ctx.set_output_shape(0, ir.Shape(new_dims))


def infer_arg_reduce(ctx: _context.InferenceContext) -> None:
    """Infer shape and dtype for ArgMax/ArgMin.

    The output is always an INT64 index tensor. The single ``axis`` is kept
    as 1 when ``keepdims`` is 1 and dropped otherwise.
    """
    output_type = ctx.get_output_type(0)
    if output_type is None or isinstance(output_type, ir.TensorType):
        ctx.force_output_dtype(0, ir.DataType.INT64)

    if not ctx.has_n_input_shapes(1):
        return

    input_shape = ctx.get_input_shape(0)
    assert input_shape is not None
    rank = input_shape.rank()
    keepdims = _keepdims(ctx)

    axis_attr = ctx.get_attribute("axis")
    axis = axis_attr.as_int() if axis_attr is not None else 0
    try:
        axis = normalize_axis(axis, rank)
    except ValueError as e:
        ctx.record_error(str(e))
        return

    new_dims: list[int | ir.SymbolicDim] = []
    for i in range(rank):
        if i != axis:
            new_dims.append(input_shape[i])
        elif keepdims:
            new_dims.append(1)

    ctx.set_output_shape(0, ir.Shape(new_dims))


def reduce_doc_generator(name: str) -> _schema.SchemaFiller:
    """Return a filler declaring a Reduce operator that computes the *name*."""

    def fill(schema: _schema.OpSchemaBuilder) -> None:
        schema.set_doc(_REDUCE_DOC.replace("{name}", name))
        schema.attr(
            "axes",
            "A list of integers, along which to reduce. The default is to reduce over "
            "all the dimensions of the input tensor.",
            ir.AttributeType.INTS,
        )
        schema.attr("keepdims", _KEEPDIMS_DOC, ir.AttributeType.INT, default=1)
        schema.input(0, "data", "An input tensor.", "T")
        schema.output(0, "reduced", "Reduced output tensor.", "T")
        schema.type_constraint(
            "T",
            _types.high_precision_numeric_types(),
            "Constrain input and output types to high-precision numeric tensors.",
        )
        schema.type_and_shape_inference_function(infer_reduce)

    return fill


def arg_reduce_doc_generator(name: str) -> _schema.SchemaFiller:
    """Return a filler declaring an index-reduction operator for the *name* elements."""

    def fill(schema: _schema.OpSchemaBuilder) -> None:
        schema.set_doc(_ARG_REDUCE_DOC.replace("{name}", name))
        schema.attr(
            "axis",
            "The axis in which to compute the arg indices. Default is 0.",
            ir.AttributeType.INT,
            default=0,
        )
        schema.attr("keepdims", _KEEPDIMS_DOC, ir.AttributeType.INT, default=1)
        schema.input(0, "data", "An input tensor.", "T")
        schema.output(
            0,
            "reduced",
            "Reduced output tensor with integer data type.",
            _types.type_str(ir.DataType.INT64),
        )
        schema.type_constraint(
            "T",
            _types.all_numeric_types(),
            "Constrain input and output types to all numeric tensors.",
        )
        schema.type_and_shape_inference_function(infer_arg_reduce)

    return fill


def register_reduction_schemas(registry: _registry.OpSchemaRegistry) -> None:
    """Register every Reduce* and ArgMax/ArgMin schema into *registry*."""
    for op_type, name in REDUCE_OPS:
        registry.register(
            _schema.OpSchemaBuilder(op_type).fill_using(reduce_doc_generator(name)).build()
        )
    for op_type, name in ARG_REDUCE_OPS:
        registry.register(
            _schema.OpSchemaBuilder(op_type).fill_using(arg_reduce_doc_generator(name)).build()
        )
