# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Helpers for testing schema inference functions."""

from __future__ import annotations

__all__ = [
    "make_attr",
    "make_node",
    "run_inference",
]

from collections.abc import Mapping, Sequence
from typing import Any

import onnx_ir as ir

from onnx_op_schemas import _context, _defs

_REGISTRY = _defs.create_default_registry()


def make_attr(name: str, value: Any) -> ir.Attr:
    """Create an INT or INTS attribute from a Python int or list of ints."""
    if isinstance(value, int):
        return ir.Attr(name, ir.AttributeType.INT, value)
    return ir.Attr(name, ir.AttributeType.INTS, list(value))


def make_node(
    op_type: str,
    dtype: ir.DataType | None,
    shape: Sequence[int | str | None] | None,
    attributes: Mapping[str, Any] | None = None,
    *,
    name: str = "node0",
) -> ir.Node:
    """Create a single-input node whose input has the given dtype and shape."""
    data = ir.Value(
        name="data",
        type=ir.TensorType(dtype) if dtype is not None else None,
        shape=ir.Shape(shape) if shape is not None else None,
    )
    attrs = [make_attr(k, v) for k, v in (attributes or {}).items()]
    return ir.Node("", op_type, inputs=[data], attributes=attrs, num_outputs=1, name=name)


def run_inference(
    op_type: str,
    dtype: ir.DataType | None,
    shape: Sequence[int | str | None] | None,
    attributes: Mapping[str, Any] | None = None,
    *,
    policy: _context.ShapeMergePolicy = "refine",
) -> ir.Value:
    """Run the built-in schema's inference function and return the output value."""
    node = make_node(op_type, dtype, shape, attributes)
    schema = _REGISTRY.get("", op_type, version=1)
    assert schema is not None and schema.inference_function is not None
    schema.inference_function(_context.InferenceContext(schema, node, policy=policy))
    return node.outputs[0]
