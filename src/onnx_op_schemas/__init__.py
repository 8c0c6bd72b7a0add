# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Operator schemas with shape and type inference for ONNX IR.

Each operator declares a contract: attributes with defaults, typed inputs
and outputs, type constraints, and an inference function that derives
output shapes and element types from the inputs without executing the node.
Schemas live in an explicit registry that is built once and passed to the
validation engine.

Example::

    import onnx_ir as ir
    from onnx_op_schemas import create_default_registry, infer_shapes

    registry = create_default_registry()

    model = ir.load("model.onnx")
    model = infer_shapes(model, registry)

    # Or with custom policy
    model = infer_shapes(model, registry, policy="strict")

Declaring a custom schema::

    from onnx_op_schemas import OpSchemaBuilder, OpSchemaRegistry, all_numeric_types

    def infer_my_op(ctx):
        dtype = ctx.get_input_dtype(0)
        if dtype is not None:
            ctx.set_output_dtype(0, dtype)

    registry = OpSchemaRegistry()
    registry.register(
        OpSchemaBuilder("MyOp", domain="com.custom")
        .input(0, "X", "Input.", "T")
        .output(0, "Y", "Output.", "T")
        .type_constraint("T", all_numeric_types(), "Numeric tensors.")
        .type_and_shape_inference_function(infer_my_op)
        .build()
    )
    registry.freeze()
"""

from __future__ import annotations

__all__ = [
    # Main API
    "create_default_registry",
    "infer_shapes",
    # Context and policy
    "InferenceContext",
    "OpUsageError",
    "ShapeInferenceError",
    "ShapeMergePolicy",
    # Schemas
    "AttributeSpec",
    "FormalParameter",
    "OpSchema",
    "OpSchemaBuilder",
    "SchemaError",
    "TypeConstraint",
    # Registry
    "OpSchemaRegistry",
    # Element-type classes
    "all_numeric_types",
    "all_tensor_types",
    "high_precision_numeric_types",
]

from onnx_op_schemas._context import (
    InferenceContext,
    OpUsageError,
    ShapeInferenceError,
    ShapeMergePolicy,
)
from onnx_op_schemas._defs import create_default_registry
from onnx_op_schemas._engine import infer_shapes
from onnx_op_schemas._registry import OpSchemaRegistry
from onnx_op_schemas._schema import (
    AttributeSpec,
    FormalParameter,
    OpSchema,
    OpSchemaBuilder,
    SchemaError,
    TypeConstraint,
)
from onnx_op_schemas._types import (
    all_numeric_types,
    all_tensor_types,
    high_precision_numeric_types,
)


def __set_module() -> None:
    """Set the module of all functions in this module to this public module."""
    global_dict = globals()
    for name in __all__:
        obj = global_dict[name]
        if hasattr(obj, "__module__"):
            obj.__module__ = __name__


__set_module()

__version__ = "0.1.0"
