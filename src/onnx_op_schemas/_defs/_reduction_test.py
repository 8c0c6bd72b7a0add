# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Unit tests for Reduce* and ArgMax/ArgMin schemas."""

from __future__ import annotations

import itertools
import unittest

import onnx_ir as ir
import parameterized

from onnx_op_schemas import (
    InferenceContext,
    OpSchemaBuilder,
    ShapeInferenceError,
    all_numeric_types,
    high_precision_numeric_types,
)
from onnx_op_schemas._defs import _reduction
from onnx_op_schemas._defs._testing import make_node, run_inference

FLOAT = ir.DataType.FLOAT
DOUBLE = ir.DataType.DOUBLE
INT32 = ir.DataType.INT32
INT64 = ir.DataType.INT64


def _build(op_type, filler):
    return OpSchemaBuilder(op_type).fill_using(filler).build()


class ReduceInferenceTest(unittest.TestCase):
    @parameterized.parameterized.expand(
        [
            ("keepdims", [3, 4, 5], {"axes": [1], "keepdims": 1}, [3, 1, 5]),
            ("no_keepdims", [3, 4, 5], {"axes": [1], "keepdims": 0}, [3, 5]),
            ("default_keepdims", [3, 4, 5], {"axes": [1]}, [3, 1, 5]),
            ("negative_axis", [2, 3, 4], {"axes": [-1], "keepdims": 0}, [2, 3]),
            ("multiple_axes", [3, 4, 5], {"axes": [0, 2], "keepdims": 0}, [4]),
            ("multiple_axes_keepdims", [3, 4, 5], {"axes": [2, 0]}, [1, 4, 1]),
            ("duplicate_axes", [3, 4, 5], {"axes": [1, -2, 1]}, [3, 1, 5]),
            ("absent_axes_keepdims", [3, 4, 5], {}, [1, 1, 1]),
            ("absent_axes_no_keepdims", [3, 4, 5], {"keepdims": 0}, []),
            ("empty_axes_keepdims", [3, 4], {"axes": []}, [1, 1]),
            ("empty_axes_no_keepdims", [3, 4], {"axes": [], "keepdims": 0}, []),
            ("keepdims_other_value_drops", [3, 4, 5], {"axes": [1], "keepdims": 2}, [3, 5]),
            ("scalar_keepdims", [], {}, []),
            ("scalar_no_keepdims", [], {"keepdims": 0}, []),
            ("zero_dim", [0, 4], {"axes": [0], "keepdims": 0}, [4]),
        ]
    )
    def test_reduce_sum(self, _name, input_shape, attrs, expected_shape):
        out = run_inference("ReduceSum", FLOAT, input_shape, attrs)
        self.assertEqual(out.shape, ir.Shape(expected_shape))
        self.assertEqual(out.dtype, FLOAT)

    def test_symbolic_dims_pass_through(self):
        out = run_inference("ReduceMean", FLOAT, ["N", 4, "D"], {"axes": [1]})
        self.assertEqual(out.shape, ir.Shape(["N", 1, "D"]))

    def test_unknown_dims_pass_through(self):
        out = run_inference("ReduceMean", FLOAT, [None, 4, 5], {"axes": [2], "keepdims": 0})
        self.assertEqual(out.shape.rank(), 2)
        self.assertIsNone(out.shape[0].value)
        self.assertEqual(out.shape[1], 4)

    def test_dtype_is_propagated(self):
        out = run_inference("ReduceMax", INT32, [2, 3], {"axes": [0]})
        self.assertEqual(out.dtype, INT32)

    def test_missing_shape_propagates_dtype_only(self):
        out = run_inference("ReduceSum", DOUBLE, None, {"axes": [0]})
        self.assertIsNone(out.shape)
        self.assertEqual(out.dtype, DOUBLE)

    def test_missing_shape_and_dtype_leaves_output_unset(self):
        out = run_inference("ReduceSum", None, None)
        self.assertIsNone(out.shape)
        self.assertIsNone(out.dtype)

    @parameterized.parameterized.expand([("too_large", [3]), ("too_small", [-4])])
    def test_out_of_range_axes_raise(self, _name, axes):
        with self.assertRaises(ShapeInferenceError) as cm:
            run_inference("ReduceSum", FLOAT, [2, 3, 4], {"axes": axes})
        self.assertIn("out of range", str(cm.exception))

    def test_out_of_range_axes_with_skip_policy_leaves_shape_unset(self):
        schema = _build("ReduceSum", _reduction.reduce_doc_generator("sum"))
        node = make_node("ReduceSum", FLOAT, [2, 3], {"axes": [0, 5]})
        ctx = InferenceContext(schema, node, policy="skip")
        with self.assertLogs("onnx_op_schemas._context", level="WARNING"):
            _reduction.infer_reduce(ctx)
        self.assertIsNone(node.outputs[0].shape)
        self.assertEqual(node.outputs[0].dtype, FLOAT)
        self.assertEqual(len(ctx.errors), 1)

    @parameterized.parameterized.expand([("refine",), ("strict",)])
    def test_mismatched_output_dtype_raises(self, policy):
        schema = _build("ReduceSum", _reduction.reduce_doc_generator("sum"))
        node = make_node("ReduceSum", FLOAT, [2, 3], {"axes": [0]})
        node.outputs[0].type = ir.TensorType(INT32)
        with self.assertRaises(ShapeInferenceError) as cm:
            _reduction.infer_reduce(InferenceContext(schema, node, policy=policy))
        self.assertIn("element type", str(cm.exception))
        self.assertEqual(node.outputs[0].dtype, INT32)

    def test_mismatched_output_dtype_with_skip_policy_is_recorded(self):
        schema = _build("ReduceSum", _reduction.reduce_doc_generator("sum"))
        node = make_node("ReduceSum", FLOAT, [2, 3], {"axes": [0]})
        node.outputs[0].type = ir.TensorType(INT32)
        ctx = InferenceContext(schema, node, policy="skip")
        with self.assertLogs("onnx_op_schemas._context", level="WARNING"):
            _reduction.infer_reduce(ctx)
        self.assertEqual(len(ctx.errors), 1)
        self.assertEqual(node.outputs[0].dtype, INT32)
        self.assertEqual(node.outputs[0].shape, ir.Shape([1, 3]))

    def test_mismatched_output_dtype_with_override_policy_is_replaced(self):
        schema = _build("ReduceSum", _reduction.reduce_doc_generator("sum"))
        node = make_node("ReduceSum", FLOAT, [2, 3], {"axes": [0]})
        node.outputs[0].type = ir.TensorType(INT32)
        _reduction.infer_reduce(InferenceContext(schema, node, policy="override"))
        self.assertEqual(node.outputs[0].dtype, FLOAT)

    def test_inference_is_idempotent(self):
        schema = _build("ReduceSum", _reduction.reduce_doc_generator("sum"))
        node = make_node("ReduceSum", FLOAT, [2, "N", 4], {"axes": [-1], "keepdims": 0})
        _reduction.infer_reduce(InferenceContext(schema, node))
        first = (node.outputs[0].shape, node.outputs[0].dtype)
        _reduction.infer_reduce(InferenceContext(schema, node))
        self.assertEqual((node.outputs[0].shape, node.outputs[0].dtype), first)
        self.assertEqual(node.outputs[0].shape, ir.Shape([2, "N"]))

    def test_empty_axes_reduces_every_rank(self):
        for rank in range(5):
            shape = list(range(2, 2 + rank))
            with self.subTest(rank=rank):
                kept = run_inference("ReduceL2", FLOAT, shape, {"keepdims": 1})
                self.assertEqual(kept.shape, ir.Shape([1] * rank))
                dropped = run_inference("ReduceL2", FLOAT, shape, {"keepdims": 0})
                self.assertEqual(dropped.shape.rank(), 0)

    def test_rank_arithmetic_for_all_axis_subsets(self):
        for rank in range(1, 5):
            shape = list(range(2, 2 + rank))
            for count in range(1, rank + 1):
                for axes in itertools.combinations(range(rank), count):
                    # Alternate between positive and negative spellings
                    spelled = [a - rank if i % 2 else a for i, a in enumerate(axes)]
                    expected_kept = [1 if i in axes else d for i, d in enumerate(shape)]
                    expected_dropped = [d for i, d in enumerate(shape) if i not in axes]
                    with self.subTest(rank=rank, axes=spelled):
                        kept = run_inference("ReduceProd", FLOAT, shape, {"axes": spelled})
                        self.assertEqual(kept.shape, ir.Shape(expected_kept))
                        dropped = run_inference(
                            "ReduceProd", FLOAT, shape, {"axes": spelled, "keepdims": 0}
                        )
                        self.assertEqual(dropped.shape, ir.Shape(expected_dropped))
                        self.assertEqual(dropped.shape.rank(), rank - count)

    @parameterized.parameterized.expand(_reduction.REDUCE_OPS)
    def test_all_reduce_ops_share_inference(self, op_type, _name):
        out = run_inference(op_type, FLOAT, [2, 3, 4], {"axes": [-1], "keepdims": 0})
        self.assertEqual(out.shape, ir.Shape([2, 3]))
        self.assertEqual(out.dtype, FLOAT)
        out = run_inference(op_type, DOUBLE, [2, 3, 4])
        self.assertEqual(out.shape, ir.Shape([1, 1, 1]))
        self.assertEqual(out.dtype, DOUBLE)


class ArgReduceInferenceTest(unittest.TestCase):
    @parameterized.parameterized.expand(
        [
            ("basic_keepdims", [3, 4, 5], {"axis": 1, "keepdims": 1}, [3, 1, 5]),
            ("no_keepdims", [3, 4, 5], {"axis": 1, "keepdims": 0}, [3, 5]),
            ("default_axis", [3, 4], {}, [1, 4]),
            ("default_axis_no_keepdims", [3, 4], {"keepdims": 0}, [4]),
            ("negative_axis", [5, 6, 7], {"axis": -1, "keepdims": 1}, [5, 6, 1]),
            ("negative_axis_no_keepdims", [5, 6, 7], {"axis": -3, "keepdims": 0}, [6, 7]),
            ("keepdims_other_value_drops", [3, 4], {"axis": 0, "keepdims": 5}, [4]),
        ]
    )
    def test_argmax(self, _name, input_shape, attrs, expected_shape):
        out = run_inference("ArgMax", FLOAT, input_shape, attrs)
        self.assertEqual(out.shape, ir.Shape(expected_shape))
        self.assertEqual(out.dtype, INT64)

    def test_argmin(self):
        out = run_inference("ArgMin", DOUBLE, [3, 4, 5], {"axis": 2, "keepdims": 0})
        self.assertEqual(out.shape, ir.Shape([3, 4]))
        self.assertEqual(out.dtype, INT64)

    def test_symbolic_dims(self):
        out = run_inference("ArgMax", FLOAT, ["N", 4, "D"], {"axis": 1})
        self.assertEqual(out.shape, ir.Shape(["N", 1, "D"]))

    @parameterized.parameterized.expand([(dtype.name, dtype) for dtype in sorted(all_numeric_types())])
    def test_output_is_int64_for_any_input(self, _name, dtype):
        out = run_inference("ArgMin", dtype, [2, 2], {"axis": 0})
        self.assertEqual(out.dtype, INT64)

    def test_missing_shape_still_sets_int64(self):
        out = run_inference("ArgMax", FLOAT, None)
        self.assertIsNone(out.shape)
        self.assertEqual(out.dtype, INT64)

    def test_non_tensor_output_type_is_not_overridden(self):
        schema = _build("ArgMax", _reduction.arg_reduce_doc_generator("max"))
        node = make_node("ArgMax", FLOAT, None)
        node.outputs[0].type = ir.SequenceType(ir.TensorType(FLOAT))
        _reduction.infer_arg_reduce(InferenceContext(schema, node))
        self.assertIsInstance(node.outputs[0].type, ir.SequenceType)

    @parameterized.parameterized.expand([(p,) for p in ("skip", "override", "refine", "strict")])
    def test_existing_float_output_is_overridden(self, policy):
        schema = _build("ArgMax", _reduction.arg_reduce_doc_generator("max"))
        node = make_node("ArgMax", FLOAT, [5, 6, 7], {"axis": -1})
        node.outputs[0].type = ir.TensorType(FLOAT)
        _reduction.infer_arg_reduce(InferenceContext(schema, node, policy=policy))
        self.assertEqual(node.outputs[0].dtype, INT64)
        self.assertEqual(node.outputs[0].shape, ir.Shape([5, 6, 1]))

    def test_out_of_range_axis_raises(self):
        with self.assertRaises(ShapeInferenceError):
            run_inference("ArgMax", FLOAT, [2, 3, 4], {"axis": 3})

    def test_scalar_input_raises(self):
        with self.assertRaises(ShapeInferenceError):
            run_inference("ArgMax", FLOAT, [])

    def test_inference_is_idempotent(self):
        schema = _build("ArgMax", _reduction.arg_reduce_doc_generator("max"))
        node = make_node("ArgMax", FLOAT, [5, 6, 7], {"axis": -1})
        _reduction.infer_arg_reduce(InferenceContext(schema, node))
        _reduction.infer_arg_reduce(InferenceContext(schema, node))
        self.assertEqual(node.outputs[0].shape, ir.Shape([5, 6, 1]))
        self.assertEqual(node.outputs[0].dtype, INT64)


class ReduceSchemaTest(unittest.TestCase):
    @parameterized.parameterized.expand(_reduction.REDUCE_OPS)
    def test_doc_contains_name_once(self, op_type, name):
        schema = _build(op_type, _reduction.reduce_doc_generator(name))
        self.assertEqual(schema.doc.count(name), 1)
        self.assertNotIn("{name}", schema.doc)
        self.assertIs(schema.inference_function, _reduction.infer_reduce)

    def test_reduce_declarations(self):
        schema = _build("ReduceSum", _reduction.reduce_doc_generator("sum"))
        self.assertEqual([a.name for a in schema.attributes], ["axes", "keepdims"])
        axes = schema.attribute("axes")
        self.assertEqual(axes.type, ir.AttributeType.INTS)
        self.assertIsNone(axes.default)
        self.assertFalse(axes.required)
        self.assertEqual(schema.attribute("keepdims").default.as_int(), 1)
        self.assertEqual([p.name for p in schema.inputs], ["data"])
        self.assertEqual([p.name for p in schema.outputs], ["reduced"])
        self.assertEqual(schema.inputs[0].type_str, schema.outputs[0].type_str)
        self.assertEqual(schema.allowed_input_types(0), high_precision_numeric_types())
        self.assertIsNone(schema.fixed_output_type(0))

    @parameterized.parameterized.expand(_reduction.ARG_REDUCE_OPS)
    def test_arg_reduce_declarations(self, op_type, name):
        schema = _build(op_type, _reduction.arg_reduce_doc_generator(name))
        self.assertEqual(schema.doc.count(f"the {name} elements"), 1)
        self.assertEqual([a.name for a in schema.attributes], ["axis", "keepdims"])
        self.assertEqual(schema.attribute("axis").default.as_int(), 0)
        self.assertEqual(schema.attribute("keepdims").default.as_int(), 1)
        self.assertEqual(schema.allowed_input_types(0), all_numeric_types())
        self.assertEqual(schema.outputs[0].type_str, "tensor(int64)")
        self.assertEqual(schema.fixed_output_type(0), INT64)
        self.assertIs(schema.inference_function, _reduction.infer_arg_reduce)


if __name__ == "__main__":
    unittest.main()
