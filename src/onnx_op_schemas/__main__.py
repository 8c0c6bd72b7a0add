# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""CLI entry point for onnx-op-schemas.

Usage::

    python -m onnx_op_schemas model.onnx
    python -m onnx_op_schemas model.onnx -o model_inferred.onnx
    python -m onnx_op_schemas --list
"""

from __future__ import annotations

import argparse

import onnx_ir as ir

from onnx_op_schemas import _types, create_default_registry, infer_shapes


def _count_shapes(model: ir.Model) -> int:
    """Count the number of values with shapes in the model."""
    count = 0
    for node in model.graph.all_nodes():
        for output in node.outputs:
            if output.shape is not None:
                count += 1
    return count


def _list_schemas() -> None:
    registry = create_default_registry()
    for schema in registry:
        print(f"{schema.domain or 'ai.onnx'}::{schema.name} (since_version={schema.since_version})")
        for attr in schema.attributes:
            default = f" = {attr.default.value!r}" if attr.default is not None else ""
            print(f"  attr {attr.name}: {attr.type.name}{default}")
        for kind, params in (("input", schema.inputs), ("output", schema.outputs)):
            for param in params:
                print(f"  {kind} {param.name}: {param.type_str}")
        for constraint in schema.type_constraints:
            allowed = ", ".join(sorted(_types.type_str(t) for t in constraint.allowed_types))
            print(f"  {constraint.name} in ({allowed})")


def main(argv: list[str] | None = None) -> None:
    """Validate an ONNX model against the built-in schemas."""
    parser = argparse.ArgumentParser(
        prog="onnx_op_schemas",
        description="Operator schema validation and shape inference for ONNX models.",
    )
    parser.add_argument("model", nargs="?", help="Path to the input ONNX model.")
    parser.add_argument(
        "-o",
        "--output",
        default=None,
        help="Path to save the inferred model. If not provided, the model is not saved.",
    )
    parser.add_argument(
        "--in-place",
        action="store_true",
        help="Save the inferred model back to the input path.",
    )
    parser.add_argument(
        "--policy",
        choices=["strict", "refine"],
        default="refine",
        help="Shape merge policy (default: refine).",
    )
    parser.add_argument(
        "--no-check",
        action="store_true",
        help="Skip verifying nodes against their schemas.",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List the registered schemas and exit.",
    )
    args = parser.parse_args(argv)

    if args.list:
        _list_schemas()
        return
    if args.model is None:
        parser.error("the following arguments are required: model")
    if args.output and args.in_place:
        parser.error("--output and --in-place are mutually exclusive.")

    registry = create_default_registry()
    model = ir.load(args.model)
    shapes_before = _count_shapes(model)

    infer_shapes(model, registry, policy=args.policy, check=not args.no_check)

    shapes_after = _count_shapes(model)
    new_shapes = shapes_after - shapes_before
    print(f"New shapes created: {new_shapes}")

    save_path = args.model if args.in_place else args.output
    if save_path:
        ir.save(model, save_path)
        print(f"Saved inferred model to {save_path}")


if __name__ == "__main__":
    main()
