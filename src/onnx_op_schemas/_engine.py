# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Graph validation engine.

Walks the graphs of a model and runs the inference function of each
node's schema, looked up in an explicitly supplied registry.
"""

from __future__ import annotations

__all__ = [
    "infer_shapes",
]

import logging

import onnx_ir as ir

from onnx_op_schemas import _context, _registry

logger = logging.getLogger(__name__)


def infer_shapes(
    model: ir.Model,
    registry: _registry.OpSchemaRegistry,
    *,
    policy: _context.ShapeMergePolicy = "refine",
    check: bool = True,
    warn_on_missing: bool = True,
) -> ir.Model:
    """Validate the model against *registry* and infer output shapes and types.

    Traverses every graph in *model* in order, checking each node against
    its schema and applying the schema's inference function. The model is
    modified **in place** and also returned for convenience.

    Args:
        model: The model to validate.
        registry: The schemas to validate against.
        policy: How to merge inferred shapes with existing shapes.
        check: If ``True``, verify each node against its schema before
            running inference.
        warn_on_missing: If ``True``, log warnings for ops without a
            registered schema.

    Returns:
        The same *model* object, with shapes updated in place.

    Raises:
        OpUsageError: If *check* is set and a node does not match its schema.
        ShapeInferenceError: If inference fails for a node.

    Example::

        import onnx_ir as ir
        from onnx_op_schemas import create_default_registry, infer_shapes

        registry = create_default_registry()
        model = infer_shapes(ir.load("model.onnx"), registry)
    """
    _infer_shapes(
        model, registry, policy=policy, check=check, warn_on_missing=warn_on_missing
    )
    return model


def _infer_shapes(
    model: ir.Model,
    registry: _registry.OpSchemaRegistry,
    *,
    policy: _context.ShapeMergePolicy = "refine",
    check: bool = True,
    warn_on_missing: bool = True,
) -> bool:
    """Core implementation that returns whether the model was modified."""
    return _process_graph(
        model.graph,
        registry,
        model.opset_imports,
        policy=policy,
        check=check,
        warned_ops=set() if warn_on_missing else None,
    )


def _opset_version(opset_imports: dict[str, int], domain: str) -> int:
    if domain in opset_imports:
        return opset_imports[domain]
    if domain == "ai.onnx":
        return opset_imports.get("", 1)
    return 1


def _process_graph(
    graph: ir.Graph,
    registry: _registry.OpSchemaRegistry,
    opset_imports: dict[str, int],
    *,
    policy: _context.ShapeMergePolicy,
    check: bool,
    warned_ops: set[tuple[str, str]] | None,
) -> bool:
    """Process a single graph.

    Args:
        graph: The graph to process.
        registry: The schemas to validate against.
        opset_imports: Mapping from domain to opset version of the model.
        policy: The shape merge policy.
        check: Whether to verify nodes against their schemas.
        warned_ops: Ops already warned about, or ``None`` to not warn.

    Returns:
        ``True`` if any shapes were modified.
    """
    modified = False

    for node in graph:
        # Recursively process any subgraphs (e.g. If/Loop bodies)
        for attr in node.attributes.values():
            if isinstance(attr, ir.Attr) and attr.type == ir.AttributeType.GRAPH:
                subgraph = attr.as_graph()
                if subgraph is not None and _process_graph(
                    subgraph,
                    registry,
                    opset_imports,
                    policy=policy,
                    check=check,
                    warned_ops=warned_ops,
                ):
                    modified = True

        domain = node.domain or ""
        op_type = node.op_type
        version = _opset_version(opset_imports, domain)

        schema = registry.get(domain, op_type, version=version)
        if schema is None:
            key = (domain, op_type)
            if warned_ops is not None and key not in warned_ops:
                logger.warning(
                    "No schema registered for %s::%s (opset %s)",
                    domain or "ai.onnx",
                    op_type,
                    version,
                )
                warned_ops.add(key)
            continue

        if check:
            schema.verify(node)

        if schema.inference_function is None:
            continue

        old_states = [(out.shape, out.type) for out in node.outputs]
        ctx = _context.InferenceContext(schema, node, policy=policy)
        try:
            schema.inference_function(ctx)
        except (_context.OpUsageError, _context.ShapeInferenceError):
            raise
        except Exception as e:
            raise _context.ShapeInferenceError(
                node_name=node.name,
                op_type=op_type,
                domain=domain,
                message=f"Shape inference failed for {domain or 'ai.onnx'}::{op_type}",
            ) from e

        for out, (old_shape, old_type) in zip(node.outputs, old_states):
            if out.shape != old_shape or out.type != old_type:
                modified = True

    return modified
