# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Built-in operator schema definitions."""

from __future__ import annotations

__all__ = [
    "create_default_registry",
]

from onnx_op_schemas import _registry
from onnx_op_schemas._defs import _reduction


def create_default_registry() -> _registry.OpSchemaRegistry:
    """Build a frozen registry holding every built-in schema."""
    registry = _registry.OpSchemaRegistry()
    _reduction.register_reduction_schemas(registry)
    registry.freeze()
    return registry
