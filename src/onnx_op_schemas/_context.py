# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Inference context handed to schema inference functions, and merge policies."""

from __future__ import annotations

__all__ = [
    "InferenceContext",
    "OpUsageError",
    "ShapeInferenceError",
    "ShapeMergePolicy",
]

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Literal

import onnx_ir as ir

if TYPE_CHECKING:
    from onnx_op_schemas._schema import OpSchema

logger = logging.getLogger(__name__)


class ShapeInferenceError(ValueError):
    """A recorded error from shape inference.

    Can be raised directly (it is a :class:`ValueError` subclass) or stored
    for later inspection via :attr:`InferenceContext.errors`.

    Attributes:
        node_name: The name of the node (or ``None`` if unnamed).
        op_type: The operator type (e.g. ``"ReduceSum"``).
        domain: The operator domain.
        message: Human-readable description of the error.
    """

    def __init__(
        self,
        *,
        node_name: str | None,
        op_type: str,
        domain: str,
        message: str,
    ) -> None:
        self.node_name = node_name
        self.op_type = op_type
        self.domain = domain
        self.message = message
        super().__init__(str(self))

    def __str__(self) -> str:
        op_id = f"{self.domain}::{self.op_type}" if self.domain else self.op_type
        node_desc = f" (node {self.node_name!r})" if self.node_name else ""
        return f"{op_id}{node_desc}: {self.message}"


class OpUsageError(ValueError):
    """Raised when an operator node does not match its schema.

    This indicates the model is malformed: missing inputs, missing required
    attributes, undeclared or mistyped attributes, or an input element type
    outside the schema's type constraint.
    """

    def __init__(self, node: ir.Node, message: str) -> None:
        self.node = node
        self.message = message
        super().__init__(str(self))

    def __str__(self) -> str:
        op_id = (
            f"{self.node.domain}::{self.node.op_type}"
            if self.node.domain
            else self.node.op_type
        )
        node_desc = f" (node {self.node.name!r})" if self.node.name else ""
        return f"{op_id}{node_desc}: {self.message}"


ShapeMergePolicy = Literal["skip", "override", "refine", "strict"]
"""Policy for merging inferred shapes/dtypes with existing values.

* ``"skip"``: Don't update if shape/dtype already exists.
* ``"override"``: Always replace with inferred shape/dtype.
* ``"refine"``: Only update if inferred is more specific
    (concrete beats symbolic, named symbolic beats None).
* ``"strict"``: Fail if inferred shape/dtype conflicts with existing.
"""


def _is_more_specific(
    inferred_dim: int | ir.SymbolicDim,
    existing_dim: int | ir.SymbolicDim,
) -> bool:
    """Check if the inferred dimension is more specific than the existing one.

    Specificity order: concrete int > named symbolic > unknown (None)
    """
    if isinstance(inferred_dim, int):
        return not isinstance(existing_dim, int)

    if isinstance(inferred_dim, ir.SymbolicDim) and inferred_dim.value is not None:
        if isinstance(existing_dim, ir.SymbolicDim) and existing_dim.value is None:
            return True

    return False


def _dims_conflict(
    dim1: int | ir.SymbolicDim,
    dim2: int | ir.SymbolicDim,
) -> bool:
    """Check if two dimensions conflict (both concrete but different values)."""
    if isinstance(dim1, int) and isinstance(dim2, int):
        return dim1 != dim2
    return False


class InferenceContext:
    """Per-node view handed to a schema's inference function.

    Reads resolve against the node being validated: attribute values (with
    the schema's declared defaults filled in), input element types and
    shapes. Writes go to the node's output values through the merge policy.
    A context is built for a single invocation and never shared.

    Attributes:
        schema: The schema the node is validated against.
        node: The node being validated.
        policy: The shape merge policy.
    """

    def __init__(
        self,
        schema: OpSchema,
        node: ir.Node,
        policy: ShapeMergePolicy = "refine",
    ) -> None:
        self.schema = schema
        self.node = node
        self.policy = policy
        self._errors: list[ShapeInferenceError] = []

    # --- Attributes ---

    def get_attribute(self, name: str) -> ir.Attr | None:
        """Get an attribute of the node.

        Falls back to the default declared in the schema. Returns ``None``
        when the attribute is absent and the schema declares no default.
        """
        attr = self.node.attributes.get(name)
        if attr is not None:
            return attr
        spec = self.schema.attribute(name)
        if spec is None:
            return None
        return spec.default

    # --- Inputs ---

    def _input(self, index: int) -> ir.Value | None:
        if index >= len(self.node.inputs):
            return None
        return self.node.inputs[index]

    def has_n_input_shapes(self, n: int) -> bool:
        """Whether the first *n* inputs all exist and have a known shape."""
        if len(self.node.inputs) < n:
            return False
        for i in range(n):
            value = self.node.inputs[i]
            if value is None or value.shape is None:
                return False
        return True

    def get_input_type(self, index: int) -> ir.TypeProtocol | None:
        value = self._input(index)
        return value.type if value is not None else None

    def get_input_dtype(self, index: int) -> ir.DataType | None:
        value = self._input(index)
        return value.dtype if value is not None else None

    def get_input_shape(self, index: int) -> ir.Shape | None:
        """Shape of input *index*; guarded by :meth:`has_n_input_shapes`."""
        value = self._input(index)
        return value.shape if value is not None else None

    # --- Outputs ---

    def num_outputs(self) -> int:
        return len(self.node.outputs)

    def get_output_type(self, index: int) -> ir.TypeProtocol | None:
        return self.node.outputs[index].type

    def set_output_shape(self, index: int, shape: ir.Shape) -> bool:
        """Assign the inferred shape of output *index*.

        Returns:
            True if the shape was updated, False otherwise.

        Raises:
            ValueError: If policy is ``"strict"`` and shapes conflict.
        """
        value = self.node.outputs[index]
        existing = value.shape

        if existing is None:
            value.shape = shape
            return True

        if self.policy == "skip":
            return False

        if self.policy == "override":
            value.shape = shape
            return True

        if self.policy == "strict":
            if existing.rank() != shape.rank():
                raise ValueError(
                    f"Shape rank mismatch for {value.name}: "
                    f"existing {existing.rank()} vs inferred {shape.rank()}"
                )
            for i, (e_dim, i_dim) in enumerate(zip(existing.dims, shape.dims)):
                if _dims_conflict(e_dim, i_dim):
                    raise ValueError(
                        f"Shape conflict for {value.name} at dim {i}: "
                        f"existing {e_dim} vs inferred {i_dim}"
                    )
            return self._refine_shape(value, existing, shape)

        # "refine" policy
        return self._refine_shape(value, existing, shape)

    def _refine_shape(self, value: ir.Value, existing: ir.Shape, inferred: ir.Shape) -> bool:
        """Refine existing shape with inferred shape, keeping more specific dims."""
        if existing.rank() != inferred.rank():
            # Can't refine if ranks differ; keep existing
            return False

        modified = False
        new_dims: list[int | ir.SymbolicDim] = []

        for e_dim, i_dim in zip(existing.dims, inferred.dims):
            if _is_more_specific(i_dim, e_dim):
                new_dims.append(i_dim)
                modified = True
            else:
                new_dims.append(e_dim)

        if modified:
            value.shape = ir.Shape(new_dims)

        return modified

    def set_output_dtype(self, index: int, dtype: ir.DataType) -> bool:
        """Assign the inferred element type of output *index*.

        Returns:
            True if the dtype was updated, False otherwise.

        Raises:
            ValueError: If policy is ``"strict"`` and dtypes conflict.
        """
        value = self.node.outputs[index]
        existing = value.dtype

        if existing is None:
            value.dtype = dtype
            return True

        if self.policy == "skip":
            return False

        if self.policy == "override":
            value.dtype = dtype
            return True

        if self.policy == "strict":
            if existing != dtype:
                raise ValueError(
                    f"Dtype conflict for {value.name}: existing {existing} vs inferred {dtype}"
                )
            return False

        # "refine" policy - only set if not already set
        return False

    def force_output_dtype(self, index: int, dtype: ir.DataType) -> bool:
        """Set the element type of output *index* regardless of the merge policy.

        For outputs whose element type is fixed by the operator signature.

        Returns:
            True if the dtype changed.
        """
        value = self.node.outputs[index]
        if value.dtype == dtype:
            return False
        value.dtype = dtype
        return True

    def propagate_elem_type(self, input_index: int, output_index: int) -> None:
        """Copy the element type of an input to an output.

        An output that already carries a different element type is an error
        unless the policy is ``"override"``, which replaces it.
        """
        input_dtype = self.get_input_dtype(input_index)
        if input_dtype is None:
            return
        existing = self.node.outputs[output_index].dtype
        if existing is not None and existing != input_dtype and self.policy != "override":
            self.record_error(
                f"Output #{output_index} has element type {existing!r} but input "
                f"#{input_index} has {input_dtype!r}"
            )
            return
        self.set_output_dtype(output_index, input_dtype)

    # --- Errors ---

    def record_error(self, message: str) -> None:
        """Record a shape inference error for the node.

        The error is raised immediately unless the merge policy is ``"skip"``,
        in which case it is only logged and appended to :attr:`errors`.

        Raises:
            ShapeInferenceError: If the merge policy is not ``"skip"``.
        """
        error = ShapeInferenceError(
            node_name=self.node.name,
            op_type=self.node.op_type,
            domain=self.node.domain,
            message=message,
        )
        self._errors.append(error)
        if self.policy == "skip":
            logger.warning("Shape inference error: %s", error)
            return
        raise error

    @property
    def errors(self) -> Sequence[ShapeInferenceError]:
        """All errors recorded during this invocation."""
        return self._errors
