# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Operator schemas: attributes, formal parameters, type constraints.

An :class:`OpSchema` is the declared contract of one operator. It is built
once through :class:`OpSchemaBuilder` and is immutable afterwards, so it can
be shared freely between validation calls.

Example::

    import onnx_ir as ir
    from onnx_op_schemas import OpSchemaBuilder, high_precision_numeric_types

    schema = (
        OpSchemaBuilder("Identity")
        .set_doc("Returns the input.")
        .input(0, "input", "Input tensor.", "T")
        .output(0, "output", "Output tensor.", "T")
        .type_constraint("T", high_precision_numeric_types(), "Numeric tensors.")
        .type_and_shape_inference_function(infer_identity)
        .build()
    )
"""

from __future__ import annotations

__all__ = [
    "AttributeSpec",
    "FormalParameter",
    "InferenceFunction",
    "OpSchema",
    "OpSchemaBuilder",
    "SchemaError",
    "SchemaFiller",
    "TypeConstraint",
]

import dataclasses
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any

import onnx_ir as ir

from onnx_op_schemas import _types
from onnx_op_schemas._context import OpUsageError

if TYPE_CHECKING:
    from onnx_op_schemas._context import InferenceContext

InferenceFunction = Callable[["InferenceContext"], None]


class SchemaError(ValueError):
    """Raised when a schema declaration or registration is malformed."""


@dataclasses.dataclass(frozen=True)
class AttributeSpec:
    """A declared attribute of an operator.

    Attributes:
        name: Attribute name.
        description: Human-readable description.
        type: The declared attribute kind.
        default: Default value, or ``None`` if the attribute has no default.
        required: Whether a node must set the attribute.
    """

    name: str
    description: str
    type: ir.AttributeType
    default: ir.Attr | None = None
    required: bool = False


@dataclasses.dataclass(frozen=True)
class FormalParameter:
    """A declared input or output.

    ``type_str`` is either the name of a type constraint of the same schema
    (e.g. ``"T"``) or a fixed tensor type string (e.g. ``"tensor(int64)"``).
    """

    name: str
    description: str
    type_str: str


@dataclasses.dataclass(frozen=True)
class TypeConstraint:
    """A type variable bound to a set of allowed element types."""

    name: str
    allowed_types: frozenset[ir.DataType]
    description: str


@dataclasses.dataclass(frozen=True)
class OpSchema:
    """The immutable contract of one operator."""

    name: str
    domain: str
    since_version: int
    doc: str
    attributes: tuple[AttributeSpec, ...]
    inputs: tuple[FormalParameter, ...]
    outputs: tuple[FormalParameter, ...]
    type_constraints: tuple[TypeConstraint, ...]
    inference_function: InferenceFunction | None = None

    def attribute(self, name: str) -> AttributeSpec | None:
        for spec in self.attributes:
            if spec.name == name:
                return spec
        return None

    def type_constraint(self, name: str) -> TypeConstraint | None:
        for constraint in self.type_constraints:
            if constraint.name == name:
                return constraint
        return None

    def _resolve_types(self, param: FormalParameter) -> frozenset[ir.DataType]:
        constraint = self.type_constraint(param.type_str)
        if constraint is not None:
            return constraint.allowed_types
        # build() guarantees anything else is a fixed tensor type
        dtype = _types.parse_type_str(param.type_str)
        assert dtype is not None
        return frozenset({dtype})

    def allowed_input_types(self, index: int) -> frozenset[ir.DataType]:
        """Element types permitted for input *index*."""
        return self._resolve_types(self.inputs[index])

    def fixed_output_type(self, index: int) -> ir.DataType | None:
        """The element type of output *index* if it is fixed by the signature."""
        return _types.parse_type_str(self.outputs[index].type_str)

    def verify(self, node: ir.Node) -> None:
        """Check that *node* conforms to this schema.

        Raises:
            OpUsageError: If an input is missing, a required attribute is
                missing, an attribute is undeclared or has the wrong kind,
                or a known input element type is not allowed.
        """
        if len(node.inputs) < len(self.inputs):
            raise OpUsageError(
                node,
                f"Expected at least {len(self.inputs)} input(s), got {len(node.inputs)}",
            )
        if len(node.inputs) > len(self.inputs):
            raise OpUsageError(
                node,
                f"Expected at most {len(self.inputs)} input(s), got {len(node.inputs)}",
            )
        for i, param in enumerate(self.inputs):
            value = node.inputs[i]
            if value is None:
                raise OpUsageError(node, f"Required input '{param.name}' (#{i}) is None")
            dtype = value.dtype
            if dtype is not None and dtype not in self.allowed_input_types(i):
                raise OpUsageError(
                    node,
                    f"Input '{param.name}' has type {dtype!r} which is not allowed "
                    f"by '{param.type_str}'",
                )

        for name, attr in node.attributes.items():
            spec = self.attribute(name)
            if spec is None:
                raise OpUsageError(node, f"Unrecognized attribute '{name}'")
            if attr.type != spec.type:
                raise OpUsageError(
                    node,
                    f"Attribute '{name}' expected to be {spec.type!r}, got {attr.type!r}",
                )
        for spec in self.attributes:
            if spec.required and spec.name not in node.attributes:
                raise OpUsageError(node, f"Missing required attribute '{spec.name}'")


SchemaFiller = Callable[["OpSchemaBuilder"], None]


class OpSchemaBuilder:
    """Fluent builder producing a frozen :class:`OpSchema`.

    Every slot can be filled at most once: the doc string, each attribute
    name, each input/output index, each type constraint name and the
    inference function. Filling a slot twice raises :class:`SchemaError`.
    """

    def __init__(self, name: str, domain: str = "", since_version: int = 1) -> None:
        self.name = name
        self.domain = domain
        self.since_version = since_version
        self._doc: str | None = None
        self._attributes: dict[str, AttributeSpec] = {}
        self._inputs: dict[int, FormalParameter] = {}
        self._outputs: dict[int, FormalParameter] = {}
        self._type_constraints: dict[str, TypeConstraint] = {}
        self._inference_function: InferenceFunction | None = None

    def _error(self, message: str) -> SchemaError:
        return SchemaError(f"{self.domain or 'ai.onnx'}::{self.name}: {message}")

    def set_doc(self, doc: str) -> OpSchemaBuilder:
        if self._doc is not None:
            raise self._error("doc is already set")
        self._doc = doc
        return self

    def attr(
        self,
        name: str,
        description: str,
        attr_type: ir.AttributeType,
        *,
        default: Any = None,
        required: bool = False,
    ) -> OpSchemaBuilder:
        """Declare an attribute.

        Args:
            name: Attribute name.
            description: Human-readable description.
            attr_type: The attribute kind.
            default: Optional default value. An attribute with a default is
                never required.
            required: Whether nodes must set the attribute.
        """
        if name in self._attributes:
            raise self._error(f"attribute '{name}' is already declared")
        if required and default is not None:
            raise self._error(f"required attribute '{name}' cannot have a default")
        default_attr = ir.Attr(name, attr_type, default) if default is not None else None
        self._attributes[name] = AttributeSpec(
            name=name,
            description=description,
            type=attr_type,
            default=default_attr,
            required=required,
        )
        return self

    def input(self, index: int, name: str, description: str, type_str: str) -> OpSchemaBuilder:
        if index in self._inputs:
            raise self._error(f"input #{index} is already declared")
        self._inputs[index] = FormalParameter(name, description, type_str)
        return self

    def output(self, index: int, name: str, description: str, type_str: str) -> OpSchemaBuilder:
        if index in self._outputs:
            raise self._error(f"output #{index} is already declared")
        self._outputs[index] = FormalParameter(name, description, type_str)
        return self

    def type_constraint(
        self,
        name: str,
        allowed_types: Iterable[ir.DataType],
        description: str,
    ) -> OpSchemaBuilder:
        if name in self._type_constraints:
            raise self._error(f"type constraint '{name}' is already declared")
        self._type_constraints[name] = TypeConstraint(
            name, frozenset(allowed_types), description
        )
        return self

    def type_and_shape_inference_function(self, func: InferenceFunction) -> OpSchemaBuilder:
        if self._inference_function is not None:
            raise self._error("inference function is already set")
        self._inference_function = func
        return self

    def fill_using(self, filler: SchemaFiller) -> OpSchemaBuilder:
        """Apply a reusable configurator to this builder."""
        filler(self)
        return self

    def _ordered(self, params: dict[int, FormalParameter], kind: str) -> tuple[FormalParameter, ...]:
        if sorted(params) != list(range(len(params))):
            raise self._error(f"{kind} indices must be contiguous from 0, got {sorted(params)}")
        for param in params.values():
            if (
                param.type_str not in self._type_constraints
                and _types.parse_type_str(param.type_str) is None
            ):
                raise self._error(
                    f"{kind} '{param.name}' references undeclared type '{param.type_str}'"
                )
        return tuple(params[i] for i in range(len(params)))

    def build(self) -> OpSchema:
        """Validate the declarations and return the frozen schema.

        Raises:
            SchemaError: If input/output indices have gaps or a formal
                parameter references an undeclared type constraint.
        """
        inputs = self._ordered(self._inputs, "input")
        outputs = self._ordered(self._outputs, "output")
        return OpSchema(
            name=self.name,
            domain=self.domain,
            since_version=self.since_version,
            doc=self._doc or "",
            attributes=tuple(self._attributes.values()),
            inputs=inputs,
            outputs=outputs,
            type_constraints=tuple(self._type_constraints.values()),
            inference_function=self._inference_function,
        )
