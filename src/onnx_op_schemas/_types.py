# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Element-type classes used by type constraints."""

from __future__ import annotations

__all__ = [
    "all_numeric_types",
    "all_tensor_types",
    "high_precision_numeric_types",
    "parse_type_str",
    "type_str",
]

import onnx_ir as ir

# Tensor type strings as they appear in operator signatures, e.g. "tensor(int64)"
_TYPE_STRS: dict[str, ir.DataType] = {
    "uint8": ir.DataType.UINT8,
    "uint16": ir.DataType.UINT16,
    "uint32": ir.DataType.UINT32,
    "uint64": ir.DataType.UINT64,
    "int8": ir.DataType.INT8,
    "int16": ir.DataType.INT16,
    "int32": ir.DataType.INT32,
    "int64": ir.DataType.INT64,
    "float16": ir.DataType.FLOAT16,
    "float": ir.DataType.FLOAT,
    "double": ir.DataType.DOUBLE,
    "bool": ir.DataType.BOOL,
    "string": ir.DataType.STRING,
    "complex64": ir.DataType.COMPLEX64,
    "complex128": ir.DataType.COMPLEX128,
}
_TYPE_NAMES = {dtype: name for name, dtype in _TYPE_STRS.items()}

_ALL_NUMERIC_TYPES = frozenset(
    {
        ir.DataType.UINT8,
        ir.DataType.UINT16,
        ir.DataType.UINT32,
        ir.DataType.UINT64,
        ir.DataType.INT8,
        ir.DataType.INT16,
        ir.DataType.INT32,
        ir.DataType.INT64,
        ir.DataType.FLOAT16,
        ir.DataType.FLOAT,
        ir.DataType.DOUBLE,
    }
)

_HIGH_PRECISION_NUMERIC_TYPES = frozenset(
    {
        ir.DataType.UINT32,
        ir.DataType.UINT64,
        ir.DataType.INT32,
        ir.DataType.INT64,
        ir.DataType.FLOAT16,
        ir.DataType.FLOAT,
        ir.DataType.DOUBLE,
    }
)

_ALL_TENSOR_TYPES = _ALL_NUMERIC_TYPES | {
    ir.DataType.BOOL,
    ir.DataType.STRING,
    ir.DataType.COMPLEX64,
    ir.DataType.COMPLEX128,
}


def all_numeric_types() -> frozenset[ir.DataType]:
    """Signed and unsigned integers of every width plus float16/float/double."""
    return _ALL_NUMERIC_TYPES


def high_precision_numeric_types() -> frozenset[ir.DataType]:
    """Numeric types of at least 32 bits, plus float16."""
    return _HIGH_PRECISION_NUMERIC_TYPES


def all_tensor_types() -> frozenset[ir.DataType]:
    return _ALL_TENSOR_TYPES


def parse_type_str(text: str) -> ir.DataType | None:
    """Parse a fixed tensor type string such as ``"tensor(int64)"``.

    Returns:
        The element type, or ``None`` if *text* is not a known tensor type
        string (for example a type-constraint variable like ``"T"``).
    """
    if not (text.startswith("tensor(") and text.endswith(")")):
        return None
    return _TYPE_STRS.get(text[len("tensor(") : -1])


def type_str(dtype: ir.DataType) -> str:
    """Format *dtype* as a tensor type string, the inverse of :func:`parse_type_str`."""
    name = _TYPE_NAMES.get(dtype)
    if name is None:
        raise ValueError(f"No tensor type string for {dtype!r}")
    return f"tensor({name})"
