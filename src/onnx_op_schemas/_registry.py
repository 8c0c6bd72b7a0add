# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Registry of operator schemas."""

from __future__ import annotations

__all__ = [
    "OpSchemaRegistry",
]

import logging
from collections.abc import Iterator

from onnx_op_schemas._schema import OpSchema, SchemaError

logger = logging.getLogger(__name__)


class OpSchemaRegistry:
    """Registry of operator schemas.

    Supports registration by (domain, op_type) with since_version semantics.
    When looking up a schema, dispatches to the correct version where
    target_version >= since_version and target_version < next_since_version.

    A registry is populated once and then frozen; after :meth:`freeze` it
    only serves lookups. There is no process-wide instance: whoever builds
    the registry passes it to the code that validates graphs.

    Example::

        from onnx_op_schemas import OpSchemaRegistry

        registry = OpSchemaRegistry()
        registry.register(reduce_sum_v1)
        registry.register(reduce_sum_v13)
        registry.freeze()

        registry.get("", "ReduceSum", version=11)  # Returns reduce_sum_v1
        registry.get("", "ReduceSum", version=13)  # Returns reduce_sum_v13
    """

    def __init__(self) -> None:
        # Raw registrations: {(domain, op_type): [schema, ...]}
        # Sorted by since_version ascending
        self._registrations: dict[tuple[str, str], list[OpSchema]] = {}
        # Cached lookup table: {(domain, op_type): {version: schema}}
        # Built on first lookup for each (domain, op_type)
        self._cache: dict[tuple[str, str], dict[int, OpSchema]] = {}
        # Track the newest registration per key for O(1) lookup beyond cache
        self._max_version: dict[tuple[str, str], OpSchema] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Reject further registrations."""
        self._frozen = True

    def register(self, schema: OpSchema) -> OpSchema:
        """Register *schema* under its domain, name and since_version.

        Returns:
            The registered schema.

        Raises:
            SchemaError: If the registry is frozen or a schema with the same
                (domain, name, since_version) is already registered.
        """
        op_id = f"{schema.domain or 'ai.onnx'}::{schema.name}"
        if self._frozen:
            raise SchemaError(f"Cannot register {op_id}: registry is frozen")

        key = (schema.domain, schema.name)
        registrations = self._registrations.setdefault(key, [])
        if any(s.since_version == schema.since_version for s in registrations):
            raise SchemaError(
                f"Schema {op_id} (since_version={schema.since_version}) is already registered"
            )

        registrations.append(schema)
        registrations.sort(key=lambda s: s.since_version)

        # Invalidate cache for this key since registrations changed
        self._cache.pop(key, None)
        self._max_version.pop(key, None)

        logger.debug(
            "Registered schema %s (since_version=%s)",
            op_id,
            schema.since_version,
        )
        return schema

    def _build_cache(self, key: tuple[str, str]) -> None:
        """Build the O(1) lookup cache for a given (domain, op_type) key."""
        registrations = self._registrations.get(key)
        if not registrations:
            return

        cache: dict[int, OpSchema] = {}
        for i, schema in enumerate(registrations):
            if i + 1 < len(registrations):
                end_ver = registrations[i + 1].since_version
            else:
                end_ver = schema.since_version + 1
            for ver in range(schema.since_version, end_ver):
                cache[ver] = schema

        self._cache[key] = cache
        self._max_version[key] = registrations[-1]

    def get(self, domain: str, op_type: str, version: int) -> OpSchema | None:
        """Get the schema of an operator for an opset version.

        Args:
            domain: ONNX domain.
            op_type: Operator type.
            version: Opset version to look up.

        Returns:
            The schema, or None if not found.
        """
        key = (domain, op_type)

        if key not in self._cache and key in self._registrations:
            self._build_cache(key)

        if key not in self._cache:
            return None

        cache = self._cache[key]
        if version in cache:
            return cache[version]

        newest = self._max_version.get(key)
        if newest is not None and version >= newest.since_version:
            return newest

        # Version is below all registered since_versions
        return None

    def has(self, domain: str, op_type: str) -> bool:
        """Check if any schema is registered for an operator."""
        return bool(self._registrations.get((domain, op_type)))

    def __iter__(self) -> Iterator[OpSchema]:
        """Iterate over all registered schemas, ordered by domain, name and version."""
        for key in sorted(self._registrations):
            yield from self._registrations[key]

    def __len__(self) -> int:
        return sum(len(schemas) for schemas in self._registrations.values())
