"""In-memory schema registry.

Maps table names to their ``TableSchema`` and remembers which tables are
core (declared by the data layer itself and created unconditionally at
startup) versus registered later by collaborators.

Usage:
    from tablesync.schema.registry import SchemaRegistry

    registry = SchemaRegistry()
    registry.register("bans", {"id": {"type": "INT", "primary": True}})
    registry.get("bans")["id"].primary  # True
"""

import logging
from collections.abc import Iterator, Mapping
from typing import Any

from tablesync.schema.models import TableSchema, coerce_schema

logger = logging.getLogger(__name__)


class SchemaRegistry:
    """Table name -> schema mapping with a core/registered split."""

    def __init__(self) -> None:
        self._schemas: dict[str, TableSchema] = {}
        self._core: set[str] = set()

    def register(
        self,
        table: str,
        schema: Mapping[str, Any],
        core: bool = False,
    ) -> TableSchema:
        """Insert or replace the schema for ``table``.

        Replacing a schema only affects future synchronization; tables that
        already exist are not touched here.

        Raises:
            ValueError: If the table name is empty or the schema is invalid.
        """
        if not table:
            raise ValueError("Table name is required")

        columns = coerce_schema(table, schema)
        replaced = table in self._schemas
        self._schemas[table] = columns
        if core:
            self._core.add(table)

        logger.debug(
            "Schema %s: %s (%d columns%s)",
            "replaced" if replaced else "registered",
            table,
            len(columns),
            ", core" if core else "",
        )
        return columns

    def get(self, table: str) -> TableSchema | None:
        return self._schemas.get(table)

    def is_core(self, table: str) -> bool:
        return table in self._core

    def tables(self) -> list[str]:
        """All registered table names in registration order."""
        return list(self._schemas)

    def core_tables(self) -> list[str]:
        return [t for t in self._schemas if t in self._core]

    def __contains__(self, table: object) -> bool:
        return table in self._schemas

    def __iter__(self) -> Iterator[str]:
        return iter(self._schemas)

    def __len__(self) -> int:
        return len(self._schemas)
