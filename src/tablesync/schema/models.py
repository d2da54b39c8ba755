"""Pydantic models for schema definitions, drift, and table tracking.

This module contains schema-domain models:
- Definition models: ColumnDefinition, TableSchema
- Introspection models: LiveColumn
- Drift models: ColumnDiff, PendingMigration, MigrationResult
- Orphan tracking: TableStatus, OrphanedTable

Configuration models (DatabaseConfig, OrphanSettings) live in
tablesync.config.models.
"""

from collections.abc import Mapping
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, ValidationError

# ============================================================================
# Definition Models
# ============================================================================


class ColumnDefinition(BaseModel):
    """Declared shape of one column.

    ``default`` holds literal text; ``"CURRENT_TIMESTAMP"`` and ``"NULL"``
    are emitted unquoted.

    Example:
        >>> col = ColumnDefinition(type="VARCHAR", length=50, unique=True)
        >>> col.not_null
        False
    """

    type: str
    length: int | None = None
    not_null: bool = False
    unique: bool = False
    primary: bool = False
    auto_increment: bool = False
    default: str | None = None
    on_update: str | None = None


# Column name -> definition; dict order drives generated SQL order.
TableSchema = dict[str, ColumnDefinition]


def coerce_schema(table: str, schema: Mapping[str, Any]) -> TableSchema:
    """Validate a raw column mapping into a ``TableSchema``.

    Accepts ``ColumnDefinition`` instances or plain dicts such as
    ``{"type": "INT", "primary": True}``.

    Raises:
        ValueError: If the mapping is empty or any column is invalid.
    """
    if not schema:
        raise ValueError(f"Schema for table '{table}' has no columns")

    columns: TableSchema = {}
    for name, definition in schema.items():
        if isinstance(definition, ColumnDefinition):
            columns[name] = definition
            continue
        try:
            columns[name] = ColumnDefinition.model_validate(definition)
        except ValidationError as e:
            raise ValueError(
                f"Invalid definition for column '{table}.{name}': {e}"
            ) from e
    return columns


# ============================================================================
# Introspection Models
# ============================================================================


class LiveColumn(BaseModel):
    """A column as reported by ``information_schema.COLUMNS``."""

    name: str
    type: str
    nullable: bool = True
    default: str | None = None
    extra: str = ""


# ============================================================================
# Drift Models
# ============================================================================


class ColumnDiff(BaseModel):
    """Difference between a registered schema and a live table.

    ``drops`` is informational only; nothing is ever dropped automatically.

    Example:
        >>> diff = ColumnDiff(adds=["b"])
        >>> diff.has_changes
        True
    """

    adds: list[str] = Field(default_factory=list)
    modifies: list[str] = Field(default_factory=list)
    drops: list[str] = Field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.adds or self.modifies or self.drops)


class PendingMigration(BaseModel):
    """Drift for one table plus the ALTER statements that would fix it."""

    table: str
    diff: ColumnDiff
    statements: list[str] = Field(default_factory=list)


class MigrationResult(BaseModel):
    """Outcome of applying a batch of pending migrations."""

    total: int = 0
    succeeded: int = 0
    failed_statements: list[str] = Field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failed_statements)


# ============================================================================
# Orphan Tracking Models
# ============================================================================


class TableState(str, Enum):
    ACTIVE = "active"
    ORPHANED = "orphaned"


class TableStatus(BaseModel):
    """Scanner bookkeeping for one live table."""

    status: TableState
    last_seen: datetime
    first_orphaned: datetime | None = None


class OrphanedTable(BaseModel):
    """A live table with no registered schema."""

    name: str
    orphaned_since: datetime
    days_orphaned: int = 0
