"""Schema registry, comparison, synchronization, and orphan cleanup.

Provides the ``SchemaRegistry``, live introspection (``SchemaIntrospector``),
drift detection (``compare_schema``), DDL generation, the
``TableSynchronizer``, the operator-gated ``MigrationGate``, and the
``OrphanScanner``.

Usage:
    from tablesync.schema import SchemaRegistry, TableSynchronizer
    from tablesync.schema import MigrationGate, OrphanScanner
"""

from tablesync.schema.cleanup import OrphanScanner
from tablesync.schema.comparator import column_differs, compare_schema
from tablesync.schema.ddl import (
    build_column_sql,
    generate_alter_sql,
    generate_create_table_sql,
    generate_drop_table_sql,
    quote_identifier,
)
from tablesync.schema.introspector import SchemaIntrospector
from tablesync.schema.migrations import GateState, MigrationGate
from tablesync.schema.models import (
    ColumnDefinition,
    ColumnDiff,
    LiveColumn,
    MigrationResult,
    OrphanedTable,
    PendingMigration,
    TableSchema,
    TableState,
    TableStatus,
)
from tablesync.schema.registry import SchemaRegistry
from tablesync.schema.sync import TableSynchronizer

__all__ = [
    "SchemaRegistry",
    "SchemaIntrospector",
    "TableSynchronizer",
    "MigrationGate",
    "GateState",
    "OrphanScanner",
    "compare_schema",
    "column_differs",
    "quote_identifier",
    "build_column_sql",
    "generate_create_table_sql",
    "generate_alter_sql",
    "generate_drop_table_sql",
    "ColumnDefinition",
    "TableSchema",
    "LiveColumn",
    "ColumnDiff",
    "PendingMigration",
    "MigrationResult",
    "TableState",
    "TableStatus",
    "OrphanedTable",
]
