"""tablesync: Async MySQL data layer with schema sync and gated migrations.

Provides a timeout-guarded driver over pluggable async MySQL backends, a
fluent query builder, a schema registry with table synchronization, an
operator-gated migration queue, and orphaned table cleanup.

Usage:
    from tablesync import Database, load_db_config
    from tablesync import QueryBuilder, DriverAdapter, AsyncMySQLBackend
    from tablesync import SchemaRegistry, MigrationGate, OrphanScanner
"""

__version__ = "0.1.0"

# Adapters
from tablesync.adapters.base import SQLBackend
from tablesync.adapters.driver import DriverAdapter
from tablesync.adapters.mysql import AsyncMySQLBackend

# Config
from tablesync.config.loader import load_db_config, load_schema_file
from tablesync.config.models import DatabaseConfig, OrphanSettings

# Factory
from tablesync.factory import (
    ConfigurationError,
    create_backend,
    parse_connection_string,
    detect_driver,
)

# Query builder
from tablesync.query import QueryBuilder

# Schema
from tablesync.schema.cleanup import OrphanScanner
from tablesync.schema.migrations import MigrationGate
from tablesync.schema.models import ColumnDefinition
from tablesync.schema.registry import SchemaRegistry
from tablesync.schema.sync import TableSynchronizer

# Root
from tablesync.commands import AdminCommands
from tablesync.database import Database

__all__ = [
    # Adapters
    "SQLBackend",
    "DriverAdapter",
    "AsyncMySQLBackend",
    # Config
    "load_db_config",
    "load_schema_file",
    "DatabaseConfig",
    "OrphanSettings",
    # Factory
    "ConfigurationError",
    "create_backend",
    "parse_connection_string",
    "detect_driver",
    # Query builder
    "QueryBuilder",
    # Schema
    "ColumnDefinition",
    "SchemaRegistry",
    "TableSynchronizer",
    "MigrationGate",
    "OrphanScanner",
    # Root
    "Database",
    "AdminCommands",
]
