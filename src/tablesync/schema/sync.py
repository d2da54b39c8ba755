"""Table synchronization against registered schemas (async).

For each registered table the synchronizer either creates it (when absent)
or diffs it against the live columns and hands any drift to the
``MigrationGate``.  ALTER statements are never executed here.

Usage:
    from tablesync.schema.sync import TableSynchronizer

    synchronizer = TableSynchronizer(registry, driver, gate)
    await synchronizer.create_core_tables()
    for table in registry.tables():
        await synchronizer.sync_table(table)
"""

from __future__ import annotations

import logging

from tablesync.adapters.driver import DriverAdapter
from tablesync.schema.comparator import compare_schema
from tablesync.schema.ddl import (
    generate_alter_sql,
    generate_create_table_sql,
    generate_drop_table_sql,
)
from tablesync.schema.introspector import SchemaIntrospector
from tablesync.schema.migrations import MigrationGate
from tablesync.schema.models import ColumnDiff
from tablesync.schema.registry import SchemaRegistry

logger = logging.getLogger(__name__)


class TableSynchronizer:
    """Creates missing tables and detects drift in existing ones.

    Args:
        registry: Source of table schemas.
        driver: Guarded driver used for DDL and introspection.
        gate: Receives pending migrations for tables that drifted.
    """

    def __init__(
        self,
        registry: SchemaRegistry,
        driver: DriverAdapter,
        gate: MigrationGate,
    ) -> None:
        self.registry = registry
        self.driver = driver
        self.gate = gate
        self.introspector = SchemaIntrospector(driver)

    async def sync_table(self, table: str) -> bool:
        """Create ``table`` or queue its migrations.

        Returns:
            ``False`` when the table has no schema or creation failed.
            Queued drift still counts as success.
        """
        schema = self.registry.get(table)
        if schema is None:
            logger.error("No schema registered for table: %s", table)
            return False

        if not await self.introspector.table_exists(table):
            return await self.create_table(table)

        diff = await self.diff_table(table)
        if diff is None or not diff.has_changes:
            logger.debug("Table up to date: %s", table)
            return True

        statements = generate_alter_sql(table, schema, diff)
        self.gate.queue(table, diff, statements)
        return True

    async def diff_table(self, table: str) -> ColumnDiff | None:
        """Compare the live table with its schema without queuing anything.

        A failed column query looks like an empty table, so every schema
        column is then reported as an add.
        """
        schema = self.registry.get(table)
        if schema is None:
            return None
        live = await self.introspector.get_table_columns(table)
        return compare_schema(schema, live)

    async def create_table(self, table: str) -> bool:
        schema = self.registry.get(table)
        if schema is None:
            logger.error("No schema registered for table: %s", table)
            return False

        sql = generate_create_table_sql(table, schema)
        if await self.driver.execute(sql) is None:
            logger.error("Failed to create table: %s", table)
            return False

        logger.info("Created table: %s", table)
        return True

    async def create_core_tables(self) -> bool:
        """Create every core table that does not exist yet.

        All core tables are attempted even after a failure.
        """
        ok = True
        for table in self.registry.core_tables():
            if not await self.create_table(table):
                ok = False
        return ok

    async def drop_table(self, table: str) -> bool:
        sql = generate_drop_table_sql(table)
        if await self.driver.execute(sql) is None:
            logger.error("Failed to drop table: %s", table)
            return False

        logger.warning("Dropped table: %s", table)
        return True
