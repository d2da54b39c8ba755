"""Data layer root object.

``Database`` owns every piece of state the data layer needs: the schema
registry, the guarded driver, the migration gate, the synchronizer and the
orphan scanner.  Collaborators register schemas on it, wait for readiness,
and build queries through it.

Startup sequence (``initialize``):

1. Bind a backend (built from the connection string unless one is given)
   and check that it answers; stop here when it does not
2. Create core tables
3. Start accepting registrations and synchronize the queued ones in order
4. If any table drifted, open the migration gate and wait for a decision
5. Publish readiness
6. Optional orphan scan / cleanup, optional periodic scan task

Usage:
    db = Database(load_db_config(), core_schemas=core)
    db.register_schema("bans", {"id": {"type": "INT", "primary": True}})
    await db.initialize()

    ban_id = await db.insert("bans", {"reason": "spam"})
    row = await db.find("bans", ban_id)
    await db.close()
"""

import asyncio
import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from pathlib import Path
from typing import Any

from tablesync.adapters.base import SQLBackend
from tablesync.adapters.driver import DriverAdapter, ResultCallback, fire_callback
from tablesync.config.models import DatabaseConfig
from tablesync.factory import ConfigurationError, create_backend
from tablesync.query import QueryBuilder
from tablesync.schema.cleanup import OrphanScanner, utc_now
from tablesync.schema.migrations import MigrationGate
from tablesync.schema.registry import SchemaRegistry
from tablesync.schema.sync import TableSynchronizer

logger = logging.getLogger(__name__)

ReadyListener = Callable[["Database"], Any]


class Database:
    """Root of the data layer.

    Args:
        config: Connection, timeout and orphan settings.
        backend: Backend to use instead of building one from
            ``config.connection_string``.
        core_schemas: Tables created unconditionally at startup.
        clock: Time source for the orphan scanner.
    """

    def __init__(
        self,
        config: DatabaseConfig | None = None,
        backend: SQLBackend | None = None,
        core_schemas: Mapping[str, Mapping[str, Any]] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config or DatabaseConfig()
        self.schemas = SchemaRegistry()
        for table, schema in (core_schemas or {}).items():
            self.schemas.register(table, schema, core=True)

        self._backend = backend
        self.driver = DriverAdapter(None, timeout=self.config.callback_timeout)
        self.gate = MigrationGate(self.driver)
        state_file = self.config.orphans.state_file
        self.synchronizer = TableSynchronizer(self.schemas, self.driver, self.gate)
        self.scanner = OrphanScanner(
            self.schemas,
            self.driver,
            self.synchronizer,
            clock or utc_now,
            state_path=Path(state_file) if state_file else None,
        )

        self.ready = asyncio.Event()
        self._accepting = False
        self._queued: list[str] = []
        self.failed_tables: list[str] = []
        self._listeners: list[ReadyListener] = []
        self._tasks: set[asyncio.Task] = set()
        self._scan_task: asyncio.Task | None = None

    @property
    def accepting_registrations(self) -> bool:
        return self._accepting

    @property
    def queued_tables(self) -> list[str]:
        return list(self._queued)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> bool:
        """Run the startup sequence.

        Tables that fail to synchronize do not stop startup; they are
        collected in ``failed_tables``.

        Returns:
            ``False`` if no backend answers or core tables could not be
            created; the database is then never marked ready.
        """
        logger.info("Initializing database")
        if not await self.check_connection():
            logger.error("No database connection; database not ready")
            return False

        if not await self.synchronizer.create_core_tables():
            logger.error("Failed to create core tables; database not ready")
            return False

        self._accepting = True
        queued, self._queued = self._queued, []
        for table in queued:
            await self._sync_table(table)

        if self.gate.open():
            logger.warning("Waiting for migration decision (db:yes / db:no)")
            await self.gate.wait_for_decision()

        await self._publish_ready()
        logger.info("Database initialization complete")

        orphans = self.config.orphans
        if orphans.auto_scan:
            await self._scan_orphans()
        if orphans.periodic_scan:
            self._scan_task = asyncio.create_task(self._periodic_scan())
        return True

    def connect(self) -> bool:
        """Bind the backend without running the startup sequence.

        Returns:
            ``False`` when running degraded (no usable backend).
        """
        backend = self._backend
        if backend is None:
            try:
                backend = create_backend(self.config.connection_string)
            except ConfigurationError as e:
                logger.error("Database unavailable: %s", e)
                backend = None
        self._backend = backend
        self.driver.backend = backend
        return backend is not None

    async def check_connection(self) -> bool:
        """Bind the backend and verify that the server answers."""
        if not self.connect():
            return False
        if not await self.driver.ping():
            logger.error("Database unavailable: connection check failed")
            return False
        return True

    async def close(self) -> None:
        """Cancel background work and dispose of the backend."""
        if self._scan_task is not None:
            self._scan_task.cancel()
            self._tasks.add(self._scan_task)
            self._scan_task = None

        tasks = list(self._tasks)
        for task in tasks:
            if not task.done():
                task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

        await self.driver.close()

    # ------------------------------------------------------------------
    # Readiness
    # ------------------------------------------------------------------

    async def wait_until_ready(self) -> None:
        await self.ready.wait()

    def on_ready(self, listener: ReadyListener) -> None:
        """Call ``listener(database)`` once readiness is published.

        A listener added after readiness is scheduled right away.
        """
        if self.ready.is_set():
            self._spawn(self._notify(listener))
        else:
            self._listeners.append(listener)

    async def _publish_ready(self) -> None:
        self.ready.set()
        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            await self._notify(listener)

    async def _notify(self, listener: ReadyListener) -> None:
        try:
            await fire_callback(listener, self)
        except Exception:
            logger.exception("Ready listener %r failed", listener)

    # ------------------------------------------------------------------
    # Schema registration
    # ------------------------------------------------------------------

    def register_schema(
        self,
        table: str,
        schema: Mapping[str, Any],
    ) -> asyncio.Task | None:
        """Register or replace the schema for ``table``.

        Before registrations are accepted the table is queued (once, in
        first-registration order) and synchronized during ``initialize``
        with whatever schema is registered by then.  Afterwards it is
        synchronized immediately in a background task, which is returned.

        Raises:
            ValueError: If the table name or schema is invalid.
        """
        core = self.schemas.is_core(table)
        self.schemas.register(table, schema, core=core)
        if core:
            return None

        if not self._accepting:
            if table not in self._queued:
                self._queued.append(table)
            logger.debug("Queued schema sync: %s", table)
            return None

        return self._spawn(self._sync_registered(table))

    async def _sync_registered(self, table: str) -> bool:
        ok = await self._sync_table(table)
        # Late drift gets a decision of its own; nobody waits on it here.
        self.gate.open()
        return ok

    async def _sync_table(self, table: str) -> bool:
        ok = await self.synchronizer.sync_table(table)
        if ok:
            if table in self.failed_tables:
                self.failed_tables.remove(table)
        elif table not in self.failed_tables:
            logger.error("Table %s could not be synchronized", table)
            self.failed_tables.append(table)
        return ok

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def table(self, name: str) -> QueryBuilder:
        return QueryBuilder(name, self.driver)

    async def insert(
        self,
        table: str,
        data: Mapping[str, Any],
        callback: ResultCallback | None = None,
    ) -> int | None:
        return await self.table(table).insert(data, callback)

    async def get_all(
        self,
        table: str,
        callback: ResultCallback | None = None,
    ) -> list[dict]:
        return await self.table(table).get(callback)

    async def find(
        self,
        table: str,
        row_id: Any,
        callback: ResultCallback | None = None,
    ) -> dict | None:
        return await self.table(table).where("id", row_id).first(callback)

    # ------------------------------------------------------------------
    # Orphans
    # ------------------------------------------------------------------

    async def _scan_orphans(self) -> None:
        orphans = await self.scanner.scan()
        if self.config.orphans.auto_cleanup and orphans:
            await self.scanner.cleanup(self.config.orphans.cleanup_grace_period_days)

    async def _periodic_scan(self) -> None:
        interval = self.config.orphans.scan_interval_hours * 3600
        while True:
            await asyncio.sleep(interval)
            await self._scan_orphans()

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
