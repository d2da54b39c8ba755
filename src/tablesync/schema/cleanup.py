"""Orphaned table detection and cleanup.

An orphan is a live base table with no registered schema.  The scanner
remembers when each table was first seen orphaned and only drops it once
it has stayed orphaned for the grace period.  Tables with a schema are
never dropped; extra *columns* on registered tables are a separate concern
reported by the migration gate.

Usage:
    scanner = OrphanScanner(registry, driver, synchronizer)
    orphans = await scanner.scan()
    dropped = await scanner.cleanup(grace_period_days=7)
"""

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from pydantic import TypeAdapter

from tablesync.adapters.driver import DriverAdapter
from tablesync.schema.introspector import SchemaIntrospector
from tablesync.schema.models import OrphanedTable, TableState, TableStatus
from tablesync.schema.registry import SchemaRegistry
from tablesync.schema.sync import TableSynchronizer

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400
DEFAULT_GRACE_PERIOD_DAYS = 7

_STATE_ADAPTER = TypeAdapter(dict[str, TableStatus])


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OrphanScanner:
    """Tracks live tables against the schema registry.

    Args:
        registry: Registered schemas; anything not in it is an orphan.
        driver: Guarded driver used to list live tables.
        synchronizer: Performs the actual ``DROP TABLE``.
        clock: Returns the current time; injectable for tests.
        state_path: JSON file the bookkeeping is loaded from and saved to
            after every scan.  In-memory only when ``None``.
    """

    def __init__(
        self,
        registry: SchemaRegistry,
        driver: DriverAdapter,
        synchronizer: TableSynchronizer,
        clock: Callable[[], datetime] = utc_now,
        state_path: Path | None = None,
    ) -> None:
        self.schemas = registry
        self.synchronizer = synchronizer
        self.introspector = SchemaIntrospector(driver)
        self.clock = clock
        self.state_path = state_path
        self._tracked: dict[str, TableStatus] = {}
        if state_path is not None:
            self.load()

    @property
    def registry(self) -> dict[str, TableStatus]:
        """Snapshot of the per-table bookkeeping."""
        return {name: status.model_copy() for name, status in self._tracked.items()}

    async def scan(self) -> list[OrphanedTable]:
        """Refresh bookkeeping from the live table list.

        Returns:
            Orphaned tables found by this scan, in live-listing order.
        """
        now = self.clock()
        orphans: list[OrphanedTable] = []
        live = await self.introspector.get_tables()

        # An empty listing is indistinguishable from a failed query.
        if live:
            for table in [t for t in self._tracked if t not in live]:
                logger.info("Table %s no longer exists; no longer tracked", table)
                del self._tracked[table]

        for table in live:
            if table in self.schemas:
                self._tracked[table] = TableStatus(
                    status=TableState.ACTIVE, last_seen=now
                )
                continue

            status = self._tracked.get(table)
            if status is None:
                status = TableStatus(status=TableState.ORPHANED, last_seen=now)
                self._tracked[table] = status
                logger.warning("Detected orphaned table: %s", table)
            status.status = TableState.ORPHANED
            status.last_seen = now
            if status.first_orphaned is None:
                status.first_orphaned = now

            orphans.append(
                OrphanedTable(
                    name=table,
                    orphaned_since=status.first_orphaned,
                    days_orphaned=_whole_days(now - status.first_orphaned),
                )
            )

        if orphans:
            logger.warning(
                "Found %d orphaned table(s): %s",
                len(orphans),
                ", ".join(o.name for o in orphans),
            )
        else:
            logger.info("No orphaned tables found")
        self.save()
        return orphans

    def orphaned_tables(self) -> list[OrphanedTable]:
        """Orphans known from previous scans, without querying the database."""
        now = self.clock()
        return [
            OrphanedTable(
                name=name,
                orphaned_since=status.first_orphaned,
                days_orphaned=_whole_days(now - status.first_orphaned),
            )
            for name, status in self._tracked.items()
            if status.status is TableState.ORPHANED and status.first_orphaned
        ]

    async def cleanup(self, grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS) -> int:
        """Drop orphans that have been orphaned for at least the grace period.

        Returns:
            Number of tables dropped.
        """
        dropped = 0
        for orphan in await self.scan():
            if orphan.days_orphaned < grace_period_days:
                continue
            logger.warning(
                "Dropping orphaned table %s (orphaned for %d days)",
                orphan.name,
                orphan.days_orphaned,
            )
            if await self.synchronizer.drop_table(orphan.name):
                self._tracked.pop(orphan.name, None)
                dropped += 1

        if dropped:
            self.save()
        logger.info("Cleanup complete: %d table(s) dropped", dropped)
        return dropped

    def load(self) -> None:
        """Replace the bookkeeping with the contents of ``state_path``."""
        if self.state_path is None or not self.state_path.exists():
            return
        self._tracked = _STATE_ADAPTER.validate_json(self.state_path.read_bytes())
        logger.debug(
            "Loaded %d tracked table(s) from %s", len(self._tracked), self.state_path
        )

    def save(self) -> None:
        if self.state_path is None:
            return
        self.state_path.parent.mkdir(parents=True, exist_ok=True)
        self.state_path.write_bytes(_STATE_ADAPTER.dump_json(self._tracked, indent=2))


def _whole_days(delta) -> int:
    return max(0, int(delta.total_seconds()) // SECONDS_PER_DAY)
