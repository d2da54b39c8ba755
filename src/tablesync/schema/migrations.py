"""Operator-gated migration queue.

Schema drift found during synchronization is never applied on the spot.
The ``MigrationGate`` collects per-table diffs and their ALTER statements,
renders a summary for a human, and applies or discards the whole batch on
a single accept/reject decision.

State machine::

    IDLE -> AWAITING_DECISION -> APPLYING   -> IDLE
                              -> DISCARDING -> IDLE

Usage:
    gate = MigrationGate(driver)
    gate.queue("accounts", diff, statements)
    if gate.open():
        await gate.wait_for_decision()   # resolved by gate.accept()/reject()
"""

import asyncio
import logging
from enum import Enum

from tablesync.adapters.driver import DriverAdapter
from tablesync.schema.models import ColumnDiff, MigrationResult, PendingMigration

logger = logging.getLogger(__name__)


class GateState(str, Enum):
    IDLE = "idle"
    AWAITING_DECISION = "awaiting_decision"
    APPLYING = "applying"
    DISCARDING = "discarding"


class MigrationGate:
    """Holds pending migrations until an operator decides."""

    def __init__(self, driver: DriverAdapter) -> None:
        self._driver = driver
        self._pending: dict[str, PendingMigration] = {}
        self._state = GateState.IDLE
        self._decided = asyncio.Event()
        self._decided.set()
        self.opened = asyncio.Event()

    @property
    def state(self) -> GateState:
        return self._state

    @property
    def pending(self) -> dict[str, PendingMigration]:
        return dict(self._pending)

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    @property
    def awaiting_decision(self) -> bool:
        return self._state is GateState.AWAITING_DECISION

    def queue(self, table: str, diff: ColumnDiff, statements: list[str]) -> None:
        """Record drift for ``table``, replacing any earlier entry."""
        self._pending[table] = PendingMigration(
            table=table, diff=diff, statements=list(statements)
        )
        logger.warning("Table '%s' has schema changes", table)

    def open(self) -> bool:
        """Start waiting for a decision if anything is pending.

        Returns:
            ``True`` if the gate is now (or already was) awaiting a decision.
        """
        if self._state is GateState.AWAITING_DECISION:
            return True
        if self._state is not GateState.IDLE or not self._pending:
            return False

        self._state = GateState.AWAITING_DECISION
        self._decided.clear()
        self.opened.set()
        logger.warning("%s", self.format_summary())
        return True

    def show(self) -> str | None:
        """Re-render the pending summary without changing state."""
        if not self.awaiting_decision or not self._pending:
            return None
        return self.format_summary()

    async def accept(self) -> MigrationResult | None:
        """Apply every queued statement, then clear the queue.

        Statements run one after another: table order, then statement order
        within a table.  A failing statement is logged and counted; the rest
        still run.

        Returns:
            ``MigrationResult``, or ``None`` if no decision was pending.
        """
        if not self.awaiting_decision:
            return None

        self._state = GateState.APPLYING
        batch = list(self._pending.values())
        self._pending.clear()
        statements = [sql for migration in batch for sql in migration.statements]
        result = MigrationResult(total=len(statements))

        if not statements:
            logger.info("No SQL statements to execute")

        for sql in statements:
            logger.info("Executing: %s", sql)
            affected = await self._driver.execute(sql)
            if affected is None:
                logger.error("Migration failed: %s", sql)
                result.failed_statements.append(sql)
            else:
                result.succeeded += 1

        if statements:
            logger.info(
                "Migrations complete: %d/%d succeeded",
                result.succeeded,
                result.total,
            )
        self._finish()
        return result

    def reject(self) -> bool:
        """Discard every queued migration without executing anything.

        Returns:
            ``False`` if no decision was pending.
        """
        if not self.awaiting_decision:
            return False

        self._state = GateState.DISCARDING
        logger.warning(
            "Migrations skipped for %d table(s); tables left unchanged",
            len(self._pending),
        )
        self._pending.clear()
        self._finish()
        return True

    async def wait_for_decision(self) -> None:
        """Block the calling task until accept/reject resolves the gate."""
        await self._decided.wait()

    def format_summary(self) -> str:
        """Format pending migrations as a human-readable report."""
        if not self._pending:
            return "No pending migrations."

        lines = ["DATABASE MIGRATIONS PENDING"]
        for table, migration in self._pending.items():
            diff = migration.diff
            lines.append(f"\n  Table: {table}")
            if diff.adds:
                lines.append(f"    + Add columns: {', '.join(diff.adds)}")
            if diff.modifies:
                lines.append(f"    ~ Modify columns: {', '.join(diff.modifies)}")
            if diff.drops:
                lines.append(
                    f"    - Extra columns (not in schema): {', '.join(diff.drops)}"
                )
                lines.append("      (Will NOT be dropped. Remove manually if intended.)")
            if migration.statements:
                lines.append("    SQL:")
                for sql in migration.statements:
                    lines.append(f"      {sql}")

        lines.append("\n  Type db:yes to apply changes")
        lines.append("  Type db:no  to skip")
        return "\n".join(lines)

    def _finish(self) -> None:
        self._state = GateState.IDLE
        self.opened.clear()
        self._decided.set()
        # Drift queued while a batch was being applied needs its own decision.
        if self._pending:
            self.open()
