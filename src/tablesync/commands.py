"""Operator console commands.

``AdminCommands`` maps the ``db:*`` console verbs onto a ``Database`` and
returns a printable reply for each.

    db:yes            apply pending migrations
    db:no             discard pending migrations
    db:diff           show pending migrations again
    db:scan           scan for orphaned tables
    db:cleanup [N]    drop tables orphaned for at least N days (default 7)
"""

import logging

from tablesync.database import Database
from tablesync.schema.cleanup import DEFAULT_GRACE_PERIOD_DAYS

logger = logging.getLogger(__name__)

NO_PENDING = "No pending migrations."


class AdminCommands:
    def __init__(self, database: Database) -> None:
        self.database = database
        self._handlers = {
            "db:yes": self.accept,
            "db:no": self.reject,
            "db:diff": self.diff,
            "db:scan": self.scan,
            "db:cleanup": self.cleanup,
        }

    async def dispatch(self, line: str) -> str:
        """Run one command line and return the reply text."""
        parts = line.split()
        if not parts:
            return "Unknown command: (empty)"

        handler = self._handlers.get(parts[0].lower())
        if handler is None:
            return f"Unknown command: {parts[0]}"
        return await handler(parts[1:])

    async def accept(self, args: list[str]) -> str:
        result = await self.database.gate.accept()
        if result is None:
            return NO_PENDING
        if result.total == 0:
            return "No SQL statements to execute."
        reply = f"Migrations complete: {result.succeeded}/{result.total} succeeded"
        if result.failed:
            reply += "\nFailed:\n" + "\n".join(f"  {sql}" for sql in result.failed_statements)
        return reply

    async def reject(self, args: list[str]) -> str:
        if not self.database.gate.reject():
            return NO_PENDING
        return "Migrations skipped. Tables left unchanged."

    async def diff(self, args: list[str]) -> str:
        return self.database.gate.show() or NO_PENDING

    async def scan(self, args: list[str]) -> str:
        orphans = await self.database.scanner.scan()
        if not orphans:
            return "No orphaned tables found."
        lines = [f"Found {len(orphans)} orphaned table(s):"]
        for orphan in orphans:
            lines.append(f"  {orphan.name} (orphaned for {orphan.days_orphaned} days)")
        return "\n".join(lines)

    async def cleanup(self, args: list[str]) -> str:
        days = DEFAULT_GRACE_PERIOD_DAYS
        if args:
            try:
                days = int(args[0])
            except ValueError:
                logger.warning(
                    "Invalid grace period %r, using %d days", args[0], days
                )
        logger.info("Starting cleanup with %d day grace period", days)
        dropped = await self.database.scanner.cleanup(days)
        return f"Cleanup complete: {dropped} table(s) removed"
