"""SQL backend protocol definition.

Defines the ``SQLBackend`` Protocol that concrete drivers must implement.
All methods are ``async def`` -- the library is async-first.

Backends receive MySQL-flavoured SQL with positional ``?`` placeholders and
a list of parameter values.  They may raise on failure; the
``DriverAdapter`` converts every failure into a sentinel value.

Usage:
    from tablesync.adapters.base import SQLBackend

    async def do_work(backend: SQLBackend) -> None:
        rows = await backend.fetch("SELECT * FROM `users` WHERE `id` = ?", [1])
        await backend.execute("DELETE FROM `users` WHERE `id` = ?", [1])
        await backend.close()
"""

from collections.abc import Sequence
from typing import Any, Protocol

# A transaction step: raw SQL, or SQL plus its positional parameters.
Statement = str | tuple[str, Sequence[Any]]


class SQLBackend(Protocol):
    """SQL backend interface that the driver adapter wraps.

    Return shapes are deliberately loose: some drivers report affected rows
    as a bare integer, others as a structured result.  Normalization is the
    adapter's job, not the backend's.
    """

    name: str

    async def execute(self, sql: str, params: Sequence[Any]) -> Any:
        """Execute a write or DDL statement.

        Returns:
            Affected row count, either as an ``int`` or a structured result
            such as ``{"affectedRows": 3}``.
        """
        ...

    async def fetch(self, sql: str, params: Sequence[Any]) -> list[dict]:
        """Run a query and return every row as a dict keyed by column name."""
        ...

    async def fetch_scalar(self, sql: str, params: Sequence[Any]) -> Any:
        """Run a query and return the first column of the first row."""
        ...

    async def insert(self, sql: str, params: Sequence[Any]) -> Any:
        """Execute an INSERT and return the backend-assigned insert id."""
        ...

    async def transaction(self, statements: Sequence[Statement]) -> bool:
        """Execute all statements atomically.

        Returns:
            ``True`` when every statement succeeded and the transaction
            committed.
        """
        ...

    async def test_connection(self) -> bool:
        """Round-trip a trivial query; may raise when the server is unreachable."""
        ...

    async def close(self) -> None:
        """Release connections held by the backend."""
        ...
