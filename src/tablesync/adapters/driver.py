"""Timeout-guarded driver adapter.

``DriverAdapter`` presents one stable async contract over whichever
``SQLBackend`` is active.  Every call resolves exactly once: either with the
backend's normalized result, or with a failure sentinel when the backend
raises or never answers within the guard interval.

Sentinels:

- ``execute`` / ``insert`` / ``fetch_one`` / ``fetch_scalar``: ``None``
- ``fetch``: ``[]``
- ``transaction``: ``False``

Usage:
    from tablesync.adapters.driver import DriverAdapter

    driver = DriverAdapter(backend, timeout=5.0)
    affected = await driver.execute("DELETE FROM `bans` WHERE `id` = ?", [3])
    rows = await driver.fetch("SELECT * FROM `bans`", callback=print)
"""

import asyncio
import inspect
import itertools
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from datetime import date, datetime
from typing import Any

from tablesync.adapters.base import SQLBackend, Statement

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0
QUERY_LOG_LIMIT = 200

ResultCallback = Callable[[Any], Any]

_AFFECTED_KEYS = ("affectedRows", "affected_rows", "rowcount")
_INSERT_ID_KEYS = ("insertId", "insert_id", "lastrowid")


async def fire_callback(callback: ResultCallback | None, value: Any) -> None:
    """Invoke an optional sync or async result callback."""
    if callback is None:
        return
    outcome = callback(value)
    if inspect.isawaitable(outcome):
        await outcome


def truncate_query(query: str | None, limit: int = QUERY_LOG_LIMIT) -> str:
    """Shorten query text for log output."""
    if not query:
        return ""
    query = " ".join(query.split())
    if len(query) <= limit:
        return query
    return query[:limit] + "..."


def _extract(result: Any, keys: tuple[str, ...]) -> int | None:
    if isinstance(result, Mapping):
        for key in keys:
            if key in result and result[key] is not None:
                return int(result[key])
        return None
    for key in keys:
        value = getattr(result, key, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def normalize_affected_rows(result: Any) -> int | None:
    """Reduce a backend write result to a single affected-row count.

    Backends report either a bare integer or a structured result; the
    structure may also be wrapped in a one-element list.  Unrecognized
    shapes count as ``0``.  ``None`` (failure) is preserved.

    Examples:
        >>> normalize_affected_rows(3)
        3
        >>> normalize_affected_rows({"affectedRows": 2})
        2
        >>> normalize_affected_rows([{"affectedRows": 1}])
        1
        >>> normalize_affected_rows({"warningStatus": 0})
        0
    """
    if result is None:
        return None
    if isinstance(result, bool):
        return int(result)
    if isinstance(result, int):
        return result
    value = _extract(result, _AFFECTED_KEYS)
    if value is not None:
        return value
    if isinstance(result, Sequence) and not isinstance(result, str) and result:
        value = _extract(result[0], _AFFECTED_KEYS)
        if value is not None:
            return value
    return 0


def normalize_insert_id(result: Any) -> int | None:
    """Reduce a backend insert result to the inserted row id (or ``None``)."""
    if result is None or isinstance(result, bool):
        return None
    if isinstance(result, int):
        return result
    value = _extract(result, _INSERT_ID_KEYS)
    if value is not None:
        return value
    if isinstance(result, Sequence) and not isinstance(result, str) and result:
        return _extract(result[0], _INSERT_ID_KEYS)
    return None


class CallbackToken:
    """One-shot correlation between a driver call and its single result.

    The first ``resolve()`` wins; later ones (a backend answering after the
    guard timer already fired, or vice versa) are ignored.
    """

    _ids = itertools.count(1)

    def __init__(self, operation: str, query: str | None) -> None:
        self.id: int = next(self._ids)
        self.operation = operation
        self.query = query
        self._future: asyncio.Future = asyncio.get_running_loop().create_future()

    @property
    def resolved(self) -> bool:
        return self._future.done()

    def resolve(self, value: Any) -> bool:
        """Deliver the result.  Returns ``False`` if already resolved."""
        if self._future.done():
            return False
        self._future.set_result(value)
        return True

    def __await__(self):
        return self._future.__await__()


class DriverAdapter:
    """Uniform async facade over a pluggable ``SQLBackend``.

    Args:
        backend: Active backend, or ``None`` when no backend could be bound
            (every call then fails with its sentinel).
        timeout: Guard interval in seconds applied to every call.
    """

    def __init__(
        self,
        backend: SQLBackend | None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.backend = backend
        self.timeout = timeout
        # Backend calls outliving their guard; kept referenced until done.
        self._inflight: set[asyncio.Task] = set()

    @property
    def is_connected(self) -> bool:
        return self.backend is not None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def execute(
        self,
        query: str,
        params: Sequence[Any] | None = None,
        callback: ResultCallback | None = None,
    ) -> int | None:
        """Run a write/DDL statement and return the affected row count."""
        return await self._call(
            "execute",
            query,
            lambda b: b.execute(query, list(params or [])),
            normalize_affected_rows,
            None,
            callback,
        )

    async def fetch(
        self,
        query: str,
        params: Sequence[Any] | None = None,
        callback: ResultCallback | None = None,
    ) -> list[dict]:
        """Run a SELECT and return all rows (``[]`` on failure)."""
        return await self._call(
            "fetch",
            query,
            lambda b: b.fetch(query, list(params or [])),
            lambda rows: list(rows or []),
            [],
            callback,
        )

    async def fetch_one(
        self,
        query: str,
        params: Sequence[Any] | None = None,
        callback: ResultCallback | None = None,
    ) -> dict | None:
        """Run a SELECT and return the first row or ``None``."""
        return await self._call(
            "fetch_one",
            query,
            lambda b: b.fetch(query, list(params or [])),
            lambda rows: rows[0] if rows else None,
            None,
            callback,
        )

    async def fetch_scalar(
        self,
        query: str,
        params: Sequence[Any] | None = None,
        callback: ResultCallback | None = None,
    ) -> Any:
        """Run a SELECT and return the first column of the first row."""
        return await self._call(
            "fetch_scalar",
            query,
            lambda b: b.fetch_scalar(query, list(params or [])),
            lambda value: value,
            None,
            callback,
        )

    async def insert(
        self,
        query: str,
        params: Sequence[Any] | None = None,
        callback: ResultCallback | None = None,
    ) -> int | None:
        """Run an INSERT and return the new row id."""
        return await self._call(
            "insert",
            query,
            lambda b: b.insert(query, list(params or [])),
            normalize_insert_id,
            None,
            callback,
        )

    async def transaction(
        self,
        statements: Sequence[Statement],
        callback: ResultCallback | None = None,
    ) -> bool:
        """Run all statements atomically; ``True`` when committed."""
        if not statements:
            logger.error("transaction: at least one statement is required")
            await fire_callback(callback, False)
            return False
        summary = "; ".join(
            s if isinstance(s, str) else s[0] for s in statements
        )
        return await self._call(
            "transaction",
            summary,
            lambda b: b.transaction(list(statements)),
            bool,
            False,
            callback,
        )

    async def ping(self) -> bool:
        """Check that the backend answers, within the guard interval."""
        return await self._call(
            "ping",
            "SELECT 1",
            lambda b: b.test_connection(),
            bool,
            False,
            None,
        )

    def escape(self, value: Any) -> str:
        """Render a value as a MySQL literal.

        Only for building statements that cannot be parameterized; prefer
        bound parameters everywhere else.

        Examples:
            >>> DriverAdapter(None).escape("O'Brien")
            "'O''Brien'"
            >>> DriverAdapter(None).escape(True)
            '1'
            >>> DriverAdapter(None).escape(None)
            'NULL'
        """
        if value is None:
            return "NULL"
        if isinstance(value, bool):
            return "1" if value else "0"
        if isinstance(value, (int, float)):
            return str(value)
        if isinstance(value, (datetime, date)):
            value = value.isoformat(sep=" ") if isinstance(value, datetime) else value.isoformat()
        text = str(value).replace("\\", "\\\\").replace("'", "''")
        return f"'{text}'"

    async def close(self) -> None:
        """Close the backend, if any."""
        if self.backend is not None:
            await self.backend.close()

    # ------------------------------------------------------------------
    # Guarded dispatch
    # ------------------------------------------------------------------

    async def _call(
        self,
        operation: str,
        query: str | None,
        invoke: Callable[[SQLBackend], Awaitable[Any]],
        normalize: Callable[[Any], Any],
        sentinel: Any,
        callback: ResultCallback | None,
    ) -> Any:
        if not query:
            logger.error("%s: query is required", operation)
            await fire_callback(callback, sentinel)
            return sentinel

        if self.backend is None:
            logger.error(
                "%s: no SQL backend available (query: %s)",
                operation,
                truncate_query(query),
            )
            await fire_callback(callback, sentinel)
            return sentinel

        logger.debug("%s: %s", operation, truncate_query(query))

        token = CallbackToken(operation, query)
        loop = asyncio.get_running_loop()
        guard = loop.call_later(self.timeout, self._on_timeout, token, sentinel)

        task = loop.create_task(invoke(self.backend))
        self._inflight.add(task)
        task.add_done_callback(
            lambda t: self._on_backend_done(t, token, normalize, sentinel)
        )

        try:
            result = await token
        finally:
            guard.cancel()

        await fire_callback(callback, result)
        return result

    def _on_timeout(self, token: CallbackToken, sentinel: Any) -> None:
        if token.resolve(sentinel):
            logger.warning(
                "%s: backend did not respond within %.1fs (query: %s)",
                token.operation,
                self.timeout,
                truncate_query(token.query),
            )

    def _on_backend_done(
        self,
        task: asyncio.Task,
        token: CallbackToken,
        normalize: Callable[[Any], Any],
        sentinel: Any,
    ) -> None:
        self._inflight.discard(task)

        if task.cancelled():
            value = sentinel
        elif task.exception() is not None:
            logger.error(
                "%s failed: %s (query: %s)",
                token.operation,
                task.exception(),
                truncate_query(token.query),
            )
            value = sentinel
        else:
            try:
                value = normalize(task.result())
            except (TypeError, ValueError) as e:
                logger.error(
                    "%s: unrecognized backend result %r: %s",
                    token.operation,
                    task.result(),
                    e,
                )
                value = sentinel

        if not token.resolve(value):
            logger.debug(
                "%s: late backend result ignored (token %d)",
                token.operation,
                token.id,
            )
