"""Database adapters package.

Provides the ``SQLBackend`` Protocol, the SQLAlchemy-based
``AsyncMySQLBackend``, and the timeout-guarded ``DriverAdapter`` that the
rest of the library talks to.

Usage:
    from tablesync.adapters import DriverAdapter, AsyncMySQLBackend
"""

from tablesync.adapters.base import SQLBackend, Statement
from tablesync.adapters.driver import (
    CallbackToken,
    DriverAdapter,
    normalize_affected_rows,
    normalize_insert_id,
)
from tablesync.adapters.mysql import AsyncMySQLBackend

__all__ = [
    "SQLBackend",
    "Statement",
    "DriverAdapter",
    "CallbackToken",
    "normalize_affected_rows",
    "normalize_insert_id",
    "AsyncMySQLBackend",
]
