"""MySQL schema introspection via information_schema.

Queries the live database (through the ``DriverAdapter``) for:
- Whether a table exists in the current ``DATABASE()``
- Column metadata: name, type, nullability, default, extra flags
- All base tables

Failures never raise: the driver reports them as empty results, so a
failed column query looks like a table with no columns.
"""

from tablesync.adapters.driver import DriverAdapter
from tablesync.schema.models import LiveColumn


class SchemaIntrospector:
    """Introspects a MySQL database through a ``DriverAdapter``.

    Usage:
        introspector = SchemaIntrospector(driver)
        if await introspector.table_exists("accounts"):
            columns = await introspector.get_table_columns("accounts")
    """

    TABLE_EXISTS_SQL = (
        "SELECT COUNT(*) AS count FROM information_schema.tables "
        "WHERE table_schema = DATABASE() AND table_name = ?"
    )

    COLUMNS_SQL = (
        "SELECT COLUMN_NAME, COLUMN_TYPE, IS_NULLABLE, COLUMN_DEFAULT, EXTRA "
        "FROM information_schema.COLUMNS "
        "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = ? "
        "ORDER BY ORDINAL_POSITION"
    )

    TABLES_SQL = (
        "SELECT table_name FROM information_schema.tables "
        "WHERE table_schema = DATABASE() AND table_type = 'BASE TABLE'"
    )

    def __init__(self, driver: DriverAdapter):
        self._driver = driver

    async def table_exists(self, table: str) -> bool:
        row = await self._driver.fetch_one(self.TABLE_EXISTS_SQL, [table])
        if not row:
            return False
        count = _field(row, "count")
        return bool(count) and int(count) > 0

    async def get_table_columns(self, table: str) -> dict[str, LiveColumn]:
        """Get live columns for a table, keyed by name in ordinal order."""
        rows = await self._driver.fetch(self.COLUMNS_SQL, [table])
        columns: dict[str, LiveColumn] = {}
        for row in rows:
            name = _field(row, "COLUMN_NAME")
            if name is None:
                continue
            default = _field(row, "COLUMN_DEFAULT")
            columns[name] = LiveColumn(
                name=name,
                type=_field(row, "COLUMN_TYPE") or "",
                nullable=_field(row, "IS_NULLABLE") == "YES",
                default=None if default is None else str(default),
                extra=_field(row, "EXTRA") or "",
            )
        return columns

    async def get_tables(self) -> list[str]:
        """Get all base table names in the current database."""
        rows = await self._driver.fetch(self.TABLES_SQL)
        tables: list[str] = []
        for row in rows:
            name = _field(row, "table_name")
            if name:
                tables.append(name)
        return tables


def _field(row: dict, name: str):
    """Read a column regardless of the case the driver reports it in."""
    if name in row:
        return row[name]
    if name.lower() in row:
        return row[name.lower()]
    return row.get(name.upper())
