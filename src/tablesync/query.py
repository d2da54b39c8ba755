"""Fluent query builder over the guarded driver.

A ``QueryBuilder`` accumulates a table name, projection, WHERE conditions,
ordering and paging, and compiles them into parameterized MySQL only when a
terminal method runs.  Values always travel as ``?`` parameters; identifiers
are backtick-quoted.

Usage:
    from tablesync.query import QueryBuilder

    rows = await (
        QueryBuilder("characters", driver)
        .where("account_id", 7)
        .where("level", ">=", 10)
        .order_by("last_played", "DESC")
        .limit(5)
        .get()
    )
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from tablesync.adapters.driver import DriverAdapter, ResultCallback, fire_callback
from tablesync.schema.ddl import quote_identifier

logger = logging.getLogger(__name__)

OPERATORS = frozenset({
    "=", "!=", "<>", "<=>", "<", "<=", ">", ">=",
    "LIKE", "NOT LIKE", "REGEXP", "NOT REGEXP", "IS", "IS NOT",
})
# Rendered with a literal NULL / TRUE / FALSE instead of a placeholder.
IS_OPERATORS = frozenset({"IS", "IS NOT"})
DIRECTIONS = frozenset({"ASC", "DESC"})

# MySQL has no OFFSET without LIMIT; this is its documented "all rows" value.
MAX_LIMIT = 18446744073709551615

_UNSET = object()


@dataclass(frozen=True)
class WhereCondition:
    column: str
    operator: str
    value: Any

    @property
    def bound(self) -> bool:
        return self.operator not in IS_OPERATORS

    def sql(self) -> str:
        if not self.bound:
            literal = "NULL" if self.value is None else ("TRUE" if self.value else "FALSE")
            return f"{quote_identifier(self.column)} {self.operator} {literal}"
        return f"{quote_identifier(self.column)} {self.operator} ?"


class QueryBuilder:
    """Mutable, chainable query description for one table.

    Every chain method returns ``self``; a builder is meant to be built and
    run once.

    Args:
        table: Target table name.
        driver: Guarded driver that runs the compiled SQL.
    """

    def __init__(self, table: str, driver: DriverAdapter) -> None:
        if not table:
            raise ValueError("Table name is required")
        self.table = table
        self.driver = driver
        self.columns = "*"
        self.conditions: list[WhereCondition] = []
        self.order_column: str | None = None
        self.order_direction = "ASC"
        self.limit_count: int | None = None
        self.offset_count: int | None = None

    # ------------------------------------------------------------------
    # Chain methods
    # ------------------------------------------------------------------

    def select(self, columns: str | Sequence[str]) -> QueryBuilder:
        """Set the projection.

        A list of names becomes quoted identifiers; a string is used as is
        (e.g. ``"COUNT(*) AS n"``).
        """
        if isinstance(columns, str):
            self.columns = columns
        else:
            self.columns = ", ".join(quote_identifier(c) for c in columns)
        return self

    def where(self, column: str, operator: Any, value: Any = _UNSET) -> QueryBuilder:
        """Add a condition, ANDed with any earlier ones.

        ``where("id", 3)`` means ``where("id", "=", 3)``.  Operators are
        limited to the comparisons in ``OPERATORS`` since they are spliced
        into the SQL text.  ``IS`` / ``IS NOT`` take ``None``, ``True`` or
        ``False`` and render as a literal.

        Raises:
            ValueError: If the operator is not a supported comparison, or an
                ``IS`` value is not ``None`` or a bool.
        """
        if value is _UNSET:
            operator, value = "=", operator

        op = " ".join(str(operator).split()).upper()
        if op not in OPERATORS:
            raise ValueError(
                f"Unsupported operator {operator!r}; "
                f"expected one of {', '.join(sorted(OPERATORS))}"
            )
        if op in IS_OPERATORS and value is not None and not isinstance(value, bool):
            raise ValueError(f"{op} needs None, True or False, got {value!r}")
        self.conditions.append(WhereCondition(column, op, value))
        return self

    def order_by(self, column: str, direction: str = "ASC") -> QueryBuilder:
        """Set the ordering column, replacing any previous one."""
        direction = direction.upper()
        if direction not in DIRECTIONS:
            raise ValueError(f"Order direction must be ASC or DESC, got {direction!r}")
        self.order_column = column
        self.order_direction = direction
        return self

    def limit(self, count: int) -> QueryBuilder:
        self.limit_count = int(count)
        return self

    def offset(self, count: int) -> QueryBuilder:
        self.offset_count = int(count)
        return self

    # ------------------------------------------------------------------
    # Compilation
    # ------------------------------------------------------------------

    def _where_clause(self) -> tuple[str, list[Any]]:
        if not self.conditions:
            return "", []
        clause = " WHERE " + " AND ".join(c.sql() for c in self.conditions)
        return clause, [c.value for c in self.conditions if c.bound]

    def compile_select(self) -> tuple[str, list[Any]]:
        where, params = self._where_clause()
        sql = f"SELECT {self.columns} FROM {quote_identifier(self.table)}{where}"

        if self.order_column:
            sql += f" ORDER BY {quote_identifier(self.order_column)} {self.order_direction}"

        if self.limit_count is not None:
            sql += f" LIMIT {self.limit_count}"
        elif self.offset_count is not None:
            sql += f" LIMIT {MAX_LIMIT}"

        if self.offset_count is not None:
            sql += f" OFFSET {self.offset_count}"

        return sql, params

    def compile_count(self) -> tuple[str, list[Any]]:
        where, params = self._where_clause()
        return f"SELECT COUNT(*) AS count FROM {quote_identifier(self.table)}{where}", params

    def compile_insert(self, data: Mapping[str, Any]) -> tuple[str, list[Any]]:
        columns = ", ".join(quote_identifier(c) for c in data)
        placeholders = ", ".join("?" for _ in data)
        sql = (
            f"INSERT INTO {quote_identifier(self.table)} "
            f"({columns}) VALUES ({placeholders})"
        )
        return sql, list(data.values())

    def compile_update(self, data: Mapping[str, Any]) -> tuple[str, list[Any]]:
        """SET parameters come first, then WHERE parameters."""
        assignments = ", ".join(f"{quote_identifier(c)} = ?" for c in data)
        where, where_params = self._where_clause()
        sql = f"UPDATE {quote_identifier(self.table)} SET {assignments}{where}"
        return sql, list(data.values()) + where_params

    def compile_delete(self) -> tuple[str, list[Any]]:
        where, params = self._where_clause()
        return f"DELETE FROM {quote_identifier(self.table)}{where}", params

    # ------------------------------------------------------------------
    # Terminal methods
    # ------------------------------------------------------------------

    async def get(self, callback: ResultCallback | None = None) -> list[dict]:
        sql, params = self.compile_select()
        return await self.driver.fetch(sql, params, callback)

    async def first(self, callback: ResultCallback | None = None) -> dict | None:
        self.limit(1)
        sql, params = self.compile_select()
        return await self.driver.fetch_one(sql, params, callback)

    async def insert(
        self,
        data: Mapping[str, Any],
        callback: ResultCallback | None = None,
    ) -> int | None:
        """Insert one row and return its id."""
        if not data:
            logger.error("Insert into %s: no data given", self.table)
            await fire_callback(callback, None)
            return None
        sql, params = self.compile_insert(data)
        return await self.driver.insert(sql, params, callback)

    async def update(
        self,
        data: Mapping[str, Any],
        callback: ResultCallback | None = None,
    ) -> int | None:
        """Update matching rows and return the affected count.

        Without any ``where()`` this updates every row in the table.  It is
        allowed, only warned about.
        """
        if not data:
            logger.error("Update of %s: no data given", self.table)
            await fire_callback(callback, None)
            return None
        if not self.conditions:
            logger.warning(
                "UPDATE without WHERE clause on %s: every row will be updated",
                self.table,
            )
        sql, params = self.compile_update(data)
        return await self.driver.execute(sql, params, callback)

    async def delete(self, callback: ResultCallback | None = None) -> int | None:
        """Delete matching rows and return the affected count.

        Without any ``where()`` this empties the table.  It is allowed,
        only warned about.
        """
        if not self.conditions:
            logger.warning(
                "DELETE without WHERE clause on %s: ALL rows will be deleted",
                self.table,
            )
        sql, params = self.compile_delete()
        return await self.driver.execute(sql, params, callback)

    async def count(self, callback: ResultCallback | None = None) -> int | None:
        sql, params = self.compile_count()
        value = await self.driver.fetch_scalar(sql, params)
        result = None if value is None else int(value)
        await fire_callback(callback, result)
        return result
