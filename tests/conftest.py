"""Shared fixtures: in-memory MySQL-flavoured backends.

``FakeMySQLBackend`` understands exactly the SQL this library emits
(backtick identifiers, ``?`` placeholders, the information_schema queries)
and keeps tables as lists of dicts.  ``HangingBackend`` never answers until
released, for guard-timer tests.
"""

import asyncio
import copy
import re
from collections.abc import Sequence
from typing import Any

import pytest

from tablesync.adapters.driver import DriverAdapter
from tablesync.schema.migrations import MigrationGate
from tablesync.schema.registry import SchemaRegistry
from tablesync.schema.sync import TableSynchronizer

# ---------------------------------------------------------------------------
# Statement patterns
# ---------------------------------------------------------------------------

_CREATE_RE = re.compile(
    r"CREATE TABLE IF NOT EXISTS `(?P<table>[^`]+)` \((?P<body>.*)\) ENGINE", re.S
)
_COLUMN_RE = re.compile(r"`(?P<name>[^`]+)` (?P<type>\w+)(?:\((?P<length>\d+)\))?(?P<rest>.*)")
_ADD_COLUMN_RE = re.compile(r"ALTER TABLE `(?P<table>[^`]+)` ADD COLUMN (?P<column>.+)$")
_MODIFY_COLUMN_RE = re.compile(r"ALTER TABLE `(?P<table>[^`]+)` MODIFY COLUMN (?P<column>.+)$")
_ADD_KEY_RE = re.compile(r"ALTER TABLE `(?P<table>[^`]+)` ADD UNIQUE KEY")
_DROP_RE = re.compile(r"DROP TABLE IF EXISTS `(?P<table>[^`]+)`")
_INSERT_RE = re.compile(
    r"INSERT INTO `(?P<table>[^`]+)` \((?P<columns>.*?)\) VALUES \((?P<values>.*?)\)$"
)
_SELECT_RE = re.compile(
    r"SELECT (?P<columns>.+?) FROM `(?P<table>[^`]+)`"
    r"(?: WHERE (?P<where>.+?))?"
    r"(?: ORDER BY `(?P<order>[^`]+)` (?P<direction>ASC|DESC))?"
    r"(?: LIMIT (?P<limit>\d+))?"
    r"(?: OFFSET (?P<offset>\d+))?$"
)
_UPDATE_RE = re.compile(
    r"UPDATE `(?P<table>[^`]+)` SET (?P<assignments>.+?)(?: WHERE (?P<where>.+))?$"
)
_DELETE_RE = re.compile(r"DELETE FROM `(?P<table>[^`]+)`(?: WHERE (?P<where>.+))?$")
_CONDITION_RE = re.compile(r"`([^`]+)` (NOT LIKE|LIKE|<=|>=|<>|!=|=|<|>) \?")
_NAME_RE = re.compile(r"`([^`]+)`")


def _like(value: Any, pattern: Any) -> bool:
    regex = "".join(
        ".*" if ch == "%" else "." if ch == "_" else re.escape(ch) for ch in str(pattern)
    )
    return re.fullmatch(regex, str(value), re.I | re.S) is not None


def _compare(value: Any, operator: str, expected: Any) -> bool:
    if operator == "LIKE":
        return _like(value, expected)
    if operator == "NOT LIKE":
        return not _like(value, expected)
    if value is None or expected is None:
        return False
    if operator == "=":
        return value == expected
    if operator in ("!=", "<>"):
        return value != expected
    if operator == "<":
        return value < expected
    if operator == "<=":
        return value <= expected
    if operator == ">":
        return value > expected
    return value >= expected


class FakeMySQLBackend:
    """In-memory ``SQLBackend`` for tests.

    Args:
        fail_on: Regex; any statement matching it raises ``RuntimeError``.
    """

    def __init__(self, fail_on: str | None = None) -> None:
        self.name = "fake"
        self.tables: dict[str, dict[str, Any]] = {}
        self.statements: list[str] = []
        self.fail_on = re.compile(fail_on) if fail_on else None
        self.reachable = True
        self.closed = False

    # ------------------------------------------------------------------
    # Test helpers
    # ------------------------------------------------------------------

    def add_table(self, name: str, columns: dict[str, str], nullable: bool = True) -> None:
        """Create a live table directly, bypassing the library."""
        self.tables[name] = {
            "columns": {
                col: {"type": col_type, "nullable": nullable, "default": None, "extra": ""}
                for col, col_type in columns.items()
            },
            "rows": [],
            "auto": 0,
        }

    def rows(self, table: str) -> list[dict]:
        return self.tables[table]["rows"]

    # ------------------------------------------------------------------
    # SQLBackend protocol
    # ------------------------------------------------------------------

    async def execute(self, sql: str, params: Sequence[Any]) -> int:
        return self._write(sql, list(params))["affected"]

    async def insert(self, sql: str, params: Sequence[Any]) -> int | None:
        return self._write(sql, list(params))["insert_id"]

    async def fetch(self, sql: str, params: Sequence[Any]) -> list[dict]:
        return self._read(sql, list(params))

    async def fetch_scalar(self, sql: str, params: Sequence[Any]) -> Any:
        rows = self._read(sql, list(params))
        if not rows:
            return None
        return next(iter(rows[0].values()))

    async def transaction(self, statements: Sequence[Any]) -> bool:
        snapshot = copy.deepcopy(self.tables)
        try:
            for statement in statements:
                if isinstance(statement, str):
                    self._write(statement, [])
                else:
                    self._write(statement[0], list(statement[1]))
        except Exception:
            self.tables = snapshot
            raise
        return True

    async def test_connection(self) -> bool:
        if not self.reachable:
            raise RuntimeError("Can't connect to MySQL server")
        return True

    async def close(self) -> None:
        self.closed = True

    # ------------------------------------------------------------------
    # Statement handling
    # ------------------------------------------------------------------

    def _check(self, sql: str) -> str:
        sql = " ".join(sql.split()) if "CREATE TABLE" not in sql else sql
        self.statements.append(sql)
        if self.fail_on and self.fail_on.search(sql):
            raise RuntimeError(f"simulated failure: {sql}")
        return sql

    def _table(self, name: str) -> dict[str, Any]:
        if name not in self.tables:
            raise RuntimeError(f"Table '{name}' doesn't exist")
        return self.tables[name]

    def _parse_column(self, clause: str) -> tuple[str, dict[str, Any]]:
        m = _COLUMN_RE.match(clause.strip())
        if m is None:
            raise RuntimeError(f"bad column clause: {clause}")
        col_type = m["type"].lower()
        if m["length"]:
            col_type += f"({m['length']})"
        rest = m["rest"]
        default = re.search(r"DEFAULT ('(?:[^']|'')*'|\w+)", rest)
        return m["name"], {
            "type": col_type,
            "nullable": "NOT NULL" not in rest,
            "default": default.group(1).strip("'") if default else None,
            "extra": "auto_increment" if "AUTO_INCREMENT" in rest else "",
        }

    def _matches(self, row: dict, where: str | None, params: list[Any]) -> bool:
        if not where:
            return True
        conditions = _CONDITION_RE.findall(where)
        return all(
            _compare(row.get(column), operator, value)
            for (column, operator), value in zip(conditions, params)
        )

    def _write(self, sql: str, params: list[Any]) -> dict[str, Any]:
        sql = self._check(sql)
        result = {"affected": 0, "insert_id": None}

        if m := _CREATE_RE.search(sql):
            if m["table"] in self.tables:
                return result
            columns = {}
            primary: list[str] = []
            for line in m["body"].split(",\n"):
                line = line.strip()
                if line.startswith("PRIMARY KEY"):
                    primary = _NAME_RE.findall(line)
                elif line.startswith("`"):
                    name, column = self._parse_column(line)
                    columns[name] = column
            for name in primary:
                columns[name]["nullable"] = False
            self.tables[m["table"]] = {"columns": columns, "rows": [], "auto": 0}
            return result

        if m := _DROP_RE.match(sql):
            self.tables.pop(m["table"], None)
            return result

        if m := _ADD_COLUMN_RE.match(sql):
            name, column = self._parse_column(m["column"])
            self._table(m["table"])["columns"][name] = column
            return result

        if m := _MODIFY_COLUMN_RE.match(sql):
            name, column = self._parse_column(m["column"])
            self._table(m["table"])["columns"][name] = column
            return result

        if _ADD_KEY_RE.match(sql):
            return result

        if m := _INSERT_RE.match(sql):
            table = self._table(m["table"])
            row = {name: None for name in table["columns"]}
            row.update(dict(zip(_NAME_RE.findall(m["columns"]), params)))
            for name, column in table["columns"].items():
                if "auto_increment" in column["extra"] and row.get(name) is None:
                    table["auto"] += 1
                    row[name] = table["auto"]
                    result["insert_id"] = row[name]
            table["rows"].append(row)
            result["affected"] = 1
            return result

        if m := _UPDATE_RE.match(sql):
            table = self._table(m["table"])
            names = _NAME_RE.findall(m["assignments"])
            values, where_params = params[: len(names)], params[len(names):]
            for row in table["rows"]:
                if self._matches(row, m["where"], where_params):
                    row.update(dict(zip(names, values)))
                    result["affected"] += 1
            return result

        if m := _DELETE_RE.match(sql):
            table = self._table(m["table"])
            keep = [r for r in table["rows"] if not self._matches(r, m["where"], params)]
            result["affected"] = len(table["rows"]) - len(keep)
            table["rows"] = keep
            return result

        raise RuntimeError(f"unsupported statement: {sql}")

    def _read(self, sql: str, params: list[Any]) -> list[dict]:
        sql = self._check(sql)

        if "information_schema.tables" in sql and "COUNT(*)" in sql:
            return [{"count": 1 if params[0] in self.tables else 0}]

        if "information_schema.COLUMNS" in sql:
            table = self.tables.get(params[0])
            if table is None:
                return []
            return [
                {
                    "COLUMN_NAME": name,
                    "COLUMN_TYPE": column["type"],
                    "IS_NULLABLE": "YES" if column["nullable"] else "NO",
                    "COLUMN_DEFAULT": column["default"],
                    "EXTRA": column["extra"],
                }
                for name, column in table["columns"].items()
            ]

        if "information_schema.tables" in sql:
            return [{"TABLE_NAME": name} for name in self.tables]

        m = _SELECT_RE.match(sql)
        if m is None:
            raise RuntimeError(f"unsupported query: {sql}")

        table = self._table(m["table"])
        rows = [r for r in table["rows"] if self._matches(r, m["where"], params)]

        if m["columns"].startswith("COUNT(*)"):
            return [{"count": len(rows)}]

        if m["order"]:
            rows.sort(key=lambda r: r.get(m["order"]), reverse=m["direction"] == "DESC")
        offset = int(m["offset"] or 0)
        rows = rows[offset:]
        if m["limit"]:
            rows = rows[: int(m["limit"])]

        if m["columns"] == "*":
            return [dict(r) for r in rows]
        names = _NAME_RE.findall(m["columns"])
        return [{name: r.get(name) for name in names} for r in rows]


class HangingBackend:
    """Backend whose calls block until ``release()``, then return ``value``."""

    def __init__(self, value: Any = 1) -> None:
        self.name = "hanging"
        self.value = value
        self.calls = 0
        self._released = asyncio.Event()

    def release(self) -> None:
        self._released.set()

    async def _wait(self, *args: Any) -> Any:
        self.calls += 1
        await self._released.wait()
        return self.value

    execute = insert = fetch = fetch_scalar = transaction = test_connection = _wait

    async def close(self) -> None:
        self._released.set()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def backend() -> FakeMySQLBackend:
    return FakeMySQLBackend()


@pytest.fixture
def driver(backend: FakeMySQLBackend) -> DriverAdapter:
    return DriverAdapter(backend, timeout=1.0)


@pytest.fixture
def registry() -> SchemaRegistry:
    return SchemaRegistry()


@pytest.fixture
def gate(driver: DriverAdapter) -> MigrationGate:
    return MigrationGate(driver)


@pytest.fixture
def synchronizer(
    registry: SchemaRegistry, driver: DriverAdapter, gate: MigrationGate
) -> TableSynchronizer:
    return TableSynchronizer(registry, driver, gate)
