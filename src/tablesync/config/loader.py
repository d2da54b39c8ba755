"""Configuration loading for tablesync.

Two TOML files are read:

- ``db.toml``: connection string, driver timeout, orphan scanner settings
- a schema file: core and registered table schemas

Schema file layout::

    [core.accounts.id]
    type = "INT"
    primary = true
    auto_increment = true

    [tables.bans.reason]
    type = "VARCHAR"
    length = 255
"""

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from tablesync.config.models import DatabaseConfig
from tablesync.schema.models import TableSchema, coerce_schema

CONNECTION_STRING_ENV = "MYSQL_CONNECTION_STRING"
DEFAULT_CONFIG_FILE = "db.toml"


def load_db_config(config_path: Path | None = None) -> DatabaseConfig:
    """Load database configuration from TOML file.

    A missing *default* ``db.toml`` yields the built-in defaults, so the
    environment variable alone is enough to run.  An explicitly given path
    must exist.

    Args:
        config_path: Path to db.toml (default: ``db.toml`` in the current
            working directory).

    Returns:
        DatabaseConfig with the environment override applied.

    Raises:
        FileNotFoundError: If an explicit config file doesn't exist.
        ValueError: If the config values are invalid.
    """
    data: dict[str, Any] = {}

    if config_path is not None and not config_path.exists():
        raise FileNotFoundError(f"Database config not found: {config_path}")

    path = config_path or Path.cwd() / DEFAULT_CONFIG_FILE
    if path.exists():
        with open(path, "rb") as f:
            data = tomllib.load(f)

    database = dict(data.get("database", {}))
    env_conn = os.environ.get(CONNECTION_STRING_ENV)
    if env_conn:
        database["connection_string"] = env_conn

    try:
        return DatabaseConfig(**database, orphans=data.get("orphans", {}))
    except ValidationError as e:
        raise ValueError(f"Invalid database config in {path}: {e}") from e


def load_schema_file(
    schema_path: Path,
) -> tuple[dict[str, TableSchema], dict[str, TableSchema]]:
    """Load core and registered table schemas from a TOML file.

    Args:
        schema_path: Path to the schema file.

    Returns:
        Tuple of (core schemas, registered schemas), each keyed by table
        name in file order.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If a table has no columns or a column is invalid.
    """
    if not schema_path.exists():
        raise FileNotFoundError(f"Schema file not found: {schema_path}")

    with open(schema_path, "rb") as f:
        data = tomllib.load(f)

    core = {
        table: coerce_schema(table, columns)
        for table, columns in data.get("core", {}).items()
    }
    tables = {
        table: coerce_schema(table, columns)
        for table, columns in data.get("tables", {}).items()
    }
    return core, tables
