"""Configuration management: db.toml and schema file loading, config models.

Usage:
    >>> from tablesync.config import load_db_config, load_schema_file, DatabaseConfig
"""

from tablesync.config.loader import load_db_config, load_schema_file
from tablesync.config.models import DatabaseConfig, OrphanSettings

__all__ = ["load_db_config", "load_schema_file", "DatabaseConfig", "OrphanSettings"]
