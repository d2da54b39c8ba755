"""Pydantic models for data layer configuration."""

from pydantic import BaseModel, Field


# ============================================================================
# Configuration Models
# ============================================================================


class OrphanSettings(BaseModel):
    """``[orphans]`` section of db.toml."""

    auto_scan: bool = False
    auto_cleanup: bool = False
    cleanup_grace_period_days: int = Field(default=7, ge=0)
    periodic_scan: bool = False
    scan_interval_hours: float = Field(default=24, gt=0)
    state_file: str | None = None


class DatabaseConfig(BaseModel):
    """Complete data layer configuration from db.toml.

    ``connection_string`` is overridden by the ``MYSQL_CONNECTION_STRING``
    environment variable when that is set.
    """

    connection_string: str | None = None
    callback_timeout: float = Field(default=5.0, gt=0)
    orphans: OrphanSettings = Field(default_factory=OrphanSettings)
