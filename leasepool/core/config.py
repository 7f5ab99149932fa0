"""
LeasePool settings

Values come from LEASEPOOL_* environment variables or a .env file in the
working directory; anything unset falls back to the defaults below, with
paths rooted at ~/.leasepool (or $LEASEPOOL_HOME).

Usage:
    from leasepool.core.config import get_config

    config = get_config()
    print(config.db_path)
    print(config.lease_ttl_seconds)
"""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from leasepool.core.storage.paths import default_db_path, default_source_file


class LeasePoolConfig(BaseSettings):
    """
    Central configuration for LeasePool

    All settings can be overridden via environment variables with LEASEPOOL_ prefix.
    For example: LEASEPOOL_DB_PATH, LEASEPOOL_LEASE_TTL_SECONDS, etc.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="LEASEPOOL_",
        case_sensitive=False,
        extra="ignore",
    )

    # ============================================
    # Storage Configuration
    # ============================================

    db_path: Path = Field(
        default_factory=default_db_path,
        description="SQLite database file"
    )

    source_file: Path = Field(
        default_factory=default_source_file,
        description="Newline-delimited source file used by init/load"
    )

    busy_timeout_ms: int = Field(
        default=5000,
        gt=0,
        description="SQLite busy timeout in milliseconds"
    )

    # ============================================
    # Pool Configuration
    # ============================================

    lease_ttl_seconds: int = Field(
        default=15,
        gt=0,
        description="Seconds before an unconfirmed lease may be reclaimed"
    )

    stats_ttl_seconds: int = Field(
        default=30,
        gt=0,
        description="Freshness window of the cached aggregate counts"
    )

    approx_threshold: int = Field(
        default=100_000,
        gt=0,
        description="Pool size above which stats use an approximate total"
    )

    batch_size: int = Field(
        default=10_000,
        gt=0,
        description="Rows per ingest transaction"
    )

    # ============================================
    # Application Configuration
    # ============================================

    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )

    debug: bool = Field(
        default=False,
        description="Expose exception details in HTTP 500 bodies"
    )

    webui_host: str = Field(default="127.0.0.1", description="WebUI bind host")
    webui_port: int = Field(default=8080, gt=0, lt=65536, description="WebUI port")

    # ============================================
    # Validators
    # ============================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(
                f"log_level must be one of: {', '.join(valid_levels)}"
            )
        return v.upper()


# Process-wide settings, loaded on first use
_config: Optional[LeasePoolConfig] = None


def get_config(force_reload: bool = False) -> LeasePoolConfig:
    """Return the process settings; force_reload re-reads the environment"""
    global _config

    if _config is None or force_reload:
        _config = LeasePoolConfig()

    return _config
