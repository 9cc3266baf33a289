"""
Environment configuration loader with validation for the org tree service.
"""

import logging
import os
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator
from dotenv import load_dotenv

from ..cache.config import DEFAULT_CACHE_TTL

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("true", "1", "yes", "on")


class OrgTreeConfig(BaseModel):
    """Configuration model for the org tree service with validation."""

    # Database Configuration (None lets DatabaseConfig build the URL from DB_* vars)
    database_url: Optional[str] = Field(
        default=None, description="Database connection URL"
    )

    # Cache Configuration
    cache_backend: str = Field(
        default="valkey", description="Cache backend: 'valkey' or 'memory'"
    )
    cache_ttl: int = Field(
        default=DEFAULT_CACHE_TTL, ge=1, description="Cache entry lifetime in seconds"
    )
    canonicalize_filters: bool = Field(
        default=False, description="Sort subtree filters before building cache keys"
    )

    # Service Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    host: str = Field(default="0.0.0.0", description="HTTP bind address")
    port: int = Field(default=3000, ge=1, le=65535, description="HTTP port")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("cache_backend")
    @classmethod
    def validate_cache_backend(cls, v: str) -> str:
        if v.lower() not in ("valkey", "memory"):
            raise ValueError("Cache backend must be 'valkey' or 'memory'")
        return v.lower()


def load_config(env_file: Optional[str] = None) -> OrgTreeConfig:
    """
    Load configuration from environment variables and .env file.

    Valkey connection settings (VALKEY_*) and database components (DB_*)
    are read by ValkeyConfig and DatabaseConfig themselves.

    Args:
        env_file: Optional path to .env file. If None, looks for .env in current directory.

    Returns:
        OrgTreeConfig: Validated configuration object

    Raises:
        ValueError: If configuration is invalid
    """
    if env_file is None:
        env_file = ".env"

    if os.path.exists(env_file):
        load_dotenv(env_file)

    config_data: Dict[str, Any] = {
        "database_url": os.getenv("DATABASE_URL") or None,
        "cache_backend": os.getenv("CACHE_BACKEND", "valkey"),
        "cache_ttl": int(os.getenv("CACHE_TTL", str(DEFAULT_CACHE_TTL))),
        "canonicalize_filters": os.getenv("CANONICALIZE_FILTERS", "false").lower() in _TRUE_VALUES,
        "log_level": os.getenv("ORGTREE_LOG_LEVEL", "INFO"),
        "host": os.getenv("HOST", "0.0.0.0"),
        "port": int(os.getenv("PORT", "3000")),
    }

    try:
        return OrgTreeConfig(**config_data)
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}") from e


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the service process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
