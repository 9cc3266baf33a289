"""
Settings for the Valkey server that holds cached org tree reads.

Values come from ``VALKEY_*`` environment variables (a ``.env`` file is
honoured) and default to a local server on 6379.
"""

import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_CACHE_TTL = 3600


class ValkeyConnectionError(Exception):
    """The Valkey server could not be reached or did not answer a ping."""


def _env_flag(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).lower() == "true"


@dataclass
class ValkeyConfig:
    host: str = "localhost"
    port: int = 6379
    password: Optional[str] = None
    database: int = 0
    max_connections: int = 10
    socket_timeout: float = 5.0
    socket_connect_timeout: float = 5.0
    retry_on_timeout: bool = True
    health_check_interval: int = 30
    decode_responses: bool = True

    @classmethod
    def from_env(cls) -> "ValkeyConfig":
        """Build the settings from VALKEY_HOST, VALKEY_PORT, VALKEY_DATABASE and friends."""
        return cls(
            host=os.getenv("VALKEY_HOST", cls.host),
            port=int(os.getenv("VALKEY_PORT", cls.port)),
            password=os.getenv("VALKEY_PASSWORD") or None,
            database=int(os.getenv("VALKEY_DATABASE", cls.database)),
            max_connections=int(os.getenv("VALKEY_MAX_CONNECTIONS", cls.max_connections)),
            socket_timeout=float(os.getenv("VALKEY_SOCKET_TIMEOUT", cls.socket_timeout)),
            socket_connect_timeout=float(os.getenv("VALKEY_SOCKET_CONNECT_TIMEOUT", cls.socket_connect_timeout)),
            retry_on_timeout=_env_flag("VALKEY_RETRY_ON_TIMEOUT", cls.retry_on_timeout),
            health_check_interval=int(os.getenv("VALKEY_HEALTH_CHECK_INTERVAL", cls.health_check_interval)),
        )

    def to_connection_pool_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for ``valkey.ConnectionPool``."""
        kwargs = {f.name: getattr(self, f.name) for f in fields(self)}
        kwargs["db"] = kwargs.pop("database")
        # Pings are driven by ValkeyClient.health_check, not by the pool
        kwargs.pop("health_check_interval")
        if not kwargs["password"]:
            kwargs.pop("password")
        return kwargs

    def __str__(self) -> str:
        secret = "***" if self.password else "None"
        return (
            f"ValkeyConfig(host={self.host}, port={self.port}, db={self.database}, "
            f"password={secret}, max_connections={self.max_connections})"
        )
