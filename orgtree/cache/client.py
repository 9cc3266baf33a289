"""
Connection holder for the Valkey server backing the org tree cache.

One ValkeyClient is built at startup and handed to the CacheManager. It owns
the connection pool, reconnects with exponential backoff and rate-limits
liveness pings to one per ``health_check_interval`` seconds.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Iterator, Optional

import valkey
from valkey.connection import ConnectionPool
from valkey.exceptions import ConnectionError, TimeoutError

from .config import ValkeyConfig, ValkeyConnectionError

logger = logging.getLogger(__name__)

_NETWORK_ERRORS = (ConnectionError, TimeoutError, OSError)


def backoff_delays(attempts: int, base: float = 1.0, cap: float = 30.0) -> Iterator[float]:
    """Delays to sleep between consecutive connection attempts."""
    for attempt in range(attempts - 1):
        yield min(base * (2 ** attempt), cap)


class ValkeyClient:
    """Pooled Valkey connection with reconnect on demand."""

    def __init__(self, config: Optional[ValkeyConfig] = None, max_connection_attempts: int = 5):
        self.config = config or ValkeyConfig.from_env()
        self.max_connection_attempts = max_connection_attempts
        self._client: Optional[valkey.Valkey] = None
        self._pool: Optional[ConnectionPool] = None
        self._is_connected = False
        self._last_health_check = 0.0
        self._failed_attempts = 0

        logger.info(f"Valkey client configured: {self.config}")

    def _open(self) -> None:
        self._pool = ConnectionPool(**self.config.to_connection_pool_kwargs())
        self._client = valkey.Valkey(connection_pool=self._pool)
        self._ping()

    def _ping(self) -> None:
        if self._client is None:
            raise ValkeyConnectionError("Client not initialized")
        try:
            alive = self._client.ping()
        except _NETWORK_ERRORS as e:
            raise ValkeyConnectionError(f"Ping failed: {e}") from e
        if not alive:
            raise ValkeyConnectionError("Ping returned False")

    async def connect(self) -> None:
        """
        Open the pool and verify it with a ping, retrying with backoff.

        Raises:
            ValkeyConnectionError: every attempt failed
        """
        if self.is_connected:
            return

        delays = backoff_delays(self.max_connection_attempts)
        self._failed_attempts = 0
        while True:
            try:
                self._open()
            except (ValkeyConnectionError,) + _NETWORK_ERRORS as e:
                self._failed_attempts += 1
                delay = next(delays, None)
                if delay is None:
                    logger.error(f"Giving up on Valkey after {self._failed_attempts} attempts: {e}")
                    raise ValkeyConnectionError(
                        f"Could not connect to {self.config.host}:{self.config.port}: {e}"
                    ) from e
                logger.warning(f"Valkey connection attempt {self._failed_attempts} failed, retrying in {delay:.1f}s")
                await asyncio.sleep(delay)
            else:
                self._is_connected = True
                logger.info(f"Connected to Valkey at {self.config.host}:{self.config.port}")
                return

    async def disconnect(self) -> None:
        if self._pool is None:
            return
        try:
            self._pool.disconnect()
        except _NETWORK_ERRORS as e:
            logger.warning(f"Error while closing Valkey pool: {e}")
        finally:
            self._pool = None
            self._client = None
            self._is_connected = False
        logger.info("Valkey connection closed")

    async def health_check(self, force: bool = False) -> bool:
        """
        Report whether the server answers pings.

        Within ``health_check_interval`` of the previous check the last known
        state is returned without contacting the server, unless ``force``.
        """
        now = time.time()
        if not force and now - self._last_health_check < self.config.health_check_interval:
            return self._is_connected
        self._last_health_check = now

        if not self.is_connected:
            return False
        try:
            self._ping()
        except ValkeyConnectionError as e:
            logger.warning(f"Valkey health check failed: {e}")
            self._is_connected = False
            return False
        return True

    async def ensure_connection(self) -> None:
        """Reconnect when the last health check failed."""
        if not await self.health_check():
            self._is_connected = False
            await self.connect()

    @property
    def is_connected(self) -> bool:
        return self._is_connected and self._client is not None

    @property
    def client(self) -> valkey.Valkey:
        """The live connection; raises ValkeyConnectionError before connect()."""
        if not self.is_connected:
            raise ValkeyConnectionError("Client not connected. Call connect() first.")
        return self._client

    def get_connection_info(self) -> Dict[str, Any]:
        return {
            "is_connected": self._is_connected,
            "config": str(self.config),
            "failed_attempts": self._failed_attempts,
            "last_health_check": self._last_health_check,
        }
