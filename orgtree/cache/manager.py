"""
Cache-aside engine for org tree reads.

Wraps the Valkey server (or an in-process store when no client is given)
with get-or-compute memoization, exact and prefix invalidation, statistics
and a circuit breaker for a failing server.

Concurrent misses on the same key may each run their compute step. Computations
are deterministic reads of the store, so the duplicate work is accepted instead
of adding per-key locking.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional

from valkey.exceptions import ConnectionError, TimeoutError, ResponseError

from .client import ValkeyClient
from .config import DEFAULT_CACHE_TTL, ValkeyConfig, ValkeyConnectionError
from ..errors import CacheInvalidationError

logger = logging.getLogger(__name__)

STORE_ERRORS = (ConnectionError, TimeoutError, ResponseError, ValkeyConnectionError, OSError)

_GLOB_SPECIAL = "\\*?[]"


def glob_escape(text: str) -> str:
    """Escape Valkey MATCH glob metacharacters so text matches literally."""
    return "".join(f"\\{ch}" if ch in _GLOB_SPECIAL else ch for ch in text)


@dataclass
class CacheStats:
    """Counters for cache reads, writes, computations and failures."""

    hit_count: int = 0
    miss_count: int = 0
    set_count: int = 0
    delete_count: int = 0
    compute_count: int = 0
    compute_failures: int = 0
    error_count: int = 0
    degraded_operations: int = 0
    start_time: datetime = field(default_factory=datetime.now)

    @property
    def hit_ratio(self) -> float:
        reads = self.hit_count + self.miss_count
        return self.hit_count / reads if reads else 0.0

    def to_dict(self) -> Dict[str, Any]:
        counters = {name: value for name, value in asdict(self).items() if name != "start_time"}
        counters["hit_ratio"] = self.hit_ratio
        counters["uptime_seconds"] = (datetime.now() - self.start_time).total_seconds()
        return counters


class CircuitBreaker:
    """
    Stops server calls after ``threshold`` consecutive failures.

    While open, calls are skipped for ``timeout`` seconds; the first success
    after that closes it again.
    """

    def __init__(self, threshold: int, timeout: int, clock: Callable[[], datetime]):
        self.threshold = threshold
        self.timeout = timeout
        self._clock = clock
        self.failures = 0
        self.opened_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.opened_at is not None

    def allows_call(self) -> bool:
        if self.opened_at is None:
            return True
        return (self._clock() - self.opened_at).total_seconds() >= self.timeout

    def failure(self) -> None:
        self.failures += 1
        if self.failures >= self.threshold and self.opened_at is None:
            self.opened_at = self._clock()
            logger.warning(f"Cache circuit opened after {self.failures} consecutive failures")

    def success(self) -> None:
        self.failures = 0
        if self.opened_at is not None:
            self.opened_at = None
            logger.info("Cache circuit closed")


class CacheManager:
    """
    Cache-aside engine over Valkey or an in-process store.

    Entry states: absent, live, expired, invalidated. Absent, expired and
    invalidated entries all read as a miss and cause recomputation.

    Read and write failures against the server are logged and degrade to
    computing from the store. Invalidation failures raise
    CacheInvalidationError, since a write must not return over stale entries.
    """

    def __init__(
        self,
        client: Optional[ValkeyClient] = None,
        default_ttl: Optional[int] = None,
        circuit_breaker_threshold: int = 5,
        circuit_breaker_timeout: int = 60,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Args:
            client: ValkeyClient for the server; None selects the in-process store
            default_ttl: Entry lifetime in seconds (CACHE_TTL env var or 3600)
            circuit_breaker_threshold: Consecutive server failures before calls are skipped
            circuit_breaker_timeout: Seconds to skip server calls once the circuit opens
            clock: Time source for in-process expiry and the circuit breaker
        """
        self.client = client
        self.default_ttl = default_ttl or int(os.getenv("CACHE_TTL", str(DEFAULT_CACHE_TTL)))
        self.stats = CacheStats()
        self.breaker = CircuitBreaker(circuit_breaker_threshold, circuit_breaker_timeout, clock)
        self._clock = clock

        # key -> (json text, expiry)
        self._local_store: Dict[str, tuple] = {}

        logger.info(f"CacheManager ready (backend={self.backend}, ttl={self.default_ttl}s)")

    @property
    def backend(self) -> str:
        return "valkey" if self.client else "memory"

    @property
    def is_circuit_open(self) -> bool:
        return self.breaker.is_open

    async def initialize(self) -> None:
        """Connect to the server; reads degrade to recomputation if that fails."""
        if self.client is None:
            return
        try:
            await self.client.ensure_connection()
        except ValkeyConnectionError as e:
            logger.warning(f"Valkey unavailable at startup, serving from the store: {e}")

    # -- server access ----------------------------------------------------

    async def _server_call(self, operation: str, fn: Callable[[Any], Any]) -> Any:
        """Run fn against the live connection, feeding the circuit breaker."""
        try:
            await self.client.ensure_connection()
            result = fn(self.client.client)
        except STORE_ERRORS as e:
            self.stats.error_count += 1
            self.breaker.failure()
            logger.warning(f"Valkey {operation} failed: {e}")
            raise
        self.breaker.success()
        return result

    async def _read(self, key: str) -> Optional[str]:
        if self.client is None:
            entry = self._local_store.get(key)
            if entry is None:
                return None
            text, expires_at = entry
            if self._clock() >= expires_at:
                del self._local_store[key]
                return None
            return text

        if not self.breaker.allows_call():
            self.stats.degraded_operations += 1
            return None
        try:
            return await self._server_call(f"get {key}", lambda server: server.get(key))
        except STORE_ERRORS:
            return None

    async def _write(self, key: str, text: str, ttl: int) -> bool:
        if self.client is None:
            self._local_store[key] = (text, self._clock() + timedelta(seconds=ttl))
            return True

        if not self.breaker.allows_call():
            self.stats.degraded_operations += 1
            return False
        try:
            await self._server_call(f"set {key}", lambda server: server.setex(key, ttl, text))
        except STORE_ERRORS:
            return False
        return True

    async def _delete(self, keys: List[str], what: str) -> int:
        if not keys:
            return 0
        if self.client is None:
            return sum(self._local_store.pop(key, None) is not None for key in keys)
        try:
            return int(await self._server_call(f"delete {what}", lambda server: server.delete(*keys)))
        except STORE_ERRORS as e:
            logger.error(f"Could not invalidate {what}: {e}")
            raise CacheInvalidationError(f"Failed to invalidate cache {what}") from e

    async def _matching_keys(self, prefix: str) -> List[str]:
        if self.client is None:
            return [key for key in self._local_store if key.startswith(prefix)]
        pattern = f"{glob_escape(prefix)}*"
        try:
            found = await self._server_call(f"scan {pattern}", lambda server: list(server.scan_iter(match=pattern)))
        except STORE_ERRORS as e:
            logger.error(f"Could not scan prefix {prefix}: {e}")
            raise CacheInvalidationError(f"Failed to invalidate cache prefix {prefix}") from e
        return [key for key in found if key.startswith(prefix)]

    @staticmethod
    def _decode(key: str, raw: Optional[str]) -> Any:
        """Decode stored JSON; raises KeyError for a miss or an unreadable entry."""
        if raw is None:
            raise KeyError(key)
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning(f"Discarding undecodable cache entry {key}")
            raise KeyError(key)

    # -- public operations ------------------------------------------------

    async def get(self, key: str, default: Any = None) -> Any:
        """Live value for key, or default when absent, expired or unreadable."""
        try:
            return self._decode(key, await self._read(key))
        except KeyError:
            return default

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """
        Store a JSON-serializable value (pydantic models are dumped first).

        Returns:
            True if stored, False if the server was unavailable
        """
        if hasattr(value, "model_dump"):
            value = value.model_dump(mode="json")
        stored = await self._write(key, json.dumps(value, default=str), int(ttl or self.default_ttl))
        if stored:
            self.stats.set_count += 1
        return stored

    async def get_or_compute(
        self,
        key: str,
        compute: Callable[[], Awaitable[Any]],
        ttl: Optional[int] = None,
    ) -> Any:
        """
        Return the cached value for key, computing and storing it on a miss.

        compute is awaited at most once per call. Its exceptions propagate to
        the caller and nothing is stored, so the next call retries.

        Args:
            key: Cache key
            compute: Coroutine function producing a JSON-serializable value
            ttl: Entry lifetime in seconds (default_ttl if None)
        """
        try:
            value = self._decode(key, await self._read(key))
        except KeyError:
            pass
        else:
            self.stats.hit_count += 1
            logger.debug(f"Cache hit: {key}")
            return value

        self.stats.miss_count += 1
        self.stats.compute_count += 1
        logger.debug(f"Cache miss: {key}")
        try:
            value = await compute()
        except Exception:
            self.stats.compute_failures += 1
            raise

        await self.set(key, value, ttl)
        return value

    async def invalidate(self, key: str) -> bool:
        """
        Remove one entry; a missing key is a no-op.

        Raises:
            CacheInvalidationError: the server rejected the delete
        """
        removed = await self._delete([key], f"key {key}")
        self.stats.delete_count += removed
        return removed > 0

    async def invalidate_prefix(self, prefix: str) -> int:
        """
        Remove every entry whose key starts with prefix and return the count.

        Zero matches is a no-op. The sweep is not atomic: entries written by
        concurrent readers during the sweep may survive it.

        Raises:
            CacheInvalidationError: the server rejected the scan or the delete
        """
        keys = await self._matching_keys(prefix)
        removed = await self._delete(keys, f"prefix {prefix}")
        self.stats.delete_count += removed
        logger.debug(f"Cleared {removed} cache entries with prefix {prefix}")
        return removed

    def get_stats(self) -> Dict[str, Any]:
        stats = self.stats.to_dict()
        stats.update({
            "backend": self.backend,
            "circuit_breaker_open": self.breaker.is_open,
            "consecutive_failures": self.breaker.failures,
            "local_entries": len(self._local_store),
        })
        if self.client:
            stats["connection_info"] = self.client.get_connection_info()
        return stats

    async def health_check(self) -> Dict[str, Any]:
        """Reachability of the cache backend for the /health endpoint."""
        if self.client is None:
            return {"status": "healthy", "backend": self.backend, "errors": []}

        reachable = await self.client.health_check(force=True)
        return {
            "status": "healthy" if reachable else "degraded",
            "backend": self.backend,
            "circuit_breaker_open": self.breaker.is_open,
            "errors": [] if reachable else ["Valkey server unreachable"],
        }

    async def close(self) -> None:
        if self.client:
            await self.client.disconnect()
        self._local_store.clear()
        logger.info("CacheManager closed")


async def create_cache_manager(
    backend: str = "valkey",
    config: Optional[ValkeyConfig] = None,
    default_ttl: Optional[int] = None,
) -> CacheManager:
    """
    Build a cache manager for the given backend.

    Args:
        backend: "valkey" for a Valkey server, "memory" for the in-process store
        config: Server settings, read from the environment when omitted
        default_ttl: Entry lifetime in seconds

    Raises:
        ValueError: unknown backend name
    """
    if backend == "memory":
        return CacheManager(client=None, default_ttl=default_ttl)
    if backend != "valkey":
        raise ValueError(f"Unsupported CACHE_BACKEND: {backend}")

    manager = CacheManager(client=ValkeyClient(config), default_ttl=default_ttl)
    await manager.initialize()
    return manager
