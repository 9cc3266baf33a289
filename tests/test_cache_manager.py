"""
Tests for the cache-aside engine.

Covers the in-process store and a mocked Valkey client; no running Valkey
instance is required.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, Mock

import pytest
from valkey.exceptions import ConnectionError as ValkeyServerConnectionError

from orgtree.cache import CacheManager, ValkeyClient, ValkeyConfig
from orgtree.cache.client import backoff_delays
from orgtree.cache.manager import CircuitBreaker, create_cache_manager, glob_escape
from orgtree.errors import CacheInvalidationError, GroupNotFoundError

from conftest import FakeClock


def make_compute(value):
    calls = []

    async def compute():
        calls.append(1)
        return value

    compute.calls = calls
    return compute


class TestLocalGetOrCompute:
    """get_or_compute against the in-process store."""

    @pytest.mark.asyncio
    async def test_miss_then_hit(self):
        cache = CacheManager(client=None)
        compute = make_compute({"id": 1, "groupName": "Root"})

        first = await cache.get_or_compute("group_above_1", compute)
        second = await cache.get_or_compute("group_above_1", compute)

        assert first == second == {"id": 1, "groupName": "Root"}
        assert len(compute.calls) == 1
        assert cache.stats.miss_count == 1
        assert cache.stats.hit_count == 1

    @pytest.mark.asyncio
    async def test_compute_failure_is_not_cached(self):
        cache = CacheManager(client=None)
        attempts = []

        async def failing():
            attempts.append(1)
            raise GroupNotFoundError(99)

        for _ in range(2):
            with pytest.raises(GroupNotFoundError):
                await cache.get_or_compute("group_above_99", failing)

        assert len(attempts) == 2
        assert await cache.get("group_above_99") is None
        assert cache.stats.compute_failures == 2

    @pytest.mark.asyncio
    async def test_empty_list_is_a_hit(self):
        cache = CacheManager(client=None)
        compute = make_compute([])

        assert await cache.get_or_compute("all_persons", compute) == []
        assert await cache.get_or_compute("all_persons", compute) == []
        assert len(compute.calls) == 1

    @pytest.mark.asyncio
    async def test_entries_expire_after_ttl(self):
        clock = FakeClock()
        cache = CacheManager(client=None, default_ttl=3600, clock=clock)
        compute = make_compute({"v": 1})

        await cache.get_or_compute("all_groups", compute)
        clock.now += timedelta(seconds=3599)
        await cache.get_or_compute("all_groups", compute)
        assert len(compute.calls) == 1

        clock.now += timedelta(seconds=1)
        await cache.get_or_compute("all_groups", compute)
        assert len(compute.calls) == 2

    @pytest.mark.asyncio
    async def test_pydantic_values_are_serialized(self):
        from orgtree.models import AncestorNodeModel

        cache = CacheManager(client=None)
        await cache.set("group_above_1", AncestorNodeModel(id=1, groupName="Root"))
        assert await cache.get("group_above_1") == {"id": 1, "groupName": "Root", "parentGroup": []}

    def test_default_ttl(self):
        assert CacheManager(client=None).default_ttl == 3600


class TestLocalInvalidation:
    """Exact and prefix invalidation on the in-process store."""

    @pytest.mark.asyncio
    async def test_invalidate_missing_key_is_noop(self):
        cache = CacheManager(client=None)
        assert await cache.invalidate("person_id_1") is False

    @pytest.mark.asyncio
    async def test_invalidate_forces_recompute(self):
        cache = CacheManager(client=None)
        compute = make_compute({"id": 1})

        await cache.get_or_compute("person_id_1", compute)
        assert await cache.invalidate("person_id_1") is True
        await cache.get_or_compute("person_id_1", compute)

        assert len(compute.calls) == 2

    @pytest.mark.asyncio
    async def test_invalidate_prefix_only_touches_matching_keys(self):
        cache = CacheManager(client=None)
        for key in ("groups_below_1_[]", 'groups_below_2_[{"jobTitle":"eng"}]', "group_above_1", "all_groups"):
            await cache.set(key, {"k": key})

        removed = await cache.invalidate_prefix("groups_below_")

        assert removed == 2
        assert await cache.get("groups_below_1_[]") is None
        assert await cache.get("group_above_1") == {"k": "group_above_1"}
        assert await cache.get("all_groups") == {"k": "all_groups"}

    @pytest.mark.asyncio
    async def test_invalidate_prefix_without_matches(self):
        cache = CacheManager(client=None)
        await cache.set("all_persons", [])
        assert await cache.invalidate_prefix("group_above_") == 0
        assert await cache.get("all_persons") == []


def make_valkey_cache(mock_server):
    client = ValkeyClient(ValkeyConfig())
    client._client = mock_server
    client._is_connected = True
    client.ensure_connection = AsyncMock()
    return CacheManager(client=client, circuit_breaker_threshold=2)


class TestValkeyBackend:
    """CacheManager over a mocked Valkey server."""

    def setup_method(self):
        self.server = Mock()
        self.server.get.return_value = None
        self.cache = make_valkey_cache(self.server)

    @pytest.mark.asyncio
    async def test_miss_writes_with_ttl(self):
        compute = make_compute([{"id": 1}])

        value = await self.cache.get_or_compute("all_groups", compute)

        assert value == [{"id": 1}]
        self.server.setex.assert_called_once_with("all_groups", 3600, '[{"id": 1}]')

    @pytest.mark.asyncio
    async def test_hit_skips_compute(self):
        self.server.get.return_value = '{"id": 7}'
        compute = make_compute({"id": 0})

        assert await self.cache.get_or_compute("person_id_7", compute) == {"id": 7}
        assert compute.calls == []

    @pytest.mark.asyncio
    async def test_read_failure_degrades_to_compute(self):
        self.server.get.side_effect = ValkeyServerConnectionError("down")
        compute = make_compute({"id": 1})

        assert await self.cache.get_or_compute("person_id_1", compute) == {"id": 1}
        assert self.cache.stats.error_count >= 1

    @pytest.mark.asyncio
    async def test_circuit_breaker_opens(self):
        self.server.get.side_effect = ValkeyServerConnectionError("down")
        self.server.setex.side_effect = ValkeyServerConnectionError("down")

        await self.cache.get("a")
        await self.cache.get("b")
        assert self.cache.is_circuit_open

        self.server.get.reset_mock()
        await self.cache.get("c")
        self.server.get.assert_not_called()
        assert self.cache.stats.degraded_operations == 1

    @pytest.mark.asyncio
    async def test_prefix_sweep_uses_scan_and_delete(self):
        self.server.scan_iter.return_value = iter(["group_above_1", "group_above_12"])
        self.server.delete.return_value = 2

        removed = await self.cache.invalidate_prefix("group_above_")

        assert removed == 2
        self.server.scan_iter.assert_called_once_with(match="group_above_*")
        self.server.delete.assert_called_once_with("group_above_1", "group_above_12")

    @pytest.mark.asyncio
    async def test_prefix_sweep_without_matches_skips_delete(self):
        self.server.scan_iter.return_value = iter([])

        assert await self.cache.invalidate_prefix("groups_below_") == 0
        self.server.delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalidation_failure_raises(self):
        self.server.delete.side_effect = ValkeyServerConnectionError("down")

        with pytest.raises(CacheInvalidationError):
            await self.cache.invalidate("all_persons")

    @pytest.mark.asyncio
    async def test_health_check_reports_backend(self):
        self.cache.client.health_check = AsyncMock(return_value=True)
        health = await self.cache.health_check()
        assert health["status"] == "healthy"
        assert health["backend"] == "valkey"


class TestHelpers:
    """Module-level helpers."""

    def test_glob_escape(self):
        assert glob_escape("groups_below_") == "groups_below_"
        assert glob_escape('groups_below_1_[{"jobTitle":"a*"}]') == 'groups_below_1_\\[{"jobTitle":"a\\*"}\\]'

    @pytest.mark.asyncio
    async def test_create_memory_manager(self):
        cache = await create_cache_manager("memory", default_ttl=60)
        assert cache.backend == "memory"
        assert cache.default_ttl == 60

    @pytest.mark.asyncio
    async def test_create_rejects_unknown_backend(self):
        with pytest.raises(ValueError):
            await create_cache_manager("memcached")


class TestCircuitBreaker:
    """Breaker state transitions with a manual clock."""

    def test_reopens_calls_after_timeout(self):
        clock = FakeClock()
        breaker = CircuitBreaker(threshold=2, timeout=60, clock=clock)

        breaker.failure()
        assert breaker.allows_call()
        breaker.failure()
        assert breaker.is_open
        assert not breaker.allows_call()

        clock.now += timedelta(seconds=60)
        assert breaker.allows_call()

        breaker.success()
        assert not breaker.is_open
        assert breaker.failures == 0

    def test_backoff_delays(self):
        assert list(backoff_delays(5)) == [1.0, 2.0, 4.0, 8.0]
        assert list(backoff_delays(8, cap=30.0))[-1] == 30.0
        assert list(backoff_delays(1)) == []
