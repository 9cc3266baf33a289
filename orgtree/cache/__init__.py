"""
Caching layer for the org tree service.

This module contains Valkey client configuration, the cache-aside manager
and the cache key naming shared with existing cache contents.
"""

from .config import DEFAULT_CACHE_TTL, ValkeyConfig, ValkeyConnectionError
from .client import ValkeyClient
from .keys import CacheKeyPrefix, CacheKeyBuilder
from .manager import CacheManager, CacheStats, create_cache_manager

__all__ = [
    # Configuration
    "DEFAULT_CACHE_TTL",
    "ValkeyConfig",
    "ValkeyConnectionError",

    # Client
    "ValkeyClient",

    # Manager
    "CacheManager",
    "CacheStats",
    "create_cache_manager",

    # Keys
    "CacheKeyPrefix",
    "CacheKeyBuilder",
]
