"""
Configuration tests for the service, Valkey and database settings.
"""

from unittest.mock import patch

import pytest

from orgtree.cache import ValkeyConfig
from orgtree.database.config import DatabaseConfig
from orgtree.utils.config import OrgTreeConfig, load_config


class TestServiceConfig:
    """Test environment-driven service configuration."""

    def test_defaults(self):
        config = OrgTreeConfig()
        assert config.cache_backend == "valkey"
        assert config.cache_ttl == 3600
        assert config.canonicalize_filters is False
        assert config.port == 3000

    def test_load_from_env(self, tmp_path):
        with patch.dict("os.environ", {
            "CACHE_BACKEND": "Memory",
            "CACHE_TTL": "120",
            "CANONICALIZE_FILTERS": "yes",
            "ORGTREE_LOG_LEVEL": "debug",
            "PORT": "8080",
        }):
            config = load_config(str(tmp_path / "missing.env"))

        assert config.cache_backend == "memory"
        assert config.cache_ttl == 120
        assert config.canonicalize_filters is True
        assert config.log_level == "DEBUG"
        assert config.port == 8080

    def test_invalid_backend(self, tmp_path):
        with patch.dict("os.environ", {"CACHE_BACKEND": "memcached"}):
            with pytest.raises(ValueError, match="Configuration validation failed"):
                load_config(str(tmp_path / "missing.env"))

    def test_invalid_log_level(self):
        with pytest.raises(ValueError):
            OrgTreeConfig(log_level="LOUD")


class TestValkeyConfig:
    """Test Valkey connection settings."""

    def test_from_env(self):
        with patch.dict("os.environ", {
            "VALKEY_HOST": "cache-host",
            "VALKEY_PORT": "6380",
            "VALKEY_PASSWORD": "s3cret",
            "VALKEY_DATABASE": "2",
        }):
            config = ValkeyConfig.from_env()

        assert config.host == "cache-host"
        assert config.port == 6380
        assert config.database == 2
        assert "s3cret" not in str(config)

    def test_pool_kwargs(self):
        kwargs = ValkeyConfig(max_connections=15).to_connection_pool_kwargs()
        assert kwargs["max_connections"] == 15
        assert kwargs["decode_responses"] is True


class TestDatabaseConfig:
    """Test database URL handling."""

    def test_explicit_url(self):
        config = DatabaseConfig("sqlite:///:memory:")
        assert config.db_type == "sqlite"
        assert config.is_memory_database

    def test_mysql_from_env(self):
        with patch.dict("os.environ", {
            "DB_TYPE": "mysql",
            "DB_HOST": "db",
            "DB_NAME": "org",
            "DB_USER": "app",
            "DB_PASSWORD": "pw",
        }, clear=True):
            config = DatabaseConfig()

        assert config.database_url == "mysql+pymysql://app:pw@db:3306/org?charset=utf8mb4"
        assert config.get_connection_info()["database_url"] == "db:3306/org?charset=utf8mb4"

    def test_unsupported_type(self):
        with patch.dict("os.environ", {"DB_TYPE": "oracle"}, clear=True):
            with pytest.raises(ValueError):
                DatabaseConfig()

    def test_foreign_keys_enabled(self, db_config):
        with db_config.engine.connect() as conn:
            assert conn.exec_driver_sql("PRAGMA foreign_keys").scalar() == 1
