"""
Tests for cache configuration and provider selection.

Tests cover:
- Environment variable parsing and defaults
- Provider name aliases
- Dotenv loading
- Factory selection and fallbacks
"""

import logging

import pytest

from cache_engine.config import (
    CacheConfig,
    ProviderKind,
    load_config,
    parse_provider_kind,
)
from cache_engine.distributed import DistributedCacheProvider
from cache_engine.errors import CacheConfigurationError
from cache_engine.factory import create_provider
from cache_engine.in_memory import InMemoryCacheProvider


# ============================================================================
# CONFIGURATION TESTS
# ============================================================================


def test_defaults(clean_env):
    """Test defaults with no environment."""
    config = CacheConfig.from_env()

    assert config.provider_kind is ProviderKind.IN_MEMORY
    assert config.default_ttl == 3600
    assert config.distributed_url is None
    assert config.distributed_token is None
    assert config.request_timeout == 5.0
    assert config.sweep_interval == 60.0
    assert config.single_flight is True
    assert config.environment == "development"
    assert config.is_production is False


def test_reads_environment(clean_env):
    """Test every variable is honored."""
    clean_env.update({
        "CACHE_PROVIDER": "distributed",
        "CACHE_DEFAULT_TTL": "120",
        "CACHE_DISTRIBUTED_URL": "https://cache.example.test",
        "CACHE_DISTRIBUTED_TOKEN": "tok",
        "CACHE_REQUEST_TIMEOUT": "2.5",
        "CACHE_SWEEP_INTERVAL": "30",
        "CACHE_SINGLE_FLIGHT": "false",
        "ENVIRONMENT": "Production",
    })

    config = CacheConfig.from_env()

    assert config.provider_kind is ProviderKind.DISTRIBUTED
    assert config.default_ttl == 120
    assert config.distributed_url == "https://cache.example.test"
    assert config.distributed_token == "tok"
    assert config.request_timeout == 2.5
    assert config.sweep_interval == 30.0
    assert config.single_flight is False
    assert config.is_production is True


def test_upstash_variables_as_fallback(clean_env):
    """Test vendor variable names are accepted."""
    clean_env["UPSTASH_REDIS_REST_URL"] = "https://u.example.test"
    clean_env["UPSTASH_REDIS_REST_TOKEN"] = "u-tok"

    config = CacheConfig.from_env()

    assert config.distributed_url == "https://u.example.test"
    assert config.distributed_token == "u-tok"


def test_invalid_number_falls_back_to_default(clean_env, caplog):
    """Test malformed numbers log a warning and use the default."""
    clean_env["CACHE_DEFAULT_TTL"] = "an hour"

    with caplog.at_level(logging.WARNING, logger="cache_engine.config"):
        config = CacheConfig.from_env()

    assert config.default_ttl == 3600
    assert "CACHE_DEFAULT_TTL" in caplog.text


@pytest.mark.parametrize("value,expected", [
    ("in-memory", ProviderKind.IN_MEMORY),
    ("memory", ProviderKind.IN_MEMORY),
    ("IN_MEMORY", ProviderKind.IN_MEMORY),
    ("distributed", ProviderKind.DISTRIBUTED),
    (" upstash ", ProviderKind.DISTRIBUTED),
    ("redis-rest", ProviderKind.DISTRIBUTED),
    ("memcached", None),
    ("", None),
    (None, None),
])
def test_parse_provider_kind(value, expected):
    """Test provider aliases."""
    assert parse_provider_kind(value) is expected


def test_repr_masks_token():
    """Test the token never appears in repr."""
    config = CacheConfig(provider="distributed", distributed_url="https://x", distributed_token="s3cr3t")

    assert "s3cr3t" not in repr(config)
    assert "****" in repr(config)


def test_load_config_reads_dotenv(clean_env, tmp_path):
    """Test values are loaded from a dotenv file."""
    env_file = tmp_path / ".env"
    env_file.write_text("CACHE_PROVIDER=distributed\nCACHE_DEFAULT_TTL=90\n")

    config = load_config(str(env_file))

    assert config.provider_kind is ProviderKind.DISTRIBUTED
    assert config.default_ttl == 90


def test_load_config_environment_wins_over_dotenv(clean_env, tmp_path):
    """Test already-set variables are not overridden by the file."""
    env_file = tmp_path / ".env"
    env_file.write_text("CACHE_DEFAULT_TTL=90\n")
    clean_env["CACHE_DEFAULT_TTL"] = "15"

    config = load_config(str(env_file))

    assert config.default_ttl == 15


# ============================================================================
# FACTORY TESTS
# ============================================================================


def test_factory_in_memory():
    """Test in-memory provider selection."""
    provider = create_provider(CacheConfig(provider="in-memory", sweep_interval=5))

    assert isinstance(provider, InMemoryCacheProvider)
    assert provider._sweep_interval == 5


def test_factory_distributed():
    """Test distributed provider selection."""
    provider = create_provider(CacheConfig(
        provider="distributed",
        distributed_url="https://cache.example.test",
        distributed_token="tok",
    ))

    assert isinstance(provider, DistributedCacheProvider)


def test_factory_distributed_without_credentials_raises():
    """Test distributed without endpoint fails at construction."""
    with pytest.raises(CacheConfigurationError):
        create_provider(CacheConfig(provider="distributed"))


def test_factory_unknown_provider_defaults_to_in_memory(caplog):
    """Test unknown names fall back with a warning."""
    with caplog.at_level(logging.WARNING, logger="cache_engine.factory"):
        provider = create_provider(CacheConfig(provider="memcached"))

    assert isinstance(provider, InMemoryCacheProvider)
    assert "memcached" in caplog.text
