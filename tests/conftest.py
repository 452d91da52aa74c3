"""Pytest configuration and fixtures for the cache engine test suite."""
import os
import sys
from pathlib import Path

import pytest

# Ensure the package is importable without an editable install
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

pytest_plugins = ("pytest_asyncio",)


# ============================================================================
# ENVIRONMENT FIXTURES
# ============================================================================

CACHE_ENV_VARS = (
    "CACHE_PROVIDER",
    "CACHE_DEFAULT_TTL",
    "CACHE_DISTRIBUTED_URL",
    "CACHE_DISTRIBUTED_TOKEN",
    "UPSTASH_REDIS_REST_URL",
    "UPSTASH_REDIS_REST_TOKEN",
    "CACHE_REQUEST_TIMEOUT",
    "CACHE_SWEEP_INTERVAL",
    "CACHE_SINGLE_FLIGHT",
    "ENVIRONMENT",
)


@pytest.fixture
def clean_env():
    """Remove cache variables from the environment and restore it afterwards."""
    snapshot = dict(os.environ)
    for name in CACHE_ENV_VARS:
        os.environ.pop(name, None)
    yield os.environ
    os.environ.clear()
    os.environ.update(snapshot)
