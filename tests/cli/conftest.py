"""Fixtures for CLI tests."""

import pytest

_ENV_VARS = (
    "DB_HOST",
    "DB_PORT",
    "DB_NAME",
    "DB_USER",
    "DB_PASSWORD",
    "DB_CHARSET",
    "DB_COLLATE",
    "WPDB_TABLE_PREFIX",
    "WPDB_PROFILE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_args(temp_dir):
    """Point the CLI at an empty config file so local profiles do not leak in."""
    return ["--config", str(temp_dir / "config.toml")]
