"""Shared test fixtures for wpdb-tool."""

from pathlib import Path
from tempfile import TemporaryDirectory
from unittest.mock import MagicMock

import pytest
from typer.testing import CliRunner

from tests.fakes import FakeServer
from wpdb_tool.cli.main import app
from wpdb_tool.core.config import ResolvedConfig
from wpdb_tool.core.database import Database


@pytest.fixture
def runner():
    """Typer CLI test runner."""
    return CliRunner()


@pytest.fixture
def cli_runner(runner):
    """Invoke the CLI app with the given arguments."""

    def invoke(*args: str, **kwargs):
        return runner.invoke(app, list(args), **kwargs)

    return invoke


@pytest.fixture
def temp_dir():
    """Temporary directory for test files."""
    with TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def make_config():
    """Build a ResolvedConfig with test-friendly defaults."""

    def build(**overrides):
        values = {
            "user": "wp",
            "password": "secret",  # pragma: allowlist secret
            "placeholder_salt": "test-salt",
            "reconnect_delay": 0.0,
        }
        values.update(overrides)
        return ResolvedConfig(**values)

    return build


@pytest.fixture
def server():
    return FakeServer()


@pytest.fixture
def make_db(make_config, server):
    """Build a Database wired to a FakeServer instead of a live connection."""

    def build(**overrides):
        database = Database(make_config(**overrides), connect=False)
        connection = MagicMock()
        connection.ready = True
        connection.charset = "utf8mb4"
        connection.collate = "utf8mb4_unicode_520_ci"
        connection.no_backslash_escapes = False
        connection.execute.side_effect = server
        connection.check_connection.return_value = True
        database.connection = connection
        return database

    return build


@pytest.fixture
def db(make_db):
    return make_db()
