"""Tests for structlog setup and the events the core emits."""

import pytest

from wpdb_tool.core.logging import get_logger, scrub_event, setup_logging
from wpdb_tool.core.placeholders import PlaceholderCompiler
from wpdb_tool.core.reporter import ErrorReporter


@pytest.mark.unit
class TestSetupLogging:
    @pytest.mark.parametrize("verbose", [True, False])
    def test_setup(self, verbose):
        setup_logging(verbose=verbose)

    def test_named_logger(self):
        setup_logging()
        assert get_logger("wpdb_tool.tests") is not None


@pytest.mark.unit
class TestLogOutput:
    def test_logs_go_to_stderr(self, capsys):
        setup_logging(verbose=True)
        get_logger().info("test message")

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "test message" in captured.err

    def test_debug_hidden_without_verbose(self, capsys):
        setup_logging(verbose=False)
        get_logger().debug("hidden detail")
        assert "hidden detail" not in capsys.readouterr().err

    def test_prepare_diagnostic_logged(self, capsys):
        setup_logging()
        PlaceholderCompiler(placeholder_salt="s").prepare("%s %s", "a")

        err = capsys.readouterr().err
        assert "prepare diagnostic" in err
        assert "argument_count_mismatch" in err

    def test_suppressed_database_error_not_logged(self, capsys):
        setup_logging()
        ErrorReporter(suppress_errors=True).print_error("Table missing", "SELECT 1")
        assert "database error" not in capsys.readouterr().err

    def test_database_error_logged(self, capsys):
        setup_logging()
        ErrorReporter().print_error("Table missing", "SELECT 1")
        assert "Table missing" in capsys.readouterr().err


@pytest.mark.unit
class TestScrubEvent:
    def test_secrets_masked(self):
        event = scrub_event(None, "info", {"event": "connect", "password": "hunter2"})
        assert event["password"] == "***"

    def test_long_query_clipped(self):
        query = "SELECT " + "x" * 1000
        event = scrub_event(None, "debug", {"event": "query", "query": query})
        assert len(event["query"]) < len(query)
        assert event["query"].endswith(f"({len(query)} chars)")

    def test_short_query_untouched(self):
        event = scrub_event(None, "debug", {"event": "query", "query": "SELECT 1"})
        assert event["query"] == "SELECT 1"

    def test_password_never_rendered(self, capsys):
        setup_logging()
        get_logger().info("connecting", password="hunter2")
        assert "hunter2" not in capsys.readouterr().err
