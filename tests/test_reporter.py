"""Tests for the error reporter."""

import io

import pytest

from wpdb_tool.core.exit_codes import ExitCode
from wpdb_tool.core.reporter import ErrorReporter


@pytest.fixture
def stream():
    return io.StringIO()


@pytest.mark.unit
class TestToggles:
    def test_show_errors_returns_previous(self):
        reporter = ErrorReporter()
        assert reporter.show_errors() is False
        assert reporter.show_errors(False) is True
        assert reporter.showing_errors is False

    def test_hide_errors_returns_previous(self):
        reporter = ErrorReporter(show_errors=True)
        assert reporter.hide_errors() is True
        assert reporter.showing_errors is False

    def test_suppress_errors_returns_previous(self):
        reporter = ErrorReporter()
        assert reporter.suppress_errors() is False
        assert reporter.suppressing_errors is True

    def test_set_fatal_returns_previous(self):
        reporter = ErrorReporter(fatal=True)
        assert reporter.set_fatal(False) is True
        assert reporter.fatal is False


@pytest.mark.unit
class TestPrintError:
    def test_returns_false_and_records(self, stream):
        reporter = ErrorReporter(stream=stream)
        assert reporter.print_error("Table missing", "SELECT 1") is False
        assert reporter.errors == [{"query": "SELECT 1", "error_str": "Table missing"}]
        assert stream.getvalue() == ""

    def test_shown_errors_written_to_stream(self, stream):
        reporter = ErrorReporter(show_errors=True, stream=stream)
        reporter.print_error("Table missing", "SELECT * FROM wp_x")
        assert stream.getvalue() == "Database error: [Table missing]\nSELECT * FROM wp_x\n"

    def test_suppressed_errors_not_written(self, stream):
        reporter = ErrorReporter(show_errors=True, suppress_errors=True, stream=stream)
        reporter.print_error("Table missing", "SELECT 1")
        assert stream.getvalue() == ""
        assert len(reporter.errors) == 1

    def test_falls_back_to_driver_error(self):
        reporter = ErrorReporter()
        reporter.last_driver_error = "Lost connection"
        reporter.print_error()
        assert reporter.errors[0]["error_str"] == "Lost connection"


@pytest.mark.unit
class TestBail:
    def test_fatal_exits_with_mapped_code(self, stream):
        reporter = ErrorReporter(fatal=True, stream=stream)
        with pytest.raises(SystemExit) as exc_info:
            reporter.bail("Cannot reach server", "db_connect_fail")
        assert exc_info.value.code == ExitCode.NETWORK_ERROR
        assert "Cannot reach server" in stream.getvalue()

    @pytest.mark.parametrize(
        ("code", "exit_code"),
        [
            ("db_connect_auth", ExitCode.AUTH_ERROR),
            ("db_select_fail", ExitCode.CONFIG_ERROR),
            ("500", ExitCode.GENERAL_ERROR),
        ],
    )
    def test_exit_code_mapping(self, stream, code, exit_code):
        reporter = ErrorReporter(fatal=True, stream=stream)
        with pytest.raises(SystemExit) as exc_info:
            reporter.bail("failed", code)
        assert exc_info.value.code == exit_code

    def test_fatal_includes_driver_error(self, stream):
        reporter = ErrorReporter(fatal=True, stream=stream)
        reporter.last_driver_error = "Can't connect to MySQL server"
        with pytest.raises(SystemExit):
            reporter.bail("Error establishing a database connection", "db_connect_fail")
        assert stream.getvalue().startswith("Can't connect to MySQL server\n")

    def test_non_fatal_records_error(self, stream):
        reporter = ErrorReporter(fatal=False, stream=stream)
        assert reporter.bail("Cannot select database", "db_select_fail") is False
        assert reporter.error.kind == "bail"
        assert reporter.error.code == "db_select_fail"
        assert reporter.error.message == "Cannot select database"
        assert stream.getvalue() == ""
