"""Tests for the offline prepare command."""

import pytest

from wpdb_tool.cli.main import app
from wpdb_tool.core.exit_codes import ExitCode


@pytest.mark.unit
def test_prepare_help(runner):
    result = runner.invoke(app, ["prepare", "--help"])
    assert result.exit_code == 0
    assert "--unsafe-unquoted" in result.stdout


@pytest.mark.unit
def test_prepare_prints_sql(runner):
    result = runner.invoke(
        app,
        ["prepare", "SELECT * FROM t WHERE id = %d AND name = %s", "5", "O'Brien"],
    )
    assert result.exit_code == 0
    assert "SELECT * FROM t WHERE id = 5 AND name = 'O''Brien'" in result.stdout


@pytest.mark.unit
def test_prepare_percent_literal_restored(runner):
    result = runner.invoke(
        app, ["prepare", "SELECT * FROM wp_posts WHERE post_title LIKE %s", "50%"]
    )
    assert result.exit_code == 0
    assert "LIKE '50%'" in result.stdout


@pytest.mark.unit
def test_prepare_identifier(runner):
    result = runner.invoke(app, ["prepare", "SELECT %i FROM %i", "post_title", "wp_posts"])
    assert result.exit_code == 0
    assert "SELECT `post_title` FROM `wp_posts`" in result.stdout


@pytest.mark.unit
def test_prepare_too_few_arguments(runner):
    result = runner.invoke(app, ["prepare", "%s %s", "a"])
    assert result.exit_code == ExitCode.INPUT_ERROR
    assert "Error: The query does not contain the correct number" in result.output


@pytest.mark.unit
def test_prepare_dual_role_rejected(runner):
    result = runner.invoke(app, ["prepare", "SELECT %1$i FROM t WHERE a = %1$s", "x"])
    assert result.exit_code == ExitCode.INPUT_ERROR
    assert "both an Identifier and Value" in result.output


@pytest.mark.unit
def test_prepare_too_many_arguments_warns(runner):
    result = runner.invoke(app, ["prepare", "%s", "a", "b"])
    assert result.exit_code == 0
    assert "'a'" in result.stdout.splitlines()
    assert "Warning: The query does not contain the correct number" in result.output


@pytest.mark.unit
def test_prepare_legacy_unquoted(runner):
    result = runner.invoke(app, ["prepare", "--unsafe-unquoted", "LIMIT %5s", "10"])
    assert result.exit_code == 0
    assert "LIMIT    10" in result.stdout


@pytest.mark.unit
def test_prepare_no_backslash_escapes(runner):
    result = runner.invoke(app, ["prepare", "--no-backslash-escapes", "%s", "a\\b"])
    assert result.exit_code == 0
    assert "'a\\b'" in result.stdout.splitlines()
