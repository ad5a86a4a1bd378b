"""Tests for the CLI interface."""

from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from notionpress.cli import app, hint_for

from builders import OTHER_ID, PAGE_ID, SITE_URL, FakeNotionClient, paragraph, row_object, span


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def cli_notion(db, notion: FakeNotionClient):
    """Fake Notion client handed to every command that needs one."""
    notion.add_page(PAGE_ID, "Hello", [paragraph("p1", span("Hi"))])
    notion.add_database(OTHER_ID, "Tasks", [row_object(f"{i:032x}", f"Task {i}", "Todo") for i in range(3)])
    with patch("notionpress.cli._notion_client", return_value=notion):
        yield notion


class TestCLIBasics:
    """Tests for basic CLI functionality."""

    def test_help(self, runner: CliRunner):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "Sync Notion pages" in result.stdout

    def test_config(self, runner: CliRunner, db):
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert SITE_URL in result.stdout

    def test_config_problems(self, runner: CliRunner, db, monkeypatch: pytest.MonkeyPatch):
        from notionpress.config import reset_config

        monkeypatch.setenv("NOTIONPRESS_BATCH_SIZE", "0")
        reset_config()

        result = runner.invoke(app, ["config"])

        assert result.exit_code == 1
        assert "NOTIONPRESS_BATCH_SIZE" in result.stdout

    def test_missing_token(self, runner: CliRunner, db, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("NOTION_API_KEY", raising=False)
        result = runner.invoke(app, ["sync", PAGE_ID])
        assert result.exit_code == 1
        assert "NOTION_API_KEY" in result.stdout


class TestPageCommands:
    """Tests for sync, status, render and route."""

    def test_sync_and_route(self, runner: CliRunner, cli_notion):
        result = runner.invoke(app, ["sync", PAGE_ID])
        assert result.exit_code == 0
        assert "created" in result.stdout

        result = runner.invoke(app, ["route", "/notion/hello"])
        assert result.exit_code == 0
        assert f"{SITE_URL}/hello/" in result.stdout

    def test_sync_failure_exit_code(self, runner: CliRunner, cli_notion):
        result = runner.invoke(app, ["sync", "deadbeef"])
        assert result.exit_code == 1
        assert "fetch" in result.stdout

    def test_status_and_render(self, runner: CliRunner, cli_notion):
        runner.invoke(app, ["sync", PAGE_ID])

        result = runner.invoke(app, ["status", PAGE_ID])
        assert result.exit_code == 0
        assert "synced" in result.stdout

        result = runner.invoke(app, ["render", "1"])
        assert result.exit_code == 0
        assert "<p>Hi</p>" in result.stdout

    def test_render_missing(self, runner: CliRunner, db):
        result = runner.invoke(app, ["render", "42"])
        assert result.exit_code == 1
        assert "not found" in result.stdout

    def test_route_unknown(self, runner: CliRunner, db):
        result = runner.invoke(app, ["route", "/notion/nowhere"])
        assert result.exit_code == 1
        assert "No page registered" in result.stdout

    def test_pages(self, runner: CliRunner, cli_notion):
        result = runner.invoke(app, ["pages"])
        assert result.exit_code == 0
        assert "Hello" in result.stdout


class TestDatabaseCommands:
    """Tests for database, batch and job commands."""

    def test_sync_db_and_rows(self, runner: CliRunner, cli_notion):
        result = runner.invoke(app, ["sync-db", OTHER_ID])
        assert result.exit_code == 0
        assert "Synced 3 rows" in result.stdout

        result = runner.invoke(app, ["rows", "1", "--status", "Todo"])
        assert result.exit_code == 0
        assert "Rows (3 of 3)" in result.stdout

    def test_sync_db_missing(self, runner: CliRunner, cli_notion):
        result = runner.invoke(app, ["sync-db", "deadbeef"])
        assert result.exit_code == 1
        assert "database schema" in result.stdout

    def test_databases(self, runner: CliRunner, cli_notion):
        result = runner.invoke(app, ["databases"])
        assert result.exit_code == 0
        assert "Tasks" in result.stdout

    def test_batch_cancel_unknown(self, runner: CliRunner, db):
        result = runner.invoke(app, ["batch", "cancel", "batch_nope"])
        assert result.exit_code == 0
        assert "not running" in result.stdout

    def test_batch_status_none(self, runner: CliRunner, db):
        result = runner.invoke(app, ["batch", "status", "1"])
        assert "No batch job found" in result.stdout

    def test_jobs_run_empty(self, runner: CliRunner, db):
        result = runner.invoke(app, ["jobs", "run", "--no-wait"])
        assert result.exit_code == 0
        assert "Ran 0 job(s)" in result.stdout


def test_hint_for():
    assert "shared with the integration" in hint_for(
        "Failed to fetch page properties from Notion. The page may not exist."
    )
    assert hint_for("something else") is None
    assert hint_for(None) is None


def test_hint_for_connection_failure():
    hint = hint_for("Failed to fetch page properties from Notion. Could not connect to Notion.")
    assert hint == "Check your network connection and try again."
