# ==============================================================================
# Tests for CLI Help Commands
# ==============================================================================
"""
Tests that all CLI help commands generate the expected output.

Verifies that every command and subcommand in the tabpulse CLI:
- Exits with code 0 when invoked with --help
- Contains the expected description text
- Lists the expected subcommands or options

These tests use the real app from tabpulse.app (not minimal Typer apps)
to ensure the full command tree is wired up correctly and that Typer can
introspect all command function signatures without errors.
"""

import pytest
from typer.testing import CliRunner

from tabpulse.app import app

runner = CliRunner()


# ==============================================================================
# Root App
# ==============================================================================


class TestRootHelp:
    """Tests for the root `tabpulse --help` output."""

    def test_exit_code(self):
        """Root --help exits successfully."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0

    def test_description(self):
        """Root --help shows the app description."""
        result = runner.invoke(app, ["--help"])
        assert "Browser tab activity aggregation" in result.output

    def test_lists_all_subcommands(self):
        """Root --help lists every top-level command."""
        result = runner.invoke(app, ["--help"])
        expected_commands = [
            "aggregate",
            "cleanup",
            "config",
            "data",
            "heartbeat",
            "ingest",
            "run",
            "status",
            "stop",
            "sync",
        ]
        for cmd in expected_commands:
            assert cmd in result.output, f"Missing command: {cmd}"


# ==============================================================================
# Top-level Commands
# ==============================================================================


class TestCommandHelp:
    """Tests for each top-level command's --help output."""

    @pytest.mark.parametrize(
        "command, expected",
        [
            ("run", "Run the service in the foreground"),
            ("stop", "Stop a running tabpulse service"),
            ("ingest", "Ingest browser bridge messages"),
            ("aggregate", "Run one aggregation pass"),
            ("sync", "Upload unsynced page visits"),
            ("cleanup", "Expire old raw events"),
            ("status", "Show service status"),
        ],
    )
    def test_description(self, command, expected):
        result = runner.invoke(app, [command, "--help"])
        assert result.exit_code == 0
        assert expected in result.output

    def test_sync_options(self):
        """Sync --help shows --force and --json."""
        result = runner.invoke(app, ["sync", "--help"])
        assert "--force" in result.output
        assert "--json" in result.output

    def test_status_options(self):
        result = runner.invoke(app, ["status", "--help"])
        assert "--visits" in result.output


# ==============================================================================
# Sub-apps
# ==============================================================================


class TestHeartbeatHelp:
    """Tests for `tabpulse heartbeat` help output."""

    def test_lists_subcommands(self):
        result = runner.invoke(app, ["heartbeat", "--help"])
        assert result.exit_code == 0
        assert "Engagement heartbeat statistics" in result.output
        assert "stats" in result.output
        assert "recent" in result.output

    def test_stats_help(self):
        result = runner.invoke(app, ["heartbeat", "stats", "--help"])
        assert result.exit_code == 0
        assert "--json" in result.output

    def test_recent_help(self):
        result = runner.invoke(app, ["heartbeat", "recent", "--help"])
        assert result.exit_code == 0
        assert "--count" in result.output


class TestConfigHelp:
    """Tests for `tabpulse config` help output."""

    def test_lists_subcommands(self):
        result = runner.invoke(app, ["config", "--help"])
        assert result.exit_code == 0
        assert "Configuration management" in result.output
        assert "show" in result.output


class TestDataHelp:
    """Tests for `tabpulse data` help output."""

    def test_lists_subcommands(self):
        result = runner.invoke(app, ["data", "--help"])
        assert result.exit_code == 0
        assert "Local data management" in result.output
        assert "reset" in result.output
        assert "export" in result.output

    def test_reset_help(self):
        result = runner.invoke(app, ["data", "reset", "--help"])
        assert result.exit_code == 0
        assert "--yes" in result.output

    def test_export_help(self):
        result = runner.invoke(app, ["data", "export", "--help"])
        assert result.exit_code == 0
        assert "--output" in result.output
        assert "--unsynced" in result.output
