"""Tests for listing-watch CLI commands.

This module tests the command-line interface using click.testing.CliRunner
with the browser session replaced by an AsyncMock.
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from listing_watch.app import build_application
from listing_watch.cli import cli
from listing_watch.retry import RetryController

RECORDS = [{"text": "Merchant A 129.50 KES"}, {"text": "Merchant B 129.75 KES"}]


def _fake_builder(session: AsyncMock):
    """Return a build_application replacement wired to ``session``."""

    def build(config):
        return build_application(config, session=session, retry=RetryController(sleep=AsyncMock()))

    return build


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def session() -> AsyncMock:
    session = AsyncMock()
    session.extract_records.return_value = list(RECORDS)
    return session


class TestCLIStructure:
    """Test class for CLI command structure."""

    def test_cli_group_exists(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Listing Watch" in result.output

    def test_help_displays_commands(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("run", "once", "presets"):
            assert command in result.output

    def test_verbose_flag_accepted(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--verbose", "--help"])
        assert result.exit_code == 0

    def test_invalid_command_fails(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["nonexistent"])
        assert result.exit_code != 0

    def test_run_has_interval_option(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["run", "--help"])
        assert result.exit_code == 0
        assert "--interval-ms" in result.output


class TestOnceCommand:
    """Tests for the one-shot cycle command."""

    def test_success_prints_summary(self, runner: CliRunner, session: AsyncMock) -> None:
        with patch("listing_watch.cli.build_application", side_effect=_fake_builder(session)):
            result = runner.invoke(cli, ["once", "--url", "https://example.com/p2p"])

        assert result.exit_code == 0, result.output
        assert "Records: 2" in result.output
        assert "HEALTHY" in result.output
        session.navigate.assert_awaited_once_with("https://example.com/p2p")

    def test_json_output(self, runner: CliRunner, session: AsyncMock) -> None:
        with patch("listing_watch.cli.build_application", side_effect=_fake_builder(session)):
            result = runner.invoke(cli, ["once", "--url", "https://example.com/p2p", "--json"])

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["success"] is True
        assert payload["record_count"] == 2
        assert payload["health"]["status"] == "HEALTHY"
        assert set(payload["circuits"]) == {"BROWSER_LAUNCH", "PAGE_OPERATIONS", "DATA_EXTRACTION"}

    def test_failed_cycle_exits_nonzero(self, runner: CliRunner, session: AsyncMock) -> None:
        session.launch.side_effect = OSError("chrome not found")
        with patch("listing_watch.cli.build_application", side_effect=_fake_builder(session)):
            result = runner.invoke(cli, ["once", "--url", "https://example.com/p2p"])

        assert result.exit_code == 1
        assert "FAILED at browser_launch" in result.output
        session.close.assert_awaited()

    def test_invalid_url_rejected(self, runner: CliRunner) -> None:
        with patch("listing_watch.cli.build_application") as mock_build:
            result = runner.invoke(cli, ["once", "--url", "not-a-url"])

        assert result.exit_code == 1
        assert "Invalid target_url" in result.output
        mock_build.assert_not_called()

    def test_cycle_already_running_exits_nonzero(self, runner: CliRunner) -> None:
        app = MagicMock()
        app.scheduler.run_cycle_safely = AsyncMock(return_value=None)
        with patch("listing_watch.cli.build_application", return_value=app):
            result = runner.invoke(cli, ["once", "--url", "https://example.com/p2p"])

        assert result.exit_code == 1
        assert "already running" in result.output
        assert not isinstance(result.exception, AssertionError)

    def test_missing_config_file(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["once", "--config", str(tmp_path / "missing.toml")])
        assert result.exit_code == 1
        assert "Config file not found" in result.output


class TestRunCommand:
    def test_run_starts_scheduler(self, runner: CliRunner) -> None:
        app = MagicMock()
        with (
            patch("listing_watch.cli.build_application", return_value=app) as mock_build,
            patch("listing_watch.cli._run_async", new_callable=AsyncMock) as mock_run,
        ):
            result = runner.invoke(
                cli, ["run", "--url", "https://example.com/p2p", "--interval-ms", "5000"]
            )

        assert result.exit_code == 0, result.output
        config = mock_build.call_args.args[0]
        assert config.scraper.scrape_interval_ms == 5000
        mock_run.assert_awaited_once_with(app)

    def test_run_rejects_zero_interval(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["run", "--interval-ms", "0"])
        assert result.exit_code == 1
        assert "scrape_interval_ms" in result.output


class TestPresetsCommand:
    def test_lists_breakers_and_retry(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["presets"])
        assert result.exit_code == 0
        assert "BROWSER_LAUNCH: threshold=2, recovery=45s" in result.output
        assert "network: attempts=5" in result.output
        assert "TimeoutError" in result.output

    def test_reflects_config_file(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        path.write_text("[breakers.BROWSER_LAUNCH]\nfailure_threshold = 7\n", encoding="utf-8")
        result = runner.invoke(cli, ["presets", "--config", str(path)])
        assert result.exit_code == 0
        assert "BROWSER_LAUNCH: threshold=7" in result.output
