"""Tests for the CLI and daemon scheduling."""

import json
from unittest.mock import AsyncMock, patch

import pytest

from connpass_watcher.cli import format_report, main
from connpass_watcher.config import ConfigError
from connpass_watcher.models.scan import ScanAction, ScanResult
from connpass_watcher.models.verdict import Classification, InterestVerdict, SpeakerVerdict
from connpass_watcher.scanner import ScanReport
from connpass_watcher.scheduler import ScanScheduler, make_trigger


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        f"app_dir: {tmp_path}\nconnpass:\n  api_key: k\nllm:\n  enabled: false\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def report(make_event) -> ScanReport:
    matched = ScanResult(
        event=make_event(1),
        action=ScanAction.REGISTERED,
        classification=Classification(
            interest=InterestVerdict(is_match=True, score=75, llm_reason="Python topic"),
            speaker=SpeakerVerdict(has_opportunity=True, detected_keywords=["LT"]),
        ),
        calendar_event_id="cal-1",
    )
    return ScanReport(
        results=[
            matched,
            ScanResult(event=make_event(2), action=ScanAction.ALREADY_PROCESSED),
            ScanResult(event=make_event(3), action=ScanAction.NO_MATCH),
        ]
    )


class TestFormatReport:
    """Tests for the text output."""

    def test_summary_and_matched_events(self, report):
        """Totals are printed, followed by matched event details."""
        text = format_report(report)

        assert "Total events: 3" in text
        assert "Matched: 1" in text
        assert "Already processed: 1" in text
        assert "No match: 1" in text
        assert "Python勉強会 #1" in text
        assert "登壇機会: LT" in text
        assert "スコア: 75/100" in text
        assert "理由: Python topic" in text
        assert "Python勉強会 #3" not in text

    def test_no_matches(self, make_event):
        """An empty match list says so."""
        text = format_report(
            ScanReport(results=[ScanResult(event=make_event(1), action=ScanAction.NO_MATCH)])
        )
        assert "No matching events found." in text


class TestMain:
    """Tests for command dispatch and exit codes."""

    def test_no_command_prints_help(self, capsys):
        """Running without a command shows help and succeeds."""
        assert main([]) == 0
        assert "scan" in capsys.readouterr().out

    def test_missing_config_exits_nonzero(self, tmp_path):
        """An explicit missing config file is a startup failure."""
        assert main(["scan", "-c", str(tmp_path / "missing.yaml")]) == 1

    def test_scan_json_output(self, config_file, report, capsys):
        """--json prints the report as JSON."""
        with patch("connpass_watcher.cli.run_scan", AsyncMock(return_value=report)) as run_scan:
            assert main(["scan", "-c", str(config_file), "--dry-run", "--json"]) == 0

        assert run_scan.await_args.kwargs["dry_run"] is True
        data = json.loads(capsys.readouterr().out)
        assert data["total"] == 3
        assert data["counts"]["registered"] == 1

    def test_scan_failure_exits_nonzero(self, config_file):
        """Scan-level errors give exit code 1."""
        failing = AsyncMock(side_effect=RuntimeError("connpass down"))
        with patch("connpass_watcher.cli.run_scan", failing):
            assert main(["scan", "-c", str(config_file)]) == 1

    def test_daemon_requires_cron(self, config_file):
        """The daemon refuses to start without schedule.cron."""
        assert main(["daemon", "-c", str(config_file)]) == 1


class TestScheduler:
    """Tests for cron scheduling."""

    def test_valid_crontab(self):
        """Standard five-field expressions are accepted."""
        trigger = make_trigger("0 9 * * *", timezone="Asia/Tokyo")
        assert "hour='9'" in str(trigger)

    def test_invalid_crontab(self):
        """Malformed expressions are config errors."""
        with pytest.raises(ConfigError):
            make_trigger("every morning")

    async def test_job_errors_do_not_escape(self):
        """A failing scan is logged and the daemon keeps running."""
        job = AsyncMock(side_effect=RuntimeError("boom"))
        scheduler = ScanScheduler("*/5 * * * *", job)

        await scheduler._run_job()

        job.assert_awaited_once()
