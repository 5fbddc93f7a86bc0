"""Tests for the refresh pipeline and the Prometheus collector."""

from datetime import date

from prometheus_client import generate_latest

from conftest import T0
from exporter import UsageExporter

TODAY = date(2026, 10, 19)

SNAPSHOT = {
    "modelUsage": {"anthropic/claude-x": {"inputTokens": 100, "outputTokens": 10, "costUSD": 1.0}},
    "totalSessions": 5,
    "totalMessages": 50,
    "lastComputedDate": "2026-10-18",
}


def _exporter(claude_dir):
    return UsageExporter(claude_dir / "stats-cache.json", claude_dir)


class TestRefresh:
    def test_end_to_end(self, claude_dir, write_snapshot, write_log, usage):
        write_snapshot(SNAPSHOT, mtime=T0)
        write_log([usage(model="claude-x", input_tokens=50, output_tokens=1)], mtime=T0 + 1)
        write_log([usage(model="claude-x", input_tokens=999)], mtime=T0 - 1, name="old")

        exporter = _exporter(claude_dir)
        snap = exporter.refresh(today=TODAY)

        assert exporter.last_refresh_ok
        assert snap.value("claude_model_input_tokens_total", "claude-x") == 150
        assert snap.value("claude_model_input_tokens_total", "anthropic/claude-x") is None
        assert snap.value("claude_sessions_total") == 6
        assert exporter.report.live.session_count == 1

    def test_failed_snapshot_keeps_previous_metrics(self, claude_dir, write_snapshot):
        write_snapshot(SNAPSHOT)
        exporter = _exporter(claude_dir)
        first = exporter.refresh(today=TODAY)
        report = exporter.report

        write_snapshot("{truncated")
        second = exporter.refresh(today=TODAY)

        assert second is first
        assert exporter.report is report
        assert exporter.last_refresh_ok is False
        assert exporter.refresh_failures == 1

    def test_first_refresh_without_snapshot(self, claude_dir):
        exporter = _exporter(claude_dir)
        assert exporter.refresh() is None
        assert exporter.report is None
        assert exporter.refresh_failures == 1


class TestCollector:
    def test_exposition(self, claude_dir, write_snapshot, write_log, usage):
        write_snapshot(SNAPSHOT, mtime=T0)
        write_log([usage(content=[{"type": "tool_use", "name": "Bash"}])], mtime=T0 + 1)

        text = generate_latest(_exporter(claude_dir).registry).decode()

        assert 'claude_model_input_tokens_total{model="claude-x"} 110.0' in text
        assert 'claude_live_tool_calls{tool="Bash"} 1.0' in text
        assert "claude_turn_duration_seconds_bucket" in text
        assert "claude_exporter_last_refresh_success 1.0" in text
        assert "claude_exporter_refresh_failures_total 0.0" in text

    def test_exposition_without_snapshot(self, claude_dir):
        text = generate_latest(_exporter(claude_dir).registry).decode()

        assert "claude_model_input_tokens_total" not in text
        assert "claude_exporter_last_refresh_success 0.0" in text
        assert "claude_exporter_refresh_failures_total 1.0" in text

    def test_exposition_with_odd_system_line(self, claude_dir, write_snapshot, write_log, usage):
        write_snapshot(SNAPSHOT, mtime=T0)
        write_log([usage(input_tokens=20), {"type": "system", "subtype": {"x": 1}}], mtime=T0 + 1)

        text = generate_latest(_exporter(claude_dir).registry).decode()

        assert 'claude_model_input_tokens_total{model="claude-x"} 120.0' in text
        assert "claude_exporter_last_refresh_success 1.0" in text
