import logging
from datetime import date
from pathlib import Path
from typing import Iterator

from prometheus_client import CollectorRegistry
from prometheus_client.core import (
    CounterMetricFamily,
    GaugeMetricFamily,
    HistogramMetricFamily,
    Metric,
)

from collectors.sessions import scan_sessions
from collectors.snapshot import SnapshotError, load_snapshot
from merger import merge
from metrics import GAUGES, HISTOGRAMS, MetricsSnapshot, build_metrics
from models import MergedReport

log = logging.getLogger(__name__)


class UsageExporter:
    def __init__(self, stats_file: Path, claude_dir: Path):
        self.stats_file = Path(stats_file)
        self.claude_dir = Path(claude_dir)
        self.report: MergedReport | None = None
        self.snapshot: MetricsSnapshot | None = None
        self.last_refresh_ok = False
        self.refresh_failures = 0
        self.registry = CollectorRegistry(auto_describe=False)
        self.registry.register(self)

    @property
    def projects_dir(self) -> Path:
        return self.claude_dir / "projects"

    def build_report(self, today: date | None = None) -> MergedReport:
        """Run the pipeline once. Raises SnapshotError if the snapshot is unusable."""
        stats, cutoff = load_snapshot(self.stats_file)
        live = scan_sessions(self.projects_dir, cutoff)
        log.info("live sessions: %d, live messages: %d", live.session_count, live.message_count)
        return merge(stats, live, today=today)

    def refresh(self, today: date | None = None) -> MetricsSnapshot | None:
        """Rebuild the published metrics; on failure keep the previous ones."""
        try:
            report = self.build_report(today=today)
        except SnapshotError as exc:
            self.last_refresh_ok = False
            self.refresh_failures += 1
            log.warning("failed to load stats: %s", exc)
            return self.snapshot

        self.snapshot = build_metrics(report, str(self.stats_file), str(self.claude_dir))
        self.report = report
        self.last_refresh_ok = True
        log.info(
            "metrics updated (lastComputedDate=%s, live_sessions=%d)",
            report.last_computed_date,
            report.live.session_count,
        )
        return self.snapshot

    def _health(self) -> Iterator[Metric]:
        ok = GaugeMetricFamily(
            "claude_exporter_last_refresh_success",
            "Whether the last refresh loaded the stats snapshot",
        )
        ok.add_metric([], 1 if self.last_refresh_ok else 0)
        yield ok
        failures = CounterMetricFamily(
            "claude_exporter_refresh_failures",
            "Refreshes that kept stale metrics because the stats snapshot failed to load",
        )
        failures.add_metric([], self.refresh_failures)
        yield failures

    def describe(self) -> Iterator[Metric]:
        for name, (doc, labels) in GAUGES.items():
            yield GaugeMetricFamily(name, doc, labels=list(labels))
        for name, (doc, _) in HISTOGRAMS.items():
            yield HistogramMetricFamily(name, doc)
        yield from self._health()

    def collect(self) -> Iterator[Metric]:
        snapshot = self.refresh()
        if snapshot is not None:
            yield from snapshot.families()
        yield from self._health()
