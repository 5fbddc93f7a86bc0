from typing import Iterator

from prometheus_client.core import GaugeMetricFamily, HistogramMetricFamily, Metric
from prometheus_client.utils import floatToGoString
from pydantic import BaseModel

from models import MergedReport

# name -> (help, label names)
GAUGES: dict[str, tuple[str, tuple[str, ...]]] = {
    # cumulative (snapshot + live)
    "claude_model_input_tokens_total": ("Total input tokens by model", ("model",)),
    "claude_model_output_tokens_total": ("Total output tokens by model", ("model",)),
    "claude_model_cache_read_tokens_total": ("Total cache-read input tokens by model", ("model",)),
    "claude_model_cache_creation_tokens_total": ("Total cache-creation input tokens by model", ("model",)),
    "claude_model_cost_usd": ("Total cost in USD by model", ("model",)),
    # live only
    "claude_live_input_tokens": ("Input tokens from active sessions (not yet in snapshot)", ("model",)),
    "claude_live_output_tokens": ("Output tokens from active sessions (not yet in snapshot)", ("model",)),
    "claude_live_sessions": ("Number of active sessions (not yet in snapshot)", ()),
    "claude_live_messages": ("Messages in active sessions (not yet in snapshot)", ()),
    "claude_live_prompt_cost_usd": ("Prompt-side cost in USD of active sessions", ()),
    "claude_live_completion_cost_usd": ("Completion-side cost in USD of active sessions", ()),
    "claude_live_tool_calls": ("Tool invocations in active sessions by tool", ("tool",)),
    "claude_live_stop_reasons": ("Assistant stop reasons in active sessions", ("stop_reason",)),
    "claude_live_api_errors": ("API errors in active sessions", ()),
    "claude_live_api_retries": ("API retries in active sessions", ()),
    "claude_live_compactions": ("Context compactions in active sessions", ()),
    "claude_live_web_search_requests": ("Web search requests in active sessions", ()),
    "claude_live_web_fetch_requests": ("Web fetch requests in active sessions", ()),
    "claude_live_malformed_lines": ("Session log lines skipped as malformed", ()),
    # totals
    "claude_sessions_total": ("Total number of sessions", ()),
    "claude_messages_total": ("Total number of messages", ()),
    # today
    "claude_today_messages": ("Messages sent today", ()),
    "claude_today_sessions": ("Sessions started today", ()),
    "claude_today_tool_calls": ("Tool calls today", ()),
    "claude_today_tokens": ("Tokens used today by model", ("model",)),
    # daily (last 30 days)
    "claude_daily_messages": ("Daily message count", ("date",)),
    "claude_daily_sessions": ("Daily session count", ("date",)),
    "claude_daily_tool_calls": ("Daily tool call count", ("date",)),
    "claude_daily_tokens": ("Daily tokens by model", ("date", "model")),
    # hour distribution
    "claude_hour_sessions": ("Session count by hour of day", ("hour",)),
    "claude_exporter_info": (
        "Claude Code exporter metadata",
        ("stats_file", "claude_dir", "last_computed_date", "first_session_date", "live_sessions"),
    ),
}

# name -> (help, bucket upper bounds)
HISTOGRAMS: dict[str, tuple[str, tuple[float, ...]]] = {
    "claude_turn_duration_seconds": (
        "Turn duration in seconds in active sessions",
        (1, 2.5, 5, 10, 30, 60, 120, 300, 600, 1800),
    ),
    "claude_compaction_pre_tokens": (
        "Context size in tokens before compaction in active sessions",
        (25_000, 50_000, 100_000, 150_000, 200_000, 500_000, 1_000_000),
    ),
}


class HistogramValue(BaseModel):
    bounds: tuple[float, ...]
    counts: list[int]  # cumulative, one per bound
    count: int = 0
    total: float = 0

    @classmethod
    def from_observations(cls, bounds: tuple[float, ...], values: list[float]) -> "HistogramValue":
        return cls(
            bounds=bounds,
            counts=[sum(1 for v in values if v <= b) for b in bounds],
            count=len(values),
            total=sum(values),
        )


class MetricsSnapshot(BaseModel):
    gauges: dict[str, dict[tuple[str, ...], float]] = {}
    histograms: dict[str, HistogramValue] = {}

    def set(self, name: str, value: float, *labels: str) -> None:
        _, label_names = GAUGES[name]
        if len(labels) != len(label_names):
            raise ValueError(f"{name} takes labels {label_names}, got {labels}")
        self.gauges.setdefault(name, {})[labels] = float(value)

    def observe(self, name: str, values: list[float]) -> None:
        _, bounds = HISTOGRAMS[name]
        self.histograms[name] = HistogramValue.from_observations(bounds, values)

    def value(self, name: str, *labels: str) -> float | None:
        return self.gauges.get(name, {}).get(labels)

    def families(self) -> Iterator[Metric]:
        for name, (doc, label_names) in GAUGES.items():
            family = GaugeMetricFamily(name, doc, labels=list(label_names))
            for label_values, value in self.gauges.get(name, {}).items():
                family.add_metric(list(label_values), value)
            yield family
        for name, (doc, _) in HISTOGRAMS.items():
            hist = self.histograms.get(name)
            if hist is None:
                continue
            buckets = [(floatToGoString(b), c) for b, c in zip(hist.bounds, hist.counts)]
            buckets.append(("+Inf", hist.count))
            yield HistogramMetricFamily(name, doc, buckets=buckets, sum_value=hist.total)


def build_metrics(report: MergedReport, stats_file: str, claude_dir: str) -> MetricsSnapshot:
    snap = MetricsSnapshot()

    for model, t in report.models.items():
        snap.set("claude_model_input_tokens_total", t.input_tokens, model)
        snap.set("claude_model_output_tokens_total", t.output_tokens, model)
        snap.set("claude_model_cache_read_tokens_total", t.cache_read_tokens, model)
        snap.set("claude_model_cache_creation_tokens_total", t.cache_creation_tokens, model)
        snap.set("claude_model_cost_usd", t.cost_usd, model)

    live = report.live
    for model, lm in live.model_usage.items():
        if lm.input_tokens > 0 or lm.output_tokens > 0:
            snap.set("claude_live_input_tokens", lm.input_tokens, model)
            snap.set("claude_live_output_tokens", lm.output_tokens, model)
    snap.set("claude_live_sessions", live.session_count)
    snap.set("claude_live_messages", live.message_count)
    snap.set("claude_live_prompt_cost_usd", live.prompt_cost_usd)
    snap.set("claude_live_completion_cost_usd", live.completion_cost_usd)
    for tool, count in live.tool_calls.items():
        snap.set("claude_live_tool_calls", count, tool)
    for reason, count in live.stop_reasons.items():
        snap.set("claude_live_stop_reasons", count, reason)
    snap.set("claude_live_api_errors", live.api_errors)
    snap.set("claude_live_api_retries", live.api_retries)
    snap.set("claude_live_compactions", live.compactions)
    snap.set("claude_live_web_search_requests", live.web_search_requests)
    snap.set("claude_live_web_fetch_requests", live.web_fetch_requests)
    snap.set("claude_live_malformed_lines", live.malformed_lines)
    snap.observe("claude_turn_duration_seconds", live.turn_durations)
    snap.observe("claude_compaction_pre_tokens", live.compaction_pre_tokens)

    snap.set("claude_sessions_total", report.total_sessions)
    snap.set("claude_messages_total", report.total_messages)

    snap.set("claude_today_messages", report.today.message_count)
    snap.set("claude_today_sessions", report.today.session_count)
    snap.set("claude_today_tool_calls", report.today.tool_call_count)
    for model, tokens in report.today_tokens.items():
        snap.set("claude_today_tokens", tokens, model)

    for entry in report.daily_activity:
        snap.set("claude_daily_messages", entry.message_count, entry.date)
        snap.set("claude_daily_sessions", entry.session_count, entry.date)
        snap.set("claude_daily_tool_calls", entry.tool_call_count, entry.date)
    for entry in report.daily_model_tokens:
        for model, tokens in entry.tokens_by_model.items():
            snap.set("claude_daily_tokens", tokens, entry.date, model)

    for hour, count in report.hour_sessions.items():
        snap.set("claude_hour_sessions", count, hour)

    snap.set(
        "claude_exporter_info",
        1,
        stats_file,
        claude_dir,
        report.last_computed_date,
        report.first_session_date,
        str(live.session_count),
    )
    return snap
