import logging
from datetime import date, datetime, timezone

from collectors.records import normalize_model
from models import (
    DailyActivity,
    DailyModelTokens,
    HistoricalSnapshot,
    LiveModelUsage,
    LiveResult,
    MergedReport,
    ModelTotals,
)

log = logging.getLogger(__name__)

TREND_WINDOW = 30


def pad_hour(hour: str) -> str:
    """``"5"`` and ``"05"`` both become ``"05"``."""
    return hour.strip().zfill(2)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def normalize_tokens(tokens_by_model: dict[str, float]) -> dict[str, float]:
    out: dict[str, float] = {}
    for raw, tokens in tokens_by_model.items():
        model = normalize_model(raw)
        out[model] = out.get(model, 0) + tokens
    return out


def historical_models(snapshot: HistoricalSnapshot) -> dict[str, ModelTotals]:
    totals: dict[str, ModelTotals] = {}
    for raw, usage in snapshot.model_usage.items():
        t = totals.setdefault(normalize_model(raw), ModelTotals())
        t.input_tokens += usage.input_tokens
        t.output_tokens += usage.output_tokens
        t.cache_read_tokens += usage.cache_read_tokens
        t.cache_creation_tokens += usage.cache_creation_tokens
        t.cost_usd += usage.cost_usd
    return totals


def _merge_models(snapshot: HistoricalSnapshot, live: LiveResult) -> dict[str, ModelTotals]:
    base = historical_models(snapshot)
    merged: dict[str, ModelTotals] = {}
    for model in sorted(set(base) | set(live.model_usage)):
        hist = base.get(model, ModelTotals())
        lm = live.model_usage.get(model, LiveModelUsage())
        merged[model] = ModelTotals(
            input_tokens=hist.input_tokens + lm.input_tokens,
            output_tokens=hist.output_tokens + lm.output_tokens,
            cache_read_tokens=hist.cache_read_tokens + lm.cache_read_tokens,
            cache_creation_tokens=hist.cache_creation_tokens + lm.cache_creation_tokens,
            cost_usd=hist.cost_usd + lm.cost_usd,
        )
    return merged


def _today_activity(snapshot: HistoricalSnapshot, live: LiveResult, day: str) -> DailyActivity:
    hist = next((e for e in snapshot.daily_activity if e.date == day), None)
    if hist is None:
        hist = DailyActivity(date=day)
    return DailyActivity(
        date=day,
        message_count=hist.message_count + live.message_count,
        session_count=hist.session_count + live.session_count,
        tool_call_count=hist.tool_call_count + live.tool_call_count,
    )


def _today_tokens(snapshot: HistoricalSnapshot, live: LiveResult, day: str) -> dict[str, float]:
    hist = next((e for e in snapshot.daily_model_tokens if e.date == day), None)
    base = normalize_tokens(hist.tokens_by_model) if hist else {}
    tokens: dict[str, float] = {}
    for model in sorted(set(base) | set(live.model_usage)):
        lm = live.model_usage.get(model)
        tokens[model] = base.get(model, 0) + (lm.input_tokens if lm else 0)
    return tokens


def merge(
    snapshot: HistoricalSnapshot, live: LiveResult, today: date | None = None
) -> MergedReport:
    """Combine ``snapshot`` and ``live``; ``today`` defaults to the current UTC date."""
    day = (today or utc_today()).isoformat()
    if snapshot.last_computed_date == day:
        log.debug(
            "snapshot was computed today (%s); live figures may overlap its today bucket", day
        )

    hour_sessions: dict[str, float] = {}
    for hour, count in snapshot.hour_counts.items():
        key = pad_hour(hour)
        hour_sessions[key] = hour_sessions.get(key, 0) + count

    return MergedReport(
        models=_merge_models(snapshot, live),
        live=live,
        total_sessions=snapshot.total_sessions + live.session_count,
        total_messages=snapshot.total_messages + live.message_count,
        today=_today_activity(snapshot, live, day),
        today_tokens=_today_tokens(snapshot, live, day),
        daily_activity=[e.model_copy() for e in snapshot.daily_activity[-TREND_WINDOW:]],
        daily_model_tokens=[
            DailyModelTokens(date=e.date, tokens_by_model=normalize_tokens(e.tokens_by_model))
            for e in snapshot.daily_model_tokens[-TREND_WINDOW:]
        ],
        hour_sessions=dict(sorted(hour_sessions.items())),
        last_computed_date=snapshot.last_computed_date,
        first_session_date=snapshot.first_session_date,
    )
