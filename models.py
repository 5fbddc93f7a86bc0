from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SnapshotModel(BaseModel):
    """Base for records read from the stats snapshot (camelCase on disk)."""

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _null_is_default(cls, data: Any) -> Any:
        # null on disk means the field was never written
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class ModelUsage(SnapshotModel):
    input_tokens: float = Field(0, alias="inputTokens")
    output_tokens: float = Field(0, alias="outputTokens")
    cache_read_tokens: float = Field(0, alias="cacheReadInputTokens")
    cache_creation_tokens: float = Field(0, alias="cacheCreationInputTokens")
    cost_usd: float = Field(0, alias="costUSD")


class DailyActivity(SnapshotModel):
    date: str
    message_count: int = Field(0, alias="messageCount")
    session_count: int = Field(0, alias="sessionCount")
    tool_call_count: int = Field(0, alias="toolCallCount")


class DailyModelTokens(SnapshotModel):
    date: str
    tokens_by_model: dict[str, float] = Field({}, alias="tokensByModel")


class HistoricalSnapshot(SnapshotModel):
    model_usage: dict[str, ModelUsage] = Field({}, alias="modelUsage")
    total_sessions: int = Field(0, alias="totalSessions")
    total_messages: int = Field(0, alias="totalMessages")
    daily_activity: list[DailyActivity] = Field([], alias="dailyActivity")
    daily_model_tokens: list[DailyModelTokens] = Field([], alias="dailyModelTokens")
    hour_counts: dict[str, float] = Field({}, alias="hourCounts")
    last_computed_date: str = Field("", alias="lastComputedDate")
    first_session_date: str = Field("", alias="firstSessionDate")


# --- canonical line results ---


class UsageEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    model: str  # normalized
    raw_model: str = ""
    role: str = ""
    session_id: str = ""
    timestamp: str = ""
    stop_reason: str = ""
    tools: tuple[str, ...] = ()
    input_tokens: float = 0
    output_tokens: float = 0
    cache_read_tokens: float = 0
    cache_creation_tokens: float = 0
    web_search_requests: int = 0
    web_fetch_requests: int = 0
    cost_usd: float = 0
    prompt_cost_usd: float = 0
    completion_cost_usd: float = 0


class SystemEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    subtype: str  # turn_duration | api_error | compact_boundary
    session_id: str = ""
    timestamp: str = ""
    duration_ms: float = 0
    retry_attempt: int = 0
    pre_tokens: float | None = None


class Unrecognized(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: str = ""


class Malformed(BaseModel):
    model_config = ConfigDict(frozen=True)

    reason: str


LineResult = UsageEvent | SystemEvent | Unrecognized | Malformed


# --- live scan ---


class LiveModelUsage(BaseModel):
    input_tokens: float = 0
    output_tokens: float = 0
    cache_read_tokens: float = 0
    cache_creation_tokens: float = 0
    cost_usd: float = 0


class SessionUsage(BaseModel):
    session_id: str
    message_count: int = 0
    input_tokens: float = 0
    output_tokens: float = 0
    tool_call_count: int = 0


class LiveResult(BaseModel):
    model_usage: dict[str, LiveModelUsage] = {}
    sessions: dict[str, SessionUsage] = {}
    session_count: int = 0
    message_count: int = 0
    prompt_cost_usd: float = 0
    completion_cost_usd: float = 0
    turn_durations: list[float] = []  # seconds
    tool_calls: dict[str, int] = {}
    stop_reasons: dict[str, int] = {}
    api_errors: int = 0
    api_retries: int = 0
    compactions: int = 0
    compaction_pre_tokens: list[float] = []
    web_search_requests: int = 0
    web_fetch_requests: int = 0
    files_scanned: int = 0
    unreadable_files: int = 0
    malformed_lines: int = 0
    unrecognized_lines: int = 0

    @property
    def tool_call_count(self) -> int:
        return sum(self.tool_calls.values())


# --- merged report ---


class ModelTotals(BaseModel):
    input_tokens: float = 0
    output_tokens: float = 0
    cache_read_tokens: float = 0
    cache_creation_tokens: float = 0
    cost_usd: float = 0


class MergedReport(BaseModel):
    models: dict[str, ModelTotals] = {}
    live: LiveResult = LiveResult()
    total_sessions: int = 0
    total_messages: int = 0
    today: DailyActivity
    today_tokens: dict[str, float] = {}
    daily_activity: list[DailyActivity] = []
    daily_model_tokens: list[DailyModelTokens] = []
    hour_sessions: dict[str, float] = {}
    last_computed_date: str = ""
    first_session_date: str = ""
