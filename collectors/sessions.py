import logging
from pathlib import Path
from typing import BinaryIO, Iterator

from collectors.records import parse_line
from models import (
    LineResult,
    LiveModelUsage,
    LiveResult,
    Malformed,
    SessionUsage,
    SystemEvent,
    Unrecognized,
    UsageEvent,
)

log = logging.getLogger(__name__)

SESSION_GLOB = "*/*.jsonl"
MAX_LINE_BYTES = 10 * 1024 * 1024
_DRAIN_CHUNK = 1024 * 1024


def iter_lines(handle: BinaryIO, max_bytes: int = MAX_LINE_BYTES) -> Iterator[bytes | None]:
    """Yield raw lines; None stands in for an over-long line, which is drained."""
    while True:
        line = handle.readline(max_bytes + 1)
        if not line:
            return
        if len(line) > max_bytes and not line.endswith(b"\n"):
            while line and not line.endswith(b"\n"):
                line = handle.readline(_DRAIN_CHUNK)
            yield None
            continue
        yield line


def _add(counts: dict[str, int], key: str) -> None:
    counts[key] = counts.get(key, 0) + 1


def _apply_usage(result: LiveResult, session: SessionUsage, event: UsageEvent) -> None:
    if event.input_tokens == 0 and event.output_tokens == 0:
        return

    usage = result.model_usage.setdefault(event.model, LiveModelUsage())
    usage.input_tokens += event.input_tokens
    usage.output_tokens += event.output_tokens
    usage.cache_read_tokens += event.cache_read_tokens
    usage.cache_creation_tokens += event.cache_creation_tokens
    if event.cost_usd > 0:
        usage.cost_usd += event.cost_usd
        result.prompt_cost_usd += event.prompt_cost_usd
        result.completion_cost_usd += event.completion_cost_usd

    result.message_count += 1
    session.message_count += 1
    session.input_tokens += event.input_tokens
    session.output_tokens += event.output_tokens

    for tool in event.tools:
        _add(result.tool_calls, tool)
        session.tool_call_count += 1
    if event.stop_reason:
        _add(result.stop_reasons, event.stop_reason)
    result.web_search_requests += event.web_search_requests
    result.web_fetch_requests += event.web_fetch_requests


def _apply_system(result: LiveResult, event: SystemEvent) -> None:
    if event.subtype == "turn_duration":
        result.turn_durations.append(event.duration_ms / 1000)
    elif event.subtype == "api_error":
        result.api_errors += 1
        if event.retry_attempt > 0:
            result.api_retries += 1
    elif event.subtype == "compact_boundary":
        result.compactions += 1
        if event.pre_tokens is not None:
            result.compaction_pre_tokens.append(event.pre_tokens)


def apply_line(result: LiveResult, session: SessionUsage, parsed: LineResult) -> None:
    if isinstance(parsed, UsageEvent):
        _apply_usage(result, session, parsed)
    elif isinstance(parsed, SystemEvent):
        _apply_system(result, parsed)
    elif isinstance(parsed, Unrecognized):
        result.unrecognized_lines += 1
    elif isinstance(parsed, Malformed):
        result.malformed_lines += 1


def scan_file(path: Path, result: LiveResult, max_line_bytes: int = MAX_LINE_BYTES) -> None:
    session = SessionUsage(session_id=f"{path.parent.name}/{path.stem}")
    try:
        with path.open("rb") as handle:
            result.files_scanned += 1
            for lineno, line in enumerate(iter_lines(handle, max_line_bytes), start=1):
                if line is None:
                    result.malformed_lines += 1
                    log.debug("%s:%d: line over %d bytes skipped", path, lineno, max_line_bytes)
                    continue
                if not line.strip():
                    continue
                parsed = parse_line(line)
                if isinstance(parsed, Malformed):
                    log.debug("%s:%d: %s", path, lineno, parsed.reason)
                apply_line(result, session, parsed)
    except OSError as exc:
        result.unreadable_files += 1
        log.warning("skipping unreadable session log %s: %s", path, exc)

    # only sessions with at least one qualifying usage event are active
    if session.message_count:
        result.session_count += 1
        result.sessions[session.session_id] = session


def scan_sessions(
    projects_dir: Path, cutoff: float, max_line_bytes: int = MAX_LINE_BYTES
) -> LiveResult:
    """LiveResult from session logs modified strictly after ``cutoff``."""
    result = LiveResult()
    if not projects_dir.is_dir():
        log.debug("session log root %s does not exist", projects_dir)
        return result

    for path in sorted(projects_dir.glob(SESSION_GLOB)):
        try:
            if not path.is_file() or path.stat().st_mtime <= cutoff:
                continue
        except OSError:
            continue
        scan_file(path, result, max_line_bytes)

    if result.malformed_lines:
        log.info("skipped %d malformed session log line(s)", result.malformed_lines)
    return result
