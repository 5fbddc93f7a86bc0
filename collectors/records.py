import json
import math
from typing import Any

from collectors.pricing import price_shares, split_cost
from models import LineResult, Malformed, SystemEvent, Unrecognized, UsageEvent

VENDOR_PREFIX = "anthropic/"
UNKNOWN_MODEL = "unknown"

# Where the message carrying ``usage`` may live, tried in order.
MESSAGE_PATHS: tuple[tuple[str, ...], ...] = (
    ("message",),
    ("data", "message", "message"),
    ("data", "message"),
)

SYSTEM_SUBTYPES = frozenset({"turn_duration", "api_error", "compact_boundary"})


class FieldError(ValueError):
    pass


def normalize_model(raw: str) -> str:
    model = (raw or "").strip().removeprefix(VENDOR_PREFIX)
    return model or UNKNOWN_MODEL


def _number(value: Any, field: str = "") -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise FieldError(f"non-numeric {field or 'value'}: {value!r}")
    number = float(value)
    if not math.isfinite(number):
        raise FieldError(f"non-finite {field or 'value'}: {value!r}")
    return number


def _dig(record: dict[str, Any], path: tuple[str, ...]) -> Any:
    node: Any = record
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def find_message(record: dict[str, Any]) -> dict[str, Any] | None:
    for path in MESSAGE_PATHS:
        node = _dig(record, path)
        if isinstance(node, dict) and isinstance(node.get("usage"), dict):
            return node
    return None


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _tool_names(content: Any) -> tuple[str, ...]:
    if not isinstance(content, list):
        return ()
    return tuple(
        block["name"]
        for block in content
        if isinstance(block, dict)
        and block.get("type") == "tool_use"
        and isinstance(block.get("name"), str)
        and block["name"]
    )


def _reported_cost(record: dict[str, Any], message: dict[str, Any]) -> float | None:
    for source, key in ((record, "costUSD"), (message, "costUSD"), (message, "cost_usd")):
        if source.get(key) is not None:
            return _number(source[key], key)
    return None


def _parse_usage(record: dict[str, Any], message: dict[str, Any]) -> UsageEvent:
    usage = message["usage"]
    inp = _number(usage.get("input_tokens"), "input_tokens")
    out = _number(usage.get("output_tokens"), "output_tokens")
    cache_read = _number(usage.get("cache_read_input_tokens"), "cache_read_input_tokens")
    cache_create = _number(
        usage.get("cache_creation_input_tokens"), "cache_creation_input_tokens"
    )
    server = usage.get("server_tool_use")
    if not isinstance(server, dict):
        server = {}

    raw_model = _text(message.get("model"))
    model = normalize_model(raw_model)

    shares = price_shares(model, inp, out, cache_read, cache_create)
    reported = _reported_cost(record, message)
    if reported is None:
        prompt, completion = shares or (0.0, 0.0)
        cost = prompt + completion
    else:
        cost = reported
        weights = shares or (inp + cache_read + cache_create, out)
        prompt, completion = split_cost(cost, *weights)
    if cost <= 0:
        cost = prompt = completion = 0.0

    return UsageEvent(
        model=model,
        raw_model=raw_model,
        role=_text(message.get("role")),
        session_id=_text(record.get("sessionId")),
        timestamp=_text(record.get("timestamp")),
        stop_reason=_text(message.get("stop_reason")),
        tools=_tool_names(message.get("content")),
        input_tokens=inp,
        output_tokens=out,
        cache_read_tokens=cache_read,
        cache_creation_tokens=cache_create,
        web_search_requests=int(_number(server.get("web_search_requests"), "web_search_requests")),
        web_fetch_requests=int(_number(server.get("web_fetch_requests"), "web_fetch_requests")),
        cost_usd=cost,
        prompt_cost_usd=prompt,
        completion_cost_usd=completion,
    )


def _parse_system(record: dict[str, Any]) -> LineResult:
    subtype = _text(record.get("subtype"))
    if subtype not in SYSTEM_SUBTYPES:
        return Unrecognized(kind=f"system:{subtype}")

    event = {
        "subtype": subtype,
        "session_id": _text(record.get("sessionId")),
        "timestamp": _text(record.get("timestamp")),
    }
    if subtype == "turn_duration":
        event["duration_ms"] = _number(record.get("durationMs"), "durationMs")
    elif subtype == "api_error":
        event["retry_attempt"] = int(_number(record.get("retryAttempt"), "retryAttempt"))
    else:
        meta = record.get("compactMetadata")
        pre = meta.get("preTokens") if isinstance(meta, dict) else None
        if pre is not None:
            event["pre_tokens"] = _number(pre, "preTokens")
    return SystemEvent(**event)


def parse_line(line: bytes | str) -> LineResult:
    """Classify one JSONL line. Same input always yields an equal result."""
    try:
        record = json.loads(line)
    except json.JSONDecodeError as exc:
        return Malformed(reason=f"invalid json: {exc.msg}")
    except (UnicodeDecodeError, RecursionError) as exc:
        return Malformed(reason=f"undecodable line: {type(exc).__name__}")

    if not isinstance(record, dict):
        return Malformed(reason=f"expected object, got {type(record).__name__}")

    try:
        if record.get("type") == "system":
            return _parse_system(record)

        message = find_message(record)
        if message is None:
            return Unrecognized(kind=_text(record.get("type")))
        return _parse_usage(record, message)
    except (FieldError, OverflowError, TypeError, ValueError) as exc:
        return Malformed(reason=str(exc))
