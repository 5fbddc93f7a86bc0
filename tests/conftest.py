import json
import os
from pathlib import Path

import pytest

T0 = 1_700_000_000.0


@pytest.fixture
def claude_dir(tmp_path: Path) -> Path:
    root = tmp_path / "claude"
    (root / "projects").mkdir(parents=True)
    return root


@pytest.fixture
def write_snapshot(claude_dir: Path):
    def _write(data: dict | str, mtime: float = T0) -> Path:
        path = claude_dir / "stats-cache.json"
        path.write_text(data if isinstance(data, str) else json.dumps(data))
        os.utime(path, (mtime, mtime))
        return path

    return _write


@pytest.fixture
def write_log(claude_dir: Path):
    def _write(records: list, mtime: float, project: str = "proj", name: str = "session") -> Path:
        folder = claude_dir / "projects" / project
        folder.mkdir(parents=True, exist_ok=True)
        path = folder / f"{name}.jsonl"
        lines = [r if isinstance(r, str) else json.dumps(r) for r in records]
        path.write_text("\n".join(lines) + "\n")
        os.utime(path, (mtime, mtime))
        return path

    return _write


@pytest.fixture
def usage():
    def _usage(model: str = "claude-x", input_tokens: int = 10, output_tokens: int = 5, **extra) -> dict:
        message = {
            "model": model,
            "role": "assistant",
            "usage": {"input_tokens": input_tokens, "output_tokens": output_tokens},
        }
        for key in ("stop_reason", "content"):
            if key in extra:
                message[key] = extra.pop(key)
        message["usage"].update(extra.pop("usage_extra", {}))
        return {"type": "assistant", "sessionId": "s1", "message": message, **extra}

    return _usage
