import logging
from pathlib import Path

from pydantic import ValidationError

from models import HistoricalSnapshot

log = logging.getLogger(__name__)


class SnapshotError(Exception):
    """The stats snapshot could not be read or parsed."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


def load_snapshot(path: Path) -> tuple[HistoricalSnapshot, float]:
    """Return the snapshot and its mtime, the cutoff for rescanning session logs."""
    try:
        mtime = path.stat().st_mtime
        raw = path.read_bytes()
    except OSError as exc:
        raise SnapshotError(path, f"unreadable: {exc.strerror or exc}") from exc

    try:
        snapshot = HistoricalSnapshot.model_validate_json(raw)
    except ValidationError as exc:
        # model_validate_json reports bad JSON and bad shapes alike
        first = exc.errors()[0]
        raise SnapshotError(path, f"malformed: {first['msg']}") from exc

    log.debug(
        "loaded snapshot %s (lastComputedDate=%s, %d models, %d days)",
        path, snapshot.last_computed_date, len(snapshot.model_usage), len(snapshot.daily_activity),
    )
    return snapshot, mtime
