import json
import logging
from pathlib import Path

from .session import CalibrationSession
from .types import SessionConfig, SessionError

logger = logging.getLogger(__name__)


def save_session(session: CalibrationSession, path: str | Path) -> None:
    """Persist calibration state, homography and correspondences as JSON."""
    Path(path).write_text(json.dumps(session.to_dict(), indent=2), encoding="utf-8")
    logger.debug("Calibration session saved to %s (revision=%d)", path, session.revision)


def load_session(path: str | Path, config: SessionConfig | None = None) -> CalibrationSession:
    """Load a session saved by save_session; only the homography is re-inverted."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SessionError(f"Calibration file {path} is not valid JSON: {exc}") from exc
    return CalibrationSession.from_dict(data, config)
