from .persistence import load_session, save_session
from .presets import BUILTIN_PRESETS, PresetStore, UserPreset, get_builtin_preset
from .session import CalibrationSession
from .types import (
    CalibrationOutcome,
    CalibrationPoint,
    SessionConfig,
    SessionError,
    SessionPhase,
)

__all__ = [
    # types
    "SessionPhase",
    "CalibrationPoint",
    "CalibrationOutcome",
    "SessionConfig",
    "SessionError",
    # session
    "CalibrationSession",
    # presets
    "BUILTIN_PRESETS",
    "UserPreset",
    "PresetStore",
    "get_builtin_preset",
    # persistence
    "save_session",
    "load_session",
]
