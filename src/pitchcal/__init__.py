from .geometry import (
    DEFAULT_CALIBRATION,
    CalibrationError,
    CalibrationState,
    CoordinateTransformer,
    DegenerateConfigurationError,
    GeometryError,
    Homography,
    InsufficientCorrespondencesError,
    PitchCoord,
    SingularMatrixError,
    TransformSource,
    VideoCoord,
    Viewport,
    estimate_homography,
)
from .session import CalibrationSession, SessionConfig

__all__ = [
    "PitchCoord",
    "VideoCoord",
    "Viewport",
    "CalibrationState",
    "DEFAULT_CALIBRATION",
    "Homography",
    "TransformSource",
    "GeometryError",
    "SingularMatrixError",
    "CalibrationError",
    "InsufficientCorrespondencesError",
    "DegenerateConfigurationError",
    "estimate_homography",
    "CoordinateTransformer",
    "CalibrationSession",
    "SessionConfig",
]
