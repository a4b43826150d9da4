from .corners import (
    DEFAULT_CORNERS,
    SNAP_LINES_X,
    SNAP_LINES_Z,
    CornerManipulator,
    bilinear_point,
    is_self_intersecting,
    snap_to_line,
)
from .types import CornerConfig, Handle, PitchCorners, ScenePoint, WarpError

__all__ = [
    # types
    "ScenePoint",
    "PitchCorners",
    "Handle",
    "CornerConfig",
    "WarpError",
    # corners
    "DEFAULT_CORNERS",
    "SNAP_LINES_X",
    "SNAP_LINES_Z",
    "CornerManipulator",
    "snap_to_line",
    "bilinear_point",
    "is_self_intersecting",
]
