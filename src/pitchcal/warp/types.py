from dataclasses import dataclass
from enum import Enum

import numpy as np
from jaxtyping import Float


@dataclass(frozen=True, slots=True)
class ScenePoint:
    """
    Point on the rendered pitch mesh (scene x/z plane).

    Deliberately distinct from PitchCoord: warped mesh geometry is visual only
    and must never be fed to the metric transform.
    """

    x: float
    z: float


@dataclass(frozen=True, slots=True)
class PitchCorners:
    top_left: ScenePoint
    top_right: ScenePoint
    bottom_left: ScenePoint
    bottom_right: ScenePoint

    def as_array(self) -> Float[np.ndarray, "4 2"]:
        """Corners as rows in TL, TR, BL, BR order."""
        return np.array(
            [
                [self.top_left.x, self.top_left.z],
                [self.top_right.x, self.top_right.z],
                [self.bottom_left.x, self.bottom_left.z],
                [self.bottom_right.x, self.bottom_right.z],
            ],
            dtype=float,
        )

    @property
    def centroid(self) -> ScenePoint:
        cx, cz = self.as_array().mean(axis=0)
        return ScenePoint(x=float(cx), z=float(cz))


class Handle(Enum):
    TOP_LEFT = "top_left"
    TOP_RIGHT = "top_right"
    BOTTOM_LEFT = "bottom_left"
    BOTTOM_RIGHT = "bottom_right"
    TOP = "top"
    BOTTOM = "bottom"
    LEFT = "left"
    RIGHT = "right"
    CENTER = "center"


@dataclass(slots=True)
class CornerConfig:
    # Bounding region corners are clamped into (scene units)
    min_x: float = -120.0
    max_x: float = 120.0
    min_z: float = -90.0
    max_z: float = 90.0
    snap_enabled: bool = False
    snap_threshold: float = 3.0

    def validate(self) -> None:
        if self.min_x >= self.max_x or self.min_z >= self.max_z:
            raise WarpError("Corner bounds must satisfy min < max on both axes")
        if self.snap_threshold < 0:
            raise WarpError("snap_threshold cannot be negative")


class WarpError(RuntimeError):
    pass
