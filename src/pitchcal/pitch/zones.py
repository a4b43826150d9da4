import math
from typing import Literal

from pitchcal.geometry.types import PitchCoord

from .types import STANDARD_PITCH, PitchDimensions, PitchError

GoalSide = Literal["left", "right"]

_LENGTH_THIRDS = ("Defensive", "Middle", "Attacking")
_WIDTH_THIRDS = ("Left", "Central", "Right")


def _third(offset_m: float, extent_m: float) -> int:
    return min(2, max(0, int(offset_m // (extent_m / 3.0))))


def pitch_zone(coord: PitchCoord, dims: PitchDimensions = STANDARD_PITCH) -> str:
    """
    Tactical zone label such as "Middle Central".

    Length thirds are counted from the left goal line, width thirds from the
    top touchline. Points off the pitch fall into the nearest outer zone.
    """
    along = _third(coord.x_m + dims.half_length_m, dims.length_m)
    across = _third(coord.y_m + dims.half_width_m, dims.width_m)
    return f"{_LENGTH_THIRDS[along]} {_WIDTH_THIRDS[across]}"


def is_within_pitch(coord: PitchCoord, dims: PitchDimensions = STANDARD_PITCH) -> bool:
    return abs(coord.x_m) <= dims.half_length_m and abs(coord.y_m) <= dims.half_width_m


def distance_from_goal(
    coord: PitchCoord,
    side: GoalSide = "left",
    dims: PitchDimensions = STANDARD_PITCH,
) -> float:
    """Distance in meters to the center of the chosen goal line."""
    if side == "left":
        goal_x = -dims.half_length_m
    elif side == "right":
        goal_x = dims.half_length_m
    else:
        raise PitchError(f"Unknown goal side: {side!r}")
    return math.hypot(coord.x_m - goal_x, coord.y_m)


def distance_between(a: PitchCoord, b: PitchCoord) -> float:
    return math.hypot(a.x_m - b.x_m, a.y_m - b.y_m)
