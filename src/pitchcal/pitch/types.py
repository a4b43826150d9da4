import math
from dataclasses import dataclass

from pitchcal.geometry.types import PitchCoord


@dataclass(frozen=True, slots=True)
class PitchDimensions:
    """Marking dimensions in meters (defaults follow the standard 105 x 68 pitch)."""

    length_m: float = 105.0
    width_m: float = 68.0
    penalty_area_depth_m: float = 16.5
    penalty_area_width_m: float = 40.32
    goal_area_depth_m: float = 5.5
    goal_area_width_m: float = 18.32
    goal_width_m: float = 7.32
    penalty_spot_distance_m: float = 11.0
    center_circle_radius_m: float = 9.15

    @property
    def half_length_m(self) -> float:
        return self.length_m / 2.0

    @property
    def half_width_m(self) -> float:
        return self.width_m / 2.0

    @property
    def penalty_arc_half_chord_m(self) -> float:
        """Distance off the long axis where the penalty arc meets the penalty box line."""
        gap = self.penalty_area_depth_m - self.penalty_spot_distance_m
        return math.sqrt(max(self.center_circle_radius_m**2 - gap**2, 0.0))


STANDARD_PITCH = PitchDimensions()


@dataclass(frozen=True, slots=True)
class ReferencePoint:
    id: str
    label: str
    pitch: PitchCoord


@dataclass(frozen=True, slots=True)
class LineSegment:
    start: PitchCoord
    end: PitchCoord


class PitchError(RuntimeError):
    pass
