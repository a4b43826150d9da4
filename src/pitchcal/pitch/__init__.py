from .markings import pitch_line_segments, project_markings
from .reference import CORNER_IDS, POINT_CATEGORIES, REFERENCE_POINTS, get_reference_point
from .types import STANDARD_PITCH, LineSegment, PitchDimensions, PitchError, ReferencePoint
from .zones import distance_between, distance_from_goal, is_within_pitch, pitch_zone

__all__ = [
    # types
    "PitchDimensions",
    "STANDARD_PITCH",
    "ReferencePoint",
    "LineSegment",
    "PitchError",
    # reference
    "REFERENCE_POINTS",
    "POINT_CATEGORIES",
    "CORNER_IDS",
    "get_reference_point",
    # zones
    "pitch_zone",
    "is_within_pitch",
    "distance_from_goal",
    "distance_between",
    # markings
    "pitch_line_segments",
    "project_markings",
]
