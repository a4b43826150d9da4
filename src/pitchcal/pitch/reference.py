"""
Built-in catalogue of pitch landmarks used as calibration targets.

Coordinates are meters from the center spot: x grows towards the right goal,
y grows towards the bottom touchline.
"""

from types import MappingProxyType

from pitchcal.geometry.types import PitchCoord

from .types import STANDARD_PITCH, PitchError, ReferencePoint

_BOX_X = STANDARD_PITCH.half_length_m - STANDARD_PITCH.penalty_area_depth_m
_ARC_Y = STANDARD_PITCH.penalty_arc_half_chord_m

_POINTS: list[tuple[str, str, float, float]] = [
    # corners
    ("corner_tl", "Top-Left Corner", -52.5, -34.0),
    ("corner_tr", "Top-Right Corner", 52.5, -34.0),
    ("corner_bl", "Bottom-Left Corner", -52.5, 34.0),
    ("corner_br", "Bottom-Right Corner", 52.5, 34.0),
    # center
    ("center", "Center Spot", 0.0, 0.0),
    ("center_left", "Center Circle Left", -9.15, 0.0),
    ("center_right", "Center Circle Right", 9.15, 0.0),
    ("center_top", "Center Circle Top", 0.0, -9.15),
    ("center_bottom", "Center Circle Bottom", 0.0, 9.15),
    ("halfway_top", "Halfway Line Top", 0.0, -34.0),
    ("halfway_bottom", "Halfway Line Bottom", 0.0, 34.0),
    # penalty spots
    ("penalty_left", "Left Penalty Spot", -41.5, 0.0),
    ("penalty_right", "Right Penalty Spot", 41.5, 0.0),
    # penalty boxes
    ("penalty_left_tl", "Left Penalty Box TL", -52.5, -20.16),
    ("penalty_left_tr", "Left Penalty Box TR", -36.0, -20.16),
    ("penalty_left_bl", "Left Penalty Box BL", -52.5, 20.16),
    ("penalty_left_br", "Left Penalty Box BR", -36.0, 20.16),
    ("penalty_right_tl", "Right Penalty Box TL", 36.0, -20.16),
    ("penalty_right_tr", "Right Penalty Box TR", 52.5, -20.16),
    ("penalty_right_bl", "Right Penalty Box BL", 36.0, 20.16),
    ("penalty_right_br", "Right Penalty Box BR", 52.5, 20.16),
    # goal areas
    ("goalbox_left_tl", "Left 6-Yard Box TL", -52.5, -9.16),
    ("goalbox_left_tr", "Left 6-Yard Box TR", -47.0, -9.16),
    ("goalbox_left_bl", "Left 6-Yard Box BL", -52.5, 9.16),
    ("goalbox_left_br", "Left 6-Yard Box BR", -47.0, 9.16),
    ("goalbox_right_tl", "Right 6-Yard Box TL", 47.0, -9.16),
    ("goalbox_right_tr", "Right 6-Yard Box TR", 52.5, -9.16),
    ("goalbox_right_bl", "Right 6-Yard Box BL", 47.0, 9.16),
    ("goalbox_right_br", "Right 6-Yard Box BR", 52.5, 9.16),
    # goal posts
    ("goal_left_top", "Left Goal Post Top", -52.5, -3.66),
    ("goal_left_bottom", "Left Goal Post Bottom", -52.5, 3.66),
    ("goal_right_top", "Right Goal Post Top", 52.5, -3.66),
    ("goal_right_bottom", "Right Goal Post Bottom", 52.5, 3.66),
    # penalty arc meets the box line
    ("arc_left_top", "Left Arc Top", -_BOX_X, -_ARC_Y),
    ("arc_left_bottom", "Left Arc Bottom", -_BOX_X, _ARC_Y),
    ("arc_right_top", "Right Arc Top", _BOX_X, -_ARC_Y),
    ("arc_right_bottom", "Right Arc Bottom", _BOX_X, _ARC_Y),
]

REFERENCE_POINTS: MappingProxyType[str, ReferencePoint] = MappingProxyType(
    {
        point_id: ReferencePoint(id=point_id, label=label, pitch=PitchCoord(x_m=x_m, y_m=y_m))
        for point_id, label, x_m, y_m in _POINTS
    }
)

# Corner calibration order: top-left, top-right, bottom-left, bottom-right
CORNER_IDS: tuple[str, ...] = ("corner_tl", "corner_tr", "corner_bl", "corner_br")

POINT_CATEGORIES: MappingProxyType[str, tuple[str, ...]] = MappingProxyType(
    {
        "Corners": CORNER_IDS,
        "Center": (
            "center",
            "center_left",
            "center_right",
            "center_top",
            "center_bottom",
            "halfway_top",
            "halfway_bottom",
        ),
        "Penalty Spots": ("penalty_left", "penalty_right"),
        "Left Penalty Box": (
            "penalty_left_tl",
            "penalty_left_tr",
            "penalty_left_bl",
            "penalty_left_br",
        ),
        "Right Penalty Box": (
            "penalty_right_tl",
            "penalty_right_tr",
            "penalty_right_bl",
            "penalty_right_br",
        ),
        "Left Goal Box": (
            "goalbox_left_tl",
            "goalbox_left_tr",
            "goalbox_left_bl",
            "goalbox_left_br",
        ),
        "Right Goal Box": (
            "goalbox_right_tl",
            "goalbox_right_tr",
            "goalbox_right_bl",
            "goalbox_right_br",
        ),
        "Goals": ("goal_left_top", "goal_left_bottom", "goal_right_top", "goal_right_bottom"),
        "Penalty Arcs": ("arc_left_top", "arc_left_bottom", "arc_right_top", "arc_right_bottom"),
    }
)


def get_reference_point(point_id: str) -> ReferencePoint:
    try:
        return REFERENCE_POINTS[point_id]
    except KeyError as exc:
        raise PitchError(f"Unknown reference point: {point_id!r}") from exc
