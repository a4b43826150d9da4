import math

import numpy as np
from jaxtyping import Float

from pitchcal.geometry.transformer import CoordinateTransformer
from pitchcal.geometry.types import PitchCoord

from .types import STANDARD_PITCH, LineSegment, PitchDimensions, PitchError


def _polyline(points: list[tuple[float, float]]) -> list[LineSegment]:
    return [
        LineSegment(start=PitchCoord(*a), end=PitchCoord(*b))
        for a, b in zip(points[:-1], points[1:])
    ]


def _arc(
    cx: float,
    cy: float,
    radius: float,
    start_rad: float,
    end_rad: float,
    segments: int,
) -> list[LineSegment]:
    angles = np.linspace(start_rad, end_rad, segments + 1)
    return _polyline([(cx + radius * math.cos(a), cy + radius * math.sin(a)) for a in angles])


def pitch_line_segments(
    dims: PitchDimensions = STANDARD_PITCH,
    circle_segments: int = 32,
) -> list[LineSegment]:
    """
    Straight segments approximating every pitch marking:
    outline, halfway line, penalty and goal areas, center circle, penalty arcs.
    """
    hl, hw = dims.half_length_m, dims.half_width_m
    segments = _polyline([(-hl, -hw), (hl, -hw), (hl, hw), (-hl, hw), (-hl, -hw)])
    segments.extend(_polyline([(0.0, -hw), (0.0, hw)]))

    for sign in (-1.0, 1.0):
        goal_line = sign * hl
        for depth, width in (
            (dims.penalty_area_depth_m, dims.penalty_area_width_m),
            (dims.goal_area_depth_m, dims.goal_area_width_m),
        ):
            edge = goal_line - sign * depth
            segments.extend(
                _polyline(
                    [
                        (goal_line, -width / 2.0),
                        (edge, -width / 2.0),
                        (edge, width / 2.0),
                        (goal_line, width / 2.0),
                    ]
                )
            )

        # Penalty arc: the part of the spot-centered circle outside the box
        spot_x = goal_line - sign * dims.penalty_spot_distance_m
        gap = dims.penalty_area_depth_m - dims.penalty_spot_distance_m
        if gap < dims.center_circle_radius_m:
            half_angle = math.acos(gap / dims.center_circle_radius_m)
            facing = 0.0 if sign < 0 else math.pi
            segments.extend(
                _arc(
                    spot_x,
                    0.0,
                    dims.center_circle_radius_m,
                    facing - half_angle,
                    facing + half_angle,
                    max(4, circle_segments // 4),
                )
            )

    segments.extend(
        _arc(0.0, 0.0, dims.center_circle_radius_m, 0.0, 2.0 * math.pi, circle_segments)
    )
    return segments


def project_markings(
    transformer: CoordinateTransformer,
    segments: list[LineSegment],
    samples_per_segment: int = 8,
) -> list[Float[np.ndarray, "N 2"]]:
    """
    Project pitch markings into video pixels as polylines.

    Each segment is sampled so curved perspective (camera mode) stays smooth;
    invalid projections split a polyline so nothing is drawn through them.
    """
    if samples_per_segment < 1:
        raise PitchError("samples_per_segment must be >= 1")
    if not transformer.is_calibrated():
        return []

    t = np.linspace(0.0, 1.0, samples_per_segment + 1)[:, None]
    polylines: list[np.ndarray] = []
    for seg in segments:
        start = seg.start.as_array()
        end = seg.end.as_array()
        samples = start + t * (end - start)
        projected = transformer.pitch_to_video_many(samples)
        valid = np.all(np.isfinite(projected), axis=1)

        run_start: int | None = None
        for i, ok in enumerate(np.append(valid, False)):
            if ok and run_start is None:
                run_start = i
            elif not ok and run_start is not None:
                if i - run_start >= 2:
                    polylines.append(projected[run_start:i])
                run_start = None
    return polylines
