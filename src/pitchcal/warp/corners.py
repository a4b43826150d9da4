"""
Quadrilateral warp of the rendered pitch mesh.

The four corners are dragged in scene space to line the synthetic pitch up
with the video by eye. The unit square [0, 1] x [0, 1] (u along the length,
v along the width) maps onto the quad, bilinearly or projectively. Nothing
here touches the metric coordinate transform.
"""

import logging
from typing import Literal

import numpy as np

from pitchcal.geometry.homography import estimate_homography, project_through
from pitchcal.geometry.types import CalibrationError, Homography, PitchCoord
from pitchcal.pitch.types import STANDARD_PITCH, PitchDimensions

from .types import CornerConfig, Handle, PitchCorners, ScenePoint, WarpError

logger = logging.getLogger(__name__)

DEFAULT_CORNERS = PitchCorners(
    top_left=ScenePoint(-52.5, -34.0),
    top_right=ScenePoint(52.5, -34.0),
    bottom_left=ScenePoint(-52.5, 34.0),
    bottom_right=ScenePoint(52.5, 34.0),
)

SNAP_LINES_X: tuple[tuple[float, str], ...] = (
    (-52.5, "Left goal line"),
    (-36.0, "Left penalty box edge"),
    (-47.0, "Left goal area edge"),
    (0.0, "Halfway line"),
    (36.0, "Right penalty box edge"),
    (47.0, "Right goal area edge"),
    (52.5, "Right goal line"),
)
SNAP_LINES_Z: tuple[tuple[float, str], ...] = (
    (-34.0, "Top touchline"),
    (-20.16, "Top penalty box"),
    (-9.16, "Top goal area"),
    (0.0, "Center line"),
    (9.16, "Bottom goal area"),
    (20.16, "Bottom penalty box"),
    (34.0, "Bottom touchline"),
)

_UNIT_SQUARE = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0], [1.0, 1.0]])

_CORNER_FIELDS = {
    Handle.TOP_LEFT: ("top_left",),
    Handle.TOP_RIGHT: ("top_right",),
    Handle.BOTTOM_LEFT: ("bottom_left",),
    Handle.BOTTOM_RIGHT: ("bottom_right",),
    Handle.TOP: ("top_left", "top_right"),
    Handle.BOTTOM: ("bottom_left", "bottom_right"),
    Handle.LEFT: ("top_left", "bottom_left"),
    Handle.RIGHT: ("top_right", "bottom_right"),
    Handle.CENTER: ("top_left", "top_right", "bottom_left", "bottom_right"),
}
# Axes each handle may move along
_HANDLE_AXES = {
    Handle.TOP: (False, True),
    Handle.BOTTOM: (False, True),
    Handle.LEFT: (True, False),
    Handle.RIGHT: (True, False),
}


def snap_to_line(
    value: float,
    axis: Literal["x", "z"],
    threshold: float = 3.0,
) -> tuple[float, str | None]:
    """Snap a coordinate to the nearest pitch line closer than threshold."""
    lines = SNAP_LINES_X if axis == "x" else SNAP_LINES_Z
    line_value, label = min(lines, key=lambda line: abs(value - line[0]))
    if abs(value - line_value) < threshold:
        return line_value, label
    return value, None


def _orientation(a: np.ndarray, b: np.ndarray, c: np.ndarray) -> float:
    return float((b[0] - a[0]) * (c[1] - a[1]) - (b[1] - a[1]) * (c[0] - a[0]))


def _segments_cross(p1: np.ndarray, p2: np.ndarray, q1: np.ndarray, q2: np.ndarray) -> bool:
    d1 = _orientation(q1, q2, p1)
    d2 = _orientation(q1, q2, p2)
    d3 = _orientation(p1, p2, q1)
    d4 = _orientation(p1, p2, q2)
    return d1 * d2 < 0 and d3 * d4 < 0


def is_self_intersecting(corners: PitchCorners) -> bool:
    """True when opposite edges of the TL-TR-BR-BL outline cross."""
    tl, tr, bl, br = corners.as_array()
    return _segments_cross(tl, tr, br, bl) or _segments_cross(tr, br, bl, tl)


def bilinear_point(corners: PitchCorners, u: float, v: float) -> ScenePoint:
    tl, tr, bl, br = corners.as_array()
    top = tl + (tr - tl) * u
    bottom = bl + (br - bl) * u
    x, z = top + (bottom - top) * v
    return ScenePoint(x=float(x), z=float(z))


class CornerManipulator:
    """Drag state machine over PitchCorners."""

    def __init__(
        self,
        corners: PitchCorners = DEFAULT_CORNERS,
        config: CornerConfig | None = None,
    ):
        self._cfg = config or CornerConfig()
        self._cfg.validate()
        self._corners = self._clamp(corners)
        self._active_handle: Handle | None = None
        self._drag_origin: ScenePoint | None = None
        self._corners_at_start: PitchCorners | None = None
        self._locked: set[Handle] = set()
        self._snap_labels: tuple[str, ...] = ()
        self._projective: Homography | None = None
        self._projective_stale = True

    @property
    def corners(self) -> PitchCorners:
        return self._corners

    @property
    def config(self) -> CornerConfig:
        return self._cfg

    @property
    def active_handle(self) -> Handle | None:
        return self._active_handle

    @property
    def is_dragging(self) -> bool:
        return self._active_handle is not None

    @property
    def is_self_intersecting(self) -> bool:
        return is_self_intersecting(self._corners)

    @property
    def snap_labels(self) -> tuple[str, ...]:
        """Lines the last drag update snapped to."""
        return self._snap_labels

    def set_locked(self, handle: Handle, locked: bool = True) -> None:
        if locked:
            self._locked.add(handle)
        else:
            self._locked.discard(handle)

    def is_locked(self, handle: Handle) -> bool:
        return handle in self._locked

    def start_drag(self, handle: Handle, point: ScenePoint) -> bool:
        """Begin dragging; returns False for a locked handle."""
        if handle in self._locked:
            return False
        self._active_handle = handle
        self._drag_origin = point
        self._corners_at_start = self._corners
        self._snap_labels = ()
        return True

    def update_drag(self, point: ScenePoint) -> PitchCorners:
        if self._active_handle is None or self._drag_origin is None or self._corners_at_start is None:
            return self._corners

        handle = self._active_handle
        move_x, move_z = _HANDLE_AXES.get(handle, (True, True))
        dx = point.x - self._drag_origin.x if move_x else 0.0
        dz = point.z - self._drag_origin.z if move_z else 0.0

        fields = _CORNER_FIELDS[handle]
        start = self._corners_at_start
        labels: list[str] = []
        if self._cfg.snap_enabled and handle is not Handle.CENTER:
            # The first corner of the handle drives the snap; the rest follow
            lead: ScenePoint = getattr(start, fields[0])
            if move_x:
                snapped, label = snap_to_line(lead.x + dx, "x", self._cfg.snap_threshold)
                dx = snapped - lead.x
                if label is not None:
                    labels.append(label)
            if move_z:
                snapped, label = snap_to_line(lead.z + dz, "z", self._cfg.snap_threshold)
                dz = snapped - lead.z
                if label is not None:
                    labels.append(label)

        moved = {
            name: ScenePoint(x=getattr(start, name).x + dx, z=getattr(start, name).z + dz)
            for name in fields
        }
        values = {
            name: moved.get(name, getattr(start, name))
            for name in ("top_left", "top_right", "bottom_left", "bottom_right")
        }
        self._snap_labels = tuple(labels)
        self._set(self._clamp(PitchCorners(**values)))
        return self._corners

    def end_drag(self) -> None:
        if self._active_handle is not None and self.is_self_intersecting:
            logger.info("Pitch warp quad is self-intersecting after dragging %s", self._active_handle.value)
        self._active_handle = None
        self._drag_origin = None
        self._corners_at_start = None

    def reset(self) -> None:
        self.end_drag()
        self._snap_labels = ()
        self._set(self._clamp(DEFAULT_CORNERS))

    def set_corners(self, corners: PitchCorners) -> None:
        self._set(self._clamp(corners))

    def _set(self, corners: PitchCorners) -> None:
        if corners != self._corners:
            self._corners = corners
            self._projective_stale = True

    def _clamp(self, corners: PitchCorners) -> PitchCorners:
        cfg = self._cfg

        def clamp(p: ScenePoint) -> ScenePoint:
            return ScenePoint(
                x=min(max(p.x, cfg.min_x), cfg.max_x),
                z=min(max(p.z, cfg.min_z), cfg.max_z),
            )

        return PitchCorners(
            top_left=clamp(corners.top_left),
            top_right=clamp(corners.top_right),
            bottom_left=clamp(corners.bottom_left),
            bottom_right=clamp(corners.bottom_right),
        )

    def handle_positions(self) -> dict[Handle, ScenePoint]:
        c = self._corners

        def mid(a: ScenePoint, b: ScenePoint) -> ScenePoint:
            return ScenePoint(x=(a.x + b.x) / 2.0, z=(a.z + b.z) / 2.0)

        return {
            Handle.TOP_LEFT: c.top_left,
            Handle.TOP_RIGHT: c.top_right,
            Handle.BOTTOM_LEFT: c.bottom_left,
            Handle.BOTTOM_RIGHT: c.bottom_right,
            Handle.TOP: mid(c.top_left, c.top_right),
            Handle.BOTTOM: mid(c.bottom_left, c.bottom_right),
            Handle.LEFT: mid(c.top_left, c.bottom_left),
            Handle.RIGHT: mid(c.top_right, c.bottom_right),
            Handle.CENTER: c.centroid,
        }

    def bilinear_point(self, u: float, v: float) -> ScenePoint:
        return bilinear_point(self._corners, u, v)

    def _unit_square_homography(self) -> Homography | None:
        if self._projective_stale:
            try:
                self._projective = estimate_homography(_UNIT_SQUARE, self._corners.as_array())
            except CalibrationError as exc:
                logger.debug("Projective warp unavailable, using bilinear: %s", exc)
                self._projective = None
            self._projective_stale = False
        return self._projective

    def projective_point(self, u: float, v: float) -> ScenePoint:
        """
        Perspective-consistent mapping of the unit square onto the quad.

        Falls back to bilinear interpolation when the quad is degenerate or
        the point maps through the line at infinity.
        """
        homography = self._unit_square_homography()
        if homography is not None:
            projected = project_through(homography.matrix, u, v)
            if projected is not None:
                return ScenePoint(x=projected[0], z=projected[1])
        return bilinear_point(self._corners, u, v)

    def warp_pitch_point(
        self,
        coord: PitchCoord,
        projective: bool = False,
        dims: PitchDimensions = STANDARD_PITCH,
    ) -> ScenePoint:
        """Where a pitch marking point lands on the warped mesh."""
        u = (coord.x_m + dims.half_length_m) / dims.length_m
        v = (coord.y_m + dims.half_width_m) / dims.width_m
        if projective:
            return self.projective_point(u, v)
        return self.bilinear_point(u, v)

    def grid_points(self, density: int = 5) -> dict[str, ScenePoint]:
        """
        Fine-control handle positions: interior grid points grid_i_j and three
        points along each edge (edge_t1..3, edge_b1..3, edge_l1..3, edge_r1..3).
        """
        if density < 2:
            raise WarpError("Grid density must be at least 2")
        points: dict[str, ScenePoint] = {}
        for i in range(1, density):
            for j in range(1, density):
                points[f"grid_{i}_{j}"] = self.bilinear_point(i / density, j / density)

        for k, t in enumerate((0.25, 0.5, 0.75), start=1):
            points[f"edge_t{k}"] = self.bilinear_point(t, 0.0)
            points[f"edge_b{k}"] = self.bilinear_point(t, 1.0)
            points[f"edge_l{k}"] = self.bilinear_point(0.0, t)
            points[f"edge_r{k}"] = self.bilinear_point(1.0, t)
        return points
