import pytest

from pitchcal.geometry.types import PitchCoord
from pitchcal.warp import (
    DEFAULT_CORNERS,
    CornerConfig,
    CornerManipulator,
    Handle,
    PitchCorners,
    ScenePoint,
    WarpError,
    snap_to_line,
)


def _drag(manipulator: CornerManipulator, handle: Handle, dx: float, dz: float) -> PitchCorners:
    origin = manipulator.handle_positions()[handle]
    assert manipulator.start_drag(handle, origin)
    corners = manipulator.update_drag(ScenePoint(origin.x + dx, origin.z + dz))
    manipulator.end_drag()
    return corners


def test_default_corners_form_the_pitch_rectangle():
    manipulator = CornerManipulator()
    assert manipulator.corners == DEFAULT_CORNERS
    assert not manipulator.is_self_intersecting
    assert manipulator.handle_positions()[Handle.CENTER] == ScenePoint(0.0, 0.0)


def test_corner_handle_moves_one_corner():
    corners = _drag(CornerManipulator(), Handle.TOP_LEFT, 5.0, 3.0)
    assert corners.top_left == ScenePoint(-47.5, -31.0)
    assert corners.top_right == DEFAULT_CORNERS.top_right
    assert corners.bottom_left == DEFAULT_CORNERS.bottom_left
    assert corners.bottom_right == DEFAULT_CORNERS.bottom_right


def test_edge_handles_move_along_one_axis():
    corners = _drag(CornerManipulator(), Handle.TOP, 5.0, 3.0)
    assert corners.top_left == ScenePoint(-52.5, -31.0)
    assert corners.top_right == ScenePoint(52.5, -31.0)
    assert corners.bottom_left == DEFAULT_CORNERS.bottom_left

    corners = _drag(CornerManipulator(), Handle.RIGHT, 4.0, 9.0)
    assert corners.top_right == ScenePoint(56.5, -34.0)
    assert corners.bottom_right == ScenePoint(56.5, 34.0)
    assert corners.top_left == DEFAULT_CORNERS.top_left


def test_center_handle_translates_everything():
    corners = _drag(CornerManipulator(), Handle.CENTER, 2.0, -1.0)
    assert corners.top_left == ScenePoint(-50.5, -35.0)
    assert corners.bottom_right == ScenePoint(54.5, 33.0)


def test_drag_is_relative_to_drag_start():
    manipulator = CornerManipulator()
    manipulator.start_drag(Handle.BOTTOM_RIGHT, ScenePoint(52.5, 34.0))
    manipulator.update_drag(ScenePoint(62.5, 34.0))
    corners = manipulator.update_drag(ScenePoint(57.5, 34.0))
    assert corners.bottom_right == ScenePoint(57.5, 34.0)
    manipulator.end_drag()
    assert not manipulator.is_dragging
    assert manipulator.update_drag(ScenePoint(0.0, 0.0)) == corners


def test_corners_are_clamped():
    manipulator = CornerManipulator(config=CornerConfig(max_x=60.0))
    corners = _drag(manipulator, Handle.TOP_RIGHT, 100.0, 0.0)
    assert corners.top_right.x == 60.0


def test_snapping_to_pitch_lines():
    assert snap_to_line(-36.5, "x") == (-36.0, "Left penalty box edge")
    assert snap_to_line(15.0, "z") == (15.0, None)
    # Nearest line wins even when an earlier line is also within reach
    assert snap_to_line(-49.0, "x", threshold=6.0) == (-47.0, "Left goal area edge")
    assert snap_to_line(-8.0, "z", threshold=12.0) == (-9.16, "Top goal area")

    manipulator = CornerManipulator(config=CornerConfig(snap_enabled=True))
    corners = _drag(manipulator, Handle.TOP_LEFT, 16.0, 1.0)
    assert corners.top_left == ScenePoint(-36.0, -34.0)
    assert "Left penalty box edge" in manipulator.snap_labels


def test_locked_handle_cannot_be_dragged():
    manipulator = CornerManipulator()
    manipulator.set_locked(Handle.CENTER)
    assert not manipulator.start_drag(Handle.CENTER, ScenePoint(0.0, 0.0))
    assert manipulator.update_drag(ScenePoint(10.0, 10.0)) == DEFAULT_CORNERS


def test_self_intersecting_quad_is_flagged_not_rejected():
    manipulator = CornerManipulator()
    crossed = PitchCorners(
        top_left=DEFAULT_CORNERS.top_right,
        top_right=DEFAULT_CORNERS.top_left,
        bottom_left=DEFAULT_CORNERS.bottom_left,
        bottom_right=DEFAULT_CORNERS.bottom_right,
    )
    manipulator.set_corners(crossed)
    assert manipulator.corners == crossed
    assert manipulator.is_self_intersecting


def test_bilinear_and_projective_mapping():
    manipulator = CornerManipulator()
    assert manipulator.bilinear_point(0.5, 0.5) == ScenePoint(0.0, 0.0)
    assert manipulator.warp_pitch_point(PitchCoord(-52.5, -34.0)) == DEFAULT_CORNERS.top_left
    projected = manipulator.projective_point(0.25, 0.75)
    assert projected.x == pytest.approx(-26.25)
    assert projected.z == pytest.approx(17.0)

    trapezoid = PitchCorners(
        top_left=ScenePoint(-40.0, -34.0),
        top_right=ScenePoint(40.0, -34.0),
        bottom_left=ScenePoint(-52.5, 34.0),
        bottom_right=ScenePoint(52.5, 34.0),
    )
    manipulator.set_corners(trapezoid)
    corner = manipulator.projective_point(1.0, 0.0)
    assert corner.x == pytest.approx(40.0)
    assert corner.z == pytest.approx(-34.0)
    # Diagonals meet above the bilinear midpoint
    center = manipulator.warp_pitch_point(PitchCoord(0.0, 0.0), projective=True)
    assert center.x == pytest.approx(0.0, abs=1e-9)
    assert center.z < -1.0


def test_grid_points_and_reset():
    manipulator = CornerManipulator()
    grid = manipulator.grid_points(density=5)
    assert len(grid) == 16 + 12
    assert grid["edge_t2"] == ScenePoint(0.0, -34.0)
    with pytest.raises(WarpError):
        manipulator.grid_points(density=1)

    _drag(manipulator, Handle.CENTER, 10.0, 10.0)
    manipulator.reset()
    assert manipulator.corners == DEFAULT_CORNERS
