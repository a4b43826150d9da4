import logging

import cv2
import numpy as np
import pytest

from pitchcal.geometry.camera import CameraModel
from pitchcal.geometry.types import (
    DEFAULT_CALIBRATION,
    CalibrationError,
    DegenerateConfigurationError,
    InsufficientCorrespondencesError,
    PitchCoord,
    TransformSource,
    VideoCoord,
)
from pitchcal.pitch.reference import CORNER_IDS, REFERENCE_POINTS
from pitchcal.session import (
    BUILTIN_PRESETS,
    CalibrationSession,
    SessionError,
    SessionPhase,
)

PLACED_IDS = ["corner_tl", "corner_tr", "corner_bl", "corner_br", "center", "penalty_left"]


def _mark_standard_corners(session: CalibrationSession, corner_video) -> None:
    session.start_corner_calibration()
    for video in corner_video:
        session.mark_corner(video)


def _place_points(session: CalibrationSession, camera: CameraModel, ids: list[str]) -> None:
    session.start_point_calibration()
    for ref_id in ids:
        session.add_point(ref_id)
        session.place_point(camera.project_pitch_point(REFERENCE_POINTS[ref_id].pitch))


def test_new_session_is_uncalibrated():
    session = CalibrationSession()
    assert session.phase is SessionPhase.UNCALIBRATED
    assert not session.is_calibrated
    assert session.transformer.source is TransformSource.NONE
    assert session.transformer.video_to_pitch(VideoCoord(640.0, 360.0)) is None


def test_direct_mode_uses_default_state():
    session = CalibrationSession()
    session.enter_direct_mode()
    assert session.phase is SessionPhase.DIRECT
    assert session.state == DEFAULT_CALIBRATION
    assert session.is_calibrated
    assert session.transformer.source is TransformSource.CAMERA


def test_direct_mode_camera_ray_scenario():
    session = CalibrationSession()
    session.update_state(
        camera_x=0.0,
        camera_y=60.0,
        camera_z=80.0,
        rotation_x_rad=-0.6,
        rotation_y_rad=0.0,
        rotation_z_rad=0.0,
        fov_deg=50.0,
    )
    assert session.phase is SessionPhase.DIRECT
    hit = session.transformer.video_to_pitch(VideoCoord(640.0, 360.0))
    assert abs(hit.x_m) < 10.0 and abs(hit.y_m) < 10.0
    assert session.transformer.video_to_pitch(VideoCoord(640.0, -400.0)) is None


def test_update_state_validates_fields():
    session = CalibrationSession()
    with pytest.raises(SessionError):
        session.update_state(zoom=2.0)
    with pytest.raises(SessionError):
        session.update_state(fov_deg=0.0)
    with pytest.raises(SessionError):
        session.update_state(camera_x=float("nan"))
    assert session.state is None


def test_transformer_is_rebuilt_only_after_mutation():
    session = CalibrationSession()
    session.enter_direct_mode()
    first = session.transformer
    assert session.transformer is first
    revision = session.revision

    session.update_state(fov_deg=40.0)
    assert session.is_dirty
    assert session.revision == revision + 1
    assert session.transformer is not first
    assert not session.is_dirty

    session.reset_state()
    assert session.state == DEFAULT_CALIBRATION


def test_corner_calibration(corner_video):
    session = CalibrationSession()
    session.start_corner_calibration()
    assert session.active_corner == CORNER_IDS[0]
    for corner_id, video in zip(CORNER_IDS, corner_video):
        assert session.active_corner == corner_id
        session.mark_corner(video)
    assert session.active_corner is None

    outcome = session.auto_calibrate()
    assert outcome.success
    assert outcome.source is TransformSource.HOMOGRAPHY
    assert session.phase is SessionPhase.CALIBRATED
    assert session.metrics.is_valid

    center = session.transformer.pitch_to_video(PitchCoord(0.0, 0.0))
    assert abs(center.x_px - 640.0) < 20.0
    assert abs(center.y_px - 360.0) < 20.0


def test_corner_calibration_needs_all_four(corner_video, caplog):
    session = CalibrationSession()
    session.start_corner_calibration()
    for video in corner_video[:3]:
        session.mark_corner(video)

    with caplog.at_level(logging.INFO, logger="pitchcal.session.session"):
        outcome = session.auto_calibrate_corners()
    assert not outcome.success
    assert isinstance(outcome.error, InsufficientCorrespondencesError)
    assert "Calibration rejected" in caplog.text
    assert session.phase is SessionPhase.CORNER
    assert session.homography is None


def test_mark_corner_explicit_id(corner_video):
    session = CalibrationSession()
    session.start_corner_calibration()
    session.mark_corner(corner_video[3], corner_id="corner_br")
    assert session.corner_marks == {"corner_br": corner_video[3]}
    assert session.active_corner == "corner_tl"
    with pytest.raises(SessionError):
        session.mark_corner(corner_video[0], corner_id="center")
    with pytest.raises(SessionError):
        session.set_active_corner("penalty_left")


def test_point_calibration(elevated_camera):
    session = CalibrationSession()
    _place_points(session, elevated_camera, PLACED_IDS)
    assert session.set_point_count == len(PLACED_IDS)
    assert session.can_auto_calibrate

    outcome = session.auto_calibrate()
    assert outcome.success
    assert outcome.metrics.point_count == len(PLACED_IDS)
    assert outcome.metrics.mean_error_m < 1e-6

    # The homography reproduces the camera that generated the clicks
    probe = PitchCoord(20.0, -12.0)
    expected = elevated_camera.project_pitch_point(probe)
    actual = session.transformer.pitch_to_video(probe)
    assert actual.x_px == pytest.approx(expected.x_px, abs=1e-6)
    assert actual.y_px == pytest.approx(expected.y_px, abs=1e-6)


def test_point_bookkeeping(elevated_camera):
    session = CalibrationSession()
    session.start_point_calibration()
    session.add_point("center")
    session.add_point("penalty_left")
    assert session.active_point == "penalty_left"
    assert session.set_point_count == 0
    assert not session.can_auto_calibrate

    session.place_point(VideoCoord(640.0, 400.0), reference_id="center")
    assert session.set_point_count == 1
    assert session.active_point is None
    with pytest.raises(SessionError):
        session.place_point(VideoCoord(1.0, 1.0))

    session.remove_point("center")
    assert [p.reference_id for p in session.points] == ["penalty_left"]
    session.clear_points()
    assert session.points == []

    with pytest.raises(SessionError):
        session.add_point("corner_flag")
    with pytest.raises(SessionError):
        session.set_active_point("center")

    outcome = session.auto_calibrate_points()
    assert not outcome.success
    assert isinstance(outcome.error, InsufficientCorrespondencesError)


def test_failed_recalibration_keeps_previous_homography(corner_video):
    session = CalibrationSession()
    _mark_standard_corners(session, corner_video)
    assert session.auto_calibrate().success
    accepted = session.homography
    revision = session.revision

    # All on the halfway axis: collinear
    session.start_point_calibration()
    for i, ref_id in enumerate(["center_left", "center", "center_right", "penalty_left"]):
        session.add_point(ref_id)
        session.place_point(VideoCoord(300.0 + 100.0 * i, 360.0 + 3.0 * i))

    outcome = session.auto_calibrate()
    assert not outcome.success
    assert isinstance(outcome.error, DegenerateConfigurationError)
    assert session.homography is accepted
    assert session.revision == revision
    assert session.transformer.source is TransformSource.HOMOGRAPHY
    assert session.is_homography_stale


def test_homography_takes_priority_over_sliders(corner_video):
    session = CalibrationSession()
    session.enter_direct_mode()
    _mark_standard_corners(session, corner_video)
    assert session.auto_calibrate().success
    before = session.transformer.pitch_to_video(PitchCoord(0.0, 0.0))

    session.update_state(fov_deg=30.0)
    assert session.transformer.source is TransformSource.HOMOGRAPHY
    assert session.transformer.pitch_to_video(PitchCoord(0.0, 0.0)) == before

    session.clear_homography()
    assert session.phase is SessionPhase.DIRECT
    assert session.transformer.source is TransformSource.CAMERA


def test_presets():
    session = CalibrationSession()
    state = session.apply_preset("broadcast")
    assert state == BUILTIN_PRESETS["broadcast"]
    assert session.phase is SessionPhase.DIRECT
    assert session.transformer.source is TransformSource.CAMERA
    assert set(BUILTIN_PRESETS) == {"broadcast", "tactical", "sideline", "behind_goal"}
    with pytest.raises(SessionError):
        session.apply_preset("blimp")


@pytest.mark.parametrize("name", ["broadcast", "tactical", "sideline", "behind_goal"])
def test_every_preset_projects_the_center_spot(name):
    session = CalibrationSession()
    session.apply_preset(name)
    assert session.transformer.pitch_to_video(PitchCoord(0.0, 0.0)) is not None


def test_fit_camera_to_points(elevated_camera, elevated_state):
    session = CalibrationSession()
    _place_points(session, elevated_camera, PLACED_IDS)

    outcome = session.fit_camera_to_points()
    assert outcome.success
    assert outcome.source is TransformSource.CAMERA
    assert session.state.camera_y == pytest.approx(elevated_state.camera_y, abs=0.5)
    assert session.state.fov_deg == pytest.approx(elevated_state.fov_deg, abs=0.3)


def test_fit_camera_without_points_fails():
    session = CalibrationSession()
    outcome = session.fit_camera_to_points()
    assert not outcome.success
    assert session.state is None


def test_auto_calibrate_outside_workflow_fails():
    session = CalibrationSession()
    session.enter_direct_mode()
    outcome = session.auto_calibrate()
    assert not outcome.success
    assert session.phase is SessionPhase.DIRECT


def test_recalibrate_after_adding_a_point(elevated_camera):
    session = CalibrationSession()
    _place_points(session, elevated_camera, PLACED_IDS[:5])
    assert session.auto_calibrate().success
    assert session.phase is SessionPhase.CALIBRATED
    assert session.workflow is SessionPhase.POINT

    session.add_point("penalty_right")
    spot = REFERENCE_POINTS["penalty_right"].pitch
    session.place_point(elevated_camera.project_pitch_point(spot))
    assert session.is_homography_stale

    outcome = session.auto_calibrate()
    assert outcome.success
    assert outcome.metrics.point_count == 6
    assert not session.is_homography_stale


def test_fit_camera_after_corner_calibration(elevated_camera, elevated_state):
    session = CalibrationSession()
    session.start_corner_calibration()
    for corner_id in CORNER_IDS:
        corner = REFERENCE_POINTS[corner_id].pitch
        session.mark_corner(elevated_camera.project_pitch_point(corner))
    assert session.auto_calibrate().success
    assert session.workflow is SessionPhase.CORNER

    outcome = session.fit_camera_to_points()
    assert outcome.success
    assert session.state.camera_y == pytest.approx(elevated_state.camera_y, abs=1.0)
    assert session.state.fov_deg == pytest.approx(elevated_state.fov_deg, abs=0.5)


def test_fit_camera_failure_never_escapes(monkeypatch, elevated_camera):
    session = CalibrationSession()
    _place_points(session, elevated_camera, PLACED_IDS)
    monkeypatch.setattr(
        cv2,
        "solvePnP",
        lambda *args, **kwargs: (True, np.full((3, 1), np.nan), np.full((3, 1), np.nan)),
    )

    outcome = session.fit_camera_to_points()
    assert not outcome.success
    assert isinstance(outcome.error, CalibrationError)
    assert session.state is None
