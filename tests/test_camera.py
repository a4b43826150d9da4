import math

import numpy as np
import pytest

from pitchcal.geometry import linalg
from pitchcal.geometry.camera import CameraModel, euler_xyz_to_matrix, matrix_to_euler_xyz
from pitchcal.geometry.rays import intersect_pitch_plane, pixel_to_pitch, pixel_to_world_ray, Ray3D
from pitchcal.geometry.types import (
    DEFAULT_CALIBRATION,
    CalibrationState,
    GeometryError,
    PitchCoord,
    VideoCoord,
    Viewport,
)


def test_euler_round_trip():
    rotation = euler_xyz_to_matrix(0.3, -0.2, 0.1)
    np.testing.assert_allclose(rotation @ rotation.T, np.eye(3), atol=1e-12)
    assert matrix_to_euler_xyz(rotation) == pytest.approx((0.3, -0.2, 0.1))


def test_center_click_lands_near_center_spot(elevated_camera: CameraModel):
    hit = pixel_to_pitch(elevated_camera, VideoCoord(640.0, 360.0))
    assert hit is not None
    assert abs(hit.x_m) < 10.0
    assert abs(hit.y_m) < 10.0
    # Optical axis: 60 m up, pitched down 0.6 rad, from z = 80
    assert hit.y_m == pytest.approx(80.0 - 60.0 / math.tan(0.6), abs=1e-6)


def test_click_above_horizon_has_no_pitch_position(elevated_camera: CameraModel):
    assert pixel_to_pitch(elevated_camera, VideoCoord(640.0, -400.0)) is None


def test_ray_parallel_to_pitch_misses():
    ray = Ray3D(origin_m=np.array([0.0, 10.0, 0.0]), direction=np.array([1.0, 0.0, 0.0]))
    assert intersect_pitch_plane(ray) is None


def test_projection_and_ray_cast_agree(elevated_camera: CameraModel):
    for coord in (PitchCoord(0.0, 0.0), PitchCoord(-30.0, 20.0), PitchCoord(45.0, -25.0)):
        video = elevated_camera.project_pitch_point(coord)
        assert video is not None
        back = pixel_to_pitch(elevated_camera, video)
        assert back is not None
        assert back.x_m == pytest.approx(coord.x_m, abs=1e-6)
        assert back.y_m == pytest.approx(coord.y_m, abs=1e-6)


def test_optical_axis_projects_to_image_center(elevated_camera: CameraModel):
    ray = pixel_to_world_ray(640.0, 360.0, elevated_camera)
    point = elevated_camera.position + 50.0 * ray.direction
    u, v = elevated_camera.project_world_point(point)
    assert u == pytest.approx(640.0)
    assert v == pytest.approx(360.0)


def test_point_behind_camera_is_invalid(elevated_camera: CameraModel):
    assert elevated_camera.project_pitch_point(PitchCoord(0.0, 200.0)) is None


def test_plane_homography_matches_projection(elevated_camera: CameraModel):
    h = elevated_camera.plane_homography()
    pitch = np.array([[0.0, 0.0], [-52.5, -34.0], [52.5, 34.0], [10.0, -5.0]])
    xy, w = linalg.apply_homogeneous(h, pitch)
    assert np.all(w > 0)
    for (x_m, y_m), expected in zip(pitch, xy):
        video = elevated_camera.project_pitch_point(PitchCoord(x_m, y_m))
        assert video.x_px == pytest.approx(expected[0])
        assert video.y_px == pytest.approx(expected[1])


def test_invalid_camera_parameters_are_rejected():
    with pytest.raises(GeometryError):
        CameraModel(DEFAULT_CALIBRATION, Viewport(0, 720))
    bad_fov = CalibrationState(0.0, 50.0, 80.0, -0.5, 0.0, 0.0, 0.0)
    with pytest.raises(GeometryError):
        CameraModel(bad_fov, Viewport(1280, 720))
