import pytest

from pitchcal.geometry.camera import CameraModel
from pitchcal.geometry.types import CalibrationState, PitchCoord, VideoCoord, Viewport


@pytest.fixture
def viewport() -> Viewport:
    return Viewport(1280, 720)


@pytest.fixture
def corner_pitch() -> list[PitchCoord]:
    return [
        PitchCoord(-52.5, -34.0),
        PitchCoord(52.5, -34.0),
        PitchCoord(-52.5, 34.0),
        PitchCoord(52.5, 34.0),
    ]


@pytest.fixture
def corner_video() -> list[VideoCoord]:
    return [
        VideoCoord(100.0, 100.0),
        VideoCoord(1180.0, 100.0),
        VideoCoord(50.0, 620.0),
        VideoCoord(1230.0, 620.0),
    ]


@pytest.fixture
def elevated_state() -> CalibrationState:
    """Camera behind the bottom touchline, tilted down towards the center spot."""
    return CalibrationState(
        camera_x=0.0,
        camera_y=60.0,
        camera_z=80.0,
        rotation_x_rad=-0.6,
        rotation_y_rad=0.0,
        rotation_z_rad=0.0,
        fov_deg=50.0,
    )


@pytest.fixture
def elevated_camera(elevated_state: CalibrationState, viewport: Viewport) -> CameraModel:
    return CameraModel(elevated_state, viewport)
