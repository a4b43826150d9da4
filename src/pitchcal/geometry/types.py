from dataclasses import dataclass
from enum import Enum

import numpy as np
from jaxtyping import Float

Matrix3 = Float[np.ndarray, "3 3"]
Matrix4 = Float[np.ndarray, "4 4"]
Points2 = Float[np.ndarray, "N 2"]


@dataclass(frozen=True, slots=True)
class PitchCoord:
    """
    Pitch coordinate convention:
    - Origin: center spot
    - x-axis: along the length, left goal line at -52.5 m
    - y-axis: along the width, top touchline at -34 m
    In scene space the pitch lies on y = 0 and (x_m, y_m) maps to (x, z).
    """

    x_m: float
    y_m: float

    def as_array(self) -> Float[np.ndarray, "2"]:
        return np.array([self.x_m, self.y_m], dtype=float)


@dataclass(frozen=True, slots=True)
class VideoCoord:
    """Pixel position in the source video's native resolution."""

    x_px: float
    y_px: float

    def as_array(self) -> Float[np.ndarray, "2"]:
        return np.array([self.x_px, self.y_px], dtype=float)


@dataclass(frozen=True, slots=True)
class Viewport:
    width_px: int
    height_px: int

    @property
    def aspect(self) -> float:
        return self.width_px / self.height_px

    def validate(self) -> None:
        if self.width_px <= 0 or self.height_px <= 0:
            raise GeometryError("Viewport must have a positive width and height")


@dataclass(frozen=True, slots=True)
class CalibrationState:
    """
    Virtual camera placement in scene units (1 unit ~ 1 m, y up).

    Rotations are Euler angles applied in XYZ order; fov_deg is vertical.
    """

    camera_x: float
    camera_y: float
    camera_z: float
    rotation_x_rad: float  # pitch
    rotation_y_rad: float  # yaw
    rotation_z_rad: float  # roll
    fov_deg: float

    @property
    def position(self) -> Float[np.ndarray, "3"]:
        return np.array([self.camera_x, self.camera_y, self.camera_z], dtype=float)

    @property
    def rotation(self) -> Float[np.ndarray, "3"]:
        return np.array(
            [self.rotation_x_rad, self.rotation_y_rad, self.rotation_z_rad],
            dtype=float,
        )


DEFAULT_CALIBRATION = CalibrationState(
    camera_x=0.0,
    camera_y=50.0,
    camera_z=80.0,
    rotation_x_rad=-0.5,
    rotation_y_rad=0.0,
    rotation_z_rad=0.0,
    fov_deg=45.0,
)


@dataclass(frozen=True, slots=True, eq=False)
class Homography:
    """Pitch->video matrix and its inverse, always replaced together."""

    matrix: Matrix3  # pitch -> video
    inverse: Matrix3  # video -> pitch


@dataclass(frozen=True, slots=True)
class ValidationMetrics:
    mean_error_m: float
    max_error_m: float
    mean_reprojection_error_px: float
    point_count: int
    is_valid: bool


class TransformSource(Enum):
    NONE = "none"
    HOMOGRAPHY = "homography"
    CAMERA = "camera"


@dataclass(slots=True)
class CameraFitResult:
    state: CalibrationState
    reprojection_error_px: float
    num_points: int


class GeometryError(RuntimeError):
    pass


class SingularMatrixError(GeometryError):
    pass


class CalibrationError(RuntimeError):
    pass


class InsufficientCorrespondencesError(CalibrationError):
    pass


class DegenerateConfigurationError(CalibrationError):
    pass


@dataclass(slots=True)
class HomographyConfig:
    """
    Tunable thresholds for homography estimation and projection.
    """

    min_correspondences: int = 4
    rank_tolerance: float = 1e-8
    collinearity_tolerance: float = 1e-6
    singular_tolerance: float = 1e-9
    min_homogeneous_w: float = 1e-9
    method: str = "dlt"  # "dlt" or "ransac"
    ransac_reprojection_error_px: float = 3.0
    validation_error_threshold_m: float = 2.0

    def validate(self) -> None:
        if self.min_correspondences < 4:
            raise CalibrationError("min_correspondences cannot be below 4")
        if self.method not in ("dlt", "ransac"):
            raise CalibrationError(f"Unknown homography method: {self.method!r}")
        if self.ransac_reprojection_error_px <= 0:
            raise CalibrationError("ransac_reprojection_error_px must be positive")


@dataclass(slots=True)
class CameraFitConfig:
    """
    Search range and acceptance threshold for fitting a camera to points.
    """

    fov_min_deg: float = 10.0
    fov_max_deg: float = 120.0
    coarse_step_deg: float = 5.0
    fine_step_deg: float = 0.25
    reprojection_error_threshold_px: float = 25.0

    def validate(self) -> None:
        if not 0.0 < self.fov_min_deg < self.fov_max_deg < 180.0:
            raise CalibrationError("FOV search range must satisfy 0 < min < max < 180")
        if self.coarse_step_deg <= 0 or self.fine_step_deg <= 0:
            raise CalibrationError("FOV search steps must be positive")
