from . import linalg
from .calibration import compute_reprojection_error, fit_camera_state
from .camera import CameraModel, euler_xyz_to_matrix, matrix_to_euler_xyz
from .homography import (
    estimate_homography,
    homography_from_matrix,
    normalize_points,
    project_many,
    project_through,
    reprojection_errors,
    validate_homography,
)
from .rays import Ray3D, intersect_pitch_plane, pixel_to_pitch, pixel_to_world_ray
from .transformer import CoordinateTransformer
from .types import (
    DEFAULT_CALIBRATION,
    CalibrationError,
    CalibrationState,
    CameraFitConfig,
    CameraFitResult,
    DegenerateConfigurationError,
    GeometryError,
    Homography,
    HomographyConfig,
    InsufficientCorrespondencesError,
    PitchCoord,
    SingularMatrixError,
    TransformSource,
    ValidationMetrics,
    VideoCoord,
    Viewport,
)

__all__ = [
    # types
    "PitchCoord",
    "VideoCoord",
    "Viewport",
    "CalibrationState",
    "DEFAULT_CALIBRATION",
    "Homography",
    "ValidationMetrics",
    "TransformSource",
    "CameraFitResult",
    "HomographyConfig",
    "CameraFitConfig",
    "GeometryError",
    "SingularMatrixError",
    "CalibrationError",
    "InsufficientCorrespondencesError",
    "DegenerateConfigurationError",
    # linalg
    "linalg",
    # camera
    "CameraModel",
    "euler_xyz_to_matrix",
    "matrix_to_euler_xyz",
    # rays
    "Ray3D",
    "pixel_to_world_ray",
    "intersect_pitch_plane",
    "pixel_to_pitch",
    # homography
    "estimate_homography",
    "homography_from_matrix",
    "normalize_points",
    "project_through",
    "project_many",
    "reprojection_errors",
    "validate_homography",
    # calibration
    "fit_camera_state",
    "compute_reprojection_error",
    # transformer
    "CoordinateTransformer",
]
