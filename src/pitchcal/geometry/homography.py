"""
Planar homography estimation between the pitch plane and the video image.

The estimator is a normalized Direct Linear Transform:
1. Translate each point set to its centroid and scale it so the mean
   distance to the origin is sqrt(2).
2. Stack two rows per correspondence from x cross (H X) = 0.
3. Take the right singular vector of the smallest singular value.
4. Undo the normalization: H = T_video^-1 . H_norm . T_pitch.
5. Fix the projective scale (H[2, 2] = 1, or unit Frobenius norm).
"""

import logging
import math
from collections.abc import Sequence
from typing import Union

import cv2
import numpy as np
from jaxtyping import Float

from . import linalg
from .types import (
    CalibrationError,
    DegenerateConfigurationError,
    GeometryError,
    Homography,
    HomographyConfig,
    InsufficientCorrespondencesError,
    Matrix3,
    PitchCoord,
    Points2,
    SingularMatrixError,
    ValidationMetrics,
    VideoCoord,
)

logger = logging.getLogger(__name__)

_EPS = 1e-12

PointsLike = Union[np.ndarray, Sequence[PitchCoord], Sequence[VideoCoord], Sequence[Sequence[float]]]


def as_points(points: PointsLike, name: str) -> np.ndarray:
    if not isinstance(points, np.ndarray):
        points = [
            p.as_array() if isinstance(p, (PitchCoord, VideoCoord)) else p
            for p in points
        ]
    pts = np.asarray(points, dtype=float)
    if pts.size == 0:
        return pts.reshape(0, 2)
    if pts.ndim != 2 or pts.shape[1] != 2:
        raise GeometryError(f"{name} must have shape (N, 2), got {pts.shape}")
    if not np.all(np.isfinite(pts)):
        raise DegenerateConfigurationError(f"{name} contain non-finite values")
    return pts


def normalize_points(points: Points2) -> tuple[Points2, Matrix3]:
    """Hartley normalization; returns the normalized points and the 3x3 transform."""
    pts = np.asarray(points, dtype=float)
    centroid = pts.mean(axis=0)
    shifted = pts - centroid
    mean_dist = float(np.mean(np.linalg.norm(shifted, axis=1)))
    if mean_dist < _EPS:
        raise DegenerateConfigurationError("All points coincide")
    scale = math.sqrt(2.0) / mean_dist
    transform = np.array(
        [
            [scale, 0.0, -scale * centroid[0]],
            [0.0, scale, -scale * centroid[1]],
            [0.0, 0.0, 1.0],
        ],
        dtype=float,
    )
    return shifted * scale, transform


def _denormalizer(transform: Matrix3) -> Matrix3:
    """Closed-form inverse of a normalize_points transform."""
    scale = transform[0, 0]
    return np.array(
        [
            [1.0 / scale, 0.0, -transform[0, 2] / scale],
            [0.0, 1.0 / scale, -transform[1, 2] / scale],
            [0.0, 0.0, 1.0],
        ],
        dtype=float,
    )


def _check_not_collinear(normalized: Points2, tolerance: float, name: str) -> None:
    homog = np.hstack([normalized, np.ones((normalized.shape[0], 1))])
    singular_values = np.linalg.svd(homog, compute_uv=False)
    if singular_values[-1] < tolerance * singular_values[0]:
        raise DegenerateConfigurationError(f"{name} points are collinear")


def _build_dlt_matrix(src: Points2, dst: Points2) -> Float[np.ndarray, "2N 9"]:
    n = src.shape[0]
    x, y = src[:, 0], src[:, 1]
    u, v = dst[:, 0], dst[:, 1]
    a = np.zeros((2 * n, 9), dtype=float)
    a[0::2, 0] = -x
    a[0::2, 1] = -y
    a[0::2, 2] = -1.0
    a[0::2, 6] = u * x
    a[0::2, 7] = u * y
    a[0::2, 8] = u
    a[1::2, 3] = -x
    a[1::2, 4] = -y
    a[1::2, 5] = -1.0
    a[1::2, 6] = v * x
    a[1::2, 7] = v * y
    a[1::2, 8] = v
    return a


def _solve_dlt(src: Points2, dst: Points2, rank_tolerance: float) -> Matrix3:
    a = _build_dlt_matrix(src, dst)
    try:
        h, singular_values = linalg.null_vector(a)
    except SingularMatrixError as exc:
        raise DegenerateConfigurationError(str(exc)) from exc
    # A well-posed system has rank 8: only the ninth singular value may vanish.
    largest = singular_values[0]
    if largest < _EPS or singular_values[7] < rank_tolerance * largest:
        raise DegenerateConfigurationError(
            "Correspondences are rank deficient "
            f"(sigma_8/sigma_1={singular_values[7] / max(largest, _EPS):.3e})"
        )
    return h.reshape(3, 3)


def _orient_and_scale(matrix: Matrix3, pitch: Points2) -> Matrix3:
    # Visible points carry positive w; orient on the calibration area centroid.
    cx, cy = pitch.mean(axis=0)
    if matrix[2, 0] * cx + matrix[2, 1] * cy + matrix[2, 2] < 0:
        matrix = -matrix
    norm = float(np.linalg.norm(matrix))
    if matrix[2, 2] > 1e-9 * norm:
        return matrix / matrix[2, 2]
    return matrix / norm


def _dlt(pitch: Points2, video: Points2, cfg: HomographyConfig) -> Matrix3:
    pitch_norm, t_pitch = normalize_points(pitch)
    video_norm, t_video = normalize_points(video)
    _check_not_collinear(pitch_norm, cfg.collinearity_tolerance, "Pitch")
    _check_not_collinear(video_norm, cfg.collinearity_tolerance, "Video")

    h_norm = _solve_dlt(pitch_norm, video_norm, cfg.rank_tolerance)
    matrix = _denormalizer(t_video) @ h_norm @ t_pitch
    if not np.all(np.isfinite(matrix)):
        raise DegenerateConfigurationError("Homography contains non-finite values")
    return _orient_and_scale(matrix, pitch)


def _ransac_inliers(
    pitch: Points2,
    video: Points2,
    cfg: HomographyConfig,
) -> tuple[Points2, Points2]:
    try:
        matrix, mask = cv2.findHomography(
            pitch.astype(np.float64),
            video.astype(np.float64),
            cv2.RANSAC,
            cfg.ransac_reprojection_error_px,
        )
    except cv2.error as exc:  # pragma: no cover
        raise DegenerateConfigurationError(f"findHomography failed: {exc}") from exc

    if matrix is None or mask is None:
        raise DegenerateConfigurationError("RANSAC could not find a consensus set")

    inliers = mask.ravel().astype(bool)
    if int(inliers.sum()) < cfg.min_correspondences:
        raise InsufficientCorrespondencesError(
            f"Only {int(inliers.sum())} RANSAC inliers (need {cfg.min_correspondences})"
        )
    logger.debug("RANSAC kept %d of %d correspondences", int(inliers.sum()), len(inliers))
    return pitch[inliers], video[inliers]


def estimate_homography(
    pitch_points: PointsLike,
    video_points: PointsLike,
    config: HomographyConfig | None = None,
) -> Homography:
    """
    Estimate the pitch->video homography and its inverse.

    - Exactly 4 points in general position are reproduced exactly
    - More points give the algebraic least-squares solution
    - Raises InsufficientCorrespondencesError / DegenerateConfigurationError
    """
    cfg = config or HomographyConfig()
    cfg.validate()
    pitch = as_points(pitch_points, "Pitch points")
    video = as_points(video_points, "Video points")

    if pitch.shape[0] != video.shape[0]:
        raise CalibrationError("Mismatch between pitch and video point counts")
    if pitch.shape[0] < cfg.min_correspondences:
        raise InsufficientCorrespondencesError(
            f"Need at least {cfg.min_correspondences} correspondences, got {pitch.shape[0]}"
        )

    if cfg.method == "ransac":
        pitch, video = _ransac_inliers(pitch, video, cfg)

    homography = homography_from_matrix(_dlt(pitch, video, cfg), cfg)
    logger.debug(
        "Homography estimated: method=%s, num_points=%d",
        cfg.method,
        pitch.shape[0],
    )
    return homography


def homography_from_matrix(
    matrix: Float[np.ndarray, "3 3"],
    config: HomographyConfig | None = None,
) -> Homography:
    """Pair a pitch->video matrix with its inverse (the only work done on load)."""
    cfg = config or HomographyConfig()
    m = np.asarray(matrix, dtype=float)
    if m.shape != (3, 3):
        raise GeometryError(f"Homography must be 3x3, got {m.shape}")
    try:
        inv = linalg.inverse(m, cfg.singular_tolerance)
    except SingularMatrixError as exc:
        raise DegenerateConfigurationError(f"Homography is not invertible: {exc}") from exc
    return Homography(matrix=m, inverse=inv)


def project_through(
    matrix: Matrix3,
    x: float,
    y: float,
    min_w: float = 1e-9,
) -> tuple[float, float] | None:
    """Apply a homography to one point; None for w <= min_w or non-finite output."""
    xy, w = linalg.apply_homogeneous(matrix, np.array([[x, y]], dtype=float))
    if not np.isfinite(w[0]) or w[0] <= min_w or not np.all(np.isfinite(xy)):
        return None
    return float(xy[0, 0]), float(xy[0, 1])


def project_many(
    matrix: Matrix3,
    points: Points2,
    min_w: float = 1e-9,
) -> Points2:
    """Batch projection; invalid rows are NaN."""
    xy, w = linalg.apply_homogeneous(matrix, points)
    invalid = ~np.isfinite(w) | (w <= min_w) | ~np.all(np.isfinite(xy), axis=1)
    xy[invalid] = np.nan
    return xy


def reprojection_errors(
    homography: Homography,
    pitch_points: PointsLike,
    video_points: PointsLike,
) -> Float[np.ndarray, "N"]:
    """Pixel distance between each clicked video point and its projected pitch point."""
    pitch = as_points(pitch_points, "Pitch points")
    video = as_points(video_points, "Video points")
    projected = project_many(homography.matrix, pitch)
    errors = np.linalg.norm(projected - video, axis=1)
    return np.where(np.isfinite(errors), errors, np.inf)


def validate_homography(
    homography: Homography,
    pitch_points: PointsLike,
    video_points: PointsLike,
    config: HomographyConfig | None = None,
) -> ValidationMetrics:
    """Back-project every clicked point onto the pitch and measure the error in meters."""
    cfg = config or HomographyConfig()
    pitch = as_points(pitch_points, "Pitch points")
    video = as_points(video_points, "Video points")
    if pitch.shape[0] == 0:
        return ValidationMetrics(0.0, 0.0, 0.0, 0, False)

    predicted = project_many(homography.inverse, video)
    errors_m = np.linalg.norm(predicted - pitch, axis=1)
    errors_m = np.where(np.isfinite(errors_m), errors_m, np.inf)
    errors_px = reprojection_errors(homography, pitch, video)

    mean_error_m = float(errors_m.mean())
    return ValidationMetrics(
        mean_error_m=mean_error_m,
        max_error_m=float(errors_m.max()),
        mean_reprojection_error_px=float(errors_px.mean()),
        point_count=int(pitch.shape[0]),
        is_valid=mean_error_m < cfg.validation_error_threshold_m,
    )
