import dataclasses
import logging
import math

import cv2
import numpy as np

from .camera import CameraModel, matrix_to_euler_xyz
from .homography import PointsLike, as_points
from .types import (
    CalibrationError,
    CalibrationState,
    CameraFitConfig,
    CameraFitResult,
    GeometryError,
    InsufficientCorrespondencesError,
    Viewport,
)

logger = logging.getLogger(__name__)

# Object frame (x_m, y_m, 0) -> scene frame (x_m, 0, y_m), a proper rotation.
_OBJECT_TO_SCENE = np.array(
    [[1.0, 0.0, 0.0], [0.0, 0.0, -1.0], [0.0, 1.0, 0.0]],
    dtype=float,
)
# OpenCV camera axes (y down, z forward) -> look-at camera axes (y up, -z forward).
_CV_TO_SCENE_CAMERA = np.diag([1.0, -1.0, -1.0])


def _build_camera_matrix(viewport: Viewport, fov_deg: float) -> np.ndarray:
    """Pinhole matrix for a vertical FOV with the principal point at the viewport center."""
    focal_px = (viewport.height_px / 2.0) / math.tan(math.radians(fov_deg) / 2.0)
    return np.array(
        [
            [focal_px, 0.0, viewport.width_px / 2.0],
            [0.0, focal_px, viewport.height_px / 2.0],
            [0.0, 0.0, 1.0],
        ],
        dtype=float,
    )


def _pose_to_state(rvec: np.ndarray, tvec: np.ndarray, fov_deg: float) -> CalibrationState:
    r_obj, _ = cv2.Rodrigues(rvec)
    r_scene = r_obj @ _OBJECT_TO_SCENE.T  # scene -> OpenCV camera
    position = -r_scene.T @ tvec.reshape(3)
    rx, ry, rz = matrix_to_euler_xyz(r_scene.T @ _CV_TO_SCENE_CAMERA)
    return CalibrationState(
        camera_x=float(position[0]),
        camera_y=float(position[1]),
        camera_z=float(position[2]),
        rotation_x_rad=rx,
        rotation_y_rad=ry,
        rotation_z_rad=rz,
        fov_deg=float(fov_deg),
    )


def compute_reprojection_error(
    state: CalibrationState,
    viewport: Viewport,
    pitch_points: PointsLike,
    video_points: PointsLike,
) -> float:
    """Mean pixel error of the camera's projection of each pitch point."""
    pitch = as_points(pitch_points, "Pitch points")
    video = as_points(video_points, "Video points")
    if pitch.shape[0] == 0:
        return 0.0

    try:
        camera = CameraModel(state, viewport)
    except GeometryError as exc:
        logger.debug("Cannot build camera for reprojection: %s", exc)
        return math.inf
    errors = []
    for (x_m, y_m), (u_px, v_px) in zip(pitch, video):
        projected = camera.project_world_point(np.array([x_m, 0.0, y_m]))
        if projected is None:
            return math.inf
        errors.append(math.hypot(projected[0] - u_px, projected[1] - v_px))
    return float(np.mean(errors))


def _finite_pose(ok: bool, rvec: np.ndarray | None, tvec: np.ndarray | None) -> bool:
    return bool(
        ok
        and rvec is not None
        and tvec is not None
        and np.all(np.isfinite(rvec))
        and np.all(np.isfinite(tvec))
    )


def _pnp_poses(
    object_points: np.ndarray,
    image_points: np.ndarray,
    camera_matrix: np.ndarray,
) -> list[tuple[np.ndarray, np.ndarray]]:
    """Candidate (rvec, tvec) pairs; solvePnP may report success with NaN output."""
    dist_coeffs = np.zeros(5, dtype=float)
    poses: list[tuple[np.ndarray, np.ndarray]] = []
    try:
        ok, rvec, tvec = cv2.solvePnP(
            object_points,
            image_points,
            camera_matrix,
            dist_coeffs,
            flags=cv2.SOLVEPNP_IPPE,
        )
        if _finite_pose(ok, rvec, tvec):
            poses.append((rvec, tvec))
            # Refine on copies; OpenCV writes the guess arrays in place
            ok, rvec, tvec = cv2.solvePnP(
                object_points,
                image_points,
                camera_matrix,
                dist_coeffs,
                rvec=rvec.copy(),
                tvec=tvec.copy(),
                useExtrinsicGuess=True,
                flags=cv2.SOLVEPNP_ITERATIVE,
            )
        else:
            ok, rvec, tvec = cv2.solvePnP(
                object_points,
                image_points,
                camera_matrix,
                dist_coeffs,
                flags=cv2.SOLVEPNP_ITERATIVE,
            )
    except cv2.error as exc:  # pragma: no cover
        raise CalibrationError(f"solvePnP failed: {exc}") from exc

    if _finite_pose(ok, rvec, tvec):
        poses.append((rvec, tvec))
    return poses


def _solve_pose_for_fov(
    pitch: np.ndarray,
    video: np.ndarray,
    viewport: Viewport,
    fov_deg: float,
) -> tuple[CalibrationState, float] | None:
    object_points = np.ascontiguousarray(np.column_stack([pitch, np.zeros(pitch.shape[0])]))
    image_points = np.ascontiguousarray(video.reshape(-1, 2))
    camera_matrix = _build_camera_matrix(viewport, fov_deg)

    best: tuple[CalibrationState, float] | None = None
    for rvec, tvec in _pnp_poses(object_points, image_points, camera_matrix):
        state = _pose_to_state(rvec, tvec, fov_deg)
        if not all(math.isfinite(v) for v in dataclasses.astuple(state)):
            continue
        if state.camera_y <= 0.0:
            # Mirror solution under the pitch plane
            continue
        error = compute_reprojection_error(state, viewport, pitch, video)
        if math.isfinite(error) and (best is None or error < best[1]):
            best = (state, error)
    return best


def _search(
    pitch: np.ndarray,
    video: np.ndarray,
    viewport: Viewport,
    fovs: np.ndarray,
) -> tuple[CalibrationState, float] | None:
    best: tuple[CalibrationState, float] | None = None
    for fov in fovs:
        candidate = _solve_pose_for_fov(pitch, video, viewport, float(fov))
        if candidate is not None and (best is None or candidate[1] < best[1]):
            best = candidate
    return best


def fit_camera_state(
    pitch_points: PointsLike,
    video_points: PointsLike,
    viewport: Viewport,
    fov_deg: float | None = None,
    config: CameraFitConfig | None = None,
) -> CameraFitResult:
    """
    Recover camera placement (position, Euler angles, FOV) from correspondences:
    - If fov_deg is provided, only solve position and orientation
    - Otherwise search the FOV coarse-to-fine, solving PnP for each candidate
    """
    cfg = config or CameraFitConfig()
    cfg.validate()
    viewport.validate()
    pitch = as_points(pitch_points, "Pitch points")
    video = as_points(video_points, "Video points")

    if pitch.shape[0] < 4 or video.shape[0] < 4:
        raise InsufficientCorrespondencesError("Not enough points for PnP (need >= 4)")
    if pitch.shape[0] != video.shape[0]:
        raise CalibrationError("Mismatch between pitch and video point counts")

    if fov_deg is not None:
        best = _search(pitch, video, viewport, np.array([fov_deg], dtype=float))
    else:
        coarse = np.arange(cfg.fov_min_deg, cfg.fov_max_deg + 1e-9, cfg.coarse_step_deg)
        best = _search(pitch, video, viewport, coarse)
        if best is not None:
            center = best[0].fov_deg
            low = max(cfg.fov_min_deg, center - cfg.coarse_step_deg)
            high = min(cfg.fov_max_deg, center + cfg.coarse_step_deg)
            fine = np.arange(low, high + 1e-9, cfg.fine_step_deg)
            refined = _search(pitch, video, viewport, fine)
            if refined is not None and refined[1] < best[1]:
                best = refined

    if best is None:
        raise CalibrationError("solvePnP failed to find a camera above the pitch")

    state, reproj_err = best
    if reproj_err > cfg.reprojection_error_threshold_px:
        raise CalibrationError(
            (
                "Reprojection error too large: "
                f"{reproj_err:.3f}px (threshold={cfg.reprojection_error_threshold_px}px)"
            )
        )

    logger.debug(
        "Camera fit completed: reprojection_error_px=%.4f, fov_deg=%.2f, num_points=%d",
        reproj_err,
        state.fov_deg,
        pitch.shape[0],
    )
    return CameraFitResult(
        state=state,
        reprojection_error_px=reproj_err,
        num_points=pitch.shape[0],
    )
