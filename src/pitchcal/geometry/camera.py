"""
Perspective camera built from a CalibrationState.

Coordinate systems:
- Scene frame: x along the pitch length, y up, z along the pitch width.
  The pitch plane is y = 0.
- Camera frame: x right, y up, looking down -z (standard look-at convention).
- NDC: x, y in [-1, 1] inside the view, y up. Pixels: origin top-left, y down.
"""

import math
from dataclasses import dataclass, field

import numpy as np
from jaxtyping import Float

from . import linalg
from .types import (
    CalibrationState,
    GeometryError,
    Matrix3,
    Matrix4,
    PitchCoord,
    VideoCoord,
    Viewport,
)

_EPS = 1e-9


def _ensure_points(points: Float[np.ndarray, "..."]) -> tuple[np.ndarray, bool]:
    """Normalize input points to shape (N, 3), track whether it was a single point."""
    pts = np.asarray(points, dtype=float)
    is_single = False
    if pts.ndim == 1:
        if pts.shape[0] != 3:
            raise GeometryError("Point must have length 3.")
        pts = pts.reshape(1, 3)
        is_single = True
    if pts.ndim != 2 or pts.shape[-1] != 3:
        raise GeometryError("Points array must have shape (N, 3).")
    return pts, is_single


def euler_xyz_to_matrix(rx: float, ry: float, rz: float) -> Matrix3:
    """Rotation camera->scene for Euler angles applied in XYZ order."""
    cx, sx = math.cos(rx), math.sin(rx)
    cy, sy = math.cos(ry), math.sin(ry)
    cz, sz = math.cos(rz), math.sin(rz)
    rot_x = np.array([[1.0, 0.0, 0.0], [0.0, cx, -sx], [0.0, sx, cx]])
    rot_y = np.array([[cy, 0.0, sy], [0.0, 1.0, 0.0], [-sy, 0.0, cy]])
    rot_z = np.array([[cz, -sz, 0.0], [sz, cz, 0.0], [0.0, 0.0, 1.0]])
    return linalg.multiply(linalg.multiply(rot_x, rot_y), rot_z)


def matrix_to_euler_xyz(rotation: Matrix3) -> tuple[float, float, float]:
    """Inverse of euler_xyz_to_matrix; roll is zeroed at gimbal lock."""
    m = np.asarray(rotation, dtype=float)
    ry = math.asin(max(-1.0, min(1.0, m[0, 2])))
    if abs(m[0, 2]) < 0.9999999:
        rx = math.atan2(-m[1, 2], m[2, 2])
        rz = math.atan2(-m[0, 1], m[0, 0])
    else:
        rx = math.atan2(m[2, 1], m[1, 1])
        rz = 0.0
    return rx, ry, rz


@dataclass(frozen=True, slots=True, eq=False)
class CameraModel:
    """
    Pinhole camera with vertical FOV, bound to a viewport in video pixels.

    Matrices are derived once at construction; build a new model when the
    calibration state or viewport changes.
    """

    state: CalibrationState
    viewport: Viewport
    near_m: float = 0.1
    far_m: float = 1000.0
    rotation_matrix: Matrix3 = field(init=False, repr=False)  # camera -> scene
    view_matrix: Matrix4 = field(init=False, repr=False)
    projection_matrix: Matrix4 = field(init=False, repr=False)
    view_projection_matrix: Matrix4 = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.viewport.validate()
        if not 0.0 < self.state.fov_deg < 180.0:
            raise GeometryError(f"Invalid vertical FOV: {self.state.fov_deg}")
        if not 0.0 < self.near_m < self.far_m:
            raise GeometryError("Clip planes must satisfy 0 < near < far")

        s = self.state
        rotation = euler_xyz_to_matrix(s.rotation_x_rad, s.rotation_y_rad, s.rotation_z_rad)
        world = np.eye(4)
        world[:3, :3] = rotation
        world[:3, 3] = s.position
        view = linalg.inverse(world)
        projection = self._build_projection()
        object.__setattr__(self, "rotation_matrix", rotation)
        object.__setattr__(self, "view_matrix", view)
        object.__setattr__(self, "projection_matrix", projection)
        object.__setattr__(
            self, "view_projection_matrix", linalg.multiply(projection, view)
        )

    def _build_projection(self) -> Matrix4:
        f = 1.0 / self.tan_half_fov
        near, far = self.near_m, self.far_m
        return np.array(
            [
                [f / self.viewport.aspect, 0.0, 0.0, 0.0],
                [0.0, f, 0.0, 0.0],
                [0.0, 0.0, -(far + near) / (far - near), -2.0 * far * near / (far - near)],
                [0.0, 0.0, -1.0, 0.0],
            ],
            dtype=float,
        )

    @property
    def position(self) -> Float[np.ndarray, "3"]:
        return self.state.position

    @property
    def tan_half_fov(self) -> float:
        return math.tan(math.radians(self.state.fov_deg) / 2.0)

    def _viewport_matrix(self) -> Float[np.ndarray, "3 4"]:
        """Clip-space [x, y, z, w] -> homogeneous pixel [u*w, v*w, w]."""
        half_w = self.viewport.width_px / 2.0
        half_h = self.viewport.height_px / 2.0
        return np.array(
            [
                [half_w, 0.0, 0.0, half_w],
                [0.0, -half_h, 0.0, half_h],
                [0.0, 0.0, 0.0, 1.0],
            ],
            dtype=float,
        )

    def world_to_ndc(
        self,
        points_world: Float[np.ndarray, "..."],
    ) -> tuple[Float[np.ndarray, "N 3"], Float[np.ndarray, "N"]]:
        """Scene points -> NDC plus clip-space w (positive in front of the camera)."""
        pts, _ = _ensure_points(points_world)
        homog = np.hstack([pts, np.ones((pts.shape[0], 1))])
        clip = homog @ self.view_projection_matrix.T
        w = clip[:, 3]
        with np.errstate(divide="ignore", invalid="ignore"):
            ndc = clip[:, :3] / w[:, None]
        return ndc, w

    def ndc_to_pixel(self, ndc_x: float, ndc_y: float) -> tuple[float, float]:
        u = (ndc_x + 1.0) / 2.0 * self.viewport.width_px
        v = (1.0 - ndc_y) / 2.0 * self.viewport.height_px
        return u, v

    def pixel_to_ndc(self, u_px: float, v_px: float) -> tuple[float, float]:
        ndc_x = 2.0 * u_px / self.viewport.width_px - 1.0
        ndc_y = 1.0 - 2.0 * v_px / self.viewport.height_px
        return ndc_x, ndc_y

    def project_world_point(
        self,
        point_world: Float[np.ndarray, "3"],
    ) -> tuple[float, float] | None:
        """Project one scene point to pixels; None when behind the camera."""
        ndc, w = self.world_to_ndc(point_world)
        if not np.isfinite(w[0]) or w[0] <= _EPS or not np.all(np.isfinite(ndc)):
            return None
        return self.ndc_to_pixel(float(ndc[0, 0]), float(ndc[0, 1]))

    def project_pitch_point(self, coord: PitchCoord) -> VideoCoord | None:
        projected = self.project_world_point(np.array([coord.x_m, 0.0, coord.y_m]))
        if projected is None:
            return None
        return VideoCoord(x_px=projected[0], y_px=projected[1])

    def pixel_to_camera_ray(self, u_px: float, v_px: float) -> Float[np.ndarray, "3"]:
        """Pixel -> unit direction in camera frame."""
        ndc_x, ndc_y = self.pixel_to_ndc(u_px, v_px)
        t = self.tan_half_fov
        v_cam = np.array([ndc_x * t * self.viewport.aspect, ndc_y * t, -1.0])
        return v_cam / float(np.linalg.norm(v_cam))

    def pixel_to_world_direction(self, u_px: float, v_px: float) -> Float[np.ndarray, "3"]:
        """Pixel -> unit direction expressed in scene frame."""
        direction_world = linalg.multiply(
            self.rotation_matrix, self.pixel_to_camera_ray(u_px, v_px)
        )
        norm = float(np.linalg.norm(direction_world))
        if norm < _EPS:
            raise GeometryError("Degenerate world ray direction")
        return direction_world / norm

    def plane_homography(self) -> Matrix3:
        """
        Pitch (x_m, y_m, 1) -> homogeneous pixel, i.e. the projection restricted
        to the y = 0 plane. Visible points have positive w.
        """
        full = self._viewport_matrix() @ self.view_projection_matrix
        return full[:, [0, 2, 3]].copy()
