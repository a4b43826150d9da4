
import numpy as np
from jaxtyping import Float

from .camera import CameraModel
from .homography import as_points, project_many, project_through
from .rays import pixel_to_pitch
from .types import (
    Homography,
    HomographyConfig,
    Matrix3,
    PitchCoord,
    Points2,
    TransformSource,
    ValidationMetrics,
    VideoCoord,
)


class CoordinateTransformer:
    """
    Read-only pitch <-> video mapping.

    A homography, when present, answers every query; otherwise the camera
    model projects points and casts rays onto the pitch plane. Without
    either, all queries return None. Matrices are fixed at construction.
    """

    def __init__(
        self,
        homography: Homography | None = None,
        camera: CameraModel | None = None,
        metrics: ValidationMetrics | None = None,
        config: HomographyConfig | None = None,
    ):
        self._cfg = config or HomographyConfig()
        self._homography = homography
        self._camera = camera
        self._metrics = metrics
        self._camera_plane: Matrix3 | None = None
        if homography is None and camera is not None:
            self._camera_plane = camera.plane_homography()

    @property
    def source(self) -> TransformSource:
        if self._homography is not None:
            return TransformSource.HOMOGRAPHY
        if self._camera is not None:
            return TransformSource.CAMERA
        return TransformSource.NONE

    @property
    def homography(self) -> Homography | None:
        return self._homography

    @property
    def camera(self) -> CameraModel | None:
        return self._camera

    @property
    def metrics(self) -> ValidationMetrics | None:
        return self._metrics

    @property
    def matrix(self) -> Matrix3 | None:
        """Active pitch -> video matrix (the camera's plane homography in camera mode)."""
        if self._homography is not None:
            return self._homography.matrix
        return self._camera_plane

    def is_calibrated(self) -> bool:
        return self.source is not TransformSource.NONE

    def pitch_to_video(self, coord: PitchCoord) -> VideoCoord | None:
        """None marks an off-screen or invalid projection; callers skip drawing it."""
        if self._homography is not None:
            projected = project_through(
                self._homography.matrix, coord.x_m, coord.y_m, self._cfg.min_homogeneous_w
            )
            if projected is None:
                return None
            return VideoCoord(x_px=projected[0], y_px=projected[1])
        if self._camera is not None:
            return self._camera.project_pitch_point(coord)
        return None

    def video_to_pitch(self, coord: VideoCoord) -> PitchCoord | None:
        """None when no pitch position lies under the pixel (e.g. above the horizon)."""
        if self._homography is not None:
            projected = project_through(
                self._homography.inverse, coord.x_px, coord.y_px, self._cfg.min_homogeneous_w
            )
            if projected is None:
                return None
            return PitchCoord(x_m=projected[0], y_m=projected[1])
        if self._camera is not None:
            return pixel_to_pitch(self._camera, coord)
        return None

    def pitch_to_video_many(self, points: Points2) -> Float[np.ndarray, "N 2"]:
        pts = as_points(points, "Pitch points")
        matrix = self.matrix
        if matrix is None:
            return np.full(pts.shape, np.nan)
        return project_many(matrix, pts, self._cfg.min_homogeneous_w)

    def video_to_pitch_many(self, points: Points2) -> Float[np.ndarray, "N 2"]:
        pts = as_points(points, "Video points")
        if self._homography is not None:
            return project_many(self._homography.inverse, pts, self._cfg.min_homogeneous_w)
        out = np.full(pts.shape, np.nan)
        if self._camera is not None:
            for i, (u_px, v_px) in enumerate(pts):
                hit = pixel_to_pitch(self._camera, VideoCoord(float(u_px), float(v_px)))
                if hit is not None:
                    out[i] = (hit.x_m, hit.y_m)
        return out
