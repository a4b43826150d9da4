from dataclasses import dataclass

import numpy as np
from jaxtyping import Float

from .camera import CameraModel
from .types import PitchCoord, VideoCoord

_EPS = 1e-9


@dataclass(slots=True)
class Ray3D:
    origin_m: Float[np.ndarray, "3"]  # camera optical center in scene frame
    direction: Float[np.ndarray, "3"]  # unit vector in scene frame


def pixel_to_world_ray(
    u_px: float,
    v_px: float,
    camera: CameraModel,
) -> Ray3D:
    """Cast a ray from the camera center through a video pixel."""
    direction_world = camera.pixel_to_world_direction(u_px, v_px)
    return Ray3D(origin_m=camera.position, direction=direction_world)


def intersect_pitch_plane(
    ray: Ray3D,
    plane_height_m: float = 0.0,
) -> Float[np.ndarray, "3"] | None:
    """
    Intersect a ray with the horizontal plane y = plane_height_m.

    Returns None when the ray is parallel to the plane or points away from it
    (e.g. a pixel above the horizon).
    """
    dy = float(ray.direction[1])
    if abs(dy) < _EPS:
        return None
    t = (plane_height_m - float(ray.origin_m[1])) / dy
    if not np.isfinite(t) or t <= _EPS:
        return None
    return ray.origin_m + t * ray.direction


def pixel_to_pitch(camera: CameraModel, coord: VideoCoord) -> PitchCoord | None:
    """Pitch position under a video pixel, or None if the ray misses the pitch plane."""
    ray = pixel_to_world_ray(coord.x_px, coord.y_px, camera)
    hit = intersect_pitch_plane(ray)
    if hit is None:
        return None
    return PitchCoord(x_m=float(hit[0]), y_m=float(hit[2]))
