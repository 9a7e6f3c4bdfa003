import numpy as np

from .vector_algebra import Vec2, Vec3


def to_direction(angular: Vec2) -> Vec3:
    """Map a normalized (u, v) equirectangular coordinate to a unit-sphere direction.

    v is colatitude (v=0 at the +Y pole, v=1 at the -Y pole) and u is longitude
    with u=0.5 facing +X.
    """
    theta = np.pi * np.asarray(angular.v)
    phi = 2 * np.pi * (np.asarray(angular.u) - 0.5)
    sin_theta = np.sin(theta)
    return Vec3(sin_theta * np.cos(phi), np.cos(theta), sin_theta * np.sin(phi))


def to_angular(direction: Vec3) -> Vec2:
    """Inverse of `to_direction`. Longitude is undefined at the poles."""
    # + 0.0 turns -0.0 into +0.0 so every pole direction gets the same longitude
    u = 0.5 + np.arctan2(direction.z + 0.0, direction.x + 0.0) / (2 * np.pi)
    v = np.arccos(np.clip(direction.y, -1.0, 1.0)) / np.pi
    return Vec2(u, v)


def pixel_to_angular(i, j, width: int, height: int) -> Vec2:
    """Scale pixel indices to normalized angular coordinates."""
    return Vec2(np.asarray(i) / width, np.asarray(j) / height)


def angular_to_pixel(angular: Vec2, width: int, height: int):
    """Truncate angular coordinates to pixel indices.

    Longitude wraps around the seam; latitude is clamped to the first and last row.
    Floating-point rounding can put u or v exactly at 1.0, which would otherwise index
    one past the end of the buffer.
    """
    i = np.floor(np.asarray(angular.u) * width).astype(np.int64) % width
    j = np.clip(np.floor(np.asarray(angular.v) * height).astype(np.int64), 0, height - 1)
    return i, j
