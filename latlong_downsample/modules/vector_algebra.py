from typing import NamedTuple, Union

import numpy as np

Scalar = Union[float, np.ndarray]


class Vec2(NamedTuple):
    """Normalized angular coordinate: u is longitude, v is colatitude."""
    u: Scalar
    v: Scalar


class Vec3(NamedTuple):
    """Cartesian vector, usually a direction on the unit sphere."""
    x: Scalar
    y: Scalar
    z: Scalar


def add(a: Vec3, b: Vec3) -> Vec3:
    return Vec3(a.x + b.x, a.y + b.y, a.z + b.z)


def smul(s: Scalar, a: Vec3) -> Vec3:
    return Vec3(s * a.x, s * a.y, s * a.z)


def dot(a: Vec3, b: Vec3) -> Scalar:
    return a.x * b.x + a.y * b.y + a.z * b.z


def length(a: Vec3) -> Scalar:
    return np.sqrt(dot(a, a))


def normalize(a: Vec3) -> Vec3:
    n = length(a)
    if np.any(n == 0):
        raise ValueError("Cannot normalize a zero-length vector")
    return Vec3(a.x / n, a.y / n, a.z / n)


def cross(a: Vec3, b: Vec3) -> Vec3:
    return Vec3(a.y * b.z - a.z * b.y,
                a.z * b.x - a.x * b.z,
                a.x * b.y - a.y * b.x)


def orthogonal(a: Vec3) -> Vec3:
    """Return a unit vector orthogonal to `a`.

    The candidate is built from the two components of larger magnitude, so the
    result never degenerates even when `a` lies close to a coordinate axis.
    """
    ax, ay, az = np.abs(a.x), np.abs(a.y), np.abs(a.z)
    drop_x = (ax <= ay) & (ax <= az)
    drop_y = ~drop_x & (ay <= az)
    zero = np.zeros_like(ax)
    # drop x: (0, -z, y); drop y: (z, 0, -x); drop z: (-y, x, 0)
    x = np.where(drop_x, zero, np.where(drop_y, a.z, -a.y))
    y = np.where(drop_x, -a.z, np.where(drop_y, zero, a.x))
    z = np.where(drop_x, a.y, np.where(drop_y, -a.x, zero))
    return normalize(Vec3(x, y, z))
