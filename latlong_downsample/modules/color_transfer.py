import numpy as np


# sRGB transfer curve constants
K0 = 0.03928
A = 0.055
PHI = 12.92
GAMMA = 2.4


def linear(v):
    """Convert gamma-encoded values in [0,1] to linear light.

    Works elementwise on scalars and numpy arrays. No clamping is done.
    """
    v = np.asarray(v)
    curve = np.power((np.maximum(v, 0.0) + A) / (1.0 + A), GAMMA)
    return np.where(v <= K0, v / PHI, curve)


def srgb(v):
    """Convert linear light values to gamma-encoded values (inverse of `linear`).

    The result is not clamped: averaging can push values slightly outside [0,1],
    so callers clamp before quantizing to bytes.
    """
    v = np.asarray(v)
    curve = (1.0 + A) * np.power(np.maximum(v, 0.0), 1.0 / GAMMA) - A
    return np.where(v <= K0 / PHI, v * PHI, curve)
