import logging
from typing import Tuple

import cv2
import numpy as np
import torch

from ..errors import ArgumentError, DimensionError
from .spherical_projection import angular_to_pixel, pixel_to_angular, to_angular, to_direction
from .vector_algebra import Vec3, add, cross, normalize, orthogonal, smul


logger = logging.getLogger(__name__)

# Upper bound on the latitude multiplier, reached within ~7° of the poles.
MAX_LATITUDE_WEIGHT = 8.0

# Kernel taps gathered at once when sampling a row; bounds peak memory.
DEFAULT_MAX_SAMPLES = 1 << 21

METHODS = ('kernel', 'box', 'area', 'lanczos', 'bicubic', 'bilinear', 'nearest')
BACKENDS = ('auto', 'cpu', 'gpu')

_CV_INTERPOLATION = {
    'area': cv2.INTER_AREA,
    'lanczos': cv2.INTER_LANCZOS4,
    'bicubic': cv2.INTER_CUBIC,
    'bilinear': cv2.INTER_LINEAR,
    'nearest': cv2.INTER_NEAREST,
}


class EquirectangularDownsampler:
    """Downsample equirectangular panoramas in linear light.

    The default `kernel` method integrates a Gaussian footprint laid out on the
    tangent plane of every output direction, widened towards the poles where
    equirectangular rows cover less solid angle.
    """

    @staticmethod
    def check_dimensions(in_width: int, in_height: int, out_width: int, out_height: int) -> None:
        if out_width <= 0 or out_height <= 0:
            raise DimensionError(f"output {out_width}x{out_height} must have positive dimensions")
        if in_width < out_width or in_height < out_height:
            raise DimensionError(
                f"output {out_width}x{out_height} must be smaller or equal to input {in_width}x{in_height}"
            )

    @staticmethod
    def sampling_radius(in_width: int, in_height: int, out_width: int, out_height: int) -> int:
        """Kernel radius in input pixels, from the worst-case downscale ratio of both axes."""
        return int(max(in_width / out_width, in_height / out_height) / 2)

    @staticmethod
    def angular_step(in_width: int, in_height: int) -> float:
        """Length of one input pixel on the unit sphere, in the units of the tangent basis."""
        return 1.0 / max(in_width / 2, in_height)

    @staticmethod
    def latitude_weight(v):
        """Kernel widening for a row at normalized colatitude v: min(8, 1/sin(v*pi))."""
        s = np.sin(np.pi * np.asarray(v, dtype=np.float64))
        return 1.0 / np.maximum(s, 1.0 / MAX_LATITUDE_WEIGHT)

    @staticmethod
    def gaussian_kernel(ai: np.ndarray, aj: np.ndarray, half_width: float) -> np.ndarray:
        """Isotropic Gaussian with sigma = half_width / 3, or a unit point sample at 0."""
        ai = np.asarray(ai, dtype=np.float64)
        aj = np.asarray(aj, dtype=np.float64)
        if half_width == 0:
            return np.ones(np.broadcast(ai, aj).shape)
        sigma2 = (half_width / 3.0) ** 2
        return np.exp(-(ai * ai + aj * aj) / (2.0 * sigma2)) / (2.0 * np.pi * sigma2)

    @classmethod
    def row_kernel(cls, oj: int, out_height: int, radius: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Integer offsets (ai, aj) and Gaussian weights for output row oj."""
        half_width = radius * float(cls.latitude_weight(oj / out_height))
        extent = int(half_width)
        offsets = np.arange(-extent, extent + 1, dtype=np.float64)
        aj, ai = np.meshgrid(offsets, offsets, indexing='ij')
        return ai, aj, cls.gaussian_kernel(ai, aj, half_width)

    @classmethod
    def kernel_weight_sums(cls, in_width: int, in_height: int, out_width: int, out_height: int) -> np.ndarray:
        """Sum of kernel weights used by each output row (identical for every pixel in a row)."""
        radius = cls.sampling_radius(in_width, in_height, out_width, out_height)
        return np.array([cls.row_kernel(oj, out_height, radius)[2].sum() for oj in range(out_height)])

    @classmethod
    def _kernel_row(cls, pixels: np.ndarray, oj: int, out_width: int, out_height: int,
                    radius: int, delta: float, max_samples: int) -> np.ndarray:
        in_height, in_width, channels = pixels.shape
        ai, aj, kernel = cls.row_kernel(oj, out_height, radius)
        ai_step = (delta * ai)[None]
        aj_step = (delta * aj)[None]
        chunk = max(1, max_samples // kernel.size)

        row = np.empty((out_width, channels), dtype=np.float64)
        for start in range(0, out_width, chunk):
            oi = np.arange(start, min(start + chunk, out_width))
            car = to_direction(pixel_to_angular(oi, oj, out_width, out_height))
            car = Vec3(*np.broadcast_arrays(*car))
            orth0 = orthogonal(car)
            orth1 = cross(orth0, car)

            car, orth0, orth1 = (Vec3(*(c[:, None, None] for c in vec)) for vec in (car, orth0, orth1))
            sample = normalize(add(car, add(smul(ai_step, orth0), smul(aj_step, orth1))))
            ii, ij = angular_to_pixel(to_angular(sample), in_width, in_height)

            taps = pixels[ij, ii]  # (n, K, K, C)
            row[oi] = np.einsum('nklc,kl->nc', taps, kernel)

        return row / kernel.sum()

    @classmethod
    def kernel_downsample(cls, pixels: np.ndarray, out_width: int, out_height: int,
                          max_samples: int = DEFAULT_MAX_SAMPLES) -> np.ndarray:
        """Tangent-plane Gaussian downsampling on the CPU (numpy)."""
        in_height, in_width = pixels.shape[:2]
        radius = cls.sampling_radius(in_width, in_height, out_width, out_height)
        delta = cls.angular_step(in_width, in_height)
        logger.info("kernel downsample %dx%d -> %dx%d (radius=%d, delta=%.6g)",
                    in_width, in_height, out_width, out_height, radius, delta)

        output = np.empty((out_height, out_width, pixels.shape[2]), dtype=np.float32)
        for oj in range(out_height):
            output[oj] = cls._kernel_row(pixels, oj, out_width, out_height, radius, delta, max_samples)
            logger.debug("row %d/%d done", oj + 1, out_height)
        return output

    @staticmethod
    def box_downsample(pixels: np.ndarray, out_width: int, out_height: int) -> np.ndarray:
        """Area average with rows weighted by the solid angle they cover, sin(colatitude).

        Output pixel (oi, oj) averages input columns [oi*W_in//W_out, (oi+1)*W_in//W_out)
        and the matching rows.
        """
        in_height, in_width = pixels.shape[:2]
        rows = np.arange(out_height) * in_height // out_height
        cols = np.arange(out_width) * in_width // out_width

        row_weight = np.sin(np.pi * (np.arange(in_height) + 0.5) / in_height)
        weighted = pixels.astype(np.float64) * row_weight[:, None, None]
        sums = np.add.reduceat(np.add.reduceat(weighted, rows, axis=0), cols, axis=1)

        weight_sums = np.add.reduceat(row_weight, rows)[:, None] * np.diff(np.append(cols, in_width))[None, :]
        return (sums / weight_sums[..., None]).astype(np.float32)

    @staticmethod
    def planar_downsample(pixels: np.ndarray, out_width: int, out_height: int,
                          interpolation: str = 'area') -> np.ndarray:
        """Plain OpenCV resize that ignores the projection; kept as a baseline."""
        resized = cv2.resize(pixels.astype(np.float32), (out_width, out_height),
                             interpolation=_CV_INTERPOLATION[interpolation])
        # cv2 drops a trailing single channel
        return resized[..., None] if resized.ndim == 2 else resized

    # =============================
    # Torch (GPU) implementation
    # =============================
    @classmethod
    def torch_kernel_downsample(cls, image: torch.Tensor, out_width: int, out_height: int,
                                max_samples: int = DEFAULT_MAX_SAMPLES) -> torch.Tensor:
        """Tangent-plane Gaussian downsampling with torch.

        Args:
            image: Tensor (H, W, C) of linear-light values on any device.
        Returns:
            Tensor (out_height, out_width, C) on the same device and dtype.
        """
        device = image.device
        dtype = image.dtype
        in_height, in_width, channels = image.shape
        radius = cls.sampling_radius(in_width, in_height, out_width, out_height)
        delta = cls.angular_step(in_width, in_height)
        logger.info("torch kernel downsample %dx%d -> %dx%d on %s (radius=%d, delta=%.6g)",
                    in_width, in_height, out_width, out_height, device, radius, delta)

        src = image.to(torch.float64)
        out = torch.empty((out_height, out_width, channels), device=device, dtype=dtype)
        for oj in range(out_height):
            ai, aj, kernel = (torch.from_numpy(a).to(device) for a in cls.row_kernel(oj, out_height, radius))
            ai = (delta * ai).unsqueeze(0)
            aj = (delta * aj).unsqueeze(0)
            chunk = max(1, max_samples // kernel.numel())
            theta = torch.tensor(np.pi * (oj / out_height), device=device, dtype=torch.float64)

            for start in range(0, out_width, chunk):
                stop = min(start + chunk, out_width)
                u = torch.arange(start, stop, device=device, dtype=torch.float64) / out_width
                phi = (u - 0.5) * (2 * np.pi)
                x = torch.sin(theta) * torch.cos(phi)
                y = torch.cos(theta) * torch.ones_like(phi)
                z = torch.sin(theta) * torch.sin(phi)

                # Tangent basis: orth0 drops the smallest-magnitude axis, orth1 = orth0 x car
                ax, ay, az = x.abs(), y.abs(), z.abs()
                drop_x = (ax <= ay) & (ax <= az)
                drop_y = ~drop_x & (ay <= az)
                zero = torch.zeros_like(x)
                o0x = torch.where(drop_x, zero, torch.where(drop_y, z, -y))
                o0y = torch.where(drop_x, -z, torch.where(drop_y, zero, x))
                o0z = torch.where(drop_x, y, torch.where(drop_y, -x, zero))
                norm = torch.sqrt(o0x**2 + o0y**2 + o0z**2)
                o0x = o0x / norm; o0y = o0y / norm; o0z = o0z / norm
                o1x = o0y * z - o0z * y
                o1y = o0z * x - o0x * z
                o1z = o0x * y - o0y * x

                def expand(t):
                    return t[:, None, None]

                px = expand(x) + ai * expand(o0x) + aj * expand(o1x)
                py = expand(y) + ai * expand(o0y) + aj * expand(o1y)
                pz = expand(z) + ai * expand(o0z) + aj * expand(o1z)
                norm = torch.sqrt(px**2 + py**2 + pz**2)
                px = px / norm; py = py / norm; pz = pz / norm

                u_s = 0.5 + torch.atan2(pz + 0.0, px + 0.0) / (2 * np.pi)
                v_s = torch.acos(torch.clamp(py, -1.0, 1.0)) / np.pi
                ii = torch.remainder(torch.floor(u_s * in_width).long(), in_width)
                ij = torch.clamp(torch.floor(v_s * in_height).long(), 0, in_height - 1)

                taps = src[ij, ii]  # (n, K, K, C)
                acc = torch.einsum('nklc,kl->nc', taps, kernel)
                out[oj, start:stop] = (acc / kernel.sum()).to(dtype)

        return out

    @classmethod
    def downsample(cls,
                   pixels: np.ndarray,
                   out_width: int,
                   out_height: int,
                   method: str = 'kernel',
                   backend: str = 'auto',
                   max_samples: int = DEFAULT_MAX_SAMPLES) -> np.ndarray:
        """Downsample a linear-light equirectangular image.

        Args:
            pixels: Array (H, W, C) of linear-light values.
            out_width, out_height: Target size, each no larger than the input.
            method: 'kernel' (spherical Gaussian), 'box' (solid-angle weighted area
                average) or one of the planar OpenCV filters
                ('area', 'lanczos', 'bicubic', 'bilinear', 'nearest').
            backend: 'cpu', 'gpu' or 'auto' (gpu when CUDA is available). Only the
                kernel method has a gpu implementation.
            max_samples: Upper bound on kernel taps gathered at once.

        Returns:
            Array (out_height, out_width, C) float32.
        """
        in_height, in_width = pixels.shape[:2]
        cls.check_dimensions(in_width, in_height, out_width, out_height)
        if method not in METHODS:
            raise ArgumentError(f"Unknown method: {method}. Use one of: {', '.join(METHODS)}")
        if backend not in BACKENDS:
            raise ArgumentError(f"Unknown backend: {backend}. Use one of: {', '.join(BACKENDS)}")
        if backend == 'gpu':
            if method != 'kernel':
                raise ArgumentError(f"gpu backend only supports the kernel method, got {method!r}")
            if not torch.cuda.is_available():
                raise ArgumentError("gpu backend requested but CUDA is not available")

        use_gpu = method == 'kernel' and (backend == 'gpu' or (backend == 'auto' and torch.cuda.is_available()))
        logger.info("method=%s backend=%s", method, 'gpu' if use_gpu else 'cpu')

        if use_gpu:
            image = torch.from_numpy(np.ascontiguousarray(pixels, dtype=np.float32)).to('cuda')
            return cls.torch_kernel_downsample(image, out_width, out_height, max_samples).cpu().numpy()
        if method == 'kernel':
            return cls.kernel_downsample(pixels, out_width, out_height, max_samples)
        if method == 'box':
            return cls.box_downsample(pixels, out_width, out_height)
        return cls.planar_downsample(pixels, out_width, out_height, method)
