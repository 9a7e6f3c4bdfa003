import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple

import numpy as np

from ..errors import ArgumentError, DecodeError, EncodeError
from .color_transfer import linear, srgb


logger = logging.getLogger(__name__)

ROUNDING_MODES = ('round', 'truncate')

_WHITESPACE = b" \t\r\n\v\f"


@dataclass
class EquirectangularImage:
    """Linear-light RGB pixel buffer, row-major (H, W, 3) float32."""
    name: str
    pixels: np.ndarray

    @classmethod
    def new(cls, name: str, width: int, height: int) -> "EquirectangularImage":
        return cls(name, np.zeros((height, width, 3), dtype=np.float32))

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def total(self) -> int:
        return self.width * self.height


def dequantize(data: np.ndarray) -> np.ndarray:
    """8-bit sRGB bytes to linear-light float32."""
    return linear(np.asarray(data, dtype=np.float32) / np.float32(255.0)).astype(np.float32)


def quantize(pixels: np.ndarray, rounding: str = 'round') -> np.ndarray:
    """Linear-light floats to 8-bit sRGB bytes.

    The encoded value is clamped to [0, 255] first. 'truncate' drops the fractional
    part, matching a plain float-to-byte cast; 'round' rounds to nearest.
    """
    if rounding not in ROUNDING_MODES:
        raise ArgumentError(f"Unknown rounding: {rounding}. Use 'round' or 'truncate'")
    encoded = np.clip(255.0 * srgb(pixels), 0.0, 255.0)
    if rounding == 'round':
        encoded = np.rint(encoded)
    return encoded.astype(np.uint8)


def _read_header(data: bytes, name: str) -> Tuple[List[int], int]:
    """Parse the three P6 header integers; returns them and the offset of the pixel data."""
    if data[:2] != b"P6" or data[2:3] not in _WHITESPACE + b"#":
        raise DecodeError(f'file "{name}" not P6 image.')

    idx = 2
    n = len(data)
    values = []
    for _ in range(3):
        # skip whitespace and comments up to the next token
        while idx < n:
            c = data[idx:idx + 1]
            if c in _WHITESPACE:
                idx += 1
            elif c == b"#":
                while idx < n and data[idx:idx + 1] != b"\n":
                    idx += 1
            else:
                break
        start = idx
        while idx < n and data[idx:idx + 1] not in _WHITESPACE + b"#":
            idx += 1
        if idx >= n:
            raise DecodeError(f'EOF while reading header from "{name}".')
        token = data[start:idx]
        if not token.isdigit():
            raise DecodeError(f'could not read image file "{name}": bad header token {token!r}.')
        values.append(int(token))

    # exactly one whitespace byte separates the header from the raster
    if data[idx:idx + 1] == b"#":
        raise DecodeError(f'could not read image file "{name}": comment after maxval.')
    return values, idx + 1


def decode(path) -> EquirectangularImage:
    """Read a binary PPM (P6) file into a linear-light image.

    Raises:
        DecodeError: unreadable file, wrong magic, maxval other than 255, zero
            dimensions, or a stream that ends before the header or raster is complete.
    """
    name = str(path)
    try:
        data = Path(path).read_bytes()
    except OSError as exc:
        raise DecodeError(f'could not open "{name}" file to read: {exc.strerror}.') from exc

    (width, height, maxval), offset = _read_header(data, name)
    if width == 0 or height == 0:
        raise DecodeError(f'could not read image file "{name}": empty {width}x{height} image.')
    if maxval != 255:
        raise DecodeError(f'cant read "{name}", only 8 bit per channel SRGB supported at the moment.')

    expected = width * height * 3
    raster = data[offset:offset + expected]
    if len(raster) < expected:
        raise DecodeError(f'EOF while reading from "{name}": got {len(raster)} of {expected} pixel bytes.')

    pixels = dequantize(np.frombuffer(raster, dtype=np.uint8).reshape(height, width, 3))
    logger.info("decoded %s (%dx%d)", name, width, height)
    return EquirectangularImage(name, pixels)


def encode(image: EquirectangularImage, path=None, rounding: str = 'round') -> None:
    """Write a linear-light image as a binary PPM (P6) file.

    `path` defaults to the image's name. A partially written file is left in place
    if writing fails.
    """
    name = str(path if path is not None else image.name)
    raster = quantize(image.pixels, rounding).tobytes()
    try:
        fp = open(name, 'wb')
    except OSError as exc:
        raise EncodeError(f'could not open "{name}" file to write: {exc.strerror}.') from exc
    with fp:
        try:
            fp.write(f"P6 {image.width} {image.height} 255\n".encode('ascii'))
            fp.write(raster)
        except OSError as exc:
            raise EncodeError(f'EOF while writing to "{name}": {exc.strerror}.') from exc
    logger.info("encoded %s (%dx%d)", name, image.width, image.height)
