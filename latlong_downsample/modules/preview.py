import base64
from io import BytesIO

import numpy as np
from PIL import Image

from ..errors import EncodeError
from .ppm_codec import EquirectangularImage, quantize


def to_pil(image: EquirectangularImage, max_width: int = -1) -> Image.Image:
    """Convert a linear-light image to an 8-bit sRGB PIL image.

    Images wider or taller than `max_width` are shrunk with Lanczos, keeping the
    aspect ratio. Set `max_width` to -1 to disable resizing.
    """
    pil_image = Image.fromarray(quantize(image.pixels, 'round'))
    if max_width > 0 and (
        pil_image.size[0] > max_width or pil_image.size[1] > max_width
    ):
        new_size = tuple(
            [max(1, int(max_width * x / max(pil_image.size))) for x in pil_image.size]
        )
        pil_image = pil_image.resize(new_size, resample=Image.Resampling.LANCZOS)
    return pil_image


def write_png(image: EquirectangularImage, path, max_width: int = -1) -> None:
    try:
        to_pil(image, max_width).save(path, format="PNG")
    except OSError as exc:
        raise EncodeError(f'could not write preview "{path}": {exc}.') from exc


def png_data_url(pixels: np.ndarray, max_width: int = 4096) -> str:
    """Base64 PNG data URL of an (H, W, C) linear-light array, for UI previews."""
    if pixels.ndim == 2 or pixels.shape[2] == 1:
        pixels = np.repeat(pixels.reshape(pixels.shape[0], pixels.shape[1], 1), 3, axis=2)
    image = EquirectangularImage("preview", np.ascontiguousarray(pixels[..., :3], dtype=np.float32))

    buffered = BytesIO()
    to_pil(image, max_width).save(buffered, format="PNG")
    img_str = base64.b64encode(buffered.getvalue()).decode()
    return f"data:image/png;base64,{img_str}"
