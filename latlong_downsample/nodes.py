from typing import Dict, Tuple

import numpy as np
import torch

from .modules.color_transfer import linear, srgb
from .modules.kernel_resampler import BACKENDS, DEFAULT_MAX_SAMPLES, METHODS, EquirectangularDownsampler
from .modules.preview import png_data_url


def _frame_to_linear(frame: np.ndarray) -> np.ndarray:
    # alpha (if any) is already linear
    out = frame.astype(np.float32, copy=True)
    out[..., :3] = linear(out[..., :3])
    return out


def _frame_to_srgb(frame: np.ndarray) -> np.ndarray:
    out = frame.astype(np.float32, copy=True)
    out[..., :3] = srgb(out[..., :3])
    return np.clip(out, 0.0, 1.0)


class EquirectangularDownsample:
    """Node that downsamples equirectangular images with a pole-aware spherical kernel."""
    DESCRIPTION = "Downsample an equirectangular (360°) image, widening the filter towards the poles."

    @classmethod
    def INPUT_TYPES(s):
        return {
            "required": {
                "image": ("IMAGE", {"tooltip": "Equirectangular input image tensor (B,H,W,C) in [0,1], sRGB encoded."}),
            },
            "optional": {
                "output_width": ("INT", {"default": 512, "min": 1, "max": 16384, "step": 1, "tooltip": "Target width in pixels (at most the input width)."}),
                "output_height": ("INT", {"default": 256, "min": 1, "max": 8192, "step": 1, "tooltip": "Target height in pixels (at most the input height)."}),
                "method": (list(METHODS), {"default": "kernel", "tooltip": "kernel: spherical Gaussian (pole aware). box: solid-angle weighted area average. Others are planar OpenCV filters for comparison."}),
                "backend": (list(BACKENDS), {"default": "auto", "tooltip": "Processing backend. Auto uses GPU if available (kernel method only)."}),
                "max_samples": ("INT", {"default": DEFAULT_MAX_SAMPLES, "min": 1024, "max": 1 << 28, "step": 1024, "tooltip": "Kernel taps gathered at once. Lower values use less memory."}),
            }
        }

    RETURN_TYPES = ("IMAGE",)
    RETURN_NAMES = ("downsampled_image",)
    FUNCTION = "downsample"
    CATEGORY = "LatLong"

    def downsample(self,
                   image: torch.Tensor,
                   output_width: int = 512,
                   output_height: int = 256,
                   method: str = "kernel",
                   backend: str = "auto",
                   max_samples: int = DEFAULT_MAX_SAMPLES) -> Tuple[torch.Tensor]:
        """Downsample every image in the batch.

        Each frame is decoded from sRGB to linear light, resampled, and encoded back
        to sRGB. Channels past the third (alpha) are resampled as they are.

        Args:
            image (torch.Tensor): Equirectangular batch in format (B, H, W, C), values in [0, 1].
            output_width (int): Target width, at most the input width. Default: 512
            output_height (int): Target height, at most the input height. Default: 256
            method (str): 'kernel', 'box' or one of the planar OpenCV filters. Default: kernel
            backend (str): 'auto', 'cpu' or 'gpu'. Default: auto
            max_samples (int): Kernel taps gathered at once per row chunk.

        Returns:
            Tuple[torch.Tensor]: Batch in format (B, output_height, output_width, C).

        Raises:
            DimensionError: If the target is larger than the input or empty.
            ArgumentError: For an unknown method or backend, or the gpu backend without CUDA.
        """
        batch_size = image.shape[0]
        processed_images = []

        for i in range(batch_size):
            img_numpy = image[i].cpu().numpy()
            linear_img = _frame_to_linear(img_numpy)

            resized = EquirectangularDownsampler.downsample(
                linear_img,
                output_width,
                output_height,
                method=method,
                backend=backend,
                max_samples=max_samples,
            )
            processed_images.append(torch.from_numpy(_frame_to_srgb(resized)))

        result = torch.stack(processed_images, dim=0)
        return (result,)


class PanoramaPreview:
    """Node returning a PNG preview of the first image in a batch."""
    DESCRIPTION = "PNG preview of an equirectangular image."

    @classmethod
    def INPUT_TYPES(cls):
        return {
            "required": {
                "images": ("IMAGE", {"tooltip": "Equirectangular image to preview."}),
                "max_width": ("INT", {"default": 4096, "min": -1, "max": 8192, "step": 1, "tooltip": "Images larger than this are shrunk for display. -1 disables resizing."}),
            }
        }

    RETURN_TYPES = ()
    RETURN_NAMES = ()
    FUNCTION = "preview"
    OUTPUT_NODE = True
    CATEGORY = "LatLong"

    def preview(self, images: torch.Tensor, max_width: int = 4096) -> Dict[str, Dict[str, str]]:
        """Encode the first image of the batch as a PNG data URL for the UI.

        Args:
            images (torch.Tensor): Image(s) in format (B, H, W, C) or (H, W, C), sRGB in [0, 1].
            max_width (int, optional): Images wider than this are shrunk with Lanczos.
                Set to -1 to disable resizing. Default: 4096

        Returns:
            Dict[str, Dict[str, str]]: UI update carrying the base64-encoded PNG under
                "pano_image".
        """
        image = images[0] if len(images.shape) == 4 else images
        image_np = image.cpu().numpy().astype(np.float32)
        if image_np.ndim == 3 and image_np.shape[2] >= 3:
            image_np = _frame_to_linear(image_np)
        else:
            image_np = linear(image_np).astype(np.float32)
        return {"ui": {"pano_image": png_data_url(image_np, max_width)}}
