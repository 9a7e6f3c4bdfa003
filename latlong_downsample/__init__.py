from .nodes import (
    EquirectangularDownsample,
    PanoramaPreview,
)


NODE_CLASS_MAPPINGS = {
    "Equirectangular Downsample": EquirectangularDownsample,
    "Panorama Preview": PanoramaPreview,
}

NODE_DISPLAY_NAME_MAPPINGS = {
    "Equirectangular Downsample": "Equirectangular Downsample (Spherical Kernel)",
    "Panorama Preview": "Preview Panorama (PNG)",
}

__version__ = "0.1.0"

__all__ = ['NODE_CLASS_MAPPINGS', 'NODE_DISPLAY_NAME_MAPPINGS', 'EquirectangularDownsample', 'PanoramaPreview']
