import os
import sys
import numpy as np
import torch


def load_latlong_nodes_package(repo_root: str):
    if repo_root not in sys.path:
        sys.path.insert(0, repo_root)
    import latlong_downsample
    return latlong_downsample


def make_test_image(h=64, w=128, c=3):
    # Synthetic equirectangular-like gradient
    x = np.linspace(0, 1, w, dtype=np.float32)
    y = np.linspace(0, 1, h, dtype=np.float32)
    xv, yv = np.meshgrid(x, y)
    img = np.stack([
        xv,
        yv,
        0.5 * np.ones_like(xv, dtype=np.float32)
    ], axis=-1)
    if c == 4:
        alpha = np.ones((h, w, 1), dtype=np.float32)
        img = np.concatenate([img, alpha], axis=-1)
    return img


def to_batch_tensor(np_img, batch=2):
    t = torch.from_numpy(np_img)
    t = t.unsqueeze(0).repeat(batch, 1, 1, 1)
    return t


def assert_range01(arr, name, atol=1e-3):
    mn = float(np.min(arr))
    mx = float(np.max(arr))
    if mn < -atol or mx > 1.0 + atol:
        raise AssertionError(f"{name} out of [0,1] range: min={mn} max={mx}")


def run_tests():
    repo_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    pkg = load_latlong_nodes_package(repo_root)
    from latlong_downsample.errors import DimensionError

    assert set(pkg.NODE_CLASS_MAPPINGS) == set(pkg.NODE_DISPLAY_NAME_MAPPINGS)
    for cls in pkg.NODE_CLASS_MAPPINGS.values():
        doc = getattr(cls, cls.FUNCTION).__doc__ or ""
        assert "Args:" in doc and "Returns:" in doc, cls.__name__

    base = make_test_image(64, 128, 3)
    batch = to_batch_tensor(base, batch=2)

    down = pkg.EquirectangularDownsample()

    # Kernel CPU
    out_kernel, = down.downsample(batch, output_width=32, output_height=16, method='kernel', backend='cpu')
    assert out_kernel.shape == (2, 16, 32, 3)
    assert out_kernel.dtype == torch.float32
    assert_range01(out_kernel.numpy(), 'kernel_cpu')
    assert torch.allclose(out_kernel[0], out_kernel[1])

    # Kernel GPU (optional)
    if torch.cuda.is_available():
        out_kernel_gpu, = down.downsample(batch, output_width=32, output_height=16, method='kernel', backend='gpu')
        if out_kernel_gpu.shape != out_kernel.shape:
            raise AssertionError(f"GPU kernel shape mismatch: got {tuple(out_kernel_gpu.shape)}, expected {tuple(out_kernel.shape)}")
        assert_range01(out_kernel_gpu.numpy(), 'kernel_gpu')

    # Box and planar baselines
    for method in ('box', 'area', 'lanczos', 'nearest'):
        out, = down.downsample(batch, output_width=64, output_height=32, method=method, backend='cpu')
        assert out.shape == (2, 32, 64, 3), method
        assert_range01(out.numpy(), method)

    # Constant blue channel survives every method (averaging is done in linear light)
    assert torch.allclose(out_kernel[..., 2], torch.full_like(out_kernel[..., 2], 0.5), atol=1e-4)

    # RGBA keeps its alpha
    rgba = to_batch_tensor(make_test_image(64, 128, 4), batch=1)
    out_rgba, = down.downsample(rgba, output_width=32, output_height=16, backend='cpu')
    assert out_rgba.shape == (1, 16, 32, 4)
    assert torch.allclose(out_rgba[..., 3], torch.ones_like(out_rgba[..., 3]), atol=1e-5)

    # Same size is allowed, larger is not
    same, = down.downsample(batch, output_width=128, output_height=64, backend='cpu')
    assert same.shape == batch.shape
    try:
        down.downsample(batch, output_width=256, output_height=64, backend='cpu')
    except DimensionError:
        pass
    else:
        raise AssertionError('upsampling should be rejected')

    # Preview
    preview = pkg.PanoramaPreview()
    ui = preview.preview(out_kernel, max_width=16)
    assert ui["ui"]["pano_image"].startswith("data:image/png;base64,")

    print('All node smoke tests passed.')


if __name__ == '__main__':
    run_tests()
