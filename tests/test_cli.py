import numpy as np
import pytest
import torch
from PIL import Image

from latlong_downsample.cli import main, parse_size
from latlong_downsample.errors import ArgumentError


def write_solid_ppm(path, w, h, rgb=(200, 30, 90)):
    raster = bytes(rgb) * (w * h)
    path.write_bytes(f"P6 {w} {h} 255\n".encode() + raster)
    return path


def test_parse_size():
    assert parse_size("512x256") == (512, 256)
    for bad in ["512", "512x", "x256", "512X256", "5a2x256", "0x4", "-4x2"]:
        with pytest.raises(ArgumentError):
            parse_size(bad)


def test_downsample_writes_output(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    src = write_solid_ppm(tmp_path / "in.ppm", 16, 8)
    assert main(["4x2", str(src), "-q"]) == 0
    raw = (tmp_path / "output.ppm").read_bytes()
    assert raw == b"P6 4 2 255\n" + bytes((200, 30, 90)) * 8


@pytest.mark.parametrize("method", ["box", "area"])
def test_other_methods(tmp_path, monkeypatch, method):
    monkeypatch.chdir(tmp_path)
    src = write_solid_ppm(tmp_path / "in.ppm", 16, 8)
    assert main(["8x4", str(src), "--method", method, "--backend", "cpu", "-q"]) == 0
    assert (tmp_path / "output.ppm").read_bytes().startswith(b"P6 8 4 255\n")


def test_png_preview(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    src = write_solid_ppm(tmp_path / "in.ppm", 16, 8)
    assert main(["8x4", str(src), "--png", "preview.png", "-q"]) == 0
    with Image.open(tmp_path / "preview.png") as im:
        assert im.size == (8, 4)
        assert im.getpixel((0, 0)) == (200, 30, 90)


def test_upsampling_is_rejected(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    src = write_solid_ppm(tmp_path / "in.ppm", 8, 4)
    assert main(["16x4", str(src), "-q"]) == 4
    assert not (tmp_path / "output.ppm").exists()


def test_huge_size_is_rejected_before_allocating(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    src = write_solid_ppm(tmp_path / "in.ppm", 8, 4)
    assert main(["1000000x1000000", str(src), "-q"]) == 4
    assert not (tmp_path / "output.ppm").exists()


def test_malformed_size(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    src = write_solid_ppm(tmp_path / "in.ppm", 8, 4)
    assert main(["4by2", str(src), "-q"]) == 2
    assert not (tmp_path / "output.ppm").exists()


def test_unreadable_input(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert main(["4x2", str(tmp_path / "missing.ppm"), "-q"]) == 3
    (tmp_path / "p3.ppm").write_bytes(b"P3 1 1 255\n0 0 0\n")
    assert main(["1x1", str(tmp_path / "p3.ppm"), "-q"]) == 3
    assert not (tmp_path / "output.ppm").exists()


def test_unwritable_output(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    src = write_solid_ppm(tmp_path / "in.ppm", 8, 4)
    (tmp_path / "output.ppm").mkdir()
    assert main(["4x2", str(src), "-q"]) == 5


def test_wrong_argument_count():
    with pytest.raises(SystemExit) as exc:
        main(["4x2"])
    assert exc.value.code == 2


@pytest.mark.skipif(torch.cuda.is_available(), reason="checks the CUDA-less error path")
def test_gpu_without_cuda_is_an_argument_error(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    src = write_solid_ppm(tmp_path / "in.ppm", 8, 4)
    assert main(["4x2", str(src), "--backend", "gpu", "-q"]) == 2
    assert not (tmp_path / "output.ppm").exists()


def test_internal_value_errors_are_not_argument_errors(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    src = write_solid_ppm(tmp_path / "in.ppm", 8, 4)

    def broken(*args, **kwargs):
        raise ValueError("Cannot normalize a zero-length vector")

    monkeypatch.setattr("latlong_downsample.cli.EquirectangularDownsampler.downsample", broken)
    with pytest.raises(ValueError, match="zero-length"):
        main(["4x2", str(src), "-q"])
