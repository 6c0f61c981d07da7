import pytest
from PIL import Image

from rfbenc.pixels import DRM_FORMAT_ABGR8888
from rfbenc.pngfb import read_png_file


def test_rgb_image_gets_opaque_alpha(tmp_path):
    path = tmp_path / "rgb.png"
    image = Image.new("RGB", (3, 2), (10, 20, 30))
    image.putpixel((1, 1), (40, 50, 60))
    image.save(path)

    fb = read_png_file(path)
    assert (fb.width, fb.height, fb.stride) == (3, 2, 3)
    assert fb.fourcc_format == DRM_FORMAT_ABGR8888
    assert bytes(fb.addr[0:4]) == bytes([10, 20, 30, 255])
    offset = (1 * 3 + 1) * 4
    assert bytes(fb.addr[offset:offset + 4]) == bytes([40, 50, 60, 255])


def test_rgba_round_trip(tmp_path):
    path = tmp_path / "rgba.png"
    image = Image.new("RGBA", (4, 4), (1, 2, 3, 128))
    image.save(path)

    fb = read_png_file(str(path))
    assert bytes(fb.addr[: 4 * 4 * 4]) == image.tobytes()


def test_grayscale_expands_to_rgb(tmp_path):
    path = tmp_path / "gray.png"
    Image.new("L", (2, 2), 77).save(path)

    fb = read_png_file(path)
    assert bytes(fb.addr[0:4]) == bytes([77, 77, 77, 255])


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_png_file(tmp_path / "absent.png")