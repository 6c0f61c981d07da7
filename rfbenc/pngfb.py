"""Loading PNG images into framebuffers."""

from __future__ import annotations

import os
from typing import Union

from PIL import Image

from rfbenc.fb import Framebuffer
from rfbenc.pixels import DRM_FORMAT_ABGR8888


def read_png_file(filename: Union[str, os.PathLike]) -> Framebuffer:
    """Read an image as 8-bit RGBA into a new ABGR8888 framebuffer."""
    with Image.open(filename) as image:
        rgba = image.convert("RGBA")
        width, height = rgba.size
        pixels = rgba.tobytes()

    fb = Framebuffer.new(width, height, DRM_FORMAT_ABGR8888, width)
    fb.addr[: len(pixels)] = pixels
    return fb