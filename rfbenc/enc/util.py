"""Shared pieces of the RFB framebuffer encoders."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable

from rfbenc.pixels import PixelFormat

_RECT_HEAD = struct.Struct(">HHHHi")


class RfbEncoding(IntEnum):
    """RFB rectangle encoding numbers."""

    RAW = 0
    COPYRECT = 1
    RRE = 2
    HEXTILE = 5
    TIGHT = 7
    TRLE = 15
    ZRLE = 16
    OPEN_H264 = 50


@dataclass(frozen=True)
class Box:
    """A rectangle spanning ``x1 <= x < x2`` and ``y1 <= y < y2``."""

    x1: int
    y1: int
    x2: int
    y2: int

    @property
    def width(self) -> int:
        return self.x2 - self.x1

    @property
    def height(self) -> int:
        return self.y2 - self.y1


@dataclass(frozen=True)
class EncodedFrame:
    """Wire bytes of an encoded update and what they describe."""

    payload: bytes
    n_rects: int
    width: int
    height: int
    pts: int


def encode_rect_head(encoding: int, x: int, y: int, width: int, height: int) -> bytes:
    """The header that precedes every rectangle in a framebuffer update."""
    return _RECT_HEAD.pack(
        x & 0xFFFF, y & 0xFFFF, width & 0xFFFF, height & 0xFFFF, int(encoding)
    )


def calc_bytes_per_cpixel(fmt: PixelFormat) -> int:
    """Size of a compressed pixel: 32-bit formats shrink to their depth."""
    if fmt.bits_per_pixel == 32:
        return -(-fmt.depth // 8)
    return -(-fmt.bits_per_pixel // 8)


def calculate_region_area(region: Iterable[Box]) -> int:
    """Total area of the boxes in a region."""
    return sum(box.width * box.height for box in region)


def region_extents(region: Iterable[Box]) -> Box:
    """Smallest box that covers every box of the region."""
    boxes = list(region)
    if not boxes:
        return Box(0, 0, 0, 0)
    return Box(
        min(box.x1 for box in boxes),
        min(box.y1 for box in boxes),
        max(box.x2 for box in boxes),
        max(box.y2 for box in boxes),
    )