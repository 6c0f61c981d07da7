"""Pixel formats, DRM fourcc codes and pixel conversion routines."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntFlag
from typing import Iterator, Optional


def fourcc_code(a: str, b: str, c: str, d: str) -> int:
    """Build a DRM fourcc code from four characters."""
    return ord(a) | (ord(b) << 8) | (ord(c) << 16) | (ord(d) << 24)


DRM_FORMAT_BIG_ENDIAN = 1 << 31

DRM_FORMAT_XRGB8888 = fourcc_code("X", "R", "2", "4")
DRM_FORMAT_XBGR8888 = fourcc_code("X", "B", "2", "4")
DRM_FORMAT_RGBX8888 = fourcc_code("R", "X", "2", "4")
DRM_FORMAT_BGRX8888 = fourcc_code("B", "X", "2", "4")
DRM_FORMAT_ARGB8888 = fourcc_code("A", "R", "2", "4")
DRM_FORMAT_ABGR8888 = fourcc_code("A", "B", "2", "4")
DRM_FORMAT_RGBA8888 = fourcc_code("R", "A", "2", "4")
DRM_FORMAT_BGRA8888 = fourcc_code("B", "A", "2", "4")

DRM_FORMAT_XRGB2101010 = fourcc_code("X", "R", "3", "0")
DRM_FORMAT_XBGR2101010 = fourcc_code("X", "B", "3", "0")
DRM_FORMAT_RGBX1010102 = fourcc_code("R", "X", "3", "0")
DRM_FORMAT_BGRX1010102 = fourcc_code("B", "X", "3", "0")
DRM_FORMAT_ARGB2101010 = fourcc_code("A", "R", "3", "0")
DRM_FORMAT_ABGR2101010 = fourcc_code("A", "B", "3", "0")
DRM_FORMAT_RGBA1010102 = fourcc_code("R", "A", "3", "0")
DRM_FORMAT_BGRA1010102 = fourcc_code("B", "A", "3", "0")

DRM_FORMAT_RGB888 = fourcc_code("R", "G", "2", "4")
DRM_FORMAT_BGR888 = fourcc_code("B", "G", "2", "4")

DRM_FORMAT_RGB565 = fourcc_code("R", "G", "1", "6")
DRM_FORMAT_BGR565 = fourcc_code("B", "G", "1", "6")

DRM_FORMAT_XRGB4444 = fourcc_code("X", "R", "1", "2")
DRM_FORMAT_XBGR4444 = fourcc_code("X", "B", "1", "2")
DRM_FORMAT_RGBX4444 = fourcc_code("R", "X", "1", "2")
DRM_FORMAT_BGRX4444 = fourcc_code("B", "X", "1", "2")
DRM_FORMAT_ARGB4444 = fourcc_code("A", "R", "1", "2")
DRM_FORMAT_ABGR4444 = fourcc_code("A", "B", "1", "2")
DRM_FORMAT_RGBA4444 = fourcc_code("R", "A", "1", "2")
DRM_FORMAT_BGRA4444 = fourcc_code("B", "A", "1", "2")

DRM_FORMAT_MOD_VENDOR_INTEL = 0x01
DRM_FORMAT_MOD_VENDOR_AMD = 0x02


def fourcc_mod_code(vendor: int, value: int) -> int:
    """Build a DRM format modifier from a vendor id and a vendor value."""
    return (vendor << 56) | (value & 0x00FFFFFFFFFFFFFF)


DRM_FORMAT_MOD_LINEAR = 0
I915_FORMAT_MOD_X_TILED = fourcc_mod_code(DRM_FORMAT_MOD_VENDOR_INTEL, 1)
I915_FORMAT_MOD_Y_TILED = fourcc_mod_code(DRM_FORMAT_MOD_VENDOR_INTEL, 2)
I915_FORMAT_MOD_Yf_TILED = fourcc_mod_code(DRM_FORMAT_MOD_VENDOR_INTEL, 3)

_AMD_FMT_MOD_DCC_SHIFT = 13
_AMD_FMT_MOD_DCC_RETILE_SHIFT = 14

RFB_SERVER_TO_CLIENT_SET_COLOUR_MAP_ENTRIES = 1

_U32 = 0xFFFFFFFF


@dataclass(frozen=True)
class PixelFormat:
    """An RFB pixel format description."""

    bits_per_pixel: int = 0
    depth: int = 0
    big_endian_flag: bool = False
    true_colour_flag: bool = False
    red_max: int = 0
    green_max: int = 0
    blue_max: int = 0
    red_shift: int = 0
    green_shift: int = 0
    blue_shift: int = 0


class FormatRatingFlags(IntFlag):
    """Options that steer :func:`rate_pixel_format`."""

    NONE = 0
    NEED_ALPHA = 1 << 0
    PREFER_LINEAR = 1 << 1


# fourcc -> (bits per pixel, depth, channel max, (red, green, blue) shifts)
_LAYOUTS: dict[int, tuple[int, int, int, tuple[int, int, int]]] = {}


def _add_layout(formats, bpp, depth, cmax, shifts):
    for fmt in formats:
        _LAYOUTS[fmt] = (bpp, depth, cmax, shifts)


_add_layout((DRM_FORMAT_RGBA1010102, DRM_FORMAT_RGBX1010102), 32, 30, 0x3FF, (22, 12, 2))
_add_layout((DRM_FORMAT_BGRA1010102, DRM_FORMAT_BGRX1010102), 32, 30, 0x3FF, (2, 12, 22))
_add_layout((DRM_FORMAT_ARGB2101010, DRM_FORMAT_XRGB2101010), 32, 30, 0x3FF, (20, 10, 0))
_add_layout((DRM_FORMAT_ABGR2101010, DRM_FORMAT_XBGR2101010), 32, 30, 0x3FF, (0, 10, 20))
_add_layout((DRM_FORMAT_RGBA8888, DRM_FORMAT_RGBX8888), 32, 24, 0xFF, (24, 16, 8))
_add_layout((DRM_FORMAT_BGRA8888, DRM_FORMAT_BGRX8888), 32, 24, 0xFF, (8, 16, 24))
_add_layout((DRM_FORMAT_ARGB8888, DRM_FORMAT_XRGB8888), 32, 24, 0xFF, (16, 8, 0))
_add_layout((DRM_FORMAT_ABGR8888, DRM_FORMAT_XBGR8888), 32, 24, 0xFF, (0, 8, 16))
_add_layout((DRM_FORMAT_BGR888,), 24, 24, 0xFF, (0, 8, 16))
_add_layout((DRM_FORMAT_RGB888,), 24, 24, 0xFF, (16, 8, 0))
_add_layout((DRM_FORMAT_RGBA4444, DRM_FORMAT_RGBX4444), 16, 12, 0x7F, (12, 8, 4))
_add_layout((DRM_FORMAT_BGRA4444, DRM_FORMAT_BGRX4444), 16, 12, 0x7F, (4, 8, 12))
_add_layout((DRM_FORMAT_ARGB4444, DRM_FORMAT_XRGB4444), 16, 12, 0x7F, (8, 4, 0))
_add_layout((DRM_FORMAT_ABGR4444, DRM_FORMAT_XBGR4444), 16, 12, 0x7F, (0, 4, 8))

_FORMAT_NAMES: dict[int, str] = {
    DRM_FORMAT_RGBA1010102: "RGBA1010102",
    DRM_FORMAT_RGBX1010102: "RGBX1010102",
    DRM_FORMAT_BGRA1010102: "BGRA1010102",
    DRM_FORMAT_BGRX1010102: "BGRX1010102",
    DRM_FORMAT_ARGB2101010: "ARGB2101010",
    DRM_FORMAT_XRGB2101010: "XRGB2101010",
    DRM_FORMAT_ABGR2101010: "ABGR2101010",
    DRM_FORMAT_XBGR2101010: "XBGR2101010",
    DRM_FORMAT_RGBA8888: "RGBA8888",
    DRM_FORMAT_RGBX8888: "RGBX8888",
    DRM_FORMAT_BGRA8888: "BGRA8888",
    DRM_FORMAT_BGRX8888: "BGRX8888",
    DRM_FORMAT_ARGB8888: "ARGB8888",
    DRM_FORMAT_XRGB8888: "XRGB8888",
    DRM_FORMAT_ABGR8888: "ABGR8888",
    DRM_FORMAT_XBGR8888: "XBGR8888",
    DRM_FORMAT_RGB888: "RGB888",
    DRM_FORMAT_BGR888: "BGR888",
    DRM_FORMAT_RGBA4444: "RGBA4444",
    DRM_FORMAT_RGBX4444: "RGBX4444",
    DRM_FORMAT_BGRA4444: "BGRA4444",
    DRM_FORMAT_BGRX4444: "BGRX4444",
    DRM_FORMAT_ARGB4444: "ARGB4444",
    DRM_FORMAT_XRGB4444: "XRGB4444",
    DRM_FORMAT_ABGR4444: "ABGR4444",
    DRM_FORMAT_XBGR4444: "XBGR4444",
    DRM_FORMAT_RGB565: "RGB565",
}

_PROFILE_NAMES: dict[tuple[int, int, int], str] = {
    (22, 10, 2): "RGBX1010102",
    (2, 12, 22): "BGRX1010102",
    (20, 10, 0): "XRGB2101010",
    (0, 10, 20): "XBGR2101010",
    (24, 16, 8): "RGBX8888",
    (8, 16, 24): "BGRX8888",
    (16, 8, 0): "XRGB8888",
    (0, 8, 16): "XBGR8888",
    (12, 8, 4): "RGBX4444",
    (4, 8, 12): "BGRX4444",
    (8, 4, 0): "XRGB4444",
    (0, 4, 8): "XBGR4444",
    (11, 5, 0): "RGB565",
    (5, 2, 0): "RGB332",
    (0, 2, 5): "RGB332",
    (4, 2, 0): "RGB222",
    (0, 2, 4): "BGR222",
}

_ALPHA_FORMATS = frozenset(
    {
        DRM_FORMAT_RGBA1010102,
        DRM_FORMAT_BGRA1010102,
        DRM_FORMAT_ARGB2101010,
        DRM_FORMAT_ABGR2101010,
        DRM_FORMAT_RGBA8888,
        DRM_FORMAT_BGRA8888,
        DRM_FORMAT_ARGB8888,
        DRM_FORMAT_ABGR8888,
        DRM_FORMAT_RGBA4444,
        DRM_FORMAT_BGRA4444,
        DRM_FORMAT_ARGB4444,
        DRM_FORMAT_ABGR4444,
    }
)

# fourcc -> (bytes per pixel, alpha shift, alpha max), little-endian memory layout
_ALPHA_LAYOUTS: dict[int, tuple[int, int, int]] = {
    DRM_FORMAT_RGBA1010102: (4, 0, 3),
    DRM_FORMAT_BGRA1010102: (4, 0, 3),
    DRM_FORMAT_ARGB2101010: (4, 30, 3),
    DRM_FORMAT_ABGR2101010: (4, 30, 3),
    DRM_FORMAT_RGBA8888: (4, 0, 0xFF),
    DRM_FORMAT_BGRA8888: (4, 0, 0xFF),
    DRM_FORMAT_ARGB8888: (4, 24, 0xFF),
    DRM_FORMAT_ABGR8888: (4, 24, 0xFF),
    DRM_FORMAT_RGBA4444: (2, 0, 0xF),
    DRM_FORMAT_BGRA4444: (2, 0, 0xF),
    DRM_FORMAT_ARGB4444: (2, 12, 0xF),
    DRM_FORMAT_ABGR4444: (2, 12, 0xF),
}

_MODIFIER_ALLOW_LIST = frozenset(
    {
        DRM_FORMAT_MOD_LINEAR,
        I915_FORMAT_MOD_X_TILED,
        I915_FORMAT_MOD_Y_TILED,
        I915_FORMAT_MOD_Yf_TILED,
    }
)


def _iter_pixels(view: memoryview, bytes_per_pixel: int) -> Iterator[int]:
    """Yield little-endian pixel values packed in ``view``."""
    if bytes_per_pixel == 4:
        return (px for (px,) in struct.iter_unpack("<I", view))
    if bytes_per_pixel == 2:
        return (px for (px,) in struct.iter_unpack("<H", view))
    if bytes_per_pixel == 1:
        return iter(view)
    return (b0 | (b1 << 8) | (b2 << 16) for b0, b1, b2 in struct.iter_unpack("<3B", view))


def pixel_to_cpixel(
    dst_fmt: PixelFormat,
    src: bytes,
    src_fmt: PixelFormat,
    bytes_per_cpixel: int,
    count: int,
) -> bytes:
    """Convert ``count`` pixels from ``src_fmt`` into compressed pixels of ``dst_fmt``."""
    if not 1 <= bytes_per_cpixel <= 4:
        raise ValueError(f"invalid bytes per cpixel: {bytes_per_cpixel}")

    src_bpp = src_fmt.bits_per_pixel // 8
    if src_bpp not in (1, 2, 3, 4):
        raise ValueError(f"unsupported source bits per pixel: {src_fmt.bits_per_pixel}")

    view = memoryview(src).cast("B")
    needed = count * src_bpp
    if len(view) < needed:
        raise ValueError("source buffer is too short")

    dst_shifts = [dst_fmt.red_shift, dst_fmt.green_shift, dst_fmt.blue_shift]
    if bytes_per_cpixel == 3 and dst_fmt.bits_per_pixel == 32 and dst_fmt.depth <= 24:
        lowest = min(dst_shifts)
        dst_shifts = [shift - lowest for shift in dst_shifts]

    channels = tuple(
        zip(
            (src_fmt.red_shift, src_fmt.green_shift, src_fmt.blue_shift),
            (src_fmt.red_max, src_fmt.green_max, src_fmt.blue_max),
            (
                dst_fmt.red_max.bit_count(),
                dst_fmt.green_max.bit_count(),
                dst_fmt.blue_max.bit_count(),
            ),
            (
                src_fmt.red_max.bit_count(),
                src_fmt.green_max.bit_count(),
                src_fmt.blue_max.bit_count(),
            ),
            dst_shifts,
        )
    )

    def convert(px: int) -> int:
        cpx = 0
        for src_shift, src_max, dst_bits, src_bits, dst_shift in channels:
            value = (px >> src_shift) & src_max
            value = (value << dst_bits) & _U32
            value >>= src_bits
            cpx |= (value << dst_shift) & _U32
        return cpx

    cpixels = [convert(px) for px in _iter_pixels(view[:needed], src_bpp)]
    big = bool(dst_fmt.big_endian_flag)

    if bytes_per_cpixel == 4:
        return struct.pack(f"{'>' if big else '<'}{len(cpixels)}I", *cpixels)
    if bytes_per_cpixel == 3:
        order = "big" if big else "little"
        return b"".join((cpx & 0xFFFFFF).to_bytes(3, order) for cpx in cpixels)
    if bytes_per_cpixel == 2:
        return struct.pack(
            f"{'>' if big else '<'}{len(cpixels)}H", *(cpx & 0xFFFF for cpx in cpixels)
        )
    return bytes(cpx & 0xFF for cpx in cpixels)


def rfb_pixfmt_from_fourcc(fourcc: int) -> PixelFormat:
    """Describe a DRM fourcc format as an RFB pixel format."""
    layout = _LAYOUTS.get(fourcc & ~DRM_FORMAT_BIG_ENDIAN)
    if layout is None:
        raise ValueError(f"unsupported fourcc format: {fourcc:#010x}")
    bpp, depth, cmax, (red_shift, green_shift, blue_shift) = layout
    return PixelFormat(
        bits_per_pixel=bpp,
        depth=depth,
        big_endian_flag=bool(fourcc & DRM_FORMAT_BIG_ENDIAN),
        true_colour_flag=True,
        red_max=cmax,
        green_max=cmax,
        blue_max=cmax,
        red_shift=red_shift,
        green_shift=green_shift,
        blue_shift=blue_shift,
    )


def pixel_size_from_fourcc(fourcc: int) -> int:
    """Bytes per pixel of a DRM fourcc format, or 0 if it is not supported."""
    layout = _LAYOUTS.get(fourcc & ~DRM_FORMAT_BIG_ENDIAN)
    return layout[0] // 8 if layout else 0


def extract_alpha_mask(src: bytes, fourcc: int, count: int) -> bytes:
    """Build a one-bit-per-pixel mask, most significant bit first, from alpha."""
    layout = _ALPHA_LAYOUTS.get(fourcc & ~DRM_FORMAT_BIG_ENDIAN)
    if layout is None:
        raise ValueError(f"format has no alpha channel: {fourcc:#010x}")
    bytes_per_pixel, alpha_shift, alpha_max = layout

    view = memoryview(src).cast("B")
    needed = count * bytes_per_pixel
    if len(view) < needed:
        raise ValueError("source buffer is too short")

    mask = bytearray((count + 7) // 8)
    threshold = alpha_max // 2
    for i, px in enumerate(_iter_pixels(view[:needed], bytes_per_pixel)):
        alpha = ((px >> alpha_shift) & alpha_max) & 0xFF
        if alpha > threshold:
            mask[i // 8] |= 0x80 >> (i % 8)
    return bytes(mask)


def drm_format_to_string(fourcc: int) -> str:
    """Name of a DRM fourcc format, or ``"UNKNOWN"``."""
    return _FORMAT_NAMES.get(fourcc, "UNKNOWN")


def rfb_pixfmt_to_string(fmt: PixelFormat) -> str:
    """Approximate name of an RFB pixel format, judged by its channel shifts."""
    return _PROFILE_NAMES.get((fmt.red_shift, fmt.green_shift, fmt.blue_shift), "UNKNOWN")


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


def make_rgb332_pal8_map() -> bytes:
    """Wire form of a SetColourMapEntries message holding the RGB332 palette."""
    header = struct.pack(">BBHH", RFB_SERVER_TO_CLIENT_SET_COLOUR_MAP_ENTRIES, 0, 0, 256)
    colours = b"".join(
        struct.pack(
            ">HHH",
            _round_half_up(65535.0 / 7.0 * ((i >> 5) & 7)),
            _round_half_up(65535.0 / 7.0 * ((i >> 2) & 7)),
            _round_half_up(65535.0 / 3.0 * (i & 3)),
        )
        for i in range(256)
    )
    return header + colours


def rfb_pixfmt_depth(fmt: PixelFormat) -> int:
    """Colour depth as counted from the channel maxima."""
    return fmt.red_max.bit_count() + fmt.green_max.bit_count() + fmt.blue_max.bit_count()


def format_has_alpha(fourcc: int) -> bool:
    """Whether a DRM fourcc format carries an alpha channel."""
    return fourcc in _ALPHA_FORMATS


def _get_format_depth(fourcc: int) -> int:
    try:
        return rfb_pixfmt_from_fourcc(fourcc).depth
    except ValueError:
        return 0


def _rate_format_by_depth(fourcc: int, target_depth: int) -> float:
    depth = _get_format_depth(fourcc)
    if depth == 0:
        return 0.0
    max_depth = 30.0
    if depth >= target_depth:
        return (target_depth + max_depth - depth) / max_depth
    return depth / max_depth


def _amd_format_modifier_is_allowed(modifier: int) -> bool:
    dcc = (modifier >> _AMD_FMT_MOD_DCC_SHIFT) & 1
    dcc_retile = (modifier >> _AMD_FMT_MOD_DCC_RETILE_SHIFT) & 1
    return not dcc and not dcc_retile


def format_modifier_is_allowed(modifier: int) -> bool:
    """Whether buffers with this DRM format modifier can be used."""
    if (modifier >> 56) & 0xFF == DRM_FORMAT_MOD_VENDOR_AMD:
        return _amd_format_modifier_is_allowed(modifier)
    return modifier in _MODIFIER_ALLOW_LIST


def rate_pixel_format(
    fourcc: int,
    modifier: int,
    flags: FormatRatingFlags | int,
    target_depth: int,
) -> float:
    """Score a format and modifier between 0 and 1; 0 means unusable."""
    depth_rating = _rate_format_by_depth(fourcc, target_depth)
    if depth_rating == 0:
        return 0.0

    if not format_modifier_is_allowed(modifier):
        return 0.0

    linear_rating = 1.0 if modifier == DRM_FORMAT_MOD_LINEAR else 0.0

    if flags & FormatRatingFlags.NEED_ALPHA:
        alpha_rating = 1.0 if format_has_alpha(fourcc) else 0.0
        if alpha_rating == 0:
            return 0.0
    else:
        alpha_rating = 0.0 if format_has_alpha(fourcc) else 1.0

    depth_weight = 100.0
    linear_weight = 10.0 if flags & FormatRatingFlags.PREFER_LINEAR else 0.0
    alpha_weight = 1.0

    total_weight = depth_weight + linear_weight + alpha_weight
    return (
        depth_weight * depth_rating
        + linear_weight * linear_rating
        + alpha_weight * alpha_rating
    ) / total_weight


def optional_pixfmt_from_fourcc(fourcc: int) -> Optional[PixelFormat]:
    """Like :func:`rfb_pixfmt_from_fourcc` but gives ``None`` for unknown formats."""
    try:
        return rfb_pixfmt_from_fourcc(fourcc)
    except ValueError:
        return None