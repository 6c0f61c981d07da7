"""The ZRLE encoding: 64x64 tiles, palette and run-length packed, then deflated."""

from __future__ import annotations

import struct
import zlib
from concurrent.futures import Executor
from itertools import groupby
from typing import Iterable, List, Optional

from rfbenc.enc.encoder import Encoder
from rfbenc.enc.util import (
    Box,
    EncodedFrame,
    RfbEncoding,
    calc_bytes_per_cpixel,
    encode_rect_head,
    region_extents,
)
from rfbenc.fb import Framebuffer
from rfbenc.parallel_deflate import ParallelDeflate
from rfbenc.pixels import PixelFormat, pixel_to_cpixel, rfb_pixfmt_from_fourcc

TILE_LENGTH = 64

_MAX_RECTS = 0xFFFF
_MAX_PALETTE = 16

_SUBENC_RAW = 0
_SUBENC_SOLID = 1
_SUBENC_PALETTE_RLE = 128


def _split_pixels(src: bytes, bpp: int, length: int) -> List[bytes]:
    data = bytes(src[: length * bpp])
    return [data[start : start + bpp] for start in range(0, length * bpp, bpp)]


def _tile_palette(pixels: List[bytes]) -> Optional[List[bytes]]:
    """Distinct colours in order of appearance, or None if there are too many."""
    seen: dict[bytes, None] = {}
    for pixel in pixels:
        if pixel not in seen:
            if len(seen) >= _MAX_PALETTE:
                return None
            seen[pixel] = None
    return list(seen)


def _encode_run_length(out: bytearray, index: int, run_length: int) -> None:
    if run_length == 1:
        out.append(index)
        return

    out.append(index | 128)
    full, rest = divmod(run_length - 1, 255)
    out += b"\xff" * full
    out.append(rest)


def _encode_packed_tile(
    dst_fmt: PixelFormat,
    pixels: List[bytes],
    src_fmt: PixelFormat,
    palette: List[bytes],
    bytes_per_cpixel: int,
) -> bytes:
    out = bytearray([_SUBENC_PALETTE_RLE | len(palette)])
    out += pixel_to_cpixel(
        dst_fmt, b"".join(palette), src_fmt, bytes_per_cpixel, len(palette)
    )

    index_of = {colour: i for i, colour in enumerate(palette)}
    for colour, run in groupby(pixels):
        _encode_run_length(out, index_of[colour], sum(1 for _ in run))
    return bytes(out)


def encode_tile(
    dst_fmt: PixelFormat, src: bytes, src_fmt: PixelFormat, length: int
) -> bytes:
    """Encode ``length`` packed pixels of one tile as a ZRLE tile (uncompressed)."""
    if length < 1:
        raise ValueError("a tile holds at least one pixel")

    bytes_per_cpixel = calc_bytes_per_cpixel(dst_fmt)
    src_bpp = src_fmt.bits_per_pixel // 8
    pixels = _split_pixels(src, src_bpp, length)
    if len(pixels) < length:
        raise ValueError("source buffer is too short")

    palette = _tile_palette(pixels)

    if palette is not None and len(palette) == 1:
        return bytes([_SUBENC_SOLID]) + pixel_to_cpixel(
            dst_fmt, palette[0], src_fmt, bytes_per_cpixel, 1
        )

    if palette is not None:
        packed = _encode_packed_tile(dst_fmt, pixels, src_fmt, palette, bytes_per_cpixel)
        # A packed tile larger than the raw one is not worth sending.
        if len(packed) <= 1 + bytes_per_cpixel * length:
            return packed

    return bytes([_SUBENC_RAW]) + pixel_to_cpixel(
        dst_fmt, b"".join(pixels), src_fmt, bytes_per_cpixel, length
    )


class ZrleEncoder(Encoder):
    """Sends damaged boxes as ZRLE rectangles over one continuous zlib stream."""

    def __init__(self, executor: Optional[Executor] = None) -> None:
        super().__init__()
        self.output_format = PixelFormat()
        self._deflate = ParallelDeflate(
            level=1,
            window_bits=-15,
            mem_level=9,
            strategy=zlib.Z_DEFAULT_STRATEGY,
            executor=executor,
        )

    def __enter__(self) -> "ZrleEncoder":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def encoding(self) -> RfbEncoding:
        return RfbEncoding.ZRLE

    def set_output_format(self, pixfmt: PixelFormat) -> None:
        self.output_format = pixfmt

    def _encode_box(
        self,
        out: bytearray,
        view: memoryview,
        fb: Framebuffer,
        src_fmt: PixelFormat,
        dst_fmt: PixelFormat,
        box: Box,
    ) -> None:
        out += encode_rect_head(
            RfbEncoding.ZRLE, self.x_pos + box.x1, self.y_pos + box.y1, box.width, box.height
        )

        src_bpp = src_fmt.bits_per_pixel // 8
        byte_stride = fb.stride * src_bpp

        for tile_y in range(0, box.height, TILE_LENGTH):
            tile_height = min(TILE_LENGTH, box.height - tile_y)
            for tile_x in range(0, box.width, TILE_LENGTH):
                tile_width = min(TILE_LENGTH, box.width - tile_x)
                row_len = tile_width * src_bpp
                x_off = (box.x1 + tile_x) * src_bpp
                tile = b"".join(
                    view[start : start + row_len]
                    for start in (
                        (box.y1 + tile_y + row) * byte_stride + x_off
                        for row in range(tile_height)
                    )
                )
                self._deflate.feed(
                    encode_tile(dst_fmt, tile, src_fmt, tile_width * tile_height)
                )

        compressed = self._deflate.sync()
        out += struct.pack(">I", len(compressed))
        out += compressed

    def encode(self, fb: Framebuffer, damage: Iterable[Box]) -> EncodedFrame:
        """Encode the damaged boxes, report the frame via ``on_done`` and return it."""
        boxes: List[Box] = list(damage)
        if len(boxes) > _MAX_RECTS:
            boxes = [region_extents(boxes)]

        dst_fmt = self.output_format
        src_fmt = rfb_pixfmt_from_fourcc(fb.fourcc_format)

        fb.hold()
        try:
            view = fb.map()
            out = bytearray()
            for box in boxes:
                self._encode_box(out, view, fb, src_fmt, dst_fmt, box)
            frame = EncodedFrame(bytes(out), len(boxes), fb.width, fb.height, fb.pts)
            self.finish_frame(frame)
        finally:
            fb.release()
        return frame

    def close(self) -> None:
        """Stop the compression workers; the encoder cannot be used afterwards."""
        self._deflate.close()