"""The tight encoding: 64x64 tiles sent zlib-compressed or as JPEG."""

from __future__ import annotations

import io
import zlib
from concurrent.futures import Executor
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from PIL import Image

from rfbenc.enc.encoder import Encoder
from rfbenc.enc.util import (
    Box,
    EncodedFrame,
    RfbEncoding,
    calc_bytes_per_cpixel,
    encode_rect_head,
)
from rfbenc.fb import NO_PTS, Framebuffer
from rfbenc.log import LogLevel, log
from rfbenc.pixels import (
    DRM_FORMAT_ABGR8888,
    DRM_FORMAT_ARGB8888,
    DRM_FORMAT_BGR888,
    DRM_FORMAT_BGRA8888,
    DRM_FORMAT_BGRX8888,
    DRM_FORMAT_RGB888,
    DRM_FORMAT_RGBA8888,
    DRM_FORMAT_RGBX8888,
    DRM_FORMAT_XBGR8888,
    DRM_FORMAT_XRGB8888,
    PixelFormat,
    pixel_to_cpixel,
    rfb_pixfmt_from_fourcc,
)

TIGHT_FILL = 0x80
TIGHT_JPEG = 0x90
TIGHT_PNG = 0xA0
TIGHT_BASIC = 0x00

TSL = 64
MAX_TILE_SIZE = 2 * TSL * TSL * 4
N_STREAMS = 4

# Pillow raw modes that read each memory layout as RGB.
_JPEG_RAW_MODES = {
    DRM_FORMAT_RGBA8888: "XBGR",
    DRM_FORMAT_RGBX8888: "XBGR",
    DRM_FORMAT_BGRA8888: "XRGB",
    DRM_FORMAT_BGRX8888: "XRGB",
    DRM_FORMAT_ARGB8888: "BGRX",
    DRM_FORMAT_XRGB8888: "BGRX",
    DRM_FORMAT_ABGR8888: "RGBX",
    DRM_FORMAT_XBGR8888: "RGBX",
    DRM_FORMAT_BGR888: "RGB",
    DRM_FORMAT_RGB888: "BGR",
}


def encode_tight_size(size: int) -> bytes:
    """The one to three byte compact length used by the tight encoding."""
    out = bytearray([(size & 0x7F) | (0x80 if size >= 128 else 0)])
    if size >= 128:
        out.append(((size >> 7) & 0x7F) | (0x80 if size >= 16384 else 0))
    if size >= 16384:
        out.append((size >> 14) & 0xFF)
    return bytes(out)


class _TileState(Enum):
    READY = 0
    DAMAGED = 1
    ENCODED = 2


@dataclass
class _Tile:
    state: _TileState = _TileState.READY
    type: int = 0
    data: bytes = b""


def _new_stream():
    return zlib.compressobj(1, zlib.DEFLATED, 15, 9, zlib.Z_DEFAULT_STRATEGY)


class TightEncoder(Encoder):
    """Encodes damaged 64x64 tiles; four zlib streams are shared across columns."""

    def __init__(self, width: int, height: int, executor: Optional[Executor] = None) -> None:
        super().__init__()
        self.width = 0
        self.height = 0
        self.grid_width = 0
        self.grid_height = 0
        self._grid: List[_Tile] = []
        self._resize(width, height)
        self.quality = 0
        self.output_format = PixelFormat()
        self.pts = NO_PTS
        self._streams = [_new_stream() for _ in range(N_STREAMS)]
        self._executor = executor

    def encoding(self) -> RfbEncoding:
        return RfbEncoding.TIGHT

    def set_output_format(self, pixfmt: PixelFormat) -> None:
        self.output_format = pixfmt

    def set_quality(self, value: int) -> None:
        """Quality 0-9 selects JPEG; 10 and above selects lossless zlib."""
        self.quality = value

    def _resize(self, width: int, height: int) -> None:
        if width == self.width and height == self.height:
            return
        self.width = width
        self.height = height
        self.grid_width = -(-width // TSL)
        self.grid_height = -(-height // TSL)
        self._grid = [_Tile() for _ in range(self.grid_width * self.grid_height)]

    def _tile(self, gx: int, gy: int) -> _Tile:
        return self._grid[gx + gy * self.grid_width]

    def _tile_width(self, x: int) -> int:
        return self.width - x if x + TSL > self.width else TSL

    def _tile_height(self, y: int) -> int:
        return self.height - y if y + TSL > self.height else TSL

    def _apply_damage(self, damage: List[Box]) -> int:
        boxes = [box for box in damage if box.width > 0 and box.height > 0]
        n_damaged = 0
        for gy in range(self.grid_height):
            for gx in range(self.grid_width):
                tx1, ty1 = gx * TSL, gy * TSL
                tx2, ty2 = tx1 + TSL, ty1 + TSL
                hit = any(
                    box.x1 < tx2 and tx1 < box.x2 and box.y1 < ty2 and ty1 < box.y2
                    for box in boxes
                )
                tile = self._tile(gx, gy)
                if hit:
                    n_damaged += 1
                    tile.state = _TileState.DAMAGED
                else:
                    tile.state = _TileState.READY
        return n_damaged

    @staticmethod
    def _rows(view, fb, bpp, x, y, width, height):
        byte_stride = fb.stride * bpp
        row_len = width * bpp
        for row in range(y, y + height):
            start = row * byte_stride + x * bpp
            yield view[start : start + row_len]

    def _encode_basic(self, tile, view, fb, sfmt, x, y, width, height, index):
        stream = self._streams[index]
        tile.type = TIGHT_BASIC | (index << 4)

        bytes_per_cpixel = calc_bytes_per_cpixel(self.output_format)
        if bytes_per_cpixel > 4:
            raise ValueError("output format has too many bytes per pixel")
        if bytes_per_cpixel == 3:
            cfmt = rfb_pixfmt_from_fourcc(DRM_FORMAT_XBGR8888)
        else:
            cfmt = self.output_format

        bpp = sfmt.bits_per_pixel // 8
        chunks = [
            stream.compress(pixel_to_cpixel(cfmt, row, sfmt, bytes_per_cpixel, width))
            for row in self._rows(view, fb, bpp, x, y, width, height)
        ]
        chunks.append(stream.flush(zlib.Z_SYNC_FLUSH))
        data = b"".join(chunks)
        if len(data) > MAX_TILE_SIZE:
            raise RuntimeError("compressed tile does not fit in the tile buffer")
        tile.data = data

    def _encode_jpeg(self, tile, view, fb, sfmt, x, y, width, height):
        tile.type = TIGHT_JPEG
        raw_mode = _JPEG_RAW_MODES.get(fb.fourcc_format)
        if raw_mode is None:
            return

        bpp = sfmt.bits_per_pixel // 8
        pixels = b"".join(bytes(row) for row in self._rows(view, fb, bpp, x, y, width, height))
        image = Image.frombytes("RGB", (width, height), pixels, "raw", raw_mode)
        buffer = io.BytesIO()
        image.save(
            buffer,
            format="JPEG",
            quality=11 * self.quality + 1,
            subsampling=0 if self.quality == 9 else 2,
        )
        data = buffer.getvalue()
        if len(data) > MAX_TILE_SIZE:
            log(LogLevel.ERROR, "Whoops, encoded JPEG was too big for the buffer")
            return
        tile.data = data

    def _encode_tile(self, view, fb, sfmt, gx, gy):
        tile = self._tile(gx, gy)
        x, y = gx * TSL, gy * TSL
        width, height = self._tile_width(x), self._tile_height(y)
        tile.data = b""
        if self.quality >= 10:
            self._encode_basic(tile, view, fb, sfmt, x, y, width, height, gx % N_STREAMS)
        else:
            self._encode_jpeg(tile, view, fb, sfmt, x, y, width, height)
        tile.state = _TileState.ENCODED

    def _encode_columns(self, index, view, fb, sfmt):
        for gy in range(self.grid_height):
            for gx in range(index, self.grid_width, N_STREAMS):
                if self._tile(gx, gy).state == _TileState.DAMAGED:
                    self._encode_tile(view, fb, sfmt, gx, gy)

    def _finish(self) -> bytes:
        out = bytearray()
        for gy in range(self.grid_height):
            for gx in range(self.grid_width):
                tile = self._tile(gx, gy)
                if tile.state != _TileState.ENCODED:
                    continue
                x, y = gx * TSL, gy * TSL
                out += encode_rect_head(
                    RfbEncoding.TIGHT,
                    self.x_pos + x,
                    self.y_pos + y,
                    self._tile_width(x),
                    self._tile_height(y),
                )
                out.append(tile.type)
                out += encode_tight_size(len(tile.data))
                out += tile.data
                tile.state = _TileState.READY
        return bytes(out)

    def encode(self, fb: Framebuffer, damage: Iterable[Box]) -> EncodedFrame:
        """Encode every tile touched by ``damage``, report via ``on_done`` and return it."""
        self._resize(fb.width, fb.height)
        sfmt = rfb_pixfmt_from_fourcc(fb.fourcc_format)

        n_rects = self._apply_damage(list(damage))
        if n_rects == 0:
            raise ValueError("damage does not touch the framebuffer")

        self.pts = fb.pts
        fb.hold()
        try:
            view = fb.map()
            if self._executor is None:
                for index in range(N_STREAMS):
                    self._encode_columns(index, view, fb, sfmt)
            else:
                jobs = [
                    self._executor.submit(self._encode_columns, index, view, fb, sfmt)
                    for index in range(N_STREAMS)
                ]
                for job in jobs:
                    job.result()
            frame = EncodedFrame(self._finish(), n_rects, self.width, self.height, self.pts)
        finally:
            fb.release()

        self.finish_frame(frame)
        self.pts = NO_PTS
        return frame