"""The raw encoding: uncompressed pixels in the client's format."""

from __future__ import annotations

from typing import Iterable, List

from rfbenc.enc.encoder import Encoder
from rfbenc.enc.util import Box, EncodedFrame, RfbEncoding, encode_rect_head, region_extents
from rfbenc.fb import Framebuffer
from rfbenc.pixels import PixelFormat, pixel_to_cpixel, rfb_pixfmt_from_fourcc

_MAX_RECTS = 0xFFFF


class RawEncoder(Encoder):
    """Sends every damaged box as a raw rectangle."""

    def __init__(self) -> None:
        super().__init__()
        self.output_format = PixelFormat()

    def encoding(self) -> RfbEncoding:
        return RfbEncoding.RAW

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
            RfbEncoding.RAW, self.x_pos + box.x1, self.y_pos + box.y1, box.width, box.height
        )
        src_bpp = src_fmt.bits_per_pixel // 8
        dst_bpp = dst_fmt.bits_per_pixel // 8
        src_stride = fb.stride * src_bpp
        row_len = box.width * src_bpp
        for y in range(box.y1, box.y2):
            start = y * src_stride + box.x1 * src_bpp
            out += pixel_to_cpixel(
                dst_fmt, view[start : start + row_len], src_fmt, dst_bpp, box.width
            )

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