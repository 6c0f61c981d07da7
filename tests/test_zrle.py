import struct
import zlib

import pytest

from rfbenc.enc.util import Box, RfbEncoding, encode_rect_head
from rfbenc.enc.zrle import TILE_LENGTH, ZrleEncoder, encode_tile
from rfbenc.fb import Framebuffer
from rfbenc.pixels import DRM_FORMAT_XRGB8888, pixel_to_cpixel, rfb_pixfmt_from_fourcc

FMT = rfb_pixfmt_from_fourcc(DRM_FORMAT_XRGB8888)


def px(value):
    return struct.pack("<I", value)


def cpx(*pixels):
    return pixel_to_cpixel(FMT, b"".join(pixels), FMT, 3, len(pixels))


A = px(0x00112233)
B = px(0x00AABBCC)


def test_solid_tile():
    assert encode_tile(FMT, A * 4, FMT, 4) == b"\x01" + cpx(A)


def test_solid_tile_wire_bytes():
    assert encode_tile(FMT, A, FMT, 1) == b"\x01\x33\x22\x11"


def test_palette_rle_tile():
    result = encode_tile(FMT, A * 3 + B, FMT, 4)
    assert result == bytes([130]) + cpx(A, B) + bytes([0x80, 2, 1])


def test_long_run_is_split():
    result = encode_tile(FMT, A * 299 + B, FMT, 300)
    assert result == bytes([130]) + cpx(A, B) + bytes([0x80, 255, 43, 1])


def test_too_many_colours_falls_back_to_raw():
    pixels = b"".join(px(i * 0x010101) for i in range(17))
    assert encode_tile(FMT, pixels, FMT, 17) == b"\x00" + cpx(pixels)


def test_packed_larger_than_raw_falls_back_to_raw():
    assert encode_tile(FMT, A + B, FMT, 2) == b"\x00" + cpx(A, B)


def test_empty_tile_rejected():
    with pytest.raises(ValueError):
        encode_tile(FMT, b"", FMT, 0)


def make_fb(width, height, fill):
    fb = Framebuffer.new(width, height, DRM_FORMAT_XRGB8888, width)
    for y in range(height):
        for x in range(width):
            start = (y * width + x) * 4
            fb.addr[start : start + 4] = fill(x, y)
    return fb


def split_rect(payload):
    head, rest = payload[:12], payload[12:]
    (size,) = struct.unpack(">I", rest[:4])
    return head, rest[4 : 4 + size], rest[4 + size :]


def test_encode_single_tile():
    fb = make_fb(10, 10, lambda x, y: A if x < 5 else B)
    frames = []
    with ZrleEncoder() as enc:
        enc.set_output_format(FMT)
        enc.on_done = lambda e, frame: frames.append(frame)
        frame = enc.encode(fb, [Box(0, 0, 10, 10)])

    assert frames == [frame]
    assert frame.n_rects == 1
    assert (frame.width, frame.height) == (10, 10)
    head, data, rest = split_rect(frame.payload)
    assert rest == b""
    assert head == encode_rect_head(RfbEncoding.ZRLE, 0, 0, 10, 10)
    assert data[:2] == b"\x78\x01"
    tile = bytes(fb.addr[: 10 * 10 * 4])
    assert zlib.decompressobj().decompress(data) == encode_tile(FMT, tile, FMT, 100)
    assert fb.hold_count == 0


def test_encode_multiple_tiles_and_stream_continues():
    width = TILE_LENGTH + 6
    fb = make_fb(width, 2, lambda x, y: px((x * 7 + y) & 0xFF))
    dec = zlib.decompressobj()
    with ZrleEncoder() as enc:
        enc.set_output_format(FMT)
        enc.x_pos, enc.y_pos = 3, 4
        first = enc.encode(fb, [Box(0, 0, width, 2)])
        second = enc.encode(fb, [Box(1, 1, 3, 2)])

    def tile(x0, x1, y0, y1):
        rows = b"".join(
            bytes(fb.addr[(y * width + x0) * 4 : (y * width + x1) * 4]) for y in range(y0, y1)
        )
        return encode_tile(FMT, rows, FMT, (x1 - x0) * (y1 - y0))

    head, data, _ = split_rect(first.payload)
    assert head == encode_rect_head(RfbEncoding.ZRLE, 3, 4, width, 2)
    assert dec.decompress(data) == tile(0, TILE_LENGTH, 0, 2) + tile(TILE_LENGTH, width, 0, 2)

    head, data, _ = split_rect(second.payload)
    assert head == encode_rect_head(RfbEncoding.ZRLE, 4, 5, 2, 1)
    assert data[:2] != b"\x78\x01" or len(data) > 2
    assert dec.decompress(data) == tile(1, 3, 1, 2)


def test_encoding_and_close():
    enc = ZrleEncoder()
    assert enc.encoding() == RfbEncoding.ZRLE
    enc.close()
    fb = make_fb(2, 2, lambda x, y: A)
    with pytest.raises(ValueError):
        enc.encode(fb, [Box(0, 0, 2, 2)])
    assert fb.hold_count == 0