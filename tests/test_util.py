import struct

from rfbenc.enc.util import (
    Box,
    RfbEncoding,
    calc_bytes_per_cpixel,
    calculate_region_area,
    encode_rect_head,
    region_extents,
)
from rfbenc.pixels import (
    DRM_FORMAT_RGB888,
    DRM_FORMAT_XRGB2101010,
    DRM_FORMAT_XRGB8888,
    rfb_pixfmt_from_fourcc,
)


def test_rect_head_layout():
    head = encode_rect_head(RfbEncoding.ZRLE, 10, 20, 30, 40)
    assert len(head) == 12
    assert struct.unpack(">HHHHi", head) == (10, 20, 30, 40, RfbEncoding.ZRLE)


def test_rect_head_raw_wire_bytes():
    assert encode_rect_head(RfbEncoding.RAW, 1, 2, 3, 4) == (
        b"\x00\x01\x00\x02\x00\x03\x00\x04\x00\x00\x00\x00"
    )


def test_bytes_per_cpixel_of_32_bit_format_follows_depth():
    assert calc_bytes_per_cpixel(rfb_pixfmt_from_fourcc(DRM_FORMAT_XRGB8888)) == 3
    assert calc_bytes_per_cpixel(rfb_pixfmt_from_fourcc(DRM_FORMAT_XRGB2101010)) == 4


def test_bytes_per_cpixel_of_24_bit_format():
    fmt = rfb_pixfmt_from_fourcc(DRM_FORMAT_RGB888)
    assert calc_bytes_per_cpixel(fmt) == fmt.bits_per_pixel // 8


def test_region_area_is_sum_of_boxes():
    a = Box(0, 0, 5, 7)
    b = Box(10, 10, 13, 11)
    assert calculate_region_area([a]) == a.width * a.height
    assert calculate_region_area([a, b]) == calculate_region_area([a]) + calculate_region_area([b])
    assert calculate_region_area([]) == 0


def test_region_extents_covers_all_boxes():
    boxes = [Box(4, 5, 10, 12), Box(1, 8, 3, 20)]
    ext = region_extents(boxes)
    assert ext == Box(1, 5, 10, 20)
    for box in boxes:
        assert ext.x1 <= box.x1 and ext.y1 <= box.y1
        assert ext.x2 >= box.x2 and ext.y2 >= box.y2


def test_region_extents_of_empty_region():
    assert region_extents([]) == Box(0, 0, 0, 0)