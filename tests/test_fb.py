import pytest

from rfbenc.fb import NO_PTS, Framebuffer, FbType, Transform
from rfbenc.pixels import (
    DRM_FORMAT_RGB888,
    DRM_FORMAT_RGBA4444,
    DRM_FORMAT_XRGB8888,
)


def test_new_allocates_aligned_zeroed_memory():
    fb = Framebuffer.new(3, 3, DRM_FORMAT_RGB888, 3)
    assert len(fb.addr) >= 3 * 3 * 3
    assert len(fb.addr) % 8 == 0
    assert not any(fb.addr)
    assert fb.type == FbType.SIMPLE
    assert not fb.is_external


def test_new_records_geometry():
    fb = Framebuffer.new(10, 5, DRM_FORMAT_XRGB8888, 16)
    assert (fb.width, fb.height, fb.stride) == (10, 5, 16)
    assert fb.fourcc_format == DRM_FORMAT_XRGB8888
    assert len(fb.addr) == 5 * 16 * 4


def test_defaults():
    fb = Framebuffer.new(1, 1, DRM_FORMAT_XRGB8888, 1)
    assert fb.pts == NO_PTS
    assert fb.transform == Transform.NORMAL
    assert fb.hold_count == 0


@pytest.mark.parametrize(
    "fourcc, size",
    [(DRM_FORMAT_XRGB8888, 4), (DRM_FORMAT_RGB888, 3), (DRM_FORMAT_RGBA4444, 2)],
)
def test_pixel_size(fourcc, size):
    assert Framebuffer.new(2, 2, fourcc, 2).pixel_size() == size


def test_from_buffer_shares_memory():
    buf = bytearray(16)
    fb = Framebuffer.from_buffer(buf, 2, 2, DRM_FORMAT_XRGB8888, 2)
    assert fb.addr is buf
    assert fb.is_external
    fb.map()[0] = 7
    assert buf[0] == 7


def test_release_fires_only_on_last_hold():
    fb = Framebuffer.new(1, 1, DRM_FORMAT_XRGB8888, 1)
    released = []
    fb.set_release_fn(released.append)
    fb.hold()
    fb.hold()
    fb.release()
    assert released == []
    fb.release()
    assert released == [fb]
    assert fb.hold_count == 0


def test_release_resets_pts_and_unmaps():
    fb = Framebuffer.new(1, 1, DRM_FORMAT_XRGB8888, 1)
    fb.pts = 1234
    fb.hold()
    fb.map()
    assert fb.is_mapped
    fb.release()
    assert fb.pts == NO_PTS
    assert not fb.is_mapped


def test_release_without_hold_raises():
    fb = Framebuffer.new(1, 1, DRM_FORMAT_XRGB8888, 1)
    with pytest.raises(RuntimeError):
        fb.release()


def test_transform_and_pts_are_settable():
    fb = Framebuffer.new(1, 1, DRM_FORMAT_XRGB8888, 1)
    fb.transform = Transform.ROT_180
    fb.pts = 99
    assert fb.transform == Transform.ROT_180
    assert fb.pts == 99