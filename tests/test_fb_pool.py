from rfbenc.fb import Framebuffer
from rfbenc.fb_pool import FramebufferPool
from rfbenc.pixels import DRM_FORMAT_XBGR8888, DRM_FORMAT_XRGB8888


def make_pool():
    return FramebufferPool(4, 2, DRM_FORMAT_XRGB8888, 4)


def test_acquire_allocates_matching_buffer():
    fb = make_pool().acquire()
    assert (fb.width, fb.height, fb.fourcc_format, fb.stride) == (
        4, 2, DRM_FORMAT_XRGB8888, 4)


def test_released_buffer_is_reused():
    pool = make_pool()
    fb = pool.acquire()
    fb.hold()
    fb.release()
    assert len(pool) == 1
    assert pool.acquire() is fb
    assert len(pool) == 0


def test_distinct_buffers_when_pool_empty():
    pool = make_pool()
    first = pool.acquire()
    second = pool.acquire()
    assert len(pool) == 0
    for fb in (first, second):
        fb.hold()
        fb.release()
    assert len(pool) == 2
    assert pool.acquire() is first
    assert pool.acquire() is second
    assert len(pool) == 0


def test_resize_same_geometry_returns_false():
    pool = make_pool()
    assert pool.resize(4, 2, DRM_FORMAT_XRGB8888, 4) is False


def test_resize_drops_pooled_buffers():
    pool = make_pool()
    fb = pool.acquire()
    fb.hold()
    fb.release()
    assert pool.resize(8, 8, DRM_FORMAT_XRGB8888, 8) is True
    assert len(pool) == 0
    fresh = pool.acquire()
    assert (fresh.width, fresh.height, fresh.stride) == (8, 8, 8)


def test_stale_buffer_not_returned_after_resize():
    pool = make_pool()
    fb = pool.acquire()
    fb.hold()
    pool.resize(4, 2, DRM_FORMAT_XBGR8888, 4)
    fb.release()
    assert len(pool) == 0


def test_release_rejects_mismatched_buffer():
    pool = make_pool()
    pool.release(Framebuffer.new(3, 3, DRM_FORMAT_XRGB8888, 3))
    assert len(pool) == 0


def test_custom_alloc_fn():
    pool = make_pool()
    calls = []
    created = []

    def alloc(width, height, fourcc, stride):
        calls.append((width, height, fourcc, stride))
        fb = Framebuffer.new(width, height, fourcc, stride)
        created.append(fb)
        return fb

    pool.set_alloc_fn(alloc)
    fb = pool.acquire()
    assert calls == [(4, 2, DRM_FORMAT_XRGB8888, 4)]
    assert fb is created[0]
    assert (fb.width, fb.height, fb.stride) == (4, 2, 4)


def test_failed_alloc_returns_none():
    pool = make_pool()
    pool.set_alloc_fn(lambda *args: None)
    assert pool.acquire() is None