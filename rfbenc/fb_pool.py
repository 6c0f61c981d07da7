"""A pool that recycles framebuffers of one geometry and format."""

from __future__ import annotations

from collections import deque
from typing import Callable, Deque, Optional

from rfbenc.fb import Framebuffer

AllocFn = Callable[[int, int, int, int], Optional[Framebuffer]]


class FramebufferPool:
    """Hands out framebuffers and takes them back when their last hold is released."""

    def __init__(self, width: int, height: int, fourcc_format: int, stride: int) -> None:
        self.width = width
        self.height = height
        self.fourcc_format = fourcc_format
        self.stride = stride
        self._alloc_fn: AllocFn = Framebuffer.new
        self._fbs: Deque[Framebuffer] = deque()

    def __len__(self) -> int:
        return len(self._fbs)

    def resize(self, width: int, height: int, fourcc_format: int, stride: int) -> bool:
        """Change the pool's geometry, dropping pooled buffers; False if unchanged."""
        if (width, height, fourcc_format, stride) == (
            self.width,
            self.height,
            self.fourcc_format,
            self.stride,
        ):
            return False

        self._fbs.clear()
        self.width = width
        self.height = height
        self.fourcc_format = fourcc_format
        self.stride = stride
        return True

    def acquire(self) -> Optional[Framebuffer]:
        """Take a pooled framebuffer, or allocate one; None if allocation fails."""
        if self._fbs:
            return self._fbs.popleft()

        fb = self._alloc_fn(self.width, self.height, self.fourcc_format, self.stride)
        if fb is None:
            return None
        fb.set_release_fn(self.release)
        return fb

    def release(self, fb: Framebuffer) -> None:
        """Return ``fb`` to the pool unless it no longer matches the pool's geometry."""
        if (fb.width, fb.height, fb.fourcc_format, fb.stride) != (
            self.width,
            self.height,
            self.fourcc_format,
            self.stride,
        ):
            return
        self._fbs.append(fb)

    def set_alloc_fn(self, fn: AllocFn) -> None:
        """Use ``fn(width, height, fourcc_format, stride)`` to allocate new buffers."""
        self._alloc_fn = fn