"""Framebuffers: pixel memory plus geometry, format and hold tracking."""

from __future__ import annotations

from enum import IntEnum
from typing import Callable, Optional, Union

from rfbenc.pixels import pixel_size_from_fourcc

NO_PTS = (1 << 64) - 1

_ALIGNMENT = 8

Buffer = Union[bytearray, memoryview, bytes]


class FbType(IntEnum):
    """Kind of memory backing a framebuffer."""

    UNSPEC = 0
    SIMPLE = 1
    GBM_BO = 2


class Transform(IntEnum):
    """Orientation of the framebuffer contents."""

    NORMAL = 0
    ROT_90 = 1
    ROT_180 = 2
    ROT_270 = 3
    FLIPPED = 4
    FLIPPED_90 = 5
    FLIPPED_180 = 6
    FLIPPED_270 = 7


class Framebuffer:
    """A block of pixels; ``stride`` is counted in pixels, not bytes."""

    def __init__(
        self,
        addr: Buffer,
        width: int,
        height: int,
        fourcc_format: int,
        stride: int,
        *,
        is_external: bool = False,
    ) -> None:
        self.addr = addr
        self.width = width
        self.height = height
        self.fourcc_format = fourcc_format
        self.stride = stride
        self.type = FbType.SIMPLE
        self.is_external = is_external
        self.transform = Transform.NORMAL
        self.pts = NO_PTS
        self._hold_count = 0
        self._on_release: Optional[Callable[[Framebuffer], None]] = None
        self._mapped = False

    @classmethod
    def new(cls, width: int, height: int, fourcc_format: int, stride: int) -> "Framebuffer":
        """Allocate a zeroed framebuffer owning its pixel memory."""
        size = height * stride * pixel_size_from_fourcc(fourcc_format)
        aligned_size = -(-size // _ALIGNMENT) * _ALIGNMENT
        return cls(bytearray(aligned_size), width, height, fourcc_format, stride)

    @classmethod
    def from_buffer(
        cls, buffer: Buffer, width: int, height: int, fourcc_format: int, stride: int
    ) -> "Framebuffer":
        """Wrap memory owned by the caller without copying it."""
        return cls(buffer, width, height, fourcc_format, stride, is_external=True)

    def pixel_size(self) -> int:
        """Bytes per pixel of the framebuffer's format."""
        return pixel_size_from_fourcc(self.fourcc_format)

    @property
    def hold_count(self) -> int:
        """Number of outstanding holds."""
        return self._hold_count

    @property
    def is_mapped(self) -> bool:
        """Whether :meth:`map` has been called since the last unmap."""
        return self._mapped

    def set_release_fn(self, fn: Optional[Callable[["Framebuffer"], None]]) -> None:
        """Call ``fn(fb)`` whenever the last hold is released."""
        self._on_release = fn

    def hold(self) -> None:
        """Mark the framebuffer as in use."""
        self._hold_count += 1

    def release(self) -> None:
        """Drop one hold; the last one unmaps, clears pts and fires the release callback."""
        if self._hold_count == 0:
            raise RuntimeError("framebuffer released more often than held")
        self._hold_count -= 1
        if self._hold_count:
            return

        self.unmap()
        self.pts = NO_PTS

        if self._on_release is not None:
            self._on_release(self)

    def map(self) -> memoryview:
        """Make the pixel memory readable and return a view of it."""
        self._mapped = True
        return memoryview(self.addr)

    def unmap(self) -> None:
        """Undo :meth:`map`."""
        self._mapped = False