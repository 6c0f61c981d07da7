"""The interface shared by all framebuffer encoders."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Iterable, Optional

from rfbenc.enc.util import Box, EncodedFrame, RfbEncoding
from rfbenc.fb import Framebuffer
from rfbenc.pixels import PixelFormat

DoneFn = Callable[["Encoder", EncodedFrame], None]


class Encoder(ABC):
    """Turns damaged parts of a framebuffer into RFB rectangles."""

    ignores_damage = False

    def __init__(self) -> None:
        self.x_pos = 0
        self.y_pos = 0
        self.on_done: Optional[DoneFn] = None

    @abstractmethod
    def encoding(self) -> RfbEncoding:
        """The RFB encoding this encoder produces."""

    def set_output_format(self, pixfmt: PixelFormat) -> None:
        """Pixel format the client asked for; ignored by encoders without one."""

    def set_quality(self, value: int) -> None:
        """Quality level the client asked for; ignored by encoders without one."""

    @abstractmethod
    def encode(self, fb: Framebuffer, damage: Iterable[Box]) -> Optional[EncodedFrame]:
        """Encode the damaged region of ``fb``."""

    def request_key_frame(self) -> None:
        """Ask for a full frame next; ignored by encoders without key frames."""

    def finish_frame(self, result: EncodedFrame) -> None:
        """Hand a finished frame to the ``on_done`` callback, if one is set."""
        if self.on_done is not None:
            self.on_done(self, result)