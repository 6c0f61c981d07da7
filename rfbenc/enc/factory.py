"""Creating encoders by RFB encoding number."""

from __future__ import annotations

from typing import Optional

from rfbenc.enc.encoder import Encoder
from rfbenc.enc.raw import RawEncoder
from rfbenc.enc.tight import TightEncoder
from rfbenc.enc.util import RfbEncoding
from rfbenc.enc.zrle import ZrleEncoder


def encoder_new(encoding: int, width: int, height: int) -> Optional[Encoder]:
    """A new encoder for ``encoding``, or None if the encoding is not supported."""
    if encoding == RfbEncoding.RAW:
        return RawEncoder()
    if encoding == RfbEncoding.ZRLE:
        return ZrleEncoder()
    if encoding == RfbEncoding.TIGHT:
        return TightEncoder(width, height)
    return None