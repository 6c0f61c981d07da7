import pytest

from rfbenc.enc.encoder import Encoder
from rfbenc.enc.util import EncodedFrame, RfbEncoding
from rfbenc.fb import NO_PTS, Framebuffer
from rfbenc.pixels import DRM_FORMAT_XRGB8888


class _CopyEncoder(Encoder):
    def encoding(self):
        return RfbEncoding.COPYRECT

    def encode(self, fb, damage):
        frame = EncodedFrame(b"", len(list(damage)), fb.width, fb.height, NO_PTS)
        self.finish_frame(frame)
        return frame


def test_abstract_encoder_cannot_be_instantiated():
    with pytest.raises(TypeError):
        Encoder()


def test_encoding_of_subclass():
    enc = _CopyEncoder()
    seen = []
    enc.on_done = lambda encoder, frame: seen.append((encoder, frame))
    fb = Framebuffer.new(4, 2, DRM_FORMAT_XRGB8888, 4)
    frame = enc.encode(fb, [])
    assert enc.encoding() is RfbEncoding.COPYRECT
    assert seen == [(enc, frame)]


def test_finish_frame_calls_on_done():
    enc = _CopyEncoder()
    seen = []
    enc.on_done = lambda encoder, frame: seen.append((encoder, frame))
    frame = EncodedFrame(b"abc", 1, 2, 3, NO_PTS)
    enc.finish_frame(frame)
    assert seen == [(enc, frame)]


def test_finish_frame_without_callback_keeps_state():
    enc = _CopyEncoder()
    enc.finish_frame(EncodedFrame(b"", 0, 0, 0, NO_PTS))
    assert enc.on_done is None


def test_optional_hooks_leave_position_untouched():
    enc = _CopyEncoder()
    enc.x_pos, enc.y_pos = 3, 4
    Encoder.set_quality(enc, 5)
    Encoder.request_key_frame(enc)
    assert (enc.x_pos, enc.y_pos) == (3, 4)
    assert enc.ignores_damage is False