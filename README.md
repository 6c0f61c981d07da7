# rfbenc

Building blocks for the server side of the RFB (VNC) protocol: framebuffers,
pixel format conversion, and the rectangle encoders that turn damaged parts
of a framebuffer into the bytes a server sends to its clients.

## What is inside

- `rfbenc.pixels`: `PixelFormat` and DRM fourcc constants and helpers.
  - `rfb_pixfmt_from_fourcc` describes a fourcc format as a `PixelFormat`
    and raises `ValueError` for formats it does not know.
  - `pixel_size_from_fourcc` gives the bytes per pixel, or 0.
  - `pixel_to_cpixel` converts packed pixels into a client's pixel format.
  - `extract_alpha_mask` builds a one-bit-per-pixel mask from the alpha
    channel.
  - `make_rgb332_pal8_map` returns the wire bytes of a SetColourMapEntries
    message for the RGB332 palette.
  - `rate_pixel_format` scores a format and modifier with
    `FormatRatingFlags`.
  - `drm_format_to_string`, `rfb_pixfmt_to_string`, `rfb_pixfmt_depth`,
    `format_has_alpha` and `format_modifier_is_allowed` are smaller helpers.
- `rfbenc.fb`: `Framebuffer`. `Framebuffer.new` allocates zeroed memory, and
  `Framebuffer.from_buffer` wraps memory you already have. A framebuffer
  counts holds with `hold()` and `release()`. When the last hold is released,
  the callback set with `set_release_fn` is called. `stride` is counted in
  pixels.
- `rfbenc.fb_pool`: `FramebufferPool` hands out framebuffers of one geometry
  and format. It takes them back when their last hold is released.
  `resize()` drops the pooled buffers, and `set_alloc_fn()` replaces the
  allocator.
- `rfbenc.pngfb`: `read_png_file` loads an image with Pillow into a new
  ABGR8888 framebuffer.
- `rfbenc.log`: a small levelled logger. It has `LogLevel`, `set_log_level`,
  `get_log_level`, `set_log_fn`, `set_log_fn_thread_local` and `log`.
  - The default level is `WARNING`.
  - Info and lower-severity messages go to stdout. Warnings and errors go to
    stderr.
  - A `PANIC` message raises `LogPanic` after it is logged.
- `rfbenc.parallel_deflate`: `ParallelDeflate` splits its input into
  128 KiB blocks and compresses them on a thread pool.
  - Its output is one zlib stream with a sync flush after each block.
  - Blocks are compressed independently, so no dictionary carries over.
  - Use it as a context manager or call `close()`.
- `rfbenc.enc`: the encoders.
  - `Encoder` is the common base. It has `x_pos`/`y_pos` offsets and an
    `on_done` callback.
  - `RawEncoder` sends uncompressed pixels.
  - `ZrleEncoder` sends 64x64 palette/RLE tiles over one continuous zlib
    stream. Call `close()` when done, or use it as a context manager.
  - `TightEncoder` sends 64x64 tiles. Quality 0–9, set with `set_quality`,
    sends JPEG through Pillow. 10 and above sends zlib over four streams.
    The default quality is 0. JPEG is only produced for 24- and 32-bit
    8-bit-per-channel formats.
  - `rfbenc.enc.factory.encoder_new` picks an encoder by `RfbEncoding`. It
    returns `None` for encodings it does not support.
  - `rfbenc.enc.util` has `encode_rect_head`, `calc_bytes_per_cpixel`,
    `Box`, `EncodedFrame` and region helpers.

Damage is passed as an iterable of `Box` objects. Each encoder's `encode()`
hands the finished `EncodedFrame` to `on_done` and also returns it. The frame
holds the wire bytes, the number of rectangles, the frame size and the
presentation timestamp.

## Installing

```
pip install .
```

To run the test suite:

```
pip install .[test]
pytest
```

## Example

```python
from rfbenc.fb import Framebuffer
from rfbenc.pixels import DRM_FORMAT_XRGB8888, rfb_pixfmt_from_fourcc
from rfbenc.enc.util import Box, RfbEncoding
from rfbenc.enc.factory import encoder_new

fb = Framebuffer.new(640, 480, DRM_FORMAT_XRGB8888, 640)
encoder = encoder_new(RfbEncoding.ZRLE, 640, 480)
encoder.set_output_format(rfb_pixfmt_from_fourcc(DRM_FORMAT_XRGB8888))

frame = encoder.encode(fb, [Box(0, 0, 640, 480)])
print(frame.n_rects, len(frame.payload))
encoder.close()
```

## What it does not do

This package only produces encoded rectangles. It has none of the following:

- a server or network code
- the protocol handshake or authentication
- client message handling
- display or input handling

Encodings other than raw, ZRLE and Tight, such as H.264, are not provided.
GBM buffer objects are not supported either: every framebuffer is plain
memory.