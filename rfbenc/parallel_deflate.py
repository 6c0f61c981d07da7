"""A deflate stream whose input blocks are compressed on worker threads."""

from __future__ import annotations

import zlib
from collections import deque
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Deque, Optional

INPUT_BLOCK_SIZE = 128 * 1024

ZLIB_HEADER = b"\x78\x01"


class ParallelDeflate:
    """Compress a byte stream in fixed-size blocks concurrently.

    The output is one zlib stream: a two-byte header followed by raw deflate
    blocks, each ended by a sync flush.  Blocks are compressed independently,
    so no dictionary is carried from one block to the next.
    """

    def __init__(
        self,
        level: int = 1,
        window_bits: int = -15,
        mem_level: int = 9,
        strategy: int = zlib.Z_DEFAULT_STRATEGY,
        executor: Optional[Executor] = None,
    ) -> None:
        if window_bits >= 0:
            raise ValueError("window_bits must be negative (raw deflate)")
        self.level = level
        self.window_bits = window_bits
        self.mem_level = mem_level
        self.strategy = strategy
        self._input = bytearray()
        self._pending: Deque[Future] = deque()
        self._is_at_start = True
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(thread_name_prefix="deflate")
        self._closed = False

    def __enter__(self) -> "ParallelDeflate":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _check_open(self) -> None:
        if self._closed:
            raise ValueError("deflate stream is closed")

    def _compress(self, block: bytes) -> bytes:
        compressor = zlib.compressobj(
            self.level, zlib.DEFLATED, self.window_bits, self.mem_level, self.strategy
        )
        return compressor.compress(block) + compressor.flush(zlib.Z_SYNC_FLUSH)

    def _schedule(self, block: bytes) -> None:
        self._pending.append(self._executor.submit(self._compress, block))

    def feed(self, data: bytes) -> None:
        """Queue ``data``; every complete input block is handed to a worker."""
        self._check_open()
        self._input += data
        processed = len(self._input) // INPUT_BLOCK_SIZE * INPUT_BLOCK_SIZE
        for start in range(0, processed, INPUT_BLOCK_SIZE):
            self._schedule(bytes(self._input[start : start + INPUT_BLOCK_SIZE]))
        del self._input[:processed]

    def _flush(self) -> bytes:
        out = bytearray()
        if self._is_at_start:
            out += ZLIB_HEADER
            self._is_at_start = False
        while self._pending:
            out += self._pending.popleft().result()
        return bytes(out)

    def sync(self) -> bytes:
        """Compress what is left and return all output produced since the last sync."""
        self._check_open()
        if self._input:
            self._schedule(bytes(self._input))
            self._input.clear()
        return self._flush()

    def close(self) -> None:
        """Wait for outstanding work, discard its output and stop the workers."""
        if self._closed:
            return
        self._flush()
        self._input.clear()
        self._closed = True
        if self._owns_executor:
            self._executor.shutdown(wait=True)