"""Levelled logging with a replaceable process-wide and per-thread sink."""

from __future__ import annotations

import inspect
import sys
import threading
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Optional


class LogLevel(IntEnum):
    """Severity of a log message; lower values are more severe."""

    PANIC = 0
    ERROR = 1
    WARNING = 2
    INFO = 3
    DEBUG = 4
    TRACE = 5


@dataclass(frozen=True)
class LogData:
    """Where a log message came from and how severe it is."""

    level: LogLevel
    file: str
    line: int


LogFn = Callable[[LogData, str], None]


class LogPanic(RuntimeError):
    """Raised after a message at PANIC level has been logged."""


_MAX_MESSAGE_LENGTH = 1023

_LEVEL_NAMES = {
    LogLevel.PANIC: "PANIC",
    LogLevel.ERROR: "ERROR",
    LogLevel.WARNING: "Warning",
    LogLevel.INFO: "Info",
    LogLevel.DEBUG: "DEBUG",
    LogLevel.TRACE: "TRACE",
}

_STDOUT_LEVELS = frozenset({LogLevel.INFO, LogLevel.DEBUG, LogLevel.TRACE})


def default_logger(meta: LogData, message: str) -> None:
    """Write a message to stdout (info and below) or stderr (warnings and above)."""
    stream = sys.stdout if meta.level in _STDOUT_LEVELS else sys.stderr
    if meta.level == LogLevel.INFO:
        stream.write(f"Info: {message}\n")
    else:
        name = _LEVEL_NAMES.get(meta.level, "UNKNOWN")
        stream.write(f"{name}: {meta.file}: {meta.line}: {message}\n")
    stream.flush()


class _LogState:
    def __init__(self) -> None:
        self.log_fn: LogFn = default_logger
        self.level: LogLevel = LogLevel.WARNING
        self.thread = threading.local()

    def current_fn(self) -> LogFn:
        return getattr(self.thread, "log_fn", None) or self.log_fn


_state = _LogState()


def set_log_level(level: LogLevel | int) -> None:
    """Drop messages less severe than ``level`` from now on."""
    _state.level = LogLevel(level)


def get_log_level() -> LogLevel:
    """The level above which messages are dropped."""
    return _state.level


def set_log_fn(fn: Optional[LogFn]) -> None:
    """Send messages to ``fn``; ``None`` restores the default logger."""
    _state.log_fn = fn if fn is not None else default_logger


def set_log_fn_thread_local(fn: Optional[LogFn]) -> None:
    """Override the sink for the calling thread only; ``None`` removes the override."""
    _state.thread.log_fn = fn


def log(
    level: LogLevel | int,
    fmt: str,
    *args: object,
    file: Optional[str] = None,
    line: Optional[int] = None,
) -> None:
    """Format and emit a message; a PANIC message raises :class:`LogPanic`."""
    level = LogLevel(level)

    if file is None or line is None:
        frame = inspect.currentframe()
        caller = frame.f_back if frame is not None else None
        if file is None:
            file = caller.f_code.co_filename if caller is not None else "<unknown>"
        if line is None:
            line = caller.f_lineno if caller is not None else 0

    message = fmt % args if args else fmt
    message = message[:_MAX_MESSAGE_LENGTH].strip()

    if level <= _state.level:
        _state.current_fn()(LogData(level, file, line), message)

    if level == LogLevel.PANIC:
        raise LogPanic(message)