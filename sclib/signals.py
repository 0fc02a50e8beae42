"""Shutdown and crash signal handling with a minimal, allocation-light logger."""

from __future__ import annotations

import operator
import os
import re
import signal
import traceback
from collections.abc import Callable, Iterator
from types import FrameType
from typing import Any

_LOG_BUFFER_SIZE = 4096
_STDOUT_FD = 1
_STDERR_FD = 2

_MASK32 = (1 << 32) - 1
_MASK64 = (1 << 64) - 1

# A conversion: '%', optional 'l' or 'll', then one character (or nothing).
_SPEC = re.compile(r"%(l{0,2})(.?)", re.DOTALL)


class FormatError(ValueError):
    """Raised when a format string holds an unsupported conversion."""


def _wrap_signed(value: int, bits: int) -> int:
    mask = (1 << bits) - 1
    value &= mask
    if value >= 1 << (bits - 1):
        value -= 1 << bits
    return value


def _next_int(args: Iterator[Any], spec: str) -> int:
    try:
        value = next(args)
    except StopIteration:
        raise FormatError(f"missing argument for {spec!r}") from None
    try:
        return operator.index(value)
    except TypeError as exc:
        raise FormatError(f"{spec!r} needs an integer, got {value!r}") from exc


def _convert(length: str, conv: str, args: Iterator[Any]) -> str:
    spec = "%" + length + conv
    if not length:
        if conv == "%":
            return "%"
        if conv == "s":
            try:
                value = next(args)
            except StopIteration:
                raise FormatError("missing argument for '%s'") from None
            if value is None:
                return "(null)"
            if isinstance(value, (bytes, bytearray)):
                return bytes(value).decode("utf-8", "replace")
            return str(value)
        if conv == "p":
            return "0x" + format(_next_int(args, spec) & _MASK64, "x")
    if conv not in ("d", "u"):
        raise FormatError(f"unsupported conversion {spec!r}")

    bits = 32 if not length else 64
    value = _next_int(args, spec)
    if conv == "u":
        return str(value & (_MASK32 if bits == 32 else _MASK64))
    return str(_wrap_signed(value, bits))


def format_message(fmt: str, *args: Any, size: int | None = None) -> str:
    """Format ``fmt`` supporting only %s, %d, %u, %ld, %lu, %lld, %llu, %p, %%.

    When ``size`` is given the result is cut to ``size - 1`` characters, as a
    buffer of that size with a terminating byte would hold. Unsupported
    conversions raise FormatError.
    """
    if size is not None and size < 0:
        raise ValueError("size must not be negative")

    arg_iter = iter(args)
    pieces: list[str] = []
    pos = 0
    for match in _SPEC.finditer(fmt):
        pieces.append(fmt[pos:match.start()])
        pieces.append(_convert(match.group(1), match.group(2), arg_iter))
        pos = match.end()
    pieces.append(fmt[pos:])

    text = "".join(pieces)
    if size is not None:
        text = text[: max(size - 1, 0)]
    return text


def log(fd: int, fmt: str, *args: Any) -> int:
    """Format a message and write it to ``fd``; return the bytes written.

    Write failures are ignored and reported as zero bytes written.
    """
    text = format_message(fmt, *args, size=_LOG_BUFFER_SIZE)
    try:
        return os.write(fd, text.encode("utf-8", "replace"))
    except OSError:
        return 0


def _signal_names(*names: str) -> dict[int, str]:
    return {
        getattr(signal, name): name for name in names if hasattr(signal, name)
    }


_SHUTDOWN_NAMES = _signal_names("SIGINT", "SIGTERM")
_FATAL_NAMES = _signal_names("SIGSEGV", "SIGABRT", "SIGBUS", "SIGFPE", "SIGILL")
_IGNORED = [getattr(signal, n) for n in ("SIGHUP", "SIGPIPE") if hasattr(signal, n)]


class SignalHandler:
    """Handles shutdown signals (SIGINT, SIGTERM) and fatal signals.

    On the first shutdown signal one byte is written to ``shutdown_fd`` so the
    application can shut down in an orderly way; without a shutdown fd, or on
    a second shutdown signal, ``exit_func`` is called at once.
    """

    def __init__(
        self,
        log_fd: int = -1,
        shutdown_fd: int = -1,
        exit_func: Callable[[int], Any] | None = None,
    ) -> None:
        self.log_fd = log_fd
        self.shutdown_fd = shutdown_fd
        self.exit_func: Callable[[int], Any] = exit_func or os._exit
        self.will_shutdown = False
        # After a fatal signal, restore the default action and raise it again.
        self.reraise = True

    def install(self) -> None:
        """Hook shutdown and fatal signals; ignore SIGHUP and SIGPIPE."""
        for signum in _IGNORED:
            signal.signal(signum, signal.SIG_IGN)
        for signum in _SHUTDOWN_NAMES:
            signal.signal(signum, self.handle_shutdown)
        for signum in _FATAL_NAMES:
            signal.signal(signum, self.handle_fatal)

    def handle_shutdown(self, signum: int, frame: FrameType | None) -> None:
        """React to a shutdown signal."""
        del frame
        fd = self.log_fd if self.log_fd != -1 else _STDOUT_FD
        name = _SHUTDOWN_NAMES.get(signum, "Shutdown signal")

        log(fd, "Recv : %s, (%d) \n", name, signum)

        if self.will_shutdown:
            log(fd, "Forcing shut down! \n")
            self.exit_func(1)
            return

        self.will_shutdown = True

        if self.shutdown_fd != -1:
            log(fd, "Sending shutdown command. \n")
            try:
                written = os.write(self.shutdown_fd, b"\x01")
            except OSError:
                written = -1
            if written != 1:
                log(
                    fd,
                    "Failed to send shutdown command, "
                    "shutting down immediately! \n",
                )
                self.exit_func(1)
        else:
            log(fd, "No shutdown handler, shutting down! \n")
            self.exit_func(0)

    def handle_fatal(self, signum: int, frame: FrameType | None) -> None:
        """Write a crash report, then re-deliver the signal with its default action."""
        fd = self.log_fd if self.log_fd != -1 else _STDERR_FD
        name = _FATAL_NAMES.get(signum, "unknown signal")

        log(fd, "\nSignal : [%d][%s] \n", signum, name)
        log(fd, "\n----------------- CRASH REPORT ---------------- \n")
        if frame is not None:
            stack = "".join(traceback.format_stack(frame))
            try:
                os.write(fd, ("\n" + stack).encode("utf-8", "replace"))
            except OSError:
                pass
        log(fd, "\n--------------- CRASH REPORT END -------------- \n")
        log(fd, "\nSignal handler completed! \n")
        try:
            os.close(fd)
        except OSError:
            pass

        try:
            signal.signal(signum, signal.SIG_DFL)
        except (OSError, ValueError):
            pass

        if self.reraise:
            os.kill(os.getpid(), signum)


def init() -> SignalHandler:
    """Install a handler with default settings and return it."""
    handler = SignalHandler()
    handler.install()
    return handler