"""A one-way pipe whose read end can be registered with a poller."""

from __future__ import annotations

import errno
import os
from typing import Any

from sclib.sock import Event


class PipeError(OSError):
    """Raised when a pipe operation fails."""


def _error(what: str, exc: OSError) -> PipeError:
    code = exc.errno if exc.errno is not None else errno.EIO
    reason = exc.strerror or os.strerror(code)
    return PipeError(code, f"{what} : {reason} ")


class Pipe:
    """An operating system pipe.

    ``type`` is free user data. ``fileno()`` returns the read end, which is
    what a poller watches; ``op`` holds the events the pipe is registered for.
    """

    def __init__(self, type: int = 0) -> None:
        self.type = type
        self.op = Event.NONE
        try:
            self._read_fd, self._write_fd = os.pipe()
        except OSError as exc:
            self._read_fd = self._write_fd = -1
            raise _error("pipe()", exc) from exc

    def fileno(self) -> int:
        """Return the read end's descriptor, or -1 once the pipe is closed."""
        return self._read_fd

    @property
    def closed(self) -> bool:
        return self._read_fd == -1

    def _check_open(self, what: str) -> None:
        if self.closed:
            raise PipeError(errno.EBADF, f"{what} : {os.strerror(errno.EBADF)} ")

    def write(self, data: bytes) -> int:
        """Write ``data`` to the pipe and return the number of bytes written."""
        self._check_open("pipe write()")
        try:
            return os.write(self._write_fd, bytes(data))
        except OSError as exc:
            raise _error("pipe write()", exc) from exc

    def read(self, size: int) -> bytes:
        """Read up to ``size`` bytes from the pipe."""
        self._check_open("pipe read()")
        try:
            return os.read(self._read_fd, size)
        except OSError as exc:
            raise _error("pipe read()", exc) from exc

    def close(self) -> None:
        """Close both ends; closing a closed pipe does nothing."""
        if self.closed:
            return
        fds = (self._read_fd, self._write_fd)
        self._read_fd = self._write_fd = -1
        failure: OSError | None = None
        for fd in fds:
            try:
                os.close(fd)
            except OSError as exc:
                failure = exc
        if failure is not None:
            raise _error("pipe close()", failure) from failure

    def __enter__(self) -> Pipe:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Pipe(type={self.type!r}, fd={self._read_fd})"