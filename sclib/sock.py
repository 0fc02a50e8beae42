"""TCP and Unix domain stream sockets with a small, uniform interface."""

from __future__ import annotations

import enum
import errno
import os
import socket
import struct
from typing import Any

_LISTEN_BACKLOG = 4096
_UNIX_PATH_MAX = 108

_AF_UNIX = getattr(socket, "AF_UNIX", 1)
_WOULD_BLOCK = {errno.EINPROGRESS, errno.EAGAIN, errno.EWOULDBLOCK}


class SockError(OSError):
    """Raised when a socket operation fails."""


class Event(enum.IntFlag):
    """Readiness events a socket can be polled for."""

    NONE = 0
    READ = 1
    WRITE = 2
    EDGE = 4


class Family(enum.IntEnum):
    """Address families a socket can use."""

    INET = socket.AF_INET
    INET6 = socket.AF_INET6
    UNIX = _AF_UNIX


def _error(exc: OSError) -> SockError:
    return SockError(exc.errno, exc.strerror or str(exc))


def _format_address(family: int, addr: Any) -> str:
    if family in (socket.AF_INET, socket.AF_INET6):
        return f"{addr[0]}:{addr[1]}"
    if family == _AF_UNIX:
        if isinstance(addr, bytes):
            return addr.decode("utf-8", "replace")
        return str(addr)
    return ""


def _port(port: str | int | None) -> str | None:
    return None if port is None else str(port)


class Sock:
    """A stream socket that can listen, accept, connect, send and receive.

    ``type`` is free user data. ``op`` holds the events the socket is
    registered for with a poller.
    """

    def __init__(
        self,
        type: int = 0,
        blocking: bool = True,
        family: int = Family.INET,
    ) -> None:
        self.type = type
        self.blocking = blocking
        self.family = int(family)
        self.op = Event.NONE
        self._sock: socket.socket | None = None

    def fileno(self) -> int:
        """Return the socket descriptor, or -1 if there is none."""
        return self._sock.fileno() if self._sock is not None else -1

    def _require(self) -> socket.socket:
        if self._sock is None:
            raise SockError(errno.EBADF, os.strerror(errno.EBADF))
        return self._sock

    def close(self) -> None:
        """Close the socket; closing an already closed socket does nothing."""
        sock, self._sock = self._sock, None
        if sock is not None:
            try:
                sock.close()
            except OSError as exc:
                raise _error(exc) from exc

    def _discard(self) -> None:
        sock, self._sock = self._sock, None
        if sock is not None:
            try:
                sock.close()
            except OSError:
                pass

    def _configure(self, sock: socket.socket) -> None:
        sock.setblocking(self.blocking)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

    def _bind_unix(self, path: str) -> None:
        try:
            self._sock = socket.socket(_AF_UNIX, socket.SOCK_STREAM)
            try:
                os.unlink(path)
            except OSError:
                pass
            self._sock.bind(path)
        except OSError as exc:
            self._discard()
            raise _error(exc) from exc

    def _bind(self, host: str | None, port: str | int | None) -> None:
        if self.family == _AF_UNIX:
            self._bind_unix(host or "")
            return

        try:
            infos = socket.getaddrinfo(
                host, _port(port), self.family, socket.SOCK_STREAM
            )
        except socket.gaierror as exc:
            raise _error(exc) from exc

        last: OSError = SockError(errno.EADDRNOTAVAIL, "no usable address")
        for fam, stype, proto, _, addr in infos:
            try:
                sock = socket.socket(fam, stype, proto)
            except OSError as exc:
                last = exc
                continue
            self._sock = sock
            try:
                if self.family == socket.AF_INET6:
                    sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 1)
                self._configure(sock)
                sock.bind(addr)
            except OSError as exc:
                self._discard()
                raise _error(exc) from exc
            return
        self._discard()
        raise _error(last)

    def listen(self, host: str | None, port: str | int | None = None) -> None:
        """Bind to ``host``/``port`` (a path for Unix sockets) and listen."""
        self._bind(host, port)
        try:
            self._require().listen(_LISTEN_BACKLOG)
        except OSError as exc:
            self._discard()
            raise _error(exc) from exc

    def accept(self) -> Sock:
        """Accept a connection and return it as a new Sock.

        A non-blocking socket with nothing pending raises BlockingIOError.
        """
        listener = self._require()
        try:
            conn, _ = listener.accept()
        except BlockingIOError:
            raise
        except OSError as exc:
            raise _error(exc) from exc

        accepted = Sock(self.type, self.blocking, self.family)
        accepted._sock = conn
        try:
            if accepted.family != _AF_UNIX:
                conn.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            conn.setblocking(self.blocking)
        except OSError as exc:
            accepted._discard()
            raise _error(exc) from exc
        return accepted

    def _connect_unix(self, path: str) -> None:
        try:
            self._sock = socket.socket(_AF_UNIX, socket.SOCK_STREAM)
            if len(path.encode()) >= _UNIX_PATH_MAX:
                raise OSError(errno.EINVAL, os.strerror(errno.EINVAL))
            self._sock.connect(path)
        except OSError as exc:
            self._discard()
            raise _error(exc) from exc

    def _bind_source(
        self, sock: socket.socket, addr: str | None, port: str | int | None
    ) -> None:
        try:
            infos = socket.getaddrinfo(
                addr, _port(port), socket.AF_UNSPEC, socket.SOCK_STREAM
            )
        except socket.gaierror as exc:
            raise _error(exc) from exc

        last: OSError = OSError(errno.EINVAL, os.strerror(errno.EINVAL))
        for fam, _, _, _, sockaddr in infos:
            if fam != sock.family:
                continue
            try:
                sock.bind(sockaddr)
                return
            except OSError as exc:
                last = exc
        raise _error(last)

    def connect(
        self,
        dst_addr: str,
        dst_port: str | int | None = None,
        src_addr: str | None = None,
        src_port: str | int | None = None,
    ) -> None:
        """Connect to ``dst_addr``/``dst_port``, optionally from a source address.

        Addresses of the socket's own family are tried first. A non-blocking
        connect still in progress raises BlockingIOError; call
        finish_connect() once the socket is writable.
        """
        if self.family == _AF_UNIX:
            self._connect_unix(dst_addr)
            return

        try:
            infos = socket.getaddrinfo(
                dst_addr, _port(dst_port), socket.AF_UNSPEC, socket.SOCK_STREAM
            )
        except socket.gaierror as exc:
            raise _error(exc) from exc

        preferred = [i for i in infos if i[0] == self.family]
        others = [i for i in infos if i[0] != self.family]
        last: OSError = OSError(errno.ECONNREFUSED, os.strerror(errno.ECONNREFUSED))

        for fam, stype, proto, _, addr in preferred + others:
            try:
                sock = socket.socket(fam, stype, proto)
            except OSError as exc:
                last = exc
                continue
            self.family = int(fam)
            self._sock = sock
            try:
                self._configure(sock)
            except OSError as exc:
                self._discard()
                raise _error(exc) from exc

            if src_addr is not None or src_port is not None:
                try:
                    self._bind_source(sock, src_addr, src_port)
                except SockError:
                    self._discard()
                    raise

            try:
                rc = sock.connect_ex(addr)
            except OSError as exc:
                rc = exc.errno or errno.EINVAL
            if rc == 0:
                return
            if not self.blocking and rc in _WOULD_BLOCK:
                raise BlockingIOError(errno.EAGAIN, os.strerror(errno.EAGAIN))
            last = OSError(rc, os.strerror(rc))
            self._discard()

        self._discard()
        raise _error(last)

    def set_blocking(self, blocking: bool) -> None:
        """Switch the descriptor between blocking and non-blocking mode."""
        try:
            self._require().setblocking(blocking)
        except SockError:
            raise
        except OSError as exc:
            raise _error(exc) from exc

    def _set_timeout(self, option: int, ms: int) -> None:
        value = struct.pack("@ll", ms // 1000, (ms % 1000) * 1000)
        try:
            self._require().setsockopt(socket.SOL_SOCKET, option, value)
        except SockError:
            raise
        except OSError as exc:
            raise _error(exc) from exc

    def set_rcvtimeo(self, ms: int) -> None:
        """Set the receive timeout in milliseconds."""
        self._set_timeout(socket.SO_RCVTIMEO, ms)

    def set_sndtimeo(self, ms: int) -> None:
        """Set the send timeout in milliseconds."""
        self._set_timeout(socket.SO_SNDTIMEO, ms)

    def finish_connect(self) -> None:
        """Complete a non-blocking connect; raise SockError if it failed."""
        try:
            err = self._require().getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
        except SockError:
            raise
        except OSError as exc:
            raise _error(exc) from exc
        if err != 0:
            raise SockError(err, os.strerror(err))

    def send(self, data: bytes, flags: int = 0) -> int:
        """Send ``data`` and return the number of bytes sent.

        Raises BlockingIOError if a non-blocking socket cannot take data now.
        """
        if not data:
            return 0
        try:
            return self._require().send(data, flags)
        except BlockingIOError:
            raise
        except SockError:
            raise
        except OSError as exc:
            raise _error(exc) from exc

    def recv(self, size: int, flags: int = 0) -> bytes:
        """Receive up to ``size`` bytes.

        Raises EOFError when the peer has closed the connection and
        BlockingIOError if a non-blocking socket has nothing to read.
        """
        if size <= 0:
            return b""
        try:
            data = self._require().recv(size, flags)
        except BlockingIOError:
            raise
        except SockError:
            raise
        except OSError as exc:
            raise _error(exc) from exc
        if not data:
            raise EOFError("connection closed by peer")
        return data

    def local_str(self) -> str:
        """Return the local address as ``host:port`` or a path."""
        sock = self._require()
        try:
            return _format_address(sock.family, sock.getsockname())
        except OSError as exc:
            raise _error(exc) from exc

    def remote_str(self) -> str:
        """Return the remote address as ``host:port`` or a path."""
        sock = self._require()
        try:
            return _format_address(sock.family, sock.getpeername())
        except OSError as exc:
            raise _error(exc) from exc

    def __str__(self) -> str:
        try:
            local = self.local_str()
        except SockError:
            local = ""
        try:
            remote = self.remote_str()
        except SockError:
            remote = ""
        return f"Local({local}), Remote({remote}) "

    def __enter__(self) -> Sock:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


def notify_systemd(msg: str) -> None:
    """Send ``msg`` to the socket named by the NOTIFY_SOCKET variable."""
    path = os.environ.get("NOTIFY_SOCKET")
    if not path or path[0] not in "@/" or len(path) == 1:
        raise SockError(errno.EINVAL, "NOTIFY_SOCKET is missing or invalid")
    if not hasattr(socket, "AF_UNIX"):
        raise SockError(errno.ENOTSUP, "Unix sockets are not supported")

    address = path[: _UNIX_PATH_MAX - 1]
    if address[0] == "@":
        address = "\0" + address[1:]

    try:
        with socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM) as sock:
            sock.sendmsg(
                [msg.encode()], [], getattr(socket, "MSG_NOSIGNAL", 0), address
            )
    except OSError as exc:
        raise _error(exc) from exc