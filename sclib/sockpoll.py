"""Readiness polling for sockets and pipes, level or edge triggered."""

from __future__ import annotations

import errno
import os
import select
import threading
import time
from dataclasses import dataclass
from typing import Any, Protocol

from sclib.sock import Event

MAX_EVENTS = 1024

# Without a blocking wait of its own, the select fallback waits in short
# slices so that registrations made by other threads are picked up.
_FALLBACK_SLICE_MS = 16

_CLOSED_MESSAGE = "poll : poller is not initialized or already terminated"
_MISSING = object()


class PollError(OSError):
    """Raised when a poll operation fails."""


class _Pollable(Protocol):
    op: Event

    def fileno(self) -> int: ...


@dataclass(frozen=True)
class PollResult:
    """One ready descriptor: the events that fired and its user data."""

    events: Event
    data: Any


def _error(what: str, exc: BaseException) -> PollError:
    code = getattr(exc, "errno", None) or errno.EINVAL
    reason = getattr(exc, "strerror", None) or str(exc) or os.strerror(code)
    return PollError(code, f"{what} : {reason} ")


class _EpollBackend:
    name = "epoll_ctl"

    def __init__(self) -> None:
        self._ep = select.epoll()
        self._rdhup = getattr(select, "EPOLLRDHUP", 0x2000)

    def update(self, fd: int, old: Event, new: Event, events: Event, adding: bool) -> None:
        del events, adding
        if new == Event.NONE:
            self._ep.unregister(fd)
            return
        mask = select.EPOLLERR | select.EPOLLHUP | self._rdhup
        if new & Event.READ:
            mask |= select.EPOLLIN
        if new & Event.WRITE:
            mask |= select.EPOLLOUT
        if new & Event.EDGE:
            mask |= select.EPOLLET
        if old == Event.NONE:
            self._ep.register(fd, mask)
        else:
            self._ep.modify(fd, mask)

    def wait(self, timeout: int) -> list[tuple[int, Event]]:
        seconds = -1 if timeout < 0 else timeout / 1000
        ready = []
        for fd, mask in self._ep.poll(seconds, MAX_EVENTS):
            ev = Event.NONE
            if mask & select.EPOLLIN:
                ev |= Event.READ
            if mask & select.EPOLLOUT:
                ev |= Event.WRITE
            if mask & (select.EPOLLHUP | select.EPOLLERR | self._rdhup):
                ev = Event.READ | Event.WRITE
            ready.append((fd, ev))
        return ready

    def close(self) -> None:
        self._ep.close()


class _KqueueBackend:
    name = "kevent"

    def __init__(self) -> None:
        self._kq = select.kqueue()

    def update(self, fd: int, old: Event, new: Event, events: Event, adding: bool) -> None:
        changes = []
        if adding:
            flags = select.KQ_EV_ADD
            if new & Event.EDGE:
                flags |= select.KQ_EV_CLEAR
            if new & Event.WRITE:
                changes.append(select.kevent(fd, select.KQ_FILTER_WRITE, flags))
            if new & Event.READ:
                changes.append(select.kevent(fd, select.KQ_FILTER_READ, flags))
        else:
            removed = old & events
            for ev, kfilter in (
                (Event.READ, select.KQ_FILTER_READ),
                (Event.WRITE, select.KQ_FILTER_WRITE),
            ):
                if removed & ev:
                    changes.append(select.kevent(fd, kfilter, select.KQ_EV_DELETE))
                elif removed & Event.EDGE and old & ev:
                    changes.append(select.kevent(fd, kfilter, select.KQ_EV_ADD))
        if changes:
            self._kq.control(changes, 0, 0)

    def wait(self, timeout: int) -> list[tuple[int, Event]]:
        seconds = None if timeout < 0 else timeout / 1000
        ready = []
        for kev in self._kq.control(None, MAX_EVENTS, seconds):
            if kev.flags & select.KQ_EV_EOF:
                ev = Event.READ | Event.WRITE
            elif kev.filter == select.KQ_FILTER_READ:
                ev = Event.READ
            elif kev.filter == select.KQ_FILTER_WRITE:
                ev = Event.WRITE
            else:
                ev = Event.NONE
            ready.append((kev.ident, ev))
        return ready

    def close(self) -> None:
        self._kq.close()


class _SelectBackend:
    """Level-triggered fallback; the edge flag is accepted but not honoured."""

    name = "select"

    def __init__(self) -> None:
        self._masks: dict[int, Event] = {}

    def update(self, fd: int, old: Event, new: Event, events: Event, adding: bool) -> None:
        del old, events, adding
        if new == Event.NONE:
            self._masks.pop(fd, None)
        else:
            self._masks[fd] = new

    def wait(self, timeout: int) -> list[tuple[int, Event]]:
        if timeout < 0:
            timeout = _FALLBACK_SLICE_MS
        masks = dict(self._masks)
        readers = [fd for fd, m in masks.items() if m & Event.READ]
        writers = [fd for fd, m in masks.items() if m & Event.WRITE]
        if not readers and not writers:
            time.sleep(timeout / 1000)
            return []
        r, w, x = select.select(readers, writers, list(masks), timeout / 1000)
        found: dict[int, Event] = {}
        for fd in r:
            found[fd] = found.get(fd, Event.NONE) | Event.READ
        for fd in w:
            found[fd] = found.get(fd, Event.NONE) | Event.WRITE
        for fd in x:
            found[fd] = Event.READ | Event.WRITE
        return list(found.items())[:MAX_EVENTS]

    def close(self) -> None:
        self._masks.clear()


def _make_backend() -> _EpollBackend | _KqueueBackend | _SelectBackend:
    if hasattr(select, "epoll"):
        return _EpollBackend()
    if hasattr(select, "kqueue"):
        return _KqueueBackend()
    return _SelectBackend()


class Poll:
    """Watches sockets and pipes for readiness.

    Registered objects expose ``fileno()`` and an ``op`` attribute holding
    the events they are registered for; the poller keeps ``op`` up to date.
    Registrations may be changed from other threads while ``wait`` blocks.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._data: dict[int, Any] = {}
        try:
            self._backend: Any = _make_backend()
        except OSError as exc:
            raise _error("poll", exc) from exc

    @property
    def closed(self) -> bool:
        return self._backend is None

    def _require(self) -> Any:
        if self._backend is None:
            raise PollError(errno.EBADF, _CLOSED_MESSAGE)
        return self._backend

    def _update(self, fdt: _Pollable, events: Event, data: Any, adding: bool) -> None:
        with self._lock:
            backend = self._require()
            events = Event(events)
            old = Event(fdt.op)
            new = old | events if adding else old & ~events
            if new == Event.EDGE:
                new = Event.NONE
            if old == new:
                return

            fd = fdt.fileno()
            previous = self._data.get(fd, _MISSING)
            # Update the registration before telling the kernel, so a
            # concurrent waiter never sees a half-updated entry.
            fdt.op = new
            self._data[fd] = data
            try:
                if fd < 0:
                    raise OSError(errno.EBADF, os.strerror(errno.EBADF))
                backend.update(fd, old, new, events, adding)
            except (OSError, ValueError, OverflowError) as exc:
                fdt.op = old
                if previous is _MISSING:
                    self._data.pop(fd, None)
                else:
                    self._data[fd] = previous
                raise _error(backend.name, exc) from exc

            if new == Event.NONE:
                self._data.pop(fd, None)

    def add(self, fdt: _Pollable, events: Event, data: Any = None) -> None:
        """Watch ``fdt`` for ``events`` in addition to what it is watched for.

        ``Event.EDGE`` switches to edge-triggered mode. ``data`` is returned
        with every result for this descriptor.
        """
        self._update(fdt, events, data, adding=True)

    def delete(self, fdt: _Pollable, events: Event, data: Any = None) -> None:
        """Stop watching ``fdt`` for ``events``; ``Event.EDGE`` ends edge mode."""
        self._update(fdt, events, data, adding=False)

    def wait(self, timeout: int = -1) -> list[PollResult]:
        """Wait up to ``timeout`` milliseconds (-1: forever) for ready descriptors.

        A closed descriptor is reported with both READ and WRITE set.
        """
        backend = self._require()
        try:
            ready = backend.wait(timeout)
        except (OSError, ValueError) as exc:
            raise _error(backend.name, exc) from exc
        with self._lock:
            return [PollResult(ev, self._data.get(fd)) for fd, ev in ready]

    def close(self) -> None:
        """Release the poller; closing a closed poller does nothing."""
        with self._lock:
            backend, self._backend = self._backend, None
            self._data.clear()
        if backend is None:
            return
        try:
            backend.close()
        except OSError as exc:
            raise _error("poll close", exc) from exc

    def __enter__(self) -> Poll:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()