# sclib

Small, self-contained building blocks for Python programs. The package uses
only the standard library.

| Module            | What it holds                                                        |
|-------------------|----------------------------------------------------------------------|
| `sclib.ringqueue` | `Queue`, a double-ended queue, and `main`, a short demonstration      |
| `sclib.util`      | `is_pow2`, `to_pow2`, `bytes_to_size`, `size_to_bytes`, `RC4Random`   |
| `sclib.signals`   | `format_message`, `log`, `FormatError`, `SignalHandler`, `init`       |
| `sclib.sock`      | `Sock`, `SockError`, `Event`, `Family`, `notify_systemd`              |
| `sclib.sockpipe`  | `Pipe`, `PipeError`                                                   |
| `sclib.sockpoll`  | `Poll`, `PollResult`, `PollError`                                     |

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Queue

`Queue` adds and removes elements at both ends in constant time. It can be
built from any iterable, and supports `len()`, iteration and indexing from the
first element.

```python
from sclib.ringqueue import Queue

q = Queue([2, 3, 4])
q.add_first(1)

print(list(q))          # [1, 2, 3, 4]
print(q.peek_last())    # 4
print(q.del_last())     # 4
print(q.del_first())    # 1
print(len(q), q[0])     # 2 2
q.clear()
print(q.is_empty())     # True
```

`del_first`, `del_last`, `peek_first` and `peek_last` raise `IndexError` on an
empty queue.

A demonstration that fills a queue, prints it and takes an element from each
end is installed as a command:

```
sclib-queue-demo
```

## Sizes and powers of two

```python
from sclib.util import bytes_to_size, size_to_bytes, to_pow2, is_pow2

size_to_bytes("313")     # 313
size_to_bytes("1k")      # 1024
size_to_bytes("1kb")     # 1024
size_to_bytes("1gx")     # raises ValueError
size_to_bytes("22eb")    # raises ValueError (does not fit in 64 signed bits)
bytes_to_size(313)       # "313 B"
bytes_to_size(2048)      # "2.00 KB"
bytes_to_size(2**64 - 1) # "16.00 EB"
to_pow2(0)               # 1
to_pow2(1023)            # 1024
is_pow2(3)               # False
```

Units are `b`, `k`, `m`, `g`, `t`, `p` and `e`, each optionally followed by
`b`, in either case. `to_pow2` and `bytes_to_size` accept values that fit in
an unsigned 64-bit integer and raise `ValueError` otherwise.

## Random bytes

`RC4Random` is seeded with exactly 256 bytes (anything else raises
`ValueError`) and returns a deterministic byte stream: the same seed gives the
same bytes.

```python
import os
from sclib.util import RC4Random

rng = RC4Random(os.urandom(256))
chunk = rng.read(16)     # 16 bytes; read(0) returns b""
```

It is not meant for cryptographic use.

## Formatting, logging and signals

`format_message` understands `%s`, `%d`, `%u`, `%ld`, `%lld`, `%lu`, `%llu`,
`%p` and `%%`; any other conversion raises `FormatError`. `None` for `%s`
prints `(null)`. With `size=n` the result is cut to `n - 1` characters.

```python
from sclib.signals import format_message, log

format_message("%d", -3)                 # "-3"
format_message("%p", 0xabcdef)           # "0xabcdef"
format_message("%s", "test", size=3)     # "te"
log(1, "Recv : %s, (%d) \n", "SIGINT", 2)
```

`log` writes the formatted message to a file descriptor and returns the number
of bytes written; write failures are reported as 0.

`init()` installs a `SignalHandler` with default settings and returns it. The
handler ignores SIGHUP and SIGPIPE and hooks:

- **SIGINT and SIGTERM.** On the first one, if `shutdown_fd` is set, one byte
  is written to it so the application can stop in an orderly way; without a
  shutdown descriptor, or on a second shutdown signal, `exit_func` is called
  (by default `os._exit`).
- **SIGSEGV, SIGABRT, SIGBUS, SIGFPE and SIGILL.** A crash report with the
  Python stack is written to `log_fd` (standard error by default), the
  descriptor is closed, and the signal is raised again with its default
  action.

```python
import os
from sclib.signals import SignalHandler

r, w = os.pipe()
handler = SignalHandler(shutdown_fd=w)
handler.install()
# ... watch r; a byte arriving means shutdown was requested
```

## Sockets

`Sock` wraps a TCP (IPv4 or IPv6) or Unix domain stream socket, blocking or
non-blocking, chosen with `Family.INET`, `Family.INET6` or `Family.UNIX`.
Failures raise `SockError`. A non-blocking `accept`, `connect`, `send` or
`recv` that cannot complete at once raises `BlockingIOError`; `recv` raises
`EOFError` when the peer has closed the connection.

```python
from sclib.sock import Family, Sock

with Sock(family=Family.INET) as server:
    server.listen("127.0.0.1", 8004)
    print(server)                       # "Local(127.0.0.1:8004), Remote() "
    with Sock() as client:
        client.connect("127.0.0.1", "8004")
        client.send(b"test")
        with server.accept() as conn:
            print(conn.recv(4))         # b"test"
```

For a non-blocking connect, wait until the socket is writable and then call
`finish_connect()`. `set_rcvtimeo` and `set_sndtimeo` take milliseconds.
`notify_systemd(msg)` sends a message to the socket named by the
`NOTIFY_SOCKET` environment variable and raises `SockError` if it is missing
or invalid.

## Pipes

`Pipe` is an operating-system pipe whose read end (`fileno()`) can be
watched by a poller. Failures raise `PipeError`; closing twice does nothing.

```python
from sclib.sockpipe import Pipe

with Pipe() as pipe:
    pipe.write(b"test")
    print(pipe.read(4))     # b"test"
```

## Polling

`Poll` watches sockets and pipes for the events in `Event`: `READ`, `WRITE`
and `EDGE` for edge-triggered mode. It uses epoll or kqueue where available
and otherwise falls back to `select`, which is level-triggered only. The
registered events are kept in each object's `op` attribute. `wait(timeout)`
takes milliseconds (`-1` waits forever) and returns a list of `PollResult`
entries, each with the events that fired and the data given to `add`. A
closed descriptor is reported with both `READ` and `WRITE`. Registrations may
be changed from other threads while `wait` blocks. Failures raise
`PollError`.

```python
from sclib.sock import Event
from sclib.sockpipe import Pipe
from sclib.sockpoll import Poll

with Poll() as poll, Pipe() as pipe:
    poll.add(pipe, Event.READ, "wakeup")
    pipe.write(b"x")
    for result in poll.wait(100):
        print(result.events, result.data)   # Event.READ wakeup
    poll.delete(pipe, Event.READ)
```

## What the package does not do

- It is a library; apart from the queue demonstration it installs no commands
  and runs no servers of its own.
- Signal handling uses POSIX signals and the sockets and pipes are aimed at
  POSIX systems; there is no console-event handling for Windows.
- The fatal-signal handlers run as ordinary Python signal handlers, so they
  see signals delivered to the process (for example with `kill`), not crashes
  inside native code.