"""Small building blocks: a double-ended queue, size and power-of-two helpers,
an RC4 byte generator, signal handling, sockets, pipes and a poller."""

__version__ = "2.0.0"

__all__ = ["ringqueue", "util", "signals", "sock", "sockpipe", "sockpoll"]