"""Double-ended queue with O(1) insertion and removal at both ends."""

from __future__ import annotations

import sys
from collections import deque
from collections.abc import Iterable, Iterator
from typing import Generic, TypeVar

T = TypeVar("T")


class Queue(Generic[T]):
    """A double-ended queue of elements, indexed from the first element."""

    def __init__(self, items: Iterable[T] | None = None) -> None:
        self._elems: deque[T] = deque(items) if items is not None else deque()

    def add_last(self, elem: T) -> None:
        """Append ``elem`` after the last element."""
        self._elems.append(elem)

    def add_first(self, elem: T) -> None:
        """Insert ``elem`` before the first element."""
        self._elems.appendleft(elem)

    def del_last(self) -> T:
        """Remove and return the last element."""
        if not self._elems:
            raise IndexError("del_last from an empty queue")
        return self._elems.pop()

    def del_first(self) -> T:
        """Remove and return the first element."""
        if not self._elems:
            raise IndexError("del_first from an empty queue")
        return self._elems.popleft()

    def peek_first(self) -> T:
        """Return the first element without removing it."""
        if not self._elems:
            raise IndexError("peek_first on an empty queue")
        return self._elems[0]

    def peek_last(self) -> T:
        """Return the last element without removing it."""
        if not self._elems:
            raise IndexError("peek_last on an empty queue")
        return self._elems[-1]

    def clear(self) -> None:
        """Remove every element."""
        self._elems.clear()

    def is_empty(self) -> bool:
        return not self._elems

    def __len__(self) -> int:
        return len(self._elems)

    def __iter__(self) -> Iterator[T]:
        return iter(self._elems)

    def __getitem__(self, index: int) -> T:
        return self._elems[index]

    def __repr__(self) -> str:
        return f"Queue({list(self._elems)!r})"


def main(argv: list[str] | None = None) -> int:
    """Demonstrate the queue: fill it, print it, take from both ends."""
    del argv
    queue: Queue[int] = Queue()
    queue.add_last(2)
    queue.add_last(3)
    queue.add_last(4)
    queue.add_first(1)

    for elem in queue:
        print(f"elem = [{elem}] ")

    print(f"Last element was : [{queue.del_last()}] ")
    print(f"First element was : [{queue.del_first()}] ")
    return 0


if __name__ == "__main__":
    sys.exit(main())