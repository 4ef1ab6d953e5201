"""FIFO event queue underlying each link."""

from collections import deque
from typing import Generic, Iterator, TypeVar

from ..exceptions import EmptyQueueError

T = TypeVar("T")


class Queue(Generic[T]):
    """First-in, first-out queue.

    Only the head is visible to consumers: items leave in push order and
    nothing behind the head can be taken out early.
    """

    def __init__(self) -> None:
        self._items: deque[T] = deque()

    def push(self, item: T) -> None:
        self._items.append(item)

    def pop(self) -> T:
        if not self._items:
            raise EmptyQueueError("pop")
        return self._items.popleft()

    def peek(self) -> T:
        if not self._items:
            raise EmptyQueueError("peek")
        return self._items[0]

    def empty(self) -> bool:
        return not self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        # Snapshot of the contents so callers can't mutate mid-iteration
        return iter(list(self._items))
