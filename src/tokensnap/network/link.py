"""Unidirectional links between servers."""

from dataclasses import dataclass, field

from ..types import SendMessageEvent
from .queue import Queue


@dataclass
class Link:
    """A one-way FIFO channel from ``src`` to ``dest``.

    The link holds events rather than bare messages so the scheduler can see
    when the head becomes deliverable.
    """

    src: str
    dest: str
    events: Queue[SendMessageEvent] = field(default_factory=Queue)

    def push(self, event: SendMessageEvent) -> None:
        self.events.push(event)

    def pop(self) -> SendMessageEvent:
        return self.events.pop()

    def head_due(self, now: int) -> bool:
        """True if the head event may be delivered at time ``now``."""
        return not self.events.empty() and self.events.peek().receive_time <= now

    def pending(self) -> list[SendMessageEvent]:
        return list(self.events)

    def __len__(self) -> int:
        return len(self.events)
