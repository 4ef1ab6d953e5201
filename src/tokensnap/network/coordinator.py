"""The boundary between a server and whatever schedules it.

A server depends on exactly one collaborator: something that tells it the
receive time for outgoing events and accepts completed snapshot records.
"""

import threading
from abc import ABC, abstractmethod

from ..types import ObservedEvent, SnapshotRecord


class Coordinator(ABC):
    """Abstract base class for schedulers that host servers."""

    @abstractmethod
    def get_receive_time(self) -> int:
        """Receive time to stamp on a newly sent event."""
        pass

    @abstractmethod
    def notify_snapshot_complete(self, server_id: str, snapshot_id: int) -> None:
        """Called exactly once per (server, snapshot id) on completion."""
        pass

    @abstractmethod
    def publish_record(self, record: SnapshotRecord) -> None:
        """Receive a completed, frozen snapshot record."""
        pass

    def record_event(self, server_id: str, tokens: int, event: ObservedEvent) -> None:
        """Observation hook. Ignored unless overridden."""
        pass


class InMemoryCoordinator(Coordinator):
    """Deterministic coordinator for tests and embedding.

    Time only moves when ``advance`` is called, and every event is stamped
    ``time + delay``. Completions, records and observed events are kept in
    memory for inspection.

    Example:
        coordinator = InMemoryCoordinator()
        a = Server("A", 10, coordinator)
        b = Server("B", 0, coordinator)
        a.add_outbound_link(b)
        b.add_outbound_link(a)

        a.start_snapshot(0)
        b.handle_packet("A", a.outbound_links["B"].pop().message)
        a.handle_packet("B", b.outbound_links["A"].pop().message)

        assert coordinator.completions == [("B", 0), ("A", 0)]
    """

    def __init__(self, delay: int = 1):
        self.time = 0
        self.delay = delay
        self.completions: list[tuple[str, int]] = []
        self.records: dict[int, list[SnapshotRecord]] = {}
        self.events: list[tuple[str, int, ObservedEvent]] = []
        self._lock = threading.RLock()

    def advance(self, ticks: int = 1) -> int:
        with self._lock:
            self.time += ticks
            return self.time

    def get_receive_time(self) -> int:
        with self._lock:
            return self.time + self.delay

    def notify_snapshot_complete(self, server_id: str, snapshot_id: int) -> None:
        with self._lock:
            self.completions.append((server_id, snapshot_id))

    def publish_record(self, record: SnapshotRecord) -> None:
        with self._lock:
            self.records.setdefault(record.snapshot_id, []).append(record)

    def record_event(self, server_id: str, tokens: int, event: ObservedEvent) -> None:
        with self._lock:
            self.events.append((server_id, tokens, event))

    def completed_servers(self, snapshot_id: int) -> list[str]:
        with self._lock:
            return [s for s, sid in self.completions if sid == snapshot_id]
