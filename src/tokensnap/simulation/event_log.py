"""Per-tick record of everything that happens in a simulation."""

import threading
from dataclasses import dataclass

from ..types import ObservedEvent
from ..utils.logging import get_logger

logger = get_logger("simulation.events")


@dataclass(frozen=True)
class LogEntry:
    """One observed event and the acting server's token count at the time."""

    server_id: str
    server_tokens: int
    event: ObservedEvent

    def __str__(self) -> str:
        return f"{self.server_id} ({self.server_tokens}): {self.event}"


class EventLog:
    """Event history grouped into epochs, one epoch per simulator tick.

    Epoch 0 holds everything recorded before the first tick.
    """

    def __init__(self):
        self._epochs: list[list[LogEntry]] = [[]]
        self._lock = threading.Lock()

    @property
    def epoch(self) -> int:
        with self._lock:
            return len(self._epochs) - 1

    def new_epoch(self) -> int:
        with self._lock:
            self._epochs.append([])
            return len(self._epochs) - 1

    def record(self, server_id: str, server_tokens: int, event: ObservedEvent) -> LogEntry:
        entry = LogEntry(server_id, server_tokens, event)
        with self._lock:
            self._epochs[-1].append(entry)
            epoch = len(self._epochs) - 1
        logger.debug(f"[{epoch}] {entry}")
        return entry

    def entries(self, epoch: int | None = None) -> list[LogEntry]:
        """Entries of one epoch, or all entries in order if ``epoch`` is None."""
        with self._lock:
            if epoch is not None:
                return list(self._epochs[epoch])
            return [entry for bucket in self._epochs for entry in bucket]

    def format(self) -> str:
        """Human-readable dump, skipping empty epochs."""
        lines = []
        with self._lock:
            for i, bucket in enumerate(self._epochs):
                if not bucket:
                    continue
                lines.append(f"Time {i}:")
                lines.extend(f"  {entry}" for entry in bucket)
        return "\n".join(lines)
