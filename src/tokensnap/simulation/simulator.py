"""Discrete-event simulator that hosts servers and delivers their messages.

Time advances in ticks. Every sent event is stamped with a random receive
time a few ticks in the future; on each tick every server receives at most
one due event, taken from the head of one of its inbound links. Links are
only ever read from the head, so per-channel order is preserved however the
random delays fall.
"""

import queue
import random
import threading

from ..config import SimulatorConfig
from ..exceptions import (
    DuplicateServerError,
    SnapshotIncompleteError,
    UnknownServerError,
    UnknownSnapshotError,
)
from ..network.coordinator import Coordinator
from ..network.server import Server
from ..types import (
    EndSnapshotEvent,
    GlobalSnapshot,
    InjectedEvent,
    ObservedEvent,
    PassTokenEvent,
    ReceivedMessageEvent,
    SnapshotEvent,
    SnapshotRecord,
    StartSnapshotEvent,
    TickEvent,
    TokenMessage,
)
from ..utils.logging import get_logger
from .event_log import EventLog

logger = get_logger("simulation")


class Simulator(Coordinator):
    """Hosts a fixed topology of servers and drives the snapshot protocol.

    Example:
        sim = Simulator(SimulatorConfig(seed=7))
        for server_id in ("A", "B", "C"):
            sim.add_server(server_id, 10 if server_id == "A" else 0)
        sim.add_forward_link("A", "B")
        sim.add_forward_link("B", "C")
        sim.add_forward_link("C", "A")

        sim.inject_event(PassTokenEvent(src="A", dest="B", tokens=4))
        snapshot_id = sim.start_snapshot("A")
        snapshot = sim.collect_snapshot(snapshot_id)
        assert snapshot.total_tokens() == 10
    """

    def __init__(self, config: SimulatorConfig | None = None):
        self.config = config or SimulatorConfig()
        self.time = 0
        self.servers: dict[str, Server] = {}
        self.event_log = EventLog()

        self._next_snapshot_id = 0
        self._rng = random.Random(self.config.seed)
        self._results: dict[int, queue.SimpleQueue[SnapshotRecord]] = {}
        self._completed: dict[int, set[str]] = {}
        self._collected: dict[int, GlobalSnapshot] = {}
        self._lock = threading.RLock()

    # -------------------------------------------------------------------------
    # Topology
    # -------------------------------------------------------------------------

    def add_server(self, server_id: str, tokens: int) -> Server:
        with self._lock:
            if server_id in self.servers:
                raise DuplicateServerError(server_id)
            server = Server(server_id, tokens, self)
            self.servers[server_id] = server
            return server

    def get_server(self, server_id: str) -> Server:
        server = self.servers.get(server_id)
        if server is None:
            raise UnknownServerError(server_id)
        return server

    def add_forward_link(self, src: str, dest: str) -> None:
        """Add a one-way link. Self-links and repeats are ignored."""
        self.get_server(src).add_outbound_link(self.get_server(dest))

    # -------------------------------------------------------------------------
    # Coordinator interface
    # -------------------------------------------------------------------------

    def get_receive_time(self) -> int:
        with self._lock:
            return self.time + self._rng.randint(self.config.min_delay, self.config.max_delay)

    def notify_snapshot_complete(self, server_id: str, snapshot_id: int) -> None:
        server = self.get_server(server_id)
        self.event_log.record(server_id, server.tokens, EndSnapshotEvent(server_id=server_id, snapshot_id=snapshot_id))
        with self._lock:
            self._completed.setdefault(snapshot_id, set()).add(server_id)

    def publish_record(self, record: SnapshotRecord) -> None:
        with self._lock:
            results = self._results.setdefault(record.snapshot_id, queue.SimpleQueue())
        results.put(record)

    def record_event(self, server_id: str, tokens: int, event: ObservedEvent) -> None:
        self.event_log.record(server_id, tokens, event)

    # -------------------------------------------------------------------------
    # Driving the simulation
    # -------------------------------------------------------------------------

    def inject_event(self, event: InjectedEvent) -> int | None:
        """Apply a harness event.

        Returns:
            The new snapshot id for a ``SnapshotEvent``, otherwise None.
        """
        if isinstance(event, PassTokenEvent):
            self.get_server(event.src).send_tokens(event.tokens, event.dest)
        elif isinstance(event, SnapshotEvent):
            return self.start_snapshot(event.server_id)
        elif isinstance(event, TickEvent):
            self.tick(event.count)
        else:
            raise TypeError(f"Unsupported event type: {type(event).__name__}")
        return None

    def start_snapshot(self, server_id: str) -> int:
        """Start a new snapshot on ``server_id`` and return its id."""
        server = self.get_server(server_id)
        with self._lock:
            snapshot_id = self._next_snapshot_id
            self._next_snapshot_id += 1
            self._completed.setdefault(snapshot_id, set())
            self._results.setdefault(snapshot_id, queue.SimpleQueue())

        logger.info(f"Starting snapshot {snapshot_id} on server '{server_id}'")
        self.event_log.record(
            server_id, server.tokens, StartSnapshotEvent(server_id=server_id, snapshot_id=snapshot_id)
        )
        server.start_snapshot(snapshot_id)
        return snapshot_id

    def tick(self, count: int = 1) -> None:
        """Advance time, delivering at most one due event per server per tick."""
        for _ in range(count):
            with self._lock:
                self.time += 1
            self.event_log.new_epoch()

            for server_id in sorted(self.servers):
                server = self.servers[server_id]
                for src in sorted(server.inbound_links):
                    link = server.inbound_links[src]
                    if link.head_due(self.time):
                        event = link.pop()
                        self.event_log.record(
                            server_id,
                            server.tokens,
                            ReceivedMessageEvent(src=event.src, dest=event.dest, message=event.message),
                        )
                        server.handle_packet(event.src, event.message)
                        break

    def is_snapshot_complete(self, snapshot_id: int) -> bool:
        with self._lock:
            return len(self._completed.get(snapshot_id, ())) == len(self.servers)

    def collect_snapshot(self, snapshot_id: int) -> GlobalSnapshot:
        """Run until every server has finished ``snapshot_id`` and merge the records.

        Raises:
            UnknownSnapshotError: If the id was never started.
            SnapshotIncompleteError: If the tick budget runs out first.
        """
        with self._lock:
            if snapshot_id in self._collected:
                return self._collected[snapshot_id]
            if snapshot_id not in self._completed:
                raise UnknownSnapshotError(snapshot_id)

        ticks = 0
        while not self.is_snapshot_complete(snapshot_id):
            if ticks >= self.config.max_collect_ticks:
                with self._lock:
                    done = self._completed[snapshot_id]
                pending = sorted(s for s in self.servers if s not in done)
                raise SnapshotIncompleteError(snapshot_id, ticks, pending)
            self.tick()
            ticks += 1

        results = self._results[snapshot_id]
        records: list[SnapshotRecord] = []
        while not results.empty():
            records.append(results.get_nowait())

        snapshot = GlobalSnapshot.from_records(snapshot_id, records)
        with self._lock:
            self._collected[snapshot_id] = snapshot
        logger.info(
            f"Collected snapshot {snapshot_id}: {len(records)} records, "
            f"{len(snapshot.messages)} in-flight messages"
        )
        return snapshot

    def total_tokens(self) -> int:
        """Tokens held by servers plus tokens queued on links."""
        total = 0
        for server in self.servers.values():
            total += server.tokens
            for link in server.outbound_links.values():
                total += sum(
                    e.message.num_tokens for e in link.pending() if isinstance(e.message, TokenMessage)
                )
        return total
