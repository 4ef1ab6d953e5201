"""Servers: the participants of the distributed snapshot protocol.

Servers exchange token messages and marker messages. Token messages move
tokens from one server to another; marker messages carry a snapshot through
the network and mark, per channel, where the snapshot's cut lies.

Each server keeps, per snapshot id:
- whether it has started the snapshot
- which inbound channels have delivered the snapshot's marker
- its record: local tokens at the cut plus messages captured in flight

A server reaches the outside world only through its links and its
``Coordinator``.
"""

import threading

from ..exceptions import (
    InsufficientTokensError,
    InvalidTokenAmountError,
    NegativeTokenCountError,
    UnknownDestinationError,
    UnknownMessageError,
    UnknownSourceError,
)
from ..types import (
    MarkerMessage,
    Message,
    SendMessageEvent,
    SentMessageEvent,
    SnapshotRecord,
    TokenMessage,
)
from ..utils.logging import StructuredLogger
from .coordinator import Coordinator
from .link import Link


class Server:
    """A process holding tokens and taking part in snapshots.

    All operations on one server are serialized by its lock, so a delivery
    never interleaves with another delivery, a send, or a snapshot start on
    the same server.

    Example:
        sim = Simulator()
        a = sim.add_server("A", 10)
        b = sim.add_server("B", 0)
        a.add_outbound_link(b)

        a.send_tokens(4, "B")
        a.start_snapshot(0)
    """

    def __init__(self, server_id: str, tokens: int, coordinator: Coordinator):
        if tokens < 0:
            raise NegativeTokenCountError(server_id, tokens)
        self.server_id = server_id
        self.tokens = tokens
        self.outbound_links: dict[str, Link] = {}  # key = link.dest
        self.inbound_links: dict[str, Link] = {}  # key = link.src

        self.started: dict[int, bool] = {}
        self.markers_received: dict[int, set[str]] = {}
        self.records: dict[int, SnapshotRecord] = {}
        self._completed: set[int] = set()

        self._coordinator = coordinator
        self._lock = threading.RLock()
        self._log = StructuredLogger("network.server").with_context(server=server_id)

    def __repr__(self) -> str:
        return f"Server(id={self.server_id!r}, tokens={self.tokens})"

    # -------------------------------------------------------------------------
    # Topology
    # -------------------------------------------------------------------------

    def add_outbound_link(self, dest: "Server") -> Link | None:
        """Add a unidirectional link to ``dest``.

        Self-links are ignored. Adding an existing direction returns the
        existing link untouched.
        """
        if dest is self or dest.server_id == self.server_id:
            return None
        with self._lock:
            existing = self.outbound_links.get(dest.server_id)
            if existing is not None:
                return existing
            link = Link(self.server_id, dest.server_id)
            self.outbound_links[dest.server_id] = link
            dest.inbound_links[self.server_id] = link
            return link

    # -------------------------------------------------------------------------
    # Sending
    # -------------------------------------------------------------------------

    def _record_sent(self, link: Link, message: Message) -> None:
        self._coordinator.record_event(
            self.server_id, self.tokens, SentMessageEvent(src=self.server_id, dest=link.dest, message=message)
        )

    def _enqueue(self, link: Link, message: Message) -> None:
        link.push(
            SendMessageEvent(
                src=self.server_id,
                dest=link.dest,
                message=message,
                receive_time=self._coordinator.get_receive_time(),
            )
        )

    def send_to_neighbors(self, message: Message) -> None:
        """Send a message on every outbound link, in ascending peer id order."""
        with self._lock:
            for peer_id in sorted(self.outbound_links):
                link = self.outbound_links[peer_id]
                self._record_sent(link, message)
                self._enqueue(link, message)

    def send_tokens(self, num_tokens: int, dest: str) -> None:
        """Send tokens to a neighbor.

        The local count is decremented before the message is queued, so a
        snapshot started afterwards never counts these tokens as held.

        Raises:
            InvalidTokenAmountError: If ``num_tokens`` is negative.
            InsufficientTokensError: If the server holds fewer tokens.
            UnknownDestinationError: If there is no link to ``dest``.
        """
        with self._lock:
            if num_tokens < 0:
                raise InvalidTokenAmountError(self.server_id, num_tokens)
            if self.tokens < num_tokens:
                raise InsufficientTokensError(self.server_id, num_tokens, self.tokens)
            link = self.outbound_links.get(dest)
            if link is None:
                raise UnknownDestinationError(self.server_id, dest)

            message = TokenMessage(num_tokens=num_tokens)
            self._record_sent(link, message)
            self.tokens -= num_tokens
            self._enqueue(link, message)

    # -------------------------------------------------------------------------
    # Snapshot protocol
    # -------------------------------------------------------------------------

    def start_snapshot(self, snapshot_id: int) -> bool:
        """Record the local cut for ``snapshot_id`` and send markers.

        Starting an id that is already started is a no-op.

        Returns:
            True if this call started the snapshot.
        """
        with self._lock:
            if self.started.get(snapshot_id):
                self._log.debug("Snapshot already started", snapshot=snapshot_id)
                return False

            self.markers_received[snapshot_id] = set()
            self.records[snapshot_id] = SnapshotRecord(
                server_id=self.server_id,
                snapshot_id=snapshot_id,
                tokens=self.tokens,
            )
            self.started[snapshot_id] = True
            self._log.info("Snapshot started", snapshot=snapshot_id, tokens=self.tokens)

            self.send_to_neighbors(MarkerMessage(snapshot_id=snapshot_id))

            # Nothing can arrive to close the record
            if not self.inbound_links:
                self._complete(snapshot_id)
            return True

    def handle_packet(self, src: str, message: Message) -> None:
        """Handle a message delivered on the inbound link from ``src``.

        Raises:
            UnknownSourceError: If there is no inbound link from ``src``.
            UnknownMessageError: If ``message`` is not a token or marker.
        """
        with self._lock:
            if src not in self.inbound_links:
                raise UnknownSourceError(self.server_id, src)

            if isinstance(message, MarkerMessage):
                self._handle_marker(src, message.snapshot_id)
            elif isinstance(message, TokenMessage):
                self._handle_tokens(src, message)
            else:
                raise UnknownMessageError(self.server_id, message)

    def _handle_marker(self, src: str, snapshot_id: int) -> None:
        if not self.started.get(snapshot_id):
            self.start_snapshot(snapshot_id)

        received = self.markers_received[snapshot_id]
        if src in received:
            self._log.debug("Duplicate marker ignored", snapshot=snapshot_id, src=src)
            return
        received.add(src)

        if len(received) == len(self.inbound_links):
            self._complete(snapshot_id)

    def _handle_tokens(self, src: str, message: TokenMessage) -> None:
        for snapshot_id in sorted(self.started):
            if self.started[snapshot_id] and src not in self.markers_received[snapshot_id]:
                self.records[snapshot_id].capture(src, message)
                self._log.debug("Captured in-flight message", snapshot=snapshot_id, src=src, payload=message)
        self.tokens += message.num_tokens

    def _complete(self, snapshot_id: int) -> None:
        if snapshot_id in self._completed:
            return
        self._completed.add(snapshot_id)

        record = self.records[snapshot_id]
        record.freeze()
        self._log.info(
            "Snapshot complete",
            snapshot=snapshot_id,
            tokens=record.tokens,
            captured=len(record.messages),
        )
        self._coordinator.publish_record(record.model_copy(deep=True))
        self._coordinator.notify_snapshot_complete(self.server_id, snapshot_id)

    # -------------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------------

    def is_started(self, snapshot_id: int) -> bool:
        with self._lock:
            return self.started.get(snapshot_id, False)

    def is_complete(self, snapshot_id: int) -> bool:
        with self._lock:
            return snapshot_id in self._completed

    def get_record(self, snapshot_id: int) -> SnapshotRecord | None:
        """Copy of this server's record for ``snapshot_id``, if started."""
        with self._lock:
            record = self.records.get(snapshot_id)
            return record.model_copy(deep=True) if record is not None else None

    def snapshot_ids(self) -> list[int]:
        with self._lock:
            return sorted(self.records)
