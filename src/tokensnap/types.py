"""Core types and data models for tokensnap."""

from typing import Iterable, Union

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import SnapshotFrozenError


# =============================================================================
# Messages
# =============================================================================


class TokenMessage(BaseModel):
    """Application message transferring tokens between two servers."""

    model_config = ConfigDict(frozen=True)

    num_tokens: int = Field(ge=0, description="Tokens carried by this message")

    def __str__(self) -> str:
        return f"token({self.num_tokens})"


class MarkerMessage(BaseModel):
    """Control message that starts and delimits a snapshot."""

    model_config = ConfigDict(frozen=True)

    snapshot_id: int

    def __str__(self) -> str:
        return f"marker({self.snapshot_id})"


Message = Union[TokenMessage, MarkerMessage]


# =============================================================================
# Link Events
# =============================================================================


class SendMessageEvent(BaseModel):
    """An event queued on a link, waiting for delivery."""

    model_config = ConfigDict(frozen=True)

    src: str
    dest: str
    message: Message
    receive_time: int = Field(description="Earliest simulator time for delivery")


# =============================================================================
# Observation Events
# =============================================================================


class SentMessageEvent(BaseModel):
    """A server put a message on one of its outbound links."""

    src: str
    dest: str
    message: Message

    def __str__(self) -> str:
        return f"{self.src} sent {self.message} to {self.dest}"


class ReceivedMessageEvent(BaseModel):
    """A message was delivered to its destination server."""

    src: str
    dest: str
    message: Message

    def __str__(self) -> str:
        return f"{self.dest} received {self.message} from {self.src}"


class StartSnapshotEvent(BaseModel):
    """A snapshot was triggered externally on a server."""

    server_id: str
    snapshot_id: int

    def __str__(self) -> str:
        return f"{self.server_id} startSnapshot({self.snapshot_id})"


class EndSnapshotEvent(BaseModel):
    """A server finished its local part of a snapshot."""

    server_id: str
    snapshot_id: int

    def __str__(self) -> str:
        return f"{self.server_id} endSnapshot({self.snapshot_id})"


ObservedEvent = Union[SentMessageEvent, ReceivedMessageEvent, StartSnapshotEvent, EndSnapshotEvent]


# =============================================================================
# Harness Events
# =============================================================================


class PassTokenEvent(BaseModel):
    """Instruct a server to send tokens to a neighbor."""

    src: str
    dest: str
    tokens: int


class SnapshotEvent(BaseModel):
    """Instruct a server to initiate a new snapshot."""

    server_id: str


class TickEvent(BaseModel):
    """Advance simulator time."""

    count: int = Field(default=1, ge=1)


InjectedEvent = Union[PassTokenEvent, SnapshotEvent, TickEvent]


# =============================================================================
# Snapshots
# =============================================================================


class SnapshotMessage(BaseModel):
    """A message recorded as channel state."""

    model_config = ConfigDict(frozen=True)

    src: str
    dest: str
    message: Message

    def __str__(self) -> str:
        return f"{self.src} {self.dest} {self.message}"


class SnapshotRecord(BaseModel):
    """One server's part of a snapshot.

    ``tokens`` is the local state at the local cut. ``messages`` holds the
    inbound messages received after the cut and before the marker on their
    channel, in arrival order. The record is frozen once ``complete`` is set.
    """

    server_id: str
    snapshot_id: int
    tokens: int = Field(ge=0)
    messages: list[SnapshotMessage] = Field(default_factory=list)
    complete: bool = False

    def capture(self, src: str, message: Message) -> None:
        """Append an in-flight message received from ``src``."""
        if self.complete:
            raise SnapshotFrozenError(self.server_id, self.snapshot_id)
        self.messages.append(SnapshotMessage(src=src, dest=self.server_id, message=message))

    def freeze(self) -> None:
        self.complete = True

    def captured_tokens(self) -> int:
        return sum(
            m.message.num_tokens for m in self.messages if isinstance(m.message, TokenMessage)
        )


class GlobalSnapshot(BaseModel):
    """All server records for one snapshot id, merged."""

    snapshot_id: int
    tokens: dict[str, int] = Field(default_factory=dict)
    messages: list[SnapshotMessage] = Field(default_factory=list)

    @classmethod
    def from_records(cls, snapshot_id: int, records: Iterable[SnapshotRecord]) -> "GlobalSnapshot":
        """Merge per-server records, ordered by server id."""
        snapshot = cls(snapshot_id=snapshot_id)
        for record in sorted(records, key=lambda r: r.server_id):
            if record.snapshot_id != snapshot_id:
                raise ValueError(
                    f"Record for snapshot {record.snapshot_id} cannot be merged "
                    f"into snapshot {snapshot_id}"
                )
            snapshot.tokens[record.server_id] = record.tokens
            snapshot.messages.extend(record.messages)
        return snapshot

    def in_flight_tokens(self) -> int:
        """Tokens captured as channel state."""
        return sum(
            m.message.num_tokens for m in self.messages if isinstance(m.message, TokenMessage)
        )

    def total_tokens(self) -> int:
        """Tokens in process state plus tokens in channel state."""
        return sum(self.tokens.values()) + self.in_flight_tokens()
