"""Custom exceptions for tokensnap."""

from typing import Any


class TokenSnapError(Exception):
    """Base exception for all tokensnap errors."""

    pass


# =============================================================================
# Usage Errors
# =============================================================================


class UsageError(TokenSnapError):
    """Base exception for contract violations by the caller or the topology.

    These indicate a bug outside the protocol and must not be retried.
    """

    pass


class InsufficientTokensError(UsageError):
    """Raised when a server is asked to send more tokens than it holds."""

    def __init__(self, server_id: str, requested: int, available: int):
        self.server_id = server_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Server '{server_id}' attempted to send {requested} tokens "
            f"when it only has {available}"
        )


class InvalidTokenAmountError(UsageError):
    """Raised when a transfer amount is negative."""

    def __init__(self, server_id: str, amount: int):
        self.server_id = server_id
        self.amount = amount
        super().__init__(f"Server '{server_id}' cannot send a negative amount: {amount}")


class NegativeTokenCountError(UsageError):
    """Raised when a server is created holding a negative token count."""

    def __init__(self, server_id: str, tokens: int):
        self.server_id = server_id
        self.tokens = tokens
        super().__init__(f"Server '{server_id}' cannot start with {tokens} tokens")


class UnknownDestinationError(UsageError):
    """Raised when a server sends on a link it does not have."""

    def __init__(self, server_id: str, dest: str):
        self.server_id = server_id
        self.dest = dest
        super().__init__(f"Unknown dest ID '{dest}' from server '{server_id}'")


class UnknownSourceError(UsageError):
    """Raised when a packet arrives from a peer with no inbound link."""

    def __init__(self, server_id: str, src: str):
        self.server_id = server_id
        self.src = src
        super().__init__(f"Server '{server_id}' has no inbound link from '{src}'")


class UnknownMessageError(UsageError):
    """Raised when a delivered payload is neither a token nor a marker."""

    def __init__(self, server_id: str, message: Any):
        self.server_id = server_id
        self.message = message
        super().__init__(
            f"Server '{server_id}' received unsupported message type "
            f"{type(message).__name__}"
        )


class UnknownServerError(UsageError):
    """Raised when a simulator operation names a server that doesn't exist."""

    def __init__(self, server_id: str):
        self.server_id = server_id
        super().__init__(f"Server '{server_id}' not found in simulator")


class DuplicateServerError(UsageError):
    """Raised when a server id is registered twice."""

    def __init__(self, server_id: str):
        self.server_id = server_id
        super().__init__(f"Server '{server_id}' already exists")


# =============================================================================
# Protocol Errors
# =============================================================================


class ProtocolError(TokenSnapError):
    """Base exception for snapshot protocol state errors."""

    pass


class SnapshotFrozenError(ProtocolError):
    """Raised when a completed snapshot record is mutated."""

    def __init__(self, server_id: str, snapshot_id: int):
        self.server_id = server_id
        self.snapshot_id = snapshot_id
        super().__init__(
            f"Snapshot {snapshot_id} on server '{server_id}' is complete and read-only"
        )


# =============================================================================
# Simulation Errors
# =============================================================================


class SimulationError(TokenSnapError):
    """Base exception for simulator errors."""

    pass


class UnknownSnapshotError(SimulationError):
    """Raised when collecting a snapshot id that was never started."""

    def __init__(self, snapshot_id: int):
        self.snapshot_id = snapshot_id
        super().__init__(f"Snapshot {snapshot_id} was never started")


class SnapshotIncompleteError(SimulationError):
    """Raised when a snapshot does not complete within the tick budget."""

    def __init__(self, snapshot_id: int, ticks: int, pending: list[str]):
        self.snapshot_id = snapshot_id
        self.ticks = ticks
        self.pending = pending
        pending_list = ", ".join(pending[:5])
        if len(pending) > 5:
            pending_list += f" ... and {len(pending) - 5} more"
        super().__init__(
            f"Snapshot {snapshot_id} incomplete after {ticks} ticks; "
            f"waiting on: {pending_list}"
        )


class ScriptParseError(SimulationError):
    """Raised when a topology, event or snapshot file is malformed."""

    def __init__(self, line_no: int, line: str, reason: str):
        self.line_no = line_no
        self.line = line
        self.reason = reason
        super().__init__(f"Line {line_no}: {reason}: {line!r}")


# =============================================================================
# Queue Errors
# =============================================================================


class QueueError(TokenSnapError):
    """Base exception for queue errors."""

    pass


class EmptyQueueError(QueueError):
    """Raised when popping or peeking an empty queue."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Cannot {operation} an empty queue")
