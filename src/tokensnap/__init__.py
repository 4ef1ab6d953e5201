"""tokensnap - Chandy-Lamport global snapshots over token-passing servers.

Simple usage:
    from tokensnap import Simulator, PassTokenEvent

    sim = Simulator()
    sim.add_server("A", 10)
    sim.add_server("B", 0)
    sim.add_forward_link("A", "B")
    sim.add_forward_link("B", "A")

    sim.inject_event(PassTokenEvent(src="A", dest="B", tokens=4))
    snapshot = sim.collect_snapshot(sim.start_snapshot("A"))

Embedding the protocol under your own scheduler:
    from tokensnap import Coordinator, Server
"""

__version__ = "0.1.0"

# Types
from .types import (
    EndSnapshotEvent,
    GlobalSnapshot,
    InjectedEvent,
    MarkerMessage,
    Message,
    ObservedEvent,
    PassTokenEvent,
    ReceivedMessageEvent,
    SendMessageEvent,
    SentMessageEvent,
    SnapshotEvent,
    SnapshotMessage,
    SnapshotRecord,
    StartSnapshotEvent,
    TickEvent,
    TokenMessage,
)

# Exceptions
from .exceptions import (
    DuplicateServerError,
    EmptyQueueError,
    InsufficientTokensError,
    InvalidTokenAmountError,
    NegativeTokenCountError,
    ProtocolError,
    QueueError,
    ScriptParseError,
    SimulationError,
    SnapshotFrozenError,
    SnapshotIncompleteError,
    TokenSnapError,
    UnknownDestinationError,
    UnknownMessageError,
    UnknownServerError,
    UnknownSnapshotError,
    UnknownSourceError,
    UsageError,
)

# Configuration
from .config import SimulatorConfig

# Network Layer
from .network import Coordinator, InMemoryCoordinator, Link, Queue, Server

# Simulation Layer
from .simulation import (
    EventLog,
    LogEntry,
    Simulator,
    format_snapshot,
    load_topology,
    load_topology_file,
    parse_events,
    parse_events_file,
    parse_snapshot,
    run_script,
)

# Utils
from .utils import configure_logging, get_logger

__all__ = [
    # Version
    "__version__",
    # Types
    "EndSnapshotEvent",
    "GlobalSnapshot",
    "InjectedEvent",
    "MarkerMessage",
    "Message",
    "ObservedEvent",
    "PassTokenEvent",
    "ReceivedMessageEvent",
    "SendMessageEvent",
    "SentMessageEvent",
    "SnapshotEvent",
    "SnapshotMessage",
    "SnapshotRecord",
    "StartSnapshotEvent",
    "TickEvent",
    "TokenMessage",
    # Exceptions
    "DuplicateServerError",
    "EmptyQueueError",
    "InsufficientTokensError",
    "InvalidTokenAmountError",
    "NegativeTokenCountError",
    "ProtocolError",
    "QueueError",
    "ScriptParseError",
    "SimulationError",
    "SnapshotFrozenError",
    "SnapshotIncompleteError",
    "TokenSnapError",
    "UnknownDestinationError",
    "UnknownMessageError",
    "UnknownServerError",
    "UnknownSnapshotError",
    "UnknownSourceError",
    "UsageError",
    # Config
    "SimulatorConfig",
    # Network
    "Coordinator",
    "InMemoryCoordinator",
    "Link",
    "Queue",
    "Server",
    # Simulation
    "EventLog",
    "LogEntry",
    "Simulator",
    "format_snapshot",
    "load_topology",
    "load_topology_file",
    "parse_events",
    "parse_events_file",
    "parse_snapshot",
    "run_script",
    # Utils
    "configure_logging",
    "get_logger",
]
