"""tokensnap simulation harness.

Components:
- simulator: Discrete-event scheduler implementing the coordinator interface
- event_log: Per-tick record of sent, received and snapshot events
- script: Topology, event script and snapshot text formats
"""

from .event_log import EventLog, LogEntry
from .script import (
    format_snapshot,
    load_topology,
    load_topology_file,
    parse_events,
    parse_events_file,
    parse_snapshot,
    run_script,
)
from .simulator import Simulator

__all__ = [
    # Simulator
    "Simulator",
    # Event log
    "EventLog",
    "LogEntry",
    # Script formats
    "load_topology",
    "load_topology_file",
    "parse_events",
    "parse_events_file",
    "run_script",
    "format_snapshot",
    "parse_snapshot",
]
