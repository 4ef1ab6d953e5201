"""Plain-text formats for topologies, event scripts and snapshots.

Topology::

    # server count, then "<id> <tokens>" per server, then "<src> <dest>" links
    3
    N1 10
    N2 0
    N3 0
    N1 N2
    N2 N3
    N3 N1

Events::

    send N1 N2 4
    snapshot N1
    tick 5

Snapshot::

    0
    N1 6
    N2 0
    N3 0
    N1 N2 token(4)

``#`` starts a comment; blank lines are ignored.
"""

import re
from pathlib import Path
from typing import Iterable, Iterator

from pydantic import ValidationError

from ..config import SimulatorConfig
from ..exceptions import ScriptParseError, UnknownServerError, UsageError
from ..types import (
    GlobalSnapshot,
    InjectedEvent,
    PassTokenEvent,
    SnapshotEvent,
    SnapshotMessage,
    TickEvent,
    TokenMessage,
)
from .simulator import Simulator

_TOKEN_RE = re.compile(r"^token\((\d+)\)$")


def _lines(text: str) -> Iterator[tuple[int, str, list[str]]]:
    """Yield (line number, raw line, fields) for every meaningful line."""
    for line_no, raw in enumerate(text.splitlines(), start=1):
        content = raw.split("#", 1)[0].strip()
        if content:
            yield line_no, raw, content.split()


def _parse_int(value: str, line_no: int, raw: str, what: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ScriptParseError(line_no, raw, f"{what} must be an integer") from None


# =============================================================================
# Topology
# =============================================================================


def load_topology(text: str, config: SimulatorConfig | None = None) -> Simulator:
    """Build a simulator from topology text."""
    sim = Simulator(config)
    lines = _lines(text)

    header = next(lines, None)
    if header is None:
        raise ScriptParseError(0, "", "topology is empty")
    line_no, raw, fields = header
    if len(fields) != 1:
        raise ScriptParseError(line_no, raw, "expected the number of servers")
    count = _parse_int(fields[0], line_no, raw, "server count")

    for _ in range(count):
        entry = next(lines, None)
        if entry is None:
            raise ScriptParseError(line_no, raw, f"expected {count} server lines")
        line_no, raw, fields = entry
        if len(fields) != 2:
            raise ScriptParseError(line_no, raw, "expected '<id> <tokens>'")
        try:
            sim.add_server(fields[0], _parse_int(fields[1], line_no, raw, "token count"))
        except UsageError as e:
            raise ScriptParseError(line_no, raw, str(e)) from e

    for line_no, raw, fields in lines:
        if len(fields) != 2:
            raise ScriptParseError(line_no, raw, "expected '<src> <dest>'")
        try:
            sim.add_forward_link(fields[0], fields[1])
        except UnknownServerError as e:
            raise ScriptParseError(line_no, raw, str(e)) from e

    return sim


def load_topology_file(path: str | Path, config: SimulatorConfig | None = None) -> Simulator:
    return load_topology(Path(path).read_text(encoding="utf-8"), config)


# =============================================================================
# Events
# =============================================================================


def parse_events(text: str) -> list[InjectedEvent]:
    """Parse an event script into harness events."""
    events: list[InjectedEvent] = []
    for line_no, raw, fields in _lines(text):
        command, args = fields[0].lower(), fields[1:]
        try:
            if command == "send" and len(args) == 3:
                tokens = _parse_int(args[2], line_no, raw, "token count")
                events.append(PassTokenEvent(src=args[0], dest=args[1], tokens=tokens))
            elif command == "snapshot" and len(args) == 1:
                events.append(SnapshotEvent(server_id=args[0]))
            elif command == "tick" and len(args) <= 1:
                count = _parse_int(args[0], line_no, raw, "tick count") if args else 1
                events.append(TickEvent(count=count))
            else:
                raise ScriptParseError(line_no, raw, f"unrecognized event '{command}'")
        except ValidationError as e:
            raise ScriptParseError(line_no, raw, e.errors()[0]["msg"]) from e
    return events


def parse_events_file(path: str | Path) -> list[InjectedEvent]:
    return parse_events(Path(path).read_text(encoding="utf-8"))


def run_script(sim: Simulator, events: Iterable[InjectedEvent]) -> list[GlobalSnapshot]:
    """Inject every event, then collect each snapshot started, in id order."""
    snapshot_ids = []
    for event in events:
        snapshot_id = sim.inject_event(event)
        if snapshot_id is not None:
            snapshot_ids.append(snapshot_id)
    return [sim.collect_snapshot(snapshot_id) for snapshot_id in sorted(snapshot_ids)]


# =============================================================================
# Snapshots
# =============================================================================


def format_snapshot(snapshot: GlobalSnapshot) -> str:
    lines = [str(snapshot.snapshot_id)]
    lines.extend(f"{server_id} {tokens}" for server_id, tokens in sorted(snapshot.tokens.items()))
    lines.extend(str(message) for message in snapshot.messages)
    return "\n".join(lines) + "\n"


def parse_snapshot(text: str) -> GlobalSnapshot:
    lines = _lines(text)

    header = next(lines, None)
    if header is None:
        raise ScriptParseError(0, "", "snapshot is empty")
    line_no, raw, fields = header
    if len(fields) != 1:
        raise ScriptParseError(line_no, raw, "expected the snapshot id")
    snapshot = GlobalSnapshot(snapshot_id=_parse_int(fields[0], line_no, raw, "snapshot id"))

    for line_no, raw, fields in lines:
        if len(fields) == 2:
            if snapshot.messages:
                raise ScriptParseError(line_no, raw, "token lines must precede message lines")
            snapshot.tokens[fields[0]] = _parse_int(fields[1], line_no, raw, "token count")
        elif len(fields) == 3:
            match = _TOKEN_RE.match(fields[2])
            if match is None:
                raise ScriptParseError(line_no, raw, "expected 'token(<n>)'")
            snapshot.messages.append(
                SnapshotMessage(
                    src=fields[0],
                    dest=fields[1],
                    message=TokenMessage(num_tokens=int(match.group(1))),
                )
            )
        else:
            raise ScriptParseError(line_no, raw, "expected '<id> <tokens>' or '<src> <dest> token(<n>)'")
    return snapshot
