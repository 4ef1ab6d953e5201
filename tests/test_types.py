"""Tests for tokensnap types, exceptions and logging utilities."""

import logging

import pytest
from pydantic import ValidationError

from tokensnap.exceptions import (
    InsufficientTokensError,
    ScriptParseError,
    SnapshotFrozenError,
    SnapshotIncompleteError,
    TokenSnapError,
    UsageError,
)
from tokensnap.network.coordinator import InMemoryCoordinator
from tokensnap.network.server import Server
from tokensnap.types import (
    GlobalSnapshot,
    MarkerMessage,
    SendMessageEvent,
    SnapshotMessage,
    SnapshotRecord,
    TokenMessage,
)
from tokensnap.utils.logging import StructuredLogger, configure_logging, get_logger


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.messages: list[str] = []

    def emit(self, record):
        self.messages.append(record.getMessage())


@pytest.fixture
def captured_logs():
    """Route the tokensnap logger tree into a list for one test."""
    root = logging.getLogger("tokensnap")
    saved = (root.level, root.propagate, list(root.handlers))
    handler = _ListHandler()
    configure_logging(level="DEBUG", handler=handler)
    yield handler.messages
    root.setLevel(saved[0])
    root.propagate = saved[1]
    root.handlers = saved[2]


class TestMessages:
    """Tests for message models."""

    def test_rendering(self):
        assert str(TokenMessage(num_tokens=3)) == "token(3)"
        assert str(MarkerMessage(snapshot_id=1)) == "marker(1)"
        assert (
            str(SnapshotMessage(src="A", dest="B", message=TokenMessage(num_tokens=2)))
            == "A B token(2)"
        )

    def test_negative_tokens_rejected(self):
        with pytest.raises(ValidationError):
            TokenMessage(num_tokens=-1)

    def test_messages_are_immutable(self):
        message = TokenMessage(num_tokens=1)

        with pytest.raises(ValidationError):
            message.num_tokens = 5

    def test_event_from_json(self):
        event = SendMessageEvent.model_validate(
            {"src": "A", "dest": "B", "message": {"snapshot_id": 4}, "receive_time": 9}
        )

        assert event.message == MarkerMessage(snapshot_id=4)


class TestSnapshotRecord:
    """Tests for SnapshotRecord."""

    def test_capture_and_freeze(self):
        record = SnapshotRecord(server_id="B", snapshot_id=0, tokens=2)
        record.capture("A", TokenMessage(num_tokens=3))
        record.capture("C", TokenMessage(num_tokens=1))

        assert [m.src for m in record.messages] == ["A", "C"]
        assert all(m.dest == "B" for m in record.messages)
        assert record.captured_tokens() == 4

        record.freeze()
        with pytest.raises(SnapshotFrozenError):
            record.capture("A", TokenMessage(num_tokens=1))
        assert len(record.messages) == 2


class TestGlobalSnapshot:
    """Tests for merging records."""

    def test_from_records(self):
        records = [
            SnapshotRecord(
                server_id="B",
                snapshot_id=1,
                tokens=2,
                messages=[SnapshotMessage(src="A", dest="B", message=TokenMessage(num_tokens=5))],
            ),
            SnapshotRecord(server_id="A", snapshot_id=1, tokens=3),
        ]

        snapshot = GlobalSnapshot.from_records(1, records)

        assert list(snapshot.tokens) == ["A", "B"]
        assert snapshot.in_flight_tokens() == 5
        assert snapshot.total_tokens() == 10

    def test_mismatched_ids_rejected(self):
        with pytest.raises(ValueError):
            GlobalSnapshot.from_records(
                0, [SnapshotRecord(server_id="A", snapshot_id=1, tokens=0)]
            )


class TestExceptions:
    """Tests for the exception hierarchy."""

    def test_usage_errors_carry_fields(self):
        error = InsufficientTokensError("A", 5, 2)

        assert isinstance(error, UsageError)
        assert isinstance(error, TokenSnapError)
        assert "only has 2" in str(error)

    def test_incomplete_truncates_pending(self):
        error = SnapshotIncompleteError(0, 100, [f"N{i}" for i in range(8)])

        assert "and 3 more" in str(error)

    def test_parse_error_message(self):
        error = ScriptParseError(4, "tick x", "tick count must be an integer")

        assert str(error) == "Line 4: tick count must be an integer: 'tick x'"


class TestLogging:
    """Tests for logging utilities."""

    def test_get_logger_namespace(self):
        assert get_logger("simulation").name == "tokensnap.simulation"

    def test_structured_context(self, captured_logs):
        log = StructuredLogger("test").with_context(server="A")
        log.info("hello", snapshot=3)

        assert captured_logs == ["hello | server=A snapshot=3"]

    def test_server_logs_snapshot_lifecycle(self, captured_logs):
        coordinator = InMemoryCoordinator()
        a = Server("A", 10, coordinator)
        b = Server("B", 0, coordinator)
        a.add_outbound_link(b)

        a.start_snapshot(0)
        a.start_snapshot(0)

        assert "Snapshot started | server=A snapshot=0 tokens=10" in captured_logs
        assert "Snapshot already started | server=A snapshot=0" in captured_logs
        assert any(m.startswith("Snapshot complete | server=A") for m in captured_logs)

    def test_server_logs_captured_message(self, captured_logs):
        coordinator = InMemoryCoordinator()
        a = Server("A", 10, coordinator)
        b = Server("B", 0, coordinator)
        a.add_outbound_link(b)
        b.add_outbound_link(a)

        a.start_snapshot(0)
        a.handle_packet("B", TokenMessage(num_tokens=2))

        assert "Captured in-flight message | server=A snapshot=0 src=B payload=token(2)" in captured_logs
        assert a.get_record(0).messages[0].message == TokenMessage(num_tokens=2)
