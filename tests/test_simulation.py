"""Tests for the tokensnap simulator."""

import random
from collections import Counter

import pytest
from pydantic import ValidationError

from tokensnap import (
    DuplicateServerError,
    EndSnapshotEvent,
    PassTokenEvent,
    ReceivedMessageEvent,
    Simulator,
    SimulatorConfig,
    SnapshotEvent,
    SnapshotIncompleteError,
    TickEvent,
    TokenMessage,
    UnknownServerError,
    UnknownSnapshotError,
)


def ring(config=None):
    """A -> B -> C -> A with all tokens on A."""
    sim = Simulator(config)
    sim.add_server("A", 10)
    sim.add_server("B", 0)
    sim.add_server("C", 0)
    sim.add_forward_link("A", "B")
    sim.add_forward_link("B", "C")
    sim.add_forward_link("C", "A")
    return sim


def mesh(server_ids, tokens, config=None):
    sim = Simulator(config)
    for server_id in server_ids:
        sim.add_server(server_id, tokens)
    for src in server_ids:
        for dest in server_ids:
            sim.add_forward_link(src, dest)
    return sim


class TestTopology:
    """Tests for building simulator topologies."""

    def test_duplicate_server(self):
        sim = Simulator()
        sim.add_server("A", 1)

        with pytest.raises(DuplicateServerError):
            sim.add_server("A", 2)

    def test_unknown_server_in_link(self):
        sim = Simulator()
        sim.add_server("A", 1)

        with pytest.raises(UnknownServerError):
            sim.add_forward_link("A", "B")

    def test_self_link_ignored(self):
        sim = Simulator()
        sim.add_server("A", 1)
        sim.add_forward_link("A", "A")

        assert sim.get_server("A").outbound_links == {}

    def test_mesh_has_no_self_links(self):
        sim = mesh(["A", "B", "C"], 1)

        assert sorted(sim.get_server("A").outbound_links) == ["B", "C"]
        assert sorted(sim.get_server("A").inbound_links) == ["B", "C"]


class TestTick:
    """Tests for message delivery."""

    def test_receive_time_within_configured_delay(self):
        sim = mesh(["A", "B"], 100, SimulatorConfig(min_delay=2, max_delay=4, seed=1))
        for _ in range(50):
            sim.inject_event(PassTokenEvent(src="A", dest="B", tokens=1))

        times = [e.receive_time for e in sim.get_server("A").outbound_links["B"].pending()]
        assert all(2 <= t <= 4 for t in times)

    def test_one_delivery_per_server_per_tick(self):
        sim = mesh(["A", "B"], 10, SimulatorConfig(min_delay=1, max_delay=1))
        sim.inject_event(PassTokenEvent(src="A", dest="B", tokens=1))
        sim.inject_event(PassTokenEvent(src="A", dest="B", tokens=2))

        sim.tick()
        assert sim.time == 1
        assert sim.get_server("B").tokens == 11

        sim.tick()
        assert sim.get_server("B").tokens == 13

    def test_fifo_order_with_random_delays(self):
        sim = mesh(["A", "B"], 100, SimulatorConfig(min_delay=1, max_delay=5, seed=42))
        for amount in range(1, 11):
            sim.inject_event(PassTokenEvent(src="A", dest="B", tokens=amount))

        sim.inject_event(TickEvent(count=100))

        received = [
            entry.event.message.num_tokens
            for entry in sim.event_log.entries()
            if isinstance(entry.event, ReceivedMessageEvent)
        ]
        assert received == list(range(1, 11))
        assert sim.get_server("B").tokens == 155

    def test_total_tokens_counts_links(self):
        sim = mesh(["A", "B"], 5, SimulatorConfig(min_delay=3, max_delay=3))
        sim.inject_event(PassTokenEvent(src="A", dest="B", tokens=4))

        assert sim.get_server("A").tokens == 1
        assert sim.total_tokens() == 10


class TestSnapshots:
    """Tests for running and collecting snapshots."""

    def test_ring_scenario(self):
        sim = ring(SimulatorConfig(seed=3))
        sim.inject_event(PassTokenEvent(src="A", dest="B", tokens=4))
        snapshot_id = sim.start_snapshot("A")

        snapshot = sim.collect_snapshot(snapshot_id)

        assert snapshot.tokens["A"] == 6
        assert snapshot.total_tokens() == 10
        captured_by_b = [m for m in snapshot.messages if m.dest == "B"]
        # The 4 tokens are either B's local state or B's channel state, never both
        assert (snapshot.tokens["B"] == 4) != (len(captured_by_b) == 1)

    def test_snapshot_ids_are_sequential(self):
        sim = ring()

        assert sim.inject_event(SnapshotEvent(server_id="A")) == 0
        assert sim.inject_event(SnapshotEvent(server_id="B")) == 1
        assert sim.inject_event(TickEvent()) is None

    def test_conservation_across_seeds(self):
        server_ids = ["N1", "N2", "N3", "N4"]
        for seed in range(15):
            rng = random.Random(seed)
            sim = mesh(server_ids, 25, SimulatorConfig(seed=seed))
            total = sim.total_tokens()
            snapshot_ids = []

            for _ in range(60):
                roll = rng.random()
                if roll < 0.6:
                    src, dest = rng.sample(server_ids, 2)
                    amount = rng.randint(0, sim.get_server(src).tokens)
                    sim.inject_event(PassTokenEvent(src=src, dest=dest, tokens=amount))
                elif roll < 0.65:
                    snapshot_ids.append(sim.start_snapshot(rng.choice(server_ids)))
                else:
                    sim.tick(rng.randint(1, 3))

            snapshot_ids.append(sim.start_snapshot(rng.choice(server_ids)))
            for snapshot_id in snapshot_ids:
                snapshot = sim.collect_snapshot(snapshot_id)
                assert snapshot.total_tokens() == total, f"seed {seed}, snapshot {snapshot_id}"
                assert sorted(snapshot.tokens) == server_ids
                assert all(isinstance(m.message, TokenMessage) for m in snapshot.messages)
            assert sim.total_tokens() == total

    def test_each_server_completes_once(self):
        sim = mesh(["A", "B", "C"], 10, SimulatorConfig(seed=5))
        first = sim.start_snapshot("A")
        sim.inject_event(PassTokenEvent(src="B", dest="C", tokens=3))
        second = sim.start_snapshot("C")

        sim.collect_snapshot(first)
        sim.collect_snapshot(second)
        sim.tick(50)

        ends = Counter(
            (entry.event.server_id, entry.event.snapshot_id)
            for entry in sim.event_log.entries()
            if isinstance(entry.event, EndSnapshotEvent)
        )
        assert ends == {(s, i): 1 for s in "ABC" for i in (first, second)}

    def test_collect_is_cached(self):
        sim = ring(SimulatorConfig(seed=9))
        snapshot_id = sim.start_snapshot("B")

        assert sim.collect_snapshot(snapshot_id) is sim.collect_snapshot(snapshot_id)

    def test_collect_unknown_snapshot(self):
        sim = ring()

        with pytest.raises(UnknownSnapshotError):
            sim.collect_snapshot(7)

    def test_unreachable_server_never_completes(self):
        sim = Simulator(SimulatorConfig(max_collect_ticks=20))
        sim.add_server("A", 1)
        sim.add_server("B", 1)
        sim.add_server("C", 1)
        sim.add_forward_link("A", "B")
        snapshot_id = sim.start_snapshot("A")

        with pytest.raises(SnapshotIncompleteError) as exc_info:
            sim.collect_snapshot(snapshot_id)

        assert exc_info.value.pending == ["C"]
        assert exc_info.value.ticks == 20

    def test_same_seed_same_result(self):
        def run(seed):
            sim = mesh(["A", "B", "C"], 10, SimulatorConfig(seed=seed))
            sim.inject_event(PassTokenEvent(src="A", dest="B", tokens=5))
            sim.inject_event(PassTokenEvent(src="B", dest="C", tokens=7))
            snapshot_id = sim.start_snapshot("C")
            sim.inject_event(PassTokenEvent(src="C", dest="A", tokens=2))
            return sim.collect_snapshot(snapshot_id)

        assert run(11) == run(11)

    def test_event_log_epochs(self):
        sim = ring(SimulatorConfig(min_delay=1, max_delay=1))
        sim.start_snapshot("A")
        sim.tick(3)

        assert sim.event_log.epoch == 3
        kinds = [type(entry.event).__name__ for entry in sim.event_log.entries(0)]
        assert kinds == ["StartSnapshotEvent", "SentMessageEvent"]
        assert "Time 1:" in sim.event_log.format()


class TestSimulatorConfig:
    """Tests for SimulatorConfig."""

    def test_defaults(self):
        config = SimulatorConfig()

        assert (config.min_delay, config.max_delay) == (1, 5)
        assert config.seed is None

    def test_invalid_delays(self):
        with pytest.raises(ValidationError):
            SimulatorConfig(min_delay=4, max_delay=2)
        with pytest.raises(ValidationError):
            SimulatorConfig(min_delay=0)

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("TOKENSNAP_SEED", "3")
        monkeypatch.setenv("TOKENSNAP_MAX_DELAY", "2")
        monkeypatch.delenv("TOKENSNAP_MIN_DELAY", raising=False)

        config = SimulatorConfig.from_env(min_delay=2)

        assert config.seed == 3
        assert config.max_delay == 2
        assert config.min_delay == 2
