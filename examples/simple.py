"""tokensnap examples.

Run: TOKENSNAP_SEED=7 python examples/simple.py
"""

from tokensnap import (
    InMemoryCoordinator,
    PassTokenEvent,
    Server,
    Simulator,
    SimulatorConfig,
    configure_logging,
    format_snapshot,
    load_topology,
    parse_events,
    run_script,
)

TOPOLOGY = """
# Three servers in a ring
3
A 10
B 0
C 0
A B
B C
C A
"""

EVENTS = """
send A B 4
snapshot A
send A B 2
tick 3
snapshot C
"""


def ring_simulation():
    """Example 1: Snapshot a ring while tokens are moving."""
    print("\n" + "=" * 50)
    print("EXAMPLE 1: RING SIMULATION")
    print("=" * 50)

    sim = Simulator(SimulatorConfig.from_env())
    for server_id, tokens in (("A", 10), ("B", 0), ("C", 0)):
        sim.add_server(server_id, tokens)
    sim.add_forward_link("A", "B")
    sim.add_forward_link("B", "C")
    sim.add_forward_link("C", "A")

    sim.inject_event(PassTokenEvent(src="A", dest="B", tokens=4))
    snapshot = sim.collect_snapshot(sim.start_snapshot("A"))

    print(format_snapshot(snapshot))
    print(f"Total: {snapshot.total_tokens()}")


def scripted_run():
    """Example 2: Topology and events from text."""
    print("\n" + "=" * 50)
    print("EXAMPLE 2: SCRIPTED RUN")
    print("=" * 50)

    sim = load_topology(TOPOLOGY, SimulatorConfig.from_env())
    for snapshot in run_script(sim, parse_events(EVENTS)):
        print(format_snapshot(snapshot))

    print(sim.event_log.format())


def manual_delivery():
    """Example 3: Drive servers by hand with your own scheduler."""
    print("\n" + "=" * 50)
    print("EXAMPLE 3: MANUAL DELIVERY")
    print("=" * 50)

    coordinator = InMemoryCoordinator()
    a = Server("A", 5, coordinator)
    b = Server("B", 5, coordinator)
    a.add_outbound_link(b)
    b.add_outbound_link(a)

    a.start_snapshot(0)
    b.send_tokens(2, "A")

    # Deliver B -> A first: the token lands after A's cut
    event = b.outbound_links["A"].pop()
    a.handle_packet(event.src, event.message)
    for src, dest in ((a, b), (b, a)):
        event = src.outbound_links[dest.server_id].pop()
        dest.handle_packet(event.src, event.message)

    for server_id, snapshot_id in coordinator.completions:
        (record,) = [r for r in coordinator.records[snapshot_id] if r.server_id == server_id]
        captured = ", ".join(str(m) for m in record.messages) or "nothing"
        print(f"{server_id}: {record.tokens} tokens, captured {captured}")


def main():
    configure_logging(level="INFO")
    ring_simulation()
    scripted_run()
    manual_delivery()


if __name__ == "__main__":
    main()
