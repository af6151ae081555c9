#!/usr/bin/env python
"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                          PEERLOCK LIVE DEMO                                   ║
║               Interlock Protocol Mutual Authentication                        ║
╚══════════════════════════════════════════════════════════════════════════════╝

This script walks through a complete two-peer session over an in-memory
transport:
- Balloting to decide who speaks first
- The lock-step Interlock Protocol handshake
- Queue gating of messages sent before authentication
- Protected traffic for the chosen strengths
- A replayed message rejected after a new session begins

Run with --no-pause to skip the presenter pauses.
"""

import sys

from peerlock.config import SecurityDefaults
from peerlock.integration.event_logger import EventLogger, EventType
from peerlock.messaging.envelope import MessageCategory, ProtocolStrength
from peerlock.messaging.loopback import LoopbackNetwork
from peerlock.messaging.router import SecureRouter


PAUSE = "--no-pause" not in sys.argv


def print_header(title):
    """Print a formatted section header"""
    print("\n" + "═" * 70)
    print(f"  {title}")
    print("═" * 70)


def print_step(step_num, description):
    """Print a numbered step"""
    print(f"\n  [{step_num}] {description}")


def pause(message="Press ENTER to continue..."):
    """Pause for presenter to explain"""
    if not PAUSE:
        return
    print(f"\n  [PAUSE] {message}")
    input()


def pick_strength(name, default):
    """Read a strength from argv, e.g. --alice=T3"""
    prefix = f"--{name}="
    for arg in sys.argv[1:]:
        if arg.startswith(prefix):
            return ProtocolStrength.from_name(arg[len(prefix):])
    return default


def main():

    print("\n" * 2)
    print("╔" + "═" * 68 + "╗")
    print("║" + "        PEERLOCK - SECURE PEER MESSAGING LAYER".center(68) + "║")
    print("╚" + "═" * 68 + "╝")

    alice_strength = pick_strength("alice", ProtocolStrength.T5)
    bob_strength = pick_strength("bob", ProtocolStrength.T3)

    print_header("PART 1: SETTING UP TWO PEERS")

    net = LoopbackNetwork()
    audit = EventLogger()
    inbox = {"alice": [], "bob": []}

    print_step("1.1", "Generating RSA keypairs, nonces and AES keys")
    alice = SecureRouter(
        net.endpoint("alice"),
        on_plaintext=lambda peer, data: inbox["alice"].append((peer, data)),
        defaults=SecurityDefaults(strength=alice_strength),
        event_logger=audit,
    )
    bob = SecureRouter(
        net.endpoint("bob"),
        on_plaintext=lambda peer, data: inbox["bob"].append((peer, data)),
        defaults=SecurityDefaults(strength=bob_strength),
        event_logger=audit,
    )
    net.attach("alice", alice.receive)
    net.attach("bob", bob.receive)

    print(f"\n  Alice strength: {alice.strength.name}   nonce: {alice.credentials.nonce.hex()}")
    print(f"  Bob strength:   {bob.strength.name}   nonce: {bob.credentials.nonce.hex()}")

    pause()

    print_step("1.2", "Alice sends a score before anyone is authenticated")
    alice.send_unreliable(b"score:120", "bob")
    print(f"\n  Messages waiting in Alice's queue: {alice.session('bob').pending}")

    pause()

    print_header("PART 2: BALLOT AND HANDSHAKE")

    bob.register_peers(["alice"])
    while net.in_flight:
        packet = net.deliver_one()
        if packet is None:
            continue
        category = MessageCategory(packet.data[0]).name
        print(f"  {packet.sender:>5} -> {packet.recipient:<5} {category:<15} {len(packet.data):>4} bytes")

    a_session, b_session = alice.session("bob"), bob.session("alice")
    print(f"\n  Alice ballot {a_session.own_ballot}, initiator: {a_session.is_initiator}")
    print(f"  Bob ballot   {b_session.own_ballot}, initiator: {b_session.is_initiator}")
    print(f"\n  [OK] Alice authenticated Bob: {a_session.authenticated}")
    print(f"  [OK] Bob authenticated Alice: {b_session.authenticated}")

    pause()

    print_header("PART 3: PROTECTED TRAFFIC")

    print_step("3.1", "Queued message delivered after the handshake")
    for peer, data in inbox["bob"]:
        print(f"  Bob received from {peer}: {data.decode()}")

    print_step("3.2", "Bob replies")
    bob.send_reliable(b"gg", "alice")
    net.pump()
    for peer, data in inbox["alice"]:
        print(f"  Alice received from {peer}: {data.decode()}")

    pause()

    print_header("PART 4: REPLAY AFTER A NEW SESSION")

    captured = [p for p in net.delivered
                if p.recipient == "bob" and p.data[0] == MessageCategory.NORMAL]
    before = len(inbox["bob"])
    bob.prepare_for_next_session()
    for packet in captured:
        bob.receive(packet.sender, packet.data)
    replayed = len(inbox["bob"]) - before
    print(f"\n  Replayed {len(captured)} old message(s), accepted: {replayed}")
    if bob.strength == ProtocolStrength.NONE:
        print("  (NONE offers no freshness, so replays are accepted)")

    pause()

    print_header("PART 5: AUDIT TRAIL SUMMARY")

    for event_type, count in sorted(audit.summary().items()):
        print(f"  {event_type:<25} {count}")
    print(f"\n  Authentication failures: {audit.count(EventType.AUTH_FAILED)}")

    print("\n\n" + "═" * 70)
    print("  DEMONSTRATION COMPLETE!")
    print("═" * 70)


if __name__ == "__main__":
    main()
