"""
Security tests for PeerLock.

Tests specifically for attack scenarios against the router:
- Tampering with protected traffic
- Replay across sessions and across peers
- Wrong passwords and substituted public keys
- Malformed input
"""

import pytest

from peerlock.core_crypto.field_codec import compose, decompose
from peerlock.errors import AuthenticationFailure
from peerlock.integration.event_logger import EventType
from peerlock.messaging.envelope import (
    Envelope,
    MessageCategory,
    ProtocolStrength,
    authentication_message,
    normal_message,
)


PROTECTED = [ProtocolStrength.T2, ProtocolStrength.T3, ProtocolStrength.T4, ProtocolStrength.T5]


def is_normal(packet):
    return packet.data[0] == MessageCategory.NORMAL


def authenticate(network, a, b):
    a.router.register_peers([b.name])
    network.pump()
    assert a.router.is_authenticated(b.name) and b.router.is_authenticated(a.name)


class TestTampering:
    """Modified Normal traffic must never reach the application."""

    @pytest.mark.parametrize("strength", PROTECTED)
    def test_flipped_byte_dropped(self, network, make_peer, strength):
        """A single flipped byte is detected for every protected strength."""
        a = make_peer("A", ProtocolStrength.T5)
        b = make_peer("B", strength)
        authenticate(network, a, b)

        def flip_last(packet):
            if is_normal(packet):
                return packet.data[:-1] + bytes([packet.data[-1] ^ 0x01])
            return packet.data

        network.tap = flip_last
        a.router.send_reliable(b"move:e4", "B")
        network.pump()

        assert b.inbox == []
        assert b.router.events.count(EventType.MESSAGE_DROPPED, "A") == 1

    def test_none_passes_modifications_through(self, network, make_peer):
        """NONE offers no integrity: the modified text is delivered."""
        a = make_peer("A", ProtocolStrength.NONE)
        b = make_peer("B", ProtocolStrength.NONE)
        authenticate(network, a, b)

        network.tap = lambda p: normal_message(b"forged") if is_normal(p) else p.data
        a.router.send_reliable(b"genuine", "B")
        network.pump()

        assert b.inbox == [("A", b"forged")]


class TestReplay:
    """Protected traffic is bound to the recipient's current credentials."""

    @pytest.mark.parametrize("strength", PROTECTED)
    def test_replay_after_next_session_rejected(self, network, make_peer, strength):
        """After regeneration the old nonce/key no longer verify."""
        a = make_peer("A", ProtocolStrength.T5)
        b = make_peer("B", strength)
        authenticate(network, a, b)

        a.router.send_reliable(b"move:e4", "B")
        network.pump()
        captured = [p for p in network.delivered if p.sender == "A" and is_normal(p)][-1]
        assert b.inbox == [("A", b"move:e4")]

        b.router.prepare_for_next_session()
        b.router.receive("A", captured.data)

        assert b.inbox == [("A", b"move:e4")]
        assert b.router.events.count(EventType.MESSAGE_DROPPED, "A") == 1

    def test_replay_within_session_accepted(self, network, make_peer):
        """There is no replay cache inside one session."""
        a = make_peer("A", ProtocolStrength.T5)
        b = make_peer("B", ProtocolStrength.T5)
        authenticate(network, a, b)

        a.router.send_reliable(b"ping", "B")
        network.pump()
        b.router.receive("A", network.delivered[-1].data)

        assert b.inbox == [("A", b"ping"), ("A", b"ping")]

    @pytest.mark.parametrize("strength", PROTECTED)
    def test_message_for_other_peer_rejected(self, network, make_peer, strength):
        """Traffic protected for B does not verify at C."""
        a = make_peer("A", ProtocolStrength.T5)
        b = make_peer("B", strength)
        c = make_peer("C", strength)
        a.router.register_peers(["B", "C"])
        network.pump()

        a.router.send_reliable(b"for B only", "B")
        network.pump()
        c.router.receive("A", network.delivered[-1].data)

        assert b.inbox == [("A", b"for B only")]
        assert c.inbox == []


class TestAuthenticationFailure:
    """Handshakes with wrong credentials."""

    @pytest.mark.parametrize("strength", [ProtocolStrength.T2, ProtocolStrength.T3,
                                          ProtocolStrength.T4])
    def test_wrong_password(self, network, make_peer, strength):
        """The password mismatch is raised once and the queue is dropped."""
        a = make_peer("A", strength, ballots=[1])
        b = make_peer("B", strength, ballots=[2], secret=b"other!")
        b.router.send_reliable(b"queued", "A")
        a.router.register_peers(["B"])

        with pytest.raises(AuthenticationFailure, match="Password mismatch") as exc_info:
            network.pump()
        assert exc_info.value.peer_id == "A"

        session = b.session(a)
        assert session.failed
        assert not session.authenticated
        assert session.pending == 0
        assert b.router.events.count(EventType.AUTH_FAILED, "A") == 1
        assert b.router.events.count(EventType.AUTH_SUCCESS, "A") == 0
        assert b.router.events.count(EventType.QUEUE_FLUSHED, "A") == 0
        assert a.inbox == []

        # Further traffic for the failed session is ignored without raising
        b.router.receive("A", authentication_message(strength, b" "))
        b.router.receive("A", normal_message(b"late"))
        assert b.session(a).send_reliable(b"after") is False
        assert b.inbox == []

        # A never receives its last proof, so its handshake stalls
        network.pump()
        assert not a.router.is_authenticated("B")
        assert a.router.stalled_peers(0) == ["B"]
        assert a.router.evict("B")

    def test_substituted_public_key(self, network, make_peer, keypairs):
        """A key swapped into message #0 breaks the T5 signature check."""
        a = make_peer("A", ProtocolStrength.T5, ballots=[1])
        b = make_peer("B", ProtocolStrength.T5, ballots=[2])
        swapped = []

        def substitute(packet):
            if packet.sender == "A" and packet.data[0] == MessageCategory.AUTHENTICATION \
                    and not swapped:
                envelope = Envelope.from_bytes(packet.data)
                nonce, _ = decompose(envelope.body)
                swapped.append(packet)
                return authentication_message(
                    envelope.strength, compose(nonce, keypairs[3].public_bytes()))
            return packet.data

        network.tap = substitute
        a.router.register_peers(["B"])

        with pytest.raises(AuthenticationFailure, match="Signature mismatch"):
            network.pump()
        assert swapped
        assert b.session(a).failed


class TestMalformedInput:
    """Garbage on the wire is dropped, never raised."""

    @pytest.mark.parametrize("data", [
        b"",
        b"\x07hello",
        b"\x01",
        b"\x00\x00",
        b"\x01\x09body",
        b"\x02garbage",
    ])
    def test_dropped_silently(self, network, make_peer, data):
        """Malformed envelopes and bodies are logged and discarded."""
        b = make_peer("B", ProtocolStrength.T5)
        b.router.receive("A", data)

        assert b.inbox == []
        assert b.router.peer_ids == []
        assert b.router.events.count(EventType.MESSAGE_DROPPED, "A") == 1

    def test_normal_before_handshake_dropped(self, network, make_peer):
        """Unprotected text is rejected by a protected recipient."""
        b = make_peer("B", ProtocolStrength.T2)
        b.router.receive("A", normal_message(b"hello"))
        assert b.inbox == []
