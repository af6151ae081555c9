"""
Tests for the security audit trail and the settings loader.
"""

import logging

import pytest

from peerlock.config import ENV_RSA_KEY_SIZE, ENV_SHARED_SECRET, ENV_STRENGTH, SecurityDefaults
from peerlock.integration.event_logger import (
    EventLogger,
    EventType,
    SecurityEvent,
    create_event_logger,
    get_peer_hash,
    get_peer_hash_short,
)
from peerlock.messaging.envelope import ProtocolStrength


class TestPeerHash:
    """Participant ids are never stored in clear."""

    def test_hash_is_sha256_hex(self):
        """Hash should be 64 hex characters and deterministic."""
        h = get_peer_hash("alice")
        assert len(h) == 64
        assert h == get_peer_hash("alice")
        assert h != get_peer_hash("bob")

    def test_short_hash(self):
        """Short hash is a prefix of the full one."""
        assert get_peer_hash("alice").startswith(get_peer_hash_short("alice"))
        assert len(get_peer_hash_short("alice")) == 16


class TestEventLogger:
    """Tests for EventLogger."""

    def test_record_and_filter(self):
        """Events can be filtered by type and participant."""
        events = EventLogger()
        events.record(EventType.BALLOT_SENT, "alice", ballot=12)
        events.record(EventType.BALLOT_SENT, "bob", ballot=40)
        events.record(EventType.AUTH_SUCCESS, "alice", strength="T5")

        assert events.count(EventType.BALLOT_SENT) == 2
        assert events.count(EventType.BALLOT_SENT, "alice") == 1
        assert [e.event_type for e in events.get_events(peer_id="alice")] == [
            EventType.BALLOT_SENT, EventType.AUTH_SUCCESS]
        assert events.summary() == {"ballot_sent": 2, "auth_success": 1}

    def test_raw_peer_id_not_stored(self):
        """Only the hash of the participant id is kept."""
        event = EventLogger().record(EventType.SESSION_CREATED, "alice")
        assert event.peer_hash == get_peer_hash("alice")
        assert "alice" not in event.to_json()

    def test_local_events(self):
        """Events without a participant are marked local."""
        event = EventLogger().record(EventType.CREDENTIALS_REGENERATED, generation=2)
        assert event.peer_hash == "local"

    def test_bounded_history(self):
        """Only the most recent events are retained."""
        events = create_event_logger(max_events=3)
        for i in range(5):
            events.record(EventType.MESSAGE_SENT, "bob", size=i)
        assert len(events.get_events()) == 3
        assert events.total_events == 5
        assert events.get_events()[0].details == {"size": 2}

        events.clear()
        assert events.get_events() == []

    def test_json_roundtrip(self):
        """to_json output can be parsed back."""
        event = EventLogger().record(EventType.AUTH_FAILED, "bob", reason="Password mismatch")
        parsed = SecurityEvent.from_json(event.to_json())
        assert parsed.event_type == EventType.AUTH_FAILED
        assert parsed.peer_hash == event.peer_hash[:16]
        assert parsed.details == {"reason": "Password mismatch"}
        assert "auth_failed" in str(event)

    def test_callbacks(self):
        """Callbacks see every event until removed."""
        events = EventLogger()
        seen = []
        events.add_callback(seen.append)
        events.record(EventType.MESSAGE_QUEUED, "bob")
        events.remove_callback(seen.append)
        events.record(EventType.MESSAGE_QUEUED, "bob")
        assert len(seen) == 1

    def test_failing_callback_does_not_break_recording(self, caplog):
        """A broken callback is logged and the event is still kept."""
        events = EventLogger()

        def broken(event):
            raise RuntimeError("boom")

        events.add_callback(broken)
        with caplog.at_level(logging.ERROR, logger="peerlock"):
            events.record(EventType.MESSAGE_SENT, "bob")
        assert events.count(EventType.MESSAGE_SENT) == 1
        assert "Event callback failed" in caplog.text

    def test_failures_logged_as_warnings(self, caplog):
        """Authentication failures and drops are warnings."""
        events = EventLogger()
        with caplog.at_level(logging.DEBUG, logger="peerlock"):
            events.record(EventType.AUTH_FAILED, "bob", reason="Nonce mismatch")
            events.record(EventType.BALLOT_SENT, "bob", ballot=1)
        levels = [r.levelno for r in caplog.records if r.name == "peerlock"]
        assert levels == [logging.WARNING, logging.DEBUG]


class TestSecurityDefaults:
    """Tests for SecurityDefaults."""

    def test_defaults(self):
        """Out of the box: T5, 2048-bit RSA, the stock password."""
        defaults = SecurityDefaults()
        assert defaults.strength == ProtocolStrength.T5
        assert defaults.rsa_key_size == 2048
        assert defaults.shared_secret == b"s3cr3T"
        assert defaults.ballot_range == 10000

    def test_from_env(self):
        """PEERLOCK_* variables override the defaults."""
        defaults = SecurityDefaults.from_env({
            ENV_SHARED_SECRET: "hunter2",
            ENV_STRENGTH: "t3",
            ENV_RSA_KEY_SIZE: "3072",
        })
        assert defaults.shared_secret == b"hunter2"
        assert defaults.strength == ProtocolStrength.T3
        assert defaults.rsa_key_size == 3072

    def test_from_empty_env(self):
        """No variables gives the defaults."""
        assert SecurityDefaults.from_env({}) == SecurityDefaults()

    @pytest.mark.parametrize("environ", [
        {ENV_STRENGTH: "T9"},
        {ENV_RSA_KEY_SIZE: "big"},
        {ENV_RSA_KEY_SIZE: "512"},
    ])
    def test_invalid_env_rejected(self, environ):
        """Bad values raise ValueError."""
        with pytest.raises(ValueError):
            SecurityDefaults.from_env(environ)

    def test_empty_secret_rejected(self):
        """The shared secret cannot be empty."""
        with pytest.raises(ValueError):
            SecurityDefaults(shared_secret=b"")
