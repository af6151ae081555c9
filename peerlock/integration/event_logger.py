"""
Event Logger Module

Audit trail for the secure messaging layer. Every security-relevant step
(ballots, handshake progress, authentication results, dropped traffic) is
recorded as a SecurityEvent and emitted as one JSON line on the
``peerlock`` logger.

Features:
- Privacy-preserving peer hashes (SHA-256), raw participant ids are never stored
- Bounded in-memory history with filtering
- Callbacks for live monitoring
"""

import hashlib
import json
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional


logger = logging.getLogger("peerlock")


# ============================================================================
# Constants
# ============================================================================

EVENT_VERSION = "1.0"
DEFAULT_MAX_EVENTS = 1000


# ============================================================================
# Privacy Functions
# ============================================================================

def get_peer_hash(peer_id: str) -> str:
    """
    Compute privacy-preserving hash of a participant id.

    Args:
        peer_id: The plaintext participant id

    Returns:
        Hex-encoded SHA-256 hash of the id
    """
    return hashlib.sha256(peer_id.encode('utf-8')).hexdigest()


def get_peer_hash_short(peer_id: str) -> str:
    """First 16 characters of the peer hash, for display."""
    return get_peer_hash(peer_id)[:16]


# ============================================================================
# Event Types
# ============================================================================

class EventType(Enum):
    """Types of security events that can be logged."""

    # Session lifecycle
    SESSION_CREATED = "session_created"
    SESSION_EVICTED = "session_evicted"
    CREDENTIALS_REGENERATED = "credentials_regenerated"

    # Balloting
    BALLOT_SENT = "ballot_sent"
    BALLOT_COLLISION = "ballot_collision"
    ROLE_DECIDED = "role_decided"

    # Handshake
    AUTH_MESSAGE_SENT = "auth_message_sent"
    AUTH_MESSAGE_RECEIVED = "auth_message_received"
    AUTH_SUCCESS = "auth_success"
    AUTH_FAILED = "auth_failed"

    # Traffic
    MESSAGE_QUEUED = "message_queued"
    QUEUE_FLUSHED = "queue_flushed"
    MESSAGE_SENT = "message_sent"
    MESSAGE_RECEIVED = "message_received"
    MESSAGE_DROPPED = "message_dropped"


# ============================================================================
# Event Structure
# ============================================================================

@dataclass
class SecurityEvent:
    """
    Represents a security event.

    Participant ids are hashed for privacy.
    """
    event_type: EventType
    peer_hash: str
    timestamp: float
    details: Dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        """Serialize the event as one compact JSON line."""
        return json.dumps({
            'version': EVENT_VERSION,
            'type': self.event_type.value,
            'peer': self.peer_hash[:16],
            'time': self.timestamp,
            'details': self.details,
        }, sort_keys=True, separators=(',', ':'))

    @classmethod
    def from_json(cls, line: str) -> 'SecurityEvent':
        """Parse an event produced by to_json()."""
        data = json.loads(line)
        return cls(
            event_type=EventType(data['type']),
            peer_hash=data['peer'],
            timestamp=data['time'],
            details=data.get('details', {}),
        )

    def __str__(self) -> str:
        dt = datetime.fromtimestamp(self.timestamp)
        return (
            f"[{dt.strftime('%Y-%m-%d %H:%M:%S')}] "
            f"{self.event_type.value} | "
            f"peer:{self.peer_hash[:8]}..."
        )


# ============================================================================
# Event Logger
# ============================================================================

class EventLogger:
    """
    In-memory security audit trail.

    Keeps the most recent events, notifies callbacks and mirrors each
    event to the standard logging module.
    """

    def __init__(self, max_events: int = DEFAULT_MAX_EVENTS,
                 log: Optional[logging.Logger] = None):
        """
        Args:
            max_events: Number of events kept in memory
            log: Logger to mirror events to (defaults to "peerlock")
        """
        self._events: Deque[SecurityEvent] = deque(maxlen=max_events)
        self._callbacks: List[Callable[[SecurityEvent], None]] = []
        self._log = log or logger
        self._event_count = 0

    def record(self, event_type: EventType, peer_id: Optional[str] = None,
               **details: Any) -> SecurityEvent:
        """
        Record a security event.

        Args:
            event_type: What happened
            peer_id: Participant concerned (hashed before storage)
            **details: Extra JSON-serializable fields

        Returns:
            The recorded event
        """
        event = SecurityEvent(
            event_type=event_type,
            peer_hash=get_peer_hash(peer_id) if peer_id is not None else "local",
            timestamp=time.time(),
            details=details,
        )
        self._add_event(event)
        return event

    def _add_event(self, event: SecurityEvent) -> None:
        self._events.append(event)
        self._event_count += 1

        if event.event_type in (EventType.AUTH_FAILED, EventType.MESSAGE_DROPPED):
            self._log.warning(event.to_json())
        else:
            self._log.debug(event.to_json())

        for callback in list(self._callbacks):
            try:
                callback(event)
            except Exception:
                self._log.exception("Event callback failed for %s", event.event_type.value)

    def add_callback(self, callback: Callable[[SecurityEvent], None]) -> None:
        """Add a callback to be notified of new events."""
        self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[SecurityEvent], None]) -> None:
        """Remove a callback."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    # ========================================================================
    # Queries
    # ========================================================================

    def get_events(self, event_type: Optional[EventType] = None,
                   peer_id: Optional[str] = None) -> List[SecurityEvent]:
        """
        Get recorded events, optionally filtered.

        Args:
            event_type: Only events of this type
            peer_id: Only events about this participant
        """
        peer_hash = get_peer_hash(peer_id) if peer_id is not None else None
        return [
            e for e in self._events
            if (event_type is None or e.event_type == event_type)
            and (peer_hash is None or e.peer_hash == peer_hash)
        ]

    def count(self, event_type: EventType, peer_id: Optional[str] = None) -> int:
        """Number of retained events of a type."""
        return len(self.get_events(event_type, peer_id))

    def summary(self) -> Dict[str, int]:
        """Retained event counts keyed by event type value."""
        counts: Dict[str, int] = {}
        for event in self._events:
            counts[event.event_type.value] = counts.get(event.event_type.value, 0) + 1
        return counts

    @property
    def total_events(self) -> int:
        """Events recorded since creation, including ones no longer retained."""
        return self._event_count

    def clear(self) -> None:
        self._events.clear()


def create_event_logger(max_events: int = DEFAULT_MAX_EVENTS) -> EventLogger:
    """Factory function to create an event logger."""
    return EventLogger(max_events=max_events)
