"""
Secure Router

Sits between the transport and the application:

    application --send--> SecureRouter --> PeerSession --> transport
    transport --receive--> SecureRouter --+--> PeerSession      (Ballot / Authentication)
                                          +--> verify --> app   (Normal)

Inbound Normal traffic is verified with this process's nonce, password and
symmetric key, at the strength our session with the sender declared in
its first handshake message, since that is what the sender protects with.
"""

import threading
import time
from typing import Callable, Dict, Iterable, List, Optional, Set

from ..config import SecurityDefaults
from ..errors import CipherFailure, DecompositionFailure, MalformedEnvelope, VerificationFailure
from ..integration.event_logger import EventLogger, EventType
from .credentials import OwnCredentials
from .envelope import Envelope, MessageCategory, ProtocolStrength
from .peer_session import PeerSession
from .protection import verify


PlaintextCallback = Callable[[str, bytes], None]


class SecureRouter:
    """
    Owns one PeerSession per participant and routes traffic through them.

    Example:
        router = SecureRouter(transport, on_plaintext=game.receive)
        router.register_peers(["alice", "bob"])
        router.send_unreliable(b"score:120")          # broadcast
        ...
        transport_callback = router.receive            # (peer_id, data)

    Args:
        transport: Object with send_reliable(data, peer_id) and
            send_unreliable(data, peer_id)
        on_plaintext: Called with (peer_id, plaintext) for every verified message
        credentials: Own credentials (generated from defaults if omitted)
        defaults: Security settings
        event_logger: Audit trail shared with every session
        ballot_source: Ballot generator handed to new sessions
        clock: Monotonic clock used to age handshakes
    """

    def __init__(self, transport, on_plaintext: PlaintextCallback,
                 credentials: Optional[OwnCredentials] = None,
                 defaults: Optional[SecurityDefaults] = None,
                 event_logger: Optional[EventLogger] = None,
                 ballot_source: Optional[Callable[[], int]] = None,
                 clock: Callable[[], float] = time.monotonic):
        self._defaults = defaults or SecurityDefaults()
        self._transport = transport
        self._on_plaintext = on_plaintext
        self._credentials = credentials or OwnCredentials.generate(self._defaults)
        self._events = event_logger or EventLogger(self._defaults.max_logged_events)
        self._ballot_source = ballot_source
        self._clock = clock
        self._sessions: Dict[str, PeerSession] = {}
        self._lock = threading.RLock()

    # ========================================================================
    # Configuration
    # ========================================================================

    @property
    def credentials(self) -> OwnCredentials:
        return self._credentials

    @property
    def events(self) -> EventLogger:
        return self._events

    @property
    def strength(self) -> ProtocolStrength:
        """Strength declared to peers whose handshake has not started yet."""
        return self._credentials.strength

    @strength.setter
    def strength(self, strength: ProtocolStrength) -> None:
        self._credentials.strength = ProtocolStrength(strength)

    # ========================================================================
    # Session management
    # ========================================================================

    def _session_for(self, peer_id: str) -> PeerSession:
        with self._lock:
            session = self._sessions.get(peer_id)
            if session is None:
                session = PeerSession(
                    peer_id, self._credentials, self._transport,
                    event_logger=self._events,
                    ballot_source=self._ballot_source,
                    ballot_range=self._defaults.ballot_range,
                    clock=self._clock,
                )
                self._sessions[peer_id] = session
            return session

    def register_peers(self, peer_ids: Iterable[str]) -> None:
        """Create sessions (and send ballots) for a new roster."""
        for peer_id in peer_ids:
            self._session_for(peer_id)

    def prepare_for_next_session(self) -> None:
        """
        Session boundary: drop every peer session and refresh the nonce
        and symmetric key so old traffic cannot be replayed.
        """
        with self._lock:
            self._sessions.clear()
            self._credentials.regenerate()
        self._events.record(EventType.CREDENTIALS_REGENERATED,
                            generation=self._credentials.generation)

    def session(self, peer_id: str) -> Optional[PeerSession]:
        with self._lock:
            return self._sessions.get(peer_id)

    @property
    def peer_ids(self) -> List[str]:
        with self._lock:
            return list(self._sessions)

    def is_authenticated(self, peer_id: str) -> bool:
        session = self.session(peer_id)
        return session is not None and session.authenticated

    def stalled_peers(self, max_age: float) -> List[str]:
        """
        Peers whose handshake has neither succeeded nor failed after
        max_age seconds.
        """
        now = self._clock()
        with self._lock:
            return [
                peer_id for peer_id, session in self._sessions.items()
                if not session.authenticated and not session.failed
                and now - session.created_at >= max_age
            ]

    def evict(self, peer_id: str) -> bool:
        """Forget a peer. A later message from it starts a fresh handshake."""
        with self._lock:
            session = self._sessions.pop(peer_id, None)
        if session is None:
            return False
        self._events.record(EventType.SESSION_EVICTED, peer_id,
                            dropped=session.pending)
        return True

    # ========================================================================
    # Outbound
    # ========================================================================

    def send(self, message: bytes, peer_id: Optional[str] = None,
             reliable: bool = True, excluded: Optional[Set[str]] = None) -> None:
        """
        Send a message to one peer, or to every known peer when peer_id is None.

        Args:
            message: Plaintext
            peer_id: Recipient, or None to broadcast
            reliable: Use the reliable transport channel
            excluded: Peers skipped by a broadcast
        """
        if peer_id is not None:
            targets = [self._session_for(peer_id)]
        else:
            excluded = excluded or set()
            with self._lock:
                targets = [s for pid, s in self._sessions.items() if pid not in excluded]

        for session in targets:
            if reliable:
                session.send_reliable(message)
            else:
                session.send_unreliable(message)

    def send_reliable(self, message: bytes, peer_id: Optional[str] = None,
                      excluded: Optional[Set[str]] = None) -> None:
        self.send(message, peer_id, reliable=True, excluded=excluded)

    def send_unreliable(self, message: bytes, peer_id: Optional[str] = None,
                        excluded: Optional[Set[str]] = None) -> None:
        self.send(message, peer_id, reliable=False, excluded=excluded)

    # ========================================================================
    # Inbound
    # ========================================================================

    def receive(self, peer_id: str, data: bytes) -> None:
        """
        Transport callback for every inbound message.

        Malformed, forged or stale messages are dropped silently.

        Raises:
            AuthenticationFailure: Once, when a peer fails its handshake
        """
        try:
            envelope = Envelope.from_bytes(data)
        except MalformedEnvelope as exc:
            self._events.record(EventType.MESSAGE_DROPPED, peer_id, reason=str(exc))
            return

        if envelope.category == MessageCategory.NORMAL:
            self._receive_normal(peer_id, envelope.body)
        else:
            self._session_for(peer_id).register_message(envelope)

    def _receive_normal(self, peer_id: str, body: bytes) -> None:
        session = self.session(peer_id)
        if session is not None and session.failed:
            self._events.record(EventType.MESSAGE_DROPPED, peer_id,
                                reason="session failed")
            return

        # The peer protects with the strength we declared to it
        creds = self._credentials
        strength = session.own_strength if session is not None else creds.strength
        try:
            plaintext = verify(strength, body, creds.nonce,
                               creds.shared_secret, creds.symmetric_key)
        except (DecompositionFailure, CipherFailure, VerificationFailure) as exc:
            self._events.record(EventType.MESSAGE_DROPPED, peer_id, reason=str(exc))
            return

        self._events.record(EventType.MESSAGE_RECEIVED, peer_id, size=len(plaintext))
        self._on_plaintext(peer_id, plaintext)
