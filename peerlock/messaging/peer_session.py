"""
Peer Session

One state machine per remote participant. It runs three phases:

1. Ballot: both sides draw a random number; the lower one speaks first.
2. Handshake: a lock-step Interlock Protocol exchange of up to four
   Authentication messages in each direction.

       #0   compose(own_nonce, own_public_key), tagged with own strength
       #1   interlock_out[0]
       #2   interlock_out[1]
       #3   dummy closing message

   Each side answers every message it receives until it has sent four,
   so both directions carry #0..#3. The strength declared in #0 is
   pinned for the session: later changes to the process-wide strength
   only affect sessions that have not declared one yet.

3. Protected traffic: once the peer has proved its credentials, queued
   and future messages are protected with the peer's declared strength.

Outbound messages are queued until authentication succeeds and flushed
exactly once, in FIFO order, when it does. A failed handshake discards
the queues and raises AuthenticationFailure; the session then ignores
all further traffic.
"""

import secrets
import time
from collections import deque
from typing import Callable, Deque, List, Optional

from ..config import BALLOT_RANGE
from ..core_crypto.ciphers import PeerPublicCipher
from ..core_crypto.field_codec import NONCE_LENGTH, compose, decompose_exactly
from ..errors import AuthenticationFailure, CipherFailure, DecompositionFailure
from ..integration.event_logger import EventLogger, EventType
from .credentials import OwnCredentials
from .envelope import (
    Envelope,
    MessageCategory,
    ProtocolStrength,
    authentication_message,
    ballot_message,
    normal_message,
)
from .protection import DUMMY_BODY, build_interlock, conclude, concludes_after, protect


TOTAL_AUTHENTICATION_MESSAGES = 4


class PeerSession:
    """
    Ballot, handshake and outbound queue for a single remote participant.

    Args:
        peer_id: Participant id of the correspondent
        credentials: This process's OwnCredentials (shared, not copied)
        transport: Object with send_reliable(data, peer_id) and
            send_unreliable(data, peer_id)
        event_logger: Audit trail (a private one is created if omitted)
        ballot_source: Callable returning the next ballot value
        ballot_range: Ballots are drawn from [0, ballot_range)
        clock: Monotonic clock used to age stalled handshakes
    """

    def __init__(self, peer_id: str, credentials: OwnCredentials, transport,
                 event_logger: Optional[EventLogger] = None,
                 ballot_source: Optional[Callable[[], int]] = None,
                 ballot_range: int = BALLOT_RANGE,
                 clock: Callable[[], float] = time.monotonic):
        self._peer_id = peer_id
        self._credentials = credentials
        self._transport = transport
        self._events = event_logger or EventLogger()
        self._ballot_range = ballot_range
        self._ballot_source = ballot_source or (lambda: secrets.randbelow(ballot_range))
        self._created_at = clock()

        # Ballot state
        self._own_ballot = -1
        self._decided = False
        self._initiator = False

        # Peer credentials, learned from its first authentication message
        self._peer_nonce: Optional[bytes] = None
        self._peer_public: Optional[PeerPublicCipher] = None
        self._peer_symmetric_key: Optional[bytes] = None
        self._peer_strength: Optional[ProtocolStrength] = None

        # Own strength, fixed once announced or used for the interlock
        self._own_strength: Optional[ProtocolStrength] = None

        # Interlock state
        self._interlock_out: List[bytes] = [DUMMY_BODY, DUMMY_BODY]
        self._interlock_in: List[Optional[bytes]] = [None, None]
        self._sent_count = 0
        self._received_count = 0

        self._authenticated = False
        self._failed = False
        self._reliable_queue: Deque[bytes] = deque()
        self._unreliable_queue: Deque[bytes] = deque()

        self._events.record(EventType.SESSION_CREATED, peer_id)
        self._send_ballot()

    # ========================================================================
    # Properties
    # ========================================================================

    @property
    def peer_id(self) -> str:
        return self._peer_id

    @property
    def own_ballot(self) -> int:
        return self._own_ballot

    @property
    def decided(self) -> bool:
        return self._decided

    @property
    def is_initiator(self) -> bool:
        """True once this side has been chosen to speak first."""
        return self._initiator

    @property
    def authenticated(self) -> bool:
        return self._authenticated

    @property
    def failed(self) -> bool:
        return self._failed

    @property
    def peer_strength(self) -> Optional[ProtocolStrength]:
        return self._peer_strength

    @property
    def own_strength(self) -> ProtocolStrength:
        """Strength this session declares to the peer and verifies with."""
        if self._own_strength is None:
            return self._credentials.strength
        return self._own_strength

    def _pin_strength(self) -> ProtocolStrength:
        if self._own_strength is None:
            self._own_strength = self._credentials.strength
        return self._own_strength

    @property
    def peer_nonce(self) -> Optional[bytes]:
        return self._peer_nonce

    @property
    def sent_count(self) -> int:
        return self._sent_count

    @property
    def received_count(self) -> int:
        return self._received_count

    @property
    def pending(self) -> int:
        """Messages waiting for authentication."""
        return len(self._reliable_queue) + len(self._unreliable_queue)

    @property
    def created_at(self) -> float:
        return self._created_at

    # ========================================================================
    # Balloting
    # ========================================================================

    def _send_ballot(self) -> None:
        ballot = self._ballot_source()
        if not 0 <= ballot < self._ballot_range:
            raise ValueError(f"Ballot {ballot} outside [0, {self._ballot_range})")
        self._own_ballot = ballot
        self._events.record(EventType.BALLOT_SENT, self._peer_id, ballot=ballot)
        self._transport.send_reliable(ballot_message(ballot), self._peer_id)

    def _register_ballot(self, peer_ballot: int) -> None:
        if self._decided:
            return

        if peer_ballot == self._own_ballot:
            self._events.record(EventType.BALLOT_COLLISION, self._peer_id, ballot=peer_ballot)
            self._send_ballot()
        elif peer_ballot > self._own_ballot:
            self._decide(initiator=True)
            self._send_authentication()
        else:
            self._decide(initiator=False)

    def _decide(self, initiator: bool) -> None:
        self._decided = True
        self._initiator = initiator
        self._events.record(
            EventType.ROLE_DECIDED, self._peer_id,
            role='initiator' if initiator else 'responder',
        )

    # ========================================================================
    # Inbound
    # ========================================================================

    def register_message(self, envelope: Envelope) -> None:
        """
        Handle a Ballot or Authentication envelope from the peer.

        Raises:
            AuthenticationFailure: If the peer fails to prove its credentials.
                Raised once; the session ignores traffic afterwards.
        """
        if self._failed:
            return

        if envelope.category == MessageCategory.BALLOT:
            self._register_ballot(envelope.ballot)
        elif envelope.category == MessageCategory.AUTHENTICATION:
            self._register_authentication(envelope)

    def _register_authentication(self, envelope: Envelope) -> None:
        index = self._received_count
        if index >= TOTAL_AUTHENTICATION_MESSAGES:
            return

        self._events.record(EventType.AUTH_MESSAGE_RECEIVED, self._peer_id, index=index)

        if index == 0:
            if not self._register_credentials(envelope):
                return
            if not self._decided:
                # The peer already spoke first
                self._decide(initiator=False)
        elif index < 3:
            self._interlock_in[index - 1] = envelope.body

        self._received_count += 1

        if index < 3 and concludes_after(self._peer_strength) == index:
            self._conclude()

        self._send_authentication()

    def _register_credentials(self, envelope: Envelope) -> bool:
        try:
            nonce, key_bytes = decompose_exactly(envelope.body, 2)
            peer_public = PeerPublicCipher.from_bytes(key_bytes)
        except (DecompositionFailure, CipherFailure) as exc:
            self._events.record(EventType.MESSAGE_DROPPED, self._peer_id,
                                reason=f"unreadable credentials: {exc}")
            return False
        if len(nonce) != NONCE_LENGTH:
            self._events.record(EventType.MESSAGE_DROPPED, self._peer_id,
                                reason="bad nonce length")
            return False

        self._peer_nonce = nonce
        self._peer_public = peer_public
        self._peer_strength = envelope.strength

        creds = self._credentials
        try:
            self._interlock_out = list(build_interlock(
                self._pin_strength(), peer_public, nonce,
                creds.shared_secret, creds.keypair, creds.symmetric_key,
            ))
        except CipherFailure as exc:
            raise self._fail(f"cannot build interlock for peer key: {exc}") from exc
        return True

    def _conclude(self) -> None:
        creds = self._credentials
        try:
            peer_key = conclude(
                self._peer_strength, self._interlock_in,
                creds.keypair, creds.nonce, creds.shared_secret, self._peer_public,
            )
        except AuthenticationFailure as exc:
            raise self._fail(exc.reason) from exc

        self._peer_symmetric_key = peer_key
        self._authenticated = True
        self._events.record(EventType.AUTH_SUCCESS, self._peer_id,
                            strength=self._peer_strength.name)
        self._flush_queues()

    def _fail(self, reason: str) -> AuthenticationFailure:
        """Mark the session failed, drop its queues and return the error to raise."""
        dropped = self.pending
        self._failed = True
        self._reliable_queue.clear()
        self._unreliable_queue.clear()
        self._events.record(EventType.AUTH_FAILED, self._peer_id,
                            reason=reason, dropped=dropped)
        return AuthenticationFailure(reason, self._peer_id)

    # ========================================================================
    # Outbound
    # ========================================================================

    def _send_authentication(self) -> None:
        index = self._sent_count
        if index >= TOTAL_AUTHENTICATION_MESSAGES:
            return

        creds = self._credentials
        if index == 0:
            body = compose(creds.nonce, creds.public_bytes)
        elif index < 3:
            body = self._interlock_out[index - 1]
        else:
            body = DUMMY_BODY

        self._sent_count += 1
        self._events.record(EventType.AUTH_MESSAGE_SENT, self._peer_id, index=index)
        self._transport.send_reliable(
            authentication_message(self._pin_strength(), body), self._peer_id)

    def send_reliable(self, message: bytes) -> bool:
        """
        Send (or queue) a message over the reliable channel.

        Returns:
            True if the message went to the transport now
        """
        return self._send(bytes(message), reliable=True)

    def send_unreliable(self, message: bytes) -> bool:
        """Send (or queue) a message over the unreliable channel."""
        return self._send(bytes(message), reliable=False)

    def _send(self, message: bytes, reliable: bool) -> bool:
        if self._failed:
            self._events.record(EventType.MESSAGE_DROPPED, self._peer_id,
                                reason="session failed")
            return False

        if not self._authenticated:
            queue = self._reliable_queue if reliable else self._unreliable_queue
            queue.append(message)
            self._events.record(EventType.MESSAGE_QUEUED, self._peer_id,
                                reliable=reliable, pending=self.pending)
            return False

        return self._transmit(message, reliable)

    def _transmit(self, message: bytes, reliable: bool) -> bool:
        try:
            body = protect(self._peer_strength, message, self._peer_nonce,
                           self._credentials.shared_secret, self._peer_symmetric_key)
        except CipherFailure as exc:
            self._events.record(EventType.MESSAGE_DROPPED, self._peer_id, reason=str(exc))
            return False

        data = normal_message(body)
        if reliable:
            self._transport.send_reliable(data, self._peer_id)
        else:
            self._transport.send_unreliable(data, self._peer_id)
        self._events.record(EventType.MESSAGE_SENT, self._peer_id,
                            reliable=reliable, size=len(data))
        return True

    def _flush_queues(self) -> None:
        flushed = self.pending
        while self._reliable_queue:
            self._transmit(self._reliable_queue.popleft(), reliable=True)
        while self._unreliable_queue:
            self._transmit(self._unreliable_queue.popleft(), reliable=False)
        if flushed:
            self._events.record(EventType.QUEUE_FLUSHED, self._peer_id, count=flushed)

    def __repr__(self) -> str:
        if self._failed:
            state = "failed"
        elif self._authenticated:
            state = "authenticated"
        elif self._decided:
            state = "handshaking"
        else:
            state = "balloting"
        return f"PeerSession(peer_id={self._peer_id!r}, state={state})"
