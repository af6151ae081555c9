"""
Envelope wire codec.

Every message on the wire starts with a one-byte category tag:

    Ballot:          [0 | ballot (4 bytes, signed, big-endian)]
    Authentication:  [1 | strength token | body]
    Normal:          [2 | protected body]
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from ..core_crypto.field_codec import INT_SIZE, bytes_to_int, int_to_bytes
from ..errors import MalformedEnvelope


class MessageCategory(IntEnum):
    """Top-level message categories."""
    BALLOT = 0
    AUTHENTICATION = 1
    NORMAL = 2


class ProtocolStrength(IntEnum):
    """
    Security level chosen unilaterally by each participant.

    Ordered by increasing guarantee:
        NONE: no credential exchange, plaintext traffic
        T2:   shared password proof, digest on every message
        T3:   T2 plus symmetric key delivery and encrypted traffic
        T4:   T3 with digest-then-payload interlock instead of halves
        T5:   signed symmetric key delivery, no shared password
    """
    NONE = 0
    T2 = 1
    T3 = 2
    T4 = 3
    T5 = 4

    @property
    def token(self) -> int:
        return int(self)

    @classmethod
    def from_token(cls, token: int) -> 'ProtocolStrength':
        """
        Raises:
            MalformedEnvelope: If the token is unknown
        """
        try:
            return cls(token)
        except ValueError as exc:
            raise MalformedEnvelope(f"Unknown protocol strength token {token}") from exc

    @classmethod
    def from_name(cls, name: str) -> 'ProtocolStrength':
        """Look a strength up by name, e.g. "t5" or "NONE"."""
        try:
            return cls[name.strip().upper()]
        except KeyError as exc:
            raise ValueError(f"Unknown protocol strength {name!r}") from exc


@dataclass(frozen=True)
class Envelope:
    """A decoded wire message."""
    category: MessageCategory
    body: bytes
    strength: Optional[ProtocolStrength] = None

    def to_bytes(self) -> bytes:
        if self.category == MessageCategory.AUTHENTICATION:
            if self.strength is None:
                raise ValueError("Authentication envelopes need a strength tag")
            return bytes((self.category, self.strength.token)) + self.body
        return bytes((self.category,)) + self.body

    @classmethod
    def from_bytes(cls, data: bytes) -> 'Envelope':
        """
        Parse raw transport bytes.

        Raises:
            MalformedEnvelope: On an empty message, unknown category or
                strength tag, or a ballot of the wrong size
        """
        if not data:
            raise MalformedEnvelope("Empty message")

        try:
            category = MessageCategory(data[0])
        except ValueError as exc:
            raise MalformedEnvelope(f"Unknown category tag {data[0]}") from exc

        if category == MessageCategory.AUTHENTICATION:
            if len(data) < 2:
                raise MalformedEnvelope("Authentication message without strength tag")
            return cls(category, bytes(data[2:]), ProtocolStrength.from_token(data[1]))

        if category == MessageCategory.BALLOT and len(data) != 1 + INT_SIZE:
            raise MalformedEnvelope(f"Ballot body must be {INT_SIZE} bytes")

        return cls(category, bytes(data[1:]))

    @property
    def ballot(self) -> int:
        """Ballot value carried by a Ballot envelope."""
        if self.category != MessageCategory.BALLOT:
            raise ValueError("Not a ballot envelope")
        return bytes_to_int(self.body)


def ballot_message(ballot: int) -> bytes:
    return Envelope(MessageCategory.BALLOT, int_to_bytes(ballot)).to_bytes()


def authentication_message(strength: ProtocolStrength, body: bytes) -> bytes:
    return Envelope(MessageCategory.AUTHENTICATION, body, strength).to_bytes()


def normal_message(body: bytes) -> bytes:
    return Envelope(MessageCategory.NORMAL, body).to_bytes()
