"""
Failure taxonomy for the secure messaging layer.

- MalformedEnvelope:     unknown category/strength tag, truncated envelope
- DecompositionFailure:  truncated or garbled composed blob
- CipherFailure:         key/format mismatch while encrypting, decrypting or signing
- VerificationFailure:   digest mismatch on protected (Normal) traffic
- AuthenticationFailure: password/nonce/signature mismatch while concluding a handshake

Only AuthenticationFailure ever leaves the router; everything else is
recovered locally by dropping the offending message.
"""

from typing import Optional


class SecureLayerError(Exception):
    """Base class for every error raised by peerlock."""


class MalformedEnvelope(SecureLayerError, ValueError):
    """Envelope could not be parsed."""


class DecompositionFailure(SecureLayerError, ValueError):
    """Composed blob is shorter than its header declares, or otherwise garbled."""


class CipherFailure(SecureLayerError):
    """Encryption, decryption or signing failed."""


class VerificationFailure(SecureLayerError):
    """A protected message did not match its digest."""


class AuthenticationFailure(SecureLayerError):
    """
    A peer failed to prove its credentials during the handshake.

    Attributes:
        peer_id: Participant whose handshake failed (None for pure-function checks)
        reason:  Short human readable cause
    """

    def __init__(self, reason: str, peer_id: Optional[str] = None):
        self.reason = reason
        self.peer_id = peer_id
        if peer_id is None:
            super().__init__(reason)
        else:
            super().__init__(f"{peer_id}: {reason}")
