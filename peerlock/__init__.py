"""
PeerLock

Peer mutual authentication and secure messaging over an unreliable
relay transport, using an Interlock Protocol handshake with five
selectable protocol strengths.
"""

from .errors import (
    SecureLayerError,
    MalformedEnvelope,
    DecompositionFailure,
    CipherFailure,
    VerificationFailure,
    AuthenticationFailure,
)
from .config import SecurityDefaults
from .messaging.envelope import MessageCategory, ProtocolStrength, Envelope
from .messaging.credentials import OwnCredentials
from .messaging.peer_session import PeerSession
from .messaging.router import SecureRouter
from .messaging.loopback import LoopbackNetwork

__version__ = "1.0.0"

__all__ = [
    'SecureLayerError',
    'MalformedEnvelope',
    'DecompositionFailure',
    'CipherFailure',
    'VerificationFailure',
    'AuthenticationFailure',
    'SecurityDefaults',
    'MessageCategory',
    'ProtocolStrength',
    'Envelope',
    'OwnCredentials',
    'PeerSession',
    'SecureRouter',
    'LoopbackNetwork',
]
