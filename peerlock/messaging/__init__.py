# Secure Messaging Module
"""
Peer mutual authentication and protected messaging:
- Envelope wire codec and protocol strengths (NONE, T2..T5)
- Own credentials (nonce, RSA keypair, AES key)
- Per-strength interlock, conclusion and message protection
- PeerSession state machine (ballot, handshake, queue gating)
- SecureRouter (per-peer sessions, inbound verification)
- LoopbackNetwork in-memory transport

Security features:
- Interlock Protocol defeats half-message substitution
- Outbound traffic held back until the peer authenticates
- Per-session nonces reject replayed traffic
"""

_EXPORTS = {
    'MessageCategory': 'envelope',
    'ProtocolStrength': 'envelope',
    'Envelope': 'envelope',
    'OwnCredentials': 'credentials',
    'build_interlock': 'protection',
    'conclude': 'protection',
    'protect': 'protection',
    'verify': 'protection',
    'PeerSession': 'peer_session',
    'SecureRouter': 'router',
    'LoopbackNetwork': 'loopback',
    'LoopbackTransport': 'loopback',
}


# Lazy imports: peerlock.config depends on the envelope module
def __getattr__(name):
    """Lazy import to avoid circular import issues."""
    if name not in _EXPORTS:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    import importlib
    module = importlib.import_module(f".{_EXPORTS[name]}", __name__)
    return getattr(module, name)


__all__ = list(_EXPORTS)
