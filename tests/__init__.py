# PeerLock Test Suite
"""
Test suite including:
- Unit tests (field codec, ciphers, envelopes, protection functions)
- Session and router tests (ballot, handshake, queue gating)
- Integration tests (end-to-end scenarios over the loopback network)
- Security tests (tampering, replay, failed authentication)

Run with: pytest
"""
