"""
Shared fixtures.

RSA key generation dominates test time, so a handful of keypairs is
generated once per run and reused by every credential the tests build.
"""

import itertools

import pytest

from peerlock.config import SecurityDefaults
from peerlock.core_crypto.ciphers import RSAKeyPair
from peerlock.messaging.credentials import OwnCredentials
from peerlock.messaging.envelope import ProtocolStrength
from peerlock.messaging.loopback import LoopbackNetwork
from peerlock.messaging.router import SecureRouter


@pytest.fixture(scope="session")
def keypairs():
    """Four reusable 2048-bit keypairs."""
    return [RSAKeyPair.generate(2048) for _ in range(4)]


@pytest.fixture
def make_credentials(keypairs):
    """Build OwnCredentials on a cached keypair."""
    def factory(strength=ProtocolStrength.T5, index=0, secret=b"s3cr3T"):
        return OwnCredentials(keypairs[index], strength=strength, shared_secret=secret)
    return factory


class Peer:
    """A router attached to a loopback network, with its own inbox."""

    def __init__(self, name, router):
        self.name = name
        self.router = router
        self.inbox = []

    def session(self, other):
        return self.router.session(other.name)


@pytest.fixture
def network():
    return LoopbackNetwork()


@pytest.fixture
def make_peer(network, keypairs):
    """Create a named peer on the shared network."""
    counter = itertools.count()

    def factory(name, strength=ProtocolStrength.T5, ballots=None, secret=b"s3cr3T"):
        index = next(counter) % len(keypairs)
        credentials = OwnCredentials(keypairs[index], strength=strength, shared_secret=secret)
        ballot_source = iter(ballots).__next__ if ballots is not None else None
        peer = Peer(name, None)
        peer.router = SecureRouter(
            network.endpoint(name),
            on_plaintext=lambda sender, data: peer.inbox.append((sender, data)),
            credentials=credentials,
            defaults=SecurityDefaults(strength=strength, shared_secret=secret),
            ballot_source=ballot_source,
        )
        network.attach(name, peer.router.receive)
        return peer

    return factory
