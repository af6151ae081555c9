"""
Own security credentials for a multiplayer session.

Holds this process's freshness nonce, RSA keypair, AES key and chosen
protocol strength. A single instance is shared by the router and every
peer session it owns.
"""

from typing import Optional

from ..config import SecurityDefaults
from ..core_crypto.ciphers import (
    PeerPublicCipher,
    RSAKeyPair,
    SymmetricCipher,
    generate_symmetric_key,
)
from ..core_crypto.field_codec import NONCE_LENGTH, generate_nonce
from .envelope import ProtocolStrength


class OwnCredentials:
    """
    Per-session identity of this process.

    Example:
        creds = OwnCredentials.generate(SecurityDefaults())
        creds.strength = ProtocolStrength.T3
        creds.regenerate()   # new nonce and AES key, same RSA keypair
    """

    def __init__(self, keypair: RSAKeyPair,
                 strength: ProtocolStrength = ProtocolStrength.T5,
                 shared_secret: bytes = SecurityDefaults.shared_secret,
                 nonce: Optional[bytes] = None,
                 symmetric_key: Optional[bytes] = None):
        if nonce is not None and len(nonce) != NONCE_LENGTH:
            raise ValueError(f"Nonce must be {NONCE_LENGTH} bytes")
        self._keypair = keypair
        self._public_bytes = keypair.public_bytes()
        self._shared_secret = bytes(shared_secret)
        self.strength = ProtocolStrength(strength)
        self._nonce = nonce or generate_nonce()
        self._symmetric = SymmetricCipher(symmetric_key or generate_symmetric_key())
        self._generation = 0

    @classmethod
    def generate(cls, defaults: Optional[SecurityDefaults] = None,
                 keypair: Optional[RSAKeyPair] = None) -> 'OwnCredentials':
        """Create credentials with a fresh RSA keypair unless one is supplied."""
        defaults = defaults or SecurityDefaults()
        return cls(
            keypair or RSAKeyPair.generate(defaults.rsa_key_size),
            strength=defaults.strength,
            shared_secret=defaults.shared_secret,
        )

    def regenerate(self) -> None:
        """
        Start a new session: replace the nonce and the symmetric key.

        The RSA keypair is kept.
        """
        self._nonce = generate_nonce()
        self._symmetric = SymmetricCipher(generate_symmetric_key())
        self._generation += 1

    @property
    def nonce(self) -> bytes:
        return self._nonce

    @property
    def keypair(self) -> RSAKeyPair:
        return self._keypair

    @property
    def public_bytes(self) -> bytes:
        """Own RSA public key, DER encoded."""
        return self._public_bytes

    @property
    def public_cipher(self) -> PeerPublicCipher:
        """Own public key wrapped the way peers see it."""
        return PeerPublicCipher(self._keypair.public_key)

    @property
    def symmetric_key(self) -> bytes:
        return self._symmetric.key

    @property
    def symmetric_cipher(self) -> SymmetricCipher:
        return self._symmetric

    @property
    def shared_secret(self) -> bytes:
        return self._shared_secret

    @property
    def generation(self) -> int:
        """Number of times regenerate() has been called."""
        return self._generation

    def __repr__(self) -> str:
        return (
            f"OwnCredentials(strength={self.strength.name}, "
            f"nonce={self._nonce.hex()}, generation={self._generation})"
        )
