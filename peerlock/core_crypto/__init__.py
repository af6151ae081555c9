# Core Cryptography Module
"""
Low-level building blocks for the handshake:
- Field codec (compose/decompose, MD5 digests, nonces, halves)
- RSA keypair and peer public key adapters
- AES-256-GCM symmetric cipher
"""

from .field_codec import (
    NONCE_LENGTH,
    compose,
    decompose,
    decompose_exactly,
    md5_digest,
    generate_nonce,
    split_halves,
)

from .ciphers import (
    RSAKeyPair,
    PeerPublicCipher,
    SymmetricCipher,
    generate_symmetric_key,
)

__all__ = [
    'NONCE_LENGTH',
    'compose',
    'decompose',
    'decompose_exactly',
    'md5_digest',
    'generate_nonce',
    'split_halves',
    'RSAKeyPair',
    'PeerPublicCipher',
    'SymmetricCipher',
    'generate_symmetric_key',
]
