"""
Cipher Adapters

Thin wrappers around the `cryptography` primitives used by the handshake:
- RSAKeyPair:       own RSA keypair (OAEP decryption, PSS signing)
- PeerPublicCipher: a correspondent's RSA public key (OAEP encryption,
                    PSS verification)
- SymmetricCipher:  AES-256-GCM for post-authentication traffic

Sealed symmetric format:
    [nonce (12 bytes) | ciphertext | tag (16 bytes)]

Every primitive error is re-raised as CipherFailure so callers can treat a
bad key, a truncated ciphertext and a forged tag the same way.
"""

import secrets
from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature, InvalidTag, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..errors import CipherFailure


# Constants
DEFAULT_RSA_KEY_SIZE = 2048
PUBLIC_EXPONENT = 65537
AES_KEY_SIZE = 32       # 256 bits
GCM_NONCE_SIZE = 12     # 96 bits
GCM_TAG_SIZE = 16       # 128 bits


def _oaep() -> padding.OAEP:
    return padding.OAEP(
        mgf=padding.MGF1(algorithm=hashes.SHA256()),
        algorithm=hashes.SHA256(),
        label=None,
    )


def _pss() -> padding.PSS:
    return padding.PSS(
        mgf=padding.MGF1(hashes.SHA256()),
        salt_length=padding.PSS.MAX_LENGTH,
    )


@dataclass
class RSAKeyPair:
    """Own RSA keypair. The private key never leaves this object."""
    private_key: rsa.RSAPrivateKey
    public_key: rsa.RSAPublicKey

    @classmethod
    def generate(cls, key_size: int = DEFAULT_RSA_KEY_SIZE) -> 'RSAKeyPair':
        """Generate a fresh RSA keypair."""
        private_key = rsa.generate_private_key(
            public_exponent=PUBLIC_EXPONENT,
            key_size=key_size,
        )
        return cls(private_key, private_key.public_key())

    def public_bytes(self) -> bytes:
        """Public key as DER SubjectPublicKeyInfo."""
        return self.public_key.public_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )

    def decrypt(self, ciphertext: bytes) -> bytes:
        """
        Decrypt an RSA-OAEP ciphertext addressed to us.

        Raises:
            CipherFailure: If the ciphertext was not produced for this key
        """
        try:
            return self.private_key.decrypt(ciphertext, _oaep())
        except (ValueError, TypeError) as exc:
            raise CipherFailure(f"RSA decryption failed: {exc}") from exc

    def sign(self, data: bytes) -> bytes:
        """Sign data with RSA-PSS(SHA-256)."""
        try:
            return self.private_key.sign(data, _pss(), hashes.SHA256())
        except (ValueError, TypeError) as exc:
            raise CipherFailure(f"RSA signing failed: {exc}") from exc


class PeerPublicCipher:
    """
    RSA public key of a remote participant.

    Used to encrypt handshake payloads for the peer and to check the
    peer's signatures.
    """

    def __init__(self, public_key: rsa.RSAPublicKey):
        self._public_key = public_key

    @classmethod
    def from_bytes(cls, data: bytes) -> 'PeerPublicCipher':
        """
        Load a DER SubjectPublicKeyInfo key.

        Raises:
            CipherFailure: If the bytes are not an RSA public key
        """
        try:
            public_key = serialization.load_der_public_key(data)
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise CipherFailure(f"Invalid peer public key: {exc}") from exc
        if not isinstance(public_key, rsa.RSAPublicKey):
            raise CipherFailure("Peer public key is not an RSA key")
        return cls(public_key)

    @property
    def public_key(self) -> rsa.RSAPublicKey:
        return self._public_key

    def encrypt(self, plaintext: bytes) -> bytes:
        """
        Encrypt a short payload with RSA-OAEP(SHA-256).

        Raises:
            CipherFailure: If the payload is too long for the key
        """
        try:
            return self._public_key.encrypt(plaintext, _oaep())
        except (ValueError, TypeError) as exc:
            raise CipherFailure(f"RSA encryption failed: {exc}") from exc

    def verify(self, data: bytes, signature: bytes) -> bool:
        """Check an RSA-PSS signature. Returns False on any mismatch."""
        try:
            self._public_key.verify(signature, data, _pss(), hashes.SHA256())
            return True
        except (InvalidSignature, ValueError, TypeError):
            return False


def generate_symmetric_key() -> bytes:
    """Generate a random AES-256 key."""
    return secrets.token_bytes(AES_KEY_SIZE)


class SymmetricCipher:
    """
    AES-256-GCM authenticated encryption.

    Any modification of a sealed message makes open() fail.
    """

    def __init__(self, key: bytes):
        """
        Args:
            key: 256-bit (32-byte) key

        Raises:
            CipherFailure: If the key has the wrong length
        """
        if len(key) != AES_KEY_SIZE:
            raise CipherFailure(f"Key must be {AES_KEY_SIZE} bytes")
        self._key = bytes(key)
        self._aesgcm = AESGCM(self._key)

    @property
    def key(self) -> bytes:
        return self._key

    def seal(self, plaintext: bytes) -> bytes:
        """Encrypt plaintext, returning nonce | ciphertext | tag."""
        nonce = secrets.token_bytes(GCM_NONCE_SIZE)
        return nonce + self._aesgcm.encrypt(nonce, plaintext, None)

    def open(self, sealed: bytes) -> bytes:
        """
        Decrypt the output of seal().

        Raises:
            CipherFailure: If the message is truncated or fails authentication
        """
        if len(sealed) < GCM_NONCE_SIZE + GCM_TAG_SIZE:
            raise CipherFailure("Sealed message too short")
        nonce, ciphertext_with_tag = sealed[:GCM_NONCE_SIZE], sealed[GCM_NONCE_SIZE:]
        try:
            return self._aesgcm.decrypt(nonce, ciphertext_with_tag, None)
        except InvalidTag as exc:
            raise CipherFailure("Symmetric authentication failed") from exc
