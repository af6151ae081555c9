"""
Per-strength handshake and message protection.

Every function here is pure: key material is passed in explicitly and
nothing is stored. PeerSession calls:

- build_interlock(): own strength, after learning the peer's public key
- concludes_after(): peer's strength, to know when its proof is complete
- conclude():        peer's strength, to check the interlock it sent us
- protect():         peer's strength, for outbound Normal traffic

and SecureRouter calls verify() with the strength its session declared to
the sender for inbound Normal traffic, since the sender protected it for us.

Interlock layouts (ct = RSA encryption under the peer's public key):

    NONE  [dummy, dummy]
    T2    halves of ct(password, peer_nonce)
    T3    halves of ct(password, peer_nonce, own_symkey)
    T4    [MD5(ct), ct] with ct(password, peer_nonce, own_symkey)
    T5    [compose(ct, sign(MD5(ct))), dummy] with ct(own_symkey, peer_nonce)
"""

import hmac
from typing import Optional, Sequence, Tuple

from ..core_crypto.ciphers import PeerPublicCipher, RSAKeyPair, SymmetricCipher
from ..core_crypto.field_codec import (
    compose,
    decompose_exactly,
    join,
    md5_digest,
    split_halves,
)
from ..errors import (
    AuthenticationFailure,
    CipherFailure,
    DecompositionFailure,
    VerificationFailure,
)
from .envelope import ProtocolStrength


DUMMY_BODY = b" "


def build_interlock(strength: ProtocolStrength,
                    peer_public: PeerPublicCipher,
                    peer_nonce: bytes,
                    shared_secret: bytes,
                    own_keypair: RSAKeyPair,
                    own_symmetric_key: bytes) -> Tuple[bytes, bytes]:
    """
    Build the two interlock bodies proving our credentials to a peer.

    Args:
        strength: Our own protocol strength
        peer_public: Peer's RSA public key
        peer_nonce: Nonce the peer sent in its first message
        shared_secret: Shared password
        own_keypair: Our RSA keypair (T5 signs with it)
        own_symmetric_key: Our AES key, delivered to the peer for T3+

    Returns:
        (interlock_out[0], interlock_out[1])
    """
    if strength == ProtocolStrength.NONE:
        return DUMMY_BODY, DUMMY_BODY

    if strength == ProtocolStrength.T2:
        ciphertext = peer_public.encrypt(compose(shared_secret, peer_nonce))
        return split_halves(ciphertext)

    if strength == ProtocolStrength.T3:
        ciphertext = peer_public.encrypt(
            compose(shared_secret, peer_nonce, own_symmetric_key))
        return split_halves(ciphertext)

    if strength == ProtocolStrength.T4:
        ciphertext = peer_public.encrypt(
            compose(shared_secret, peer_nonce, own_symmetric_key))
        return md5_digest(ciphertext), ciphertext

    if strength == ProtocolStrength.T5:
        ciphertext = peer_public.encrypt(compose(own_symmetric_key, peer_nonce))
        signature = own_keypair.sign(md5_digest(ciphertext))
        return compose(ciphertext, signature), DUMMY_BODY

    raise ValueError(f"Unsupported protocol strength {strength!r}")


def concludes_after(strength: ProtocolStrength) -> int:
    """
    Index of the authentication message after which a peer using this
    strength has delivered its complete proof.
    """
    if strength == ProtocolStrength.NONE:
        return 0
    if strength == ProtocolStrength.T5:
        return 1
    return 2


def _open_with_own_key(own_keypair: RSAKeyPair, ciphertext: bytes, count: int):
    try:
        return decompose_exactly(own_keypair.decrypt(ciphertext), count)
    except (CipherFailure, DecompositionFailure) as exc:
        raise AuthenticationFailure(f"Interlock payload unreadable: {exc}") from exc


def _check_password_and_nonce(password: bytes, nonce: bytes,
                              shared_secret: bytes, own_nonce: bytes) -> None:
    if not hmac.compare_digest(password, shared_secret):
        raise AuthenticationFailure("Password mismatch")
    if not hmac.compare_digest(nonce, own_nonce):
        raise AuthenticationFailure("Nonce mismatch")


def conclude(strength: ProtocolStrength,
             interlock_in: Sequence[Optional[bytes]],
             own_keypair: RSAKeyPair,
             own_nonce: bytes,
             shared_secret: bytes,
             peer_public: Optional[PeerPublicCipher]) -> Optional[bytes]:
    """
    Check the interlock messages a peer sent us.

    Args:
        strength: The peer's declared strength
        interlock_in: Interlock bodies received so far
        own_keypair: Our RSA keypair
        own_nonce: Our current nonce
        shared_secret: Shared password
        peer_public: Peer's RSA public key (T5 checks its signature)

    Returns:
        The peer's symmetric key for T3/T4/T5, None for NONE/T2

    Raises:
        AuthenticationFailure: If any check fails
    """
    if strength == ProtocolStrength.NONE:
        return None

    if strength == ProtocolStrength.T2:
        password, nonce = _open_with_own_key(own_keypair, join(interlock_in), 2)
        _check_password_and_nonce(password, nonce, shared_secret, own_nonce)
        return None

    if strength == ProtocolStrength.T3:
        password, nonce, peer_key = _open_with_own_key(own_keypair, join(interlock_in), 3)
        _check_password_and_nonce(password, nonce, shared_secret, own_nonce)
        return _checked_key(peer_key)

    if strength == ProtocolStrength.T4:
        digest, ciphertext = interlock_in
        if not hmac.compare_digest(md5_digest(ciphertext), digest):
            raise AuthenticationFailure("Interlock digest mismatch")
        password, nonce, peer_key = _open_with_own_key(own_keypair, ciphertext, 3)
        _check_password_and_nonce(password, nonce, shared_secret, own_nonce)
        return _checked_key(peer_key)

    if strength == ProtocolStrength.T5:
        if peer_public is None:
            raise AuthenticationFailure("No public key to check the signature with")
        try:
            ciphertext, signature = decompose_exactly(interlock_in[0], 2)
        except DecompositionFailure as exc:
            raise AuthenticationFailure(f"Signed interlock unreadable: {exc}") from exc
        if not peer_public.verify(md5_digest(ciphertext), signature):
            raise AuthenticationFailure("Signature mismatch")
        peer_key, nonce = _open_with_own_key(own_keypair, ciphertext, 2)
        if not hmac.compare_digest(nonce, own_nonce):
            raise AuthenticationFailure("Nonce mismatch")
        return _checked_key(peer_key)

    raise ValueError(f"Unsupported protocol strength {strength!r}")


def _checked_key(key: bytes) -> bytes:
    try:
        SymmetricCipher(key)
    except CipherFailure as exc:
        raise AuthenticationFailure(f"Delivered symmetric key unusable: {exc}") from exc
    return key


def protect(strength: ProtocolStrength, message: bytes,
            peer_nonce: bytes, shared_secret: bytes,
            peer_symmetric_key: Optional[bytes]) -> bytes:
    """
    Protect an outbound message the way the recipient expects.

    Args:
        strength: The recipient's declared strength
        message: Plaintext
        peer_nonce: Recipient's nonce
        shared_secret: Shared password
        peer_symmetric_key: Recipient's AES key (T3/T4/T5)

    Returns:
        Normal message body

    Raises:
        CipherFailure: If a key required by the strength is missing
    """
    if strength == ProtocolStrength.NONE:
        return message

    if strength == ProtocolStrength.T2:
        return compose(md5_digest(shared_secret, peer_nonce, message), message)

    if peer_symmetric_key is None:
        raise CipherFailure(f"{strength.name} needs the peer's symmetric key")
    sealed = SymmetricCipher(peer_symmetric_key).seal(message)

    if strength in (ProtocolStrength.T3, ProtocolStrength.T4):
        return compose(md5_digest(shared_secret, peer_nonce, message), sealed)

    if strength == ProtocolStrength.T5:
        return compose(md5_digest(peer_nonce, message), sealed)

    raise ValueError(f"Unsupported protocol strength {strength!r}")


def verify(strength: ProtocolStrength, body: bytes,
           own_nonce: bytes, shared_secret: bytes,
           own_symmetric_key: Optional[bytes]) -> bytes:
    """
    Check and decrypt an inbound Normal body protected for us.

    Returns:
        Plaintext

    Raises:
        DecompositionFailure: If the body is not a composed blob
        CipherFailure: If decryption fails
        VerificationFailure: If the digest does not match
    """
    if strength == ProtocolStrength.NONE:
        return body

    digest, payload = decompose_exactly(body, 2)

    if strength == ProtocolStrength.T2:
        message = payload
        expected = md5_digest(shared_secret, own_nonce, message)
    else:
        if own_symmetric_key is None:
            raise CipherFailure(f"{strength.name} needs our symmetric key")
        message = SymmetricCipher(own_symmetric_key).open(payload)
        if strength == ProtocolStrength.T5:
            expected = md5_digest(own_nonce, message)
        else:
            expected = md5_digest(shared_secret, own_nonce, message)

    if not hmac.compare_digest(digest, expected):
        raise VerificationFailure("Message digest mismatch")
    return message
