"""
Default security settings.

Values can be overridden per process through environment variables:

    PEERLOCK_SHARED_SECRET   shared password used by T2/T3/T4
    PEERLOCK_STRENGTH        NONE, T2, T3, T4 or T5
    PEERLOCK_RSA_KEY_SIZE    RSA modulus size in bits
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .messaging.envelope import ProtocolStrength


BALLOT_RANGE = 10000
MAX_LOGGED_EVENTS = 1000

ENV_SHARED_SECRET = "PEERLOCK_SHARED_SECRET"
ENV_STRENGTH = "PEERLOCK_STRENGTH"
ENV_RSA_KEY_SIZE = "PEERLOCK_RSA_KEY_SIZE"


@dataclass(frozen=True)
class SecurityDefaults:
    """Settings shared by the router, its sessions and the credentials."""
    rsa_key_size: int = 2048
    shared_secret: bytes = b"s3cr3T"
    strength: ProtocolStrength = ProtocolStrength.T5
    ballot_range: int = BALLOT_RANGE
    max_logged_events: int = MAX_LOGGED_EVENTS

    def __post_init__(self):
        if self.rsa_key_size < 1024:
            raise ValueError("RSA key size must be at least 1024 bits")
        if not self.shared_secret:
            raise ValueError("Shared secret cannot be empty")
        if self.ballot_range < 2:
            raise ValueError("Ballot range must allow at least two values")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'SecurityDefaults':
        """Build defaults, letting PEERLOCK_* variables override them."""
        environ = os.environ if environ is None else environ
        overrides = {}

        if environ.get(ENV_SHARED_SECRET):
            overrides['shared_secret'] = environ[ENV_SHARED_SECRET].encode('utf-8')
        if environ.get(ENV_STRENGTH):
            overrides['strength'] = ProtocolStrength.from_name(environ[ENV_STRENGTH])
        if environ.get(ENV_RSA_KEY_SIZE):
            try:
                overrides['rsa_key_size'] = int(environ[ENV_RSA_KEY_SIZE])
            except ValueError as exc:
                raise ValueError(f"{ENV_RSA_KEY_SIZE} must be an integer") from exc

        return cls(**overrides)
