"""
PeerLock - Main Entry Point
Prints the active security settings and runs a quick loopback handshake.
"""

import sys

from .config import SecurityDefaults
from .messaging.envelope import ProtocolStrength
from .messaging.loopback import LoopbackNetwork
from .messaging.router import SecureRouter


def loopback_check(defaults: SecurityDefaults) -> bool:
    """Authenticate two in-process peers and exchange one message."""
    net = LoopbackNetwork()
    received = []
    left = SecureRouter(net.endpoint("left"), lambda peer, data: None, defaults=defaults)
    right = SecureRouter(net.endpoint("right"),
                         lambda peer, data: received.append(data), defaults=defaults)
    net.attach("left", left.receive)
    net.attach("right", right.receive)

    left.send_reliable(b"ping", "right")
    net.pump()
    return left.is_authenticated("right") and right.is_authenticated("left") \
        and received == [b"ping"]


def main():
    """Main entry point for PeerLock."""
    defaults = SecurityDefaults.from_env()

    print("=" * 50)
    print("Welcome to PeerLock")
    print("=" * 50)
    print(f"\n  Protocol strength: {defaults.strength.name}")
    print(f"  RSA key size:      {defaults.rsa_key_size} bits")
    print(f"  Available:         {', '.join(s.name for s in ProtocolStrength)}")

    ok = loopback_check(defaults)
    print(f"\n  Loopback handshake: {'OK' if ok else 'FAILED'}\n")
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
