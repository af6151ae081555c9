"""
In-memory transport connecting several routers inside one process.

Messages are queued and delivered in order by pump(), so a handshake
never recurses through the call stack. A tap can observe, rewrite or
drop traffic in flight, which makes tampering and replay easy to stage.
"""

from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, List, Optional


@dataclass(frozen=True)
class Packet:
    """One message in flight."""
    sender: str
    recipient: str
    data: bytes
    reliable: bool


Tap = Callable[[Packet], Optional[bytes]]


class LoopbackTransport:
    """Transport endpoint handed to a single router."""

    def __init__(self, network: 'LoopbackNetwork', owner: str):
        self._network = network
        self._owner = owner

    @property
    def owner(self) -> str:
        return self._owner

    def send_reliable(self, data: bytes, peer_id: str) -> None:
        self._network.post(Packet(self._owner, peer_id, bytes(data), True))

    def send_unreliable(self, data: bytes, peer_id: str) -> None:
        self._network.post(Packet(self._owner, peer_id, bytes(data), False))


class LoopbackNetwork:
    """
    Tiny message relay.

    Example:
        net = LoopbackNetwork()
        alice = SecureRouter(net.endpoint("alice"), on_plaintext=...)
        bob = SecureRouter(net.endpoint("bob"), on_plaintext=...)
        net.attach("alice", alice.receive)
        net.attach("bob", bob.receive)
        alice.register_peers(["bob"])
        net.pump()
    """

    def __init__(self):
        self._queue: Deque[Packet] = deque()
        self._receivers: Dict[str, Callable[[str, bytes], None]] = {}
        self.delivered: List[Packet] = []
        self.tap: Optional[Tap] = None

    def endpoint(self, owner: str) -> LoopbackTransport:
        return LoopbackTransport(self, owner)

    def attach(self, participant: str, receiver: Callable[[str, bytes], None]) -> None:
        """Register the inbound callback for a participant."""
        self._receivers[participant] = receiver

    def post(self, packet: Packet) -> None:
        self._queue.append(packet)

    @property
    def in_flight(self) -> int:
        return len(self._queue)

    def deliver_one(self) -> Optional[Packet]:
        """
        Deliver the oldest queued packet.

        Returns:
            The packet as delivered, or None if the tap dropped it or
            nothing was queued
        """
        if not self._queue:
            return None
        packet = self._queue.popleft()

        if self.tap is not None:
            data = self.tap(packet)
            if data is None:
                return None
            packet = Packet(packet.sender, packet.recipient, data, packet.reliable)

        receiver = self._receivers.get(packet.recipient)
        if receiver is None:
            return None
        self.delivered.append(packet)
        receiver(packet.sender, packet.data)
        return packet

    def pump(self, max_steps: int = 10000) -> int:
        """
        Deliver queued packets until the network is idle.

        Returns:
            Number of packets taken off the queue

        Raises:
            RuntimeError: If traffic is still flowing after max_steps
        """
        steps = 0
        while self._queue:
            if steps >= max_steps:
                raise RuntimeError(f"Network still busy after {max_steps} packets")
            self.deliver_one()
            steps += 1
        return steps
