from __future__ import annotations

import socket
from collections import deque
from typing import Callable

import pytest

from peerchat.common.exceptions import DeliveryError
from peerchat.common.models import Contact, Message
from peerchat.node.contacts import ContactDirectory
from peerchat.node.core import ChatServer
from peerchat.node.transport import decode_message, encode_message


class RecordingDisplay:
    """Collects displayed lines instead of printing them."""

    def __init__(self) -> None:
        self.lines: list[str] = []

    def show(self, line: str) -> None:
        self.lines.append(line)


class LoopbackNetwork:
    """In-memory network: queued messages are delivered by deliver_all()."""

    def __init__(self) -> None:
        self.nodes: dict[str, ChatServer] = {}
        self.queue: deque[tuple[str, str, bytes]] = deque()
        self.sent: list[Message] = []

    def transport(self, own_ip: str) -> LoopbackTransport:
        return LoopbackTransport(self, own_ip)

    def deliver_all(self, limit: int = 50) -> int:
        delivered = 0
        while self.queue:
            assert delivered < limit, "message loop did not settle"
            source_ip, dest_ip, data = self.queue.popleft()
            self.nodes[dest_ip].handle_message(decode_message(data), source_ip)
            delivered += 1
        return delivered


class LoopbackTransport:
    def __init__(self, network: LoopbackNetwork, own_ip: str) -> None:
        self.network = network
        self.own_ip = own_ip

    def send(self, ip: str, message: Message) -> None:
        if ip not in self.network.nodes:
            msg = f"no route to {ip}"
            raise DeliveryError(msg)
        self.network.sent.append(message)
        self.network.queue.append((self.own_ip, ip, encode_message(message)))


@pytest.fixture
def network() -> LoopbackNetwork:
    return LoopbackNetwork()


@pytest.fixture
def make_node(network: LoopbackNetwork) -> Callable[..., ChatServer]:
    """Factory for nodes attached to the loopback network."""

    def factory(username: str, mac: str, ip: str) -> ChatServer:
        server = ChatServer(
            username=username,
            mac=mac,
            directory=ContactDirectory(),
            display=RecordingDisplay(),
            transport=network.transport(ip),
            host=ip,
            port=4242,
        )
        network.nodes[ip] = server
        return server

    return factory


def befriend(node: ChatServer, other: ChatServer, display_name: str) -> None:
    """Register other as a friend of node under display_name."""
    node.directory.add(
        Contact(
            mac=other.user.mac,
            username=other.user.username,
            display_name=display_name,
            ip=other.host,
        )
    )


@pytest.fixture
def alice_and_bob(
    make_node: Callable[..., ChatServer],
) -> tuple[ChatServer, ChatServer]:
    """Two nodes that are friends with each other."""
    alice = make_node("alice", "aa:aa:aa:aa:aa:01", "10.0.0.1")
    bob = make_node("bob", "bb:bb:bb:bb:bb:02", "10.0.0.2")
    befriend(alice, bob, "bob")
    befriend(bob, alice, "alice")
    return alice, bob


@pytest.fixture
def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]
