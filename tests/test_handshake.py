from __future__ import annotations

from typing import Callable

import pytest
from conftest import LoopbackNetwork, befriend

from peerchat.common.exceptions import (
    NoSessionError,
    ProtocolViolationError,
    UnknownFriendError,
)
from peerchat.common.models import (
    ChatMessage,
    HandshakeMessage,
    Identity,
    ProtocolKind,
)
from peerchat.node.core import ChatServer
from peerchat.node.transport import decode_message


def handshake_rounds(network: LoopbackNetwork) -> list[int]:
    return [m.round for m in network.sent if isinstance(m, HandshakeMessage)]


@pytest.fixture
def loner(make_node: Callable[..., ChatServer]) -> ChatServer:
    """A node that is its own friend, for self-talk."""
    node = make_node("me", "cc:cc:cc:cc:cc:03", "10.0.0.3")
    befriend(node, node, "me")
    return node


def test_end_to_end_chat(
    alice_and_bob: tuple[ChatServer, ChatServer], network: LoopbackNetwork
) -> None:
    alice, bob = alice_and_bob

    assert alice.start_session("bob", ProtocolKind.X25519)
    first = network.sent[0]
    assert isinstance(first, HandshakeMessage)
    assert first.round == 0
    assert first.source == alice.user
    assert first.destination == bob.user

    network.deliver_all()
    assert handshake_rounds(network) == [0, 1]

    (alice_session,) = alice.sessions.find_sessions(bob.user)
    (bob_session,) = bob.sessions.find_sessions(alice.user)
    assert alice_session.is_active()
    assert bob_session.is_active()

    alice.send_chat_message("bob", "hello")
    sent = network.sent[-1]
    assert isinstance(sent, ChatMessage)
    assert sent.text != b"hello"
    assert sent.session_time == alice_session.start_time

    network.deliver_all()
    assert bob.display.lines == ["alice: hello"]  # type: ignore[attr-defined]
    assert [line.text for line in bob.inbox()] == ["hello"]

    bob.send_chat_message("alice", "hi alice")
    network.deliver_all()
    assert alice.display.lines == ["bob: hi alice"]  # type: ignore[attr-defined]


def test_confirmed_handshake_relays_three_rounds(
    alice_and_bob: tuple[ChatServer, ChatServer], network: LoopbackNetwork
) -> None:
    alice, bob = alice_and_bob
    alice.start_session("bob", ProtocolKind.X25519_CONFIRM)
    network.deliver_all()

    assert handshake_rounds(network) == [0, 1, 2]
    assert all(
        m.protocol_kind is ProtocolKind.X25519_CONFIRM
        for m in network.sent
        if isinstance(m, HandshakeMessage)
    )
    assert alice.sessions.find_sessions(bob.user)[0].is_active()
    assert bob.sessions.find_sessions(alice.user)[0].is_active()


def test_reply_stamps_session_time_of_new_session(
    alice_and_bob: tuple[ChatServer, ChatServer], network: LoopbackNetwork
) -> None:
    alice, bob = alice_and_bob
    alice.start_session("bob", ProtocolKind.X25519)
    network.deliver_all()

    round0, round1 = (m for m in network.sent if isinstance(m, HandshakeMessage))
    (alice_session,) = alice.sessions.find_sessions(bob.user)
    (bob_session,) = bob.sessions.find_sessions(alice.user)
    assert round0.session_time == alice_session.start_time
    assert round1.session_time == bob_session.start_time


def test_start_session_is_idempotent(
    alice_and_bob: tuple[ChatServer, ChatServer], network: LoopbackNetwork
) -> None:
    alice, bob = alice_and_bob
    assert alice.start_session("bob")
    assert not alice.start_session("bob")  # handshake still pending
    network.deliver_all()
    sent_before = len(network.sent)

    assert not alice.start_session("bob")
    assert len(network.sent) == sent_before
    assert len(alice.sessions.find_sessions(bob.user)) == 1
    assert len(bob.sessions.find_sessions(alice.user)) == 1


def test_chat_requires_session(
    alice_and_bob: tuple[ChatServer, ChatServer], network: LoopbackNetwork
) -> None:
    alice, _ = alice_and_bob
    with pytest.raises(NoSessionError):
        alice.send_chat_message("bob", "hello")
    assert network.sent == []


def test_chat_requires_established_session(
    alice_and_bob: tuple[ChatServer, ChatServer], network: LoopbackNetwork
) -> None:
    alice, bob = alice_and_bob
    alice.start_session("bob", ProtocolKind.X25519_CONFIRM)
    source_ip, _, data = network.queue.popleft()
    bob.handle_message(decode_message(data), source_ip)  # answer round 0 only
    network.queue.clear()

    with pytest.raises(NoSessionError):
        bob.send_chat_message("alice", "too early")


def test_unknown_friend(alice_and_bob: tuple[ChatServer, ChatServer]) -> None:
    alice, _ = alice_and_bob
    with pytest.raises(UnknownFriendError):
        alice.start_session("mallory")
    with pytest.raises(UnknownFriendError):
        alice.send_chat_message("mallory", "hi")


@pytest.mark.parametrize("kind", list(ProtocolKind))
def test_self_talk_creates_two_sessions(
    loner: ChatServer, network: LoopbackNetwork, kind: ProtocolKind
) -> None:
    assert loner.start_session("me", kind)
    network.deliver_all()

    sessions = loner.sessions.find_sessions(loner.user)
    assert len(sessions) == 2  # noqa: PLR2004
    assert all(s.is_active() for s in sessions)
    assert sessions[0].start_time != sessions[1].start_time
    assert not loner.start_session("me", kind)


def test_self_talk_chat_loops_back(loner: ChatServer, network: LoopbackNetwork) -> None:
    loner.start_session("me")
    network.deliver_all()
    first, second = loner.sessions.find_sessions(loner.user)

    loner.send_chat_message("me", "note to self")
    looped = network.sent[-1]
    assert isinstance(looped, ChatMessage)
    assert looped.session_time == first.start_time
    assert loner.sessions.resolve_chat(looped, loner.user) is second

    network.deliver_all()
    assert loner.display.lines == ["me: note to self"]  # type: ignore[attr-defined]


def test_handshake_from_non_friend_is_refused(
    make_node: Callable[..., ChatServer], network: LoopbackNetwork
) -> None:
    alice = make_node("alice", "aa:aa:aa:aa:aa:01", "10.0.0.1")
    stranger = Identity(mac="ee:ee:ee:ee:ee:05", username="eve")
    message = HandshakeMessage.addressed(
        stranger,
        alice.user,
        round=0,
        protocol_kind=ProtocolKind.X25519,
        secret=b"\x01" * 32,
    )
    with pytest.raises(ProtocolViolationError):
        alice.handle_message(message, "10.0.0.5")
    assert alice.sessions.find_sessions(stranger) == []
    assert network.sent == []


def test_protocol_error_is_surfaced(
    alice_and_bob: tuple[ChatServer, ChatServer], network: LoopbackNetwork
) -> None:
    alice, bob = alice_and_bob
    message = HandshakeMessage.addressed(
        alice.user,
        bob.user,
        round=0,
        protocol_kind=ProtocolKind.X25519,
        secret=b"not a key",
    )
    with pytest.raises(ProtocolViolationError):
        bob.handle_message(message, "10.0.0.1")
    assert network.sent == []


def test_misaddressed_message_is_discarded(
    alice_and_bob: tuple[ChatServer, ChatServer], network: LoopbackNetwork
) -> None:
    alice, bob = alice_and_bob
    message = HandshakeMessage.addressed(
        alice.user,
        Identity(mac="ff:ff:ff:ff:ff:06", username="someone-else"),
        round=0,
        protocol_kind=ProtocolKind.X25519,
        secret=b"\x01" * 32,
    )
    bob.handle_message(message, "10.0.0.1")
    assert bob.sessions.snapshot() == []
    assert network.sent == []


def test_chat_without_session_on_receiver(
    alice_and_bob: tuple[ChatServer, ChatServer],
) -> None:
    alice, bob = alice_and_bob
    message = ChatMessage.addressed(alice.user, bob.user, text=b"orphan")
    with pytest.raises(NoSessionError):
        bob.handle_message(message, "10.0.0.1")


def test_sender_address_is_refreshed(
    alice_and_bob: tuple[ChatServer, ChatServer], network: LoopbackNetwork
) -> None:
    alice, bob = alice_and_bob
    network.nodes["10.0.0.9"] = alice
    alice.transport.own_ip = "10.0.0.9"  # type: ignore[attr-defined]

    alice.start_session("bob")
    network.deliver_all()
    assert bob.directory.find_by_name("alice").ip == "10.0.0.9"  # type: ignore[union-attr]


class CompletingProtocol:
    """Finishes the handshake on its first message and carries a payload."""

    def __init__(self, kind: ProtocolKind) -> None:
        self.kind = kind
        self.active = False

    def new_session(self) -> bytes:
        return b"hello"

    def decrypt(self, data: bytes) -> list[bytes]:
        self.active = True
        return [b"welcome " + data]

    def encrypt(self, data: bytes) -> list[bytes]:
        return [data]

    def is_active(self) -> bool:
        return self.active

    def protocol_kind(self) -> ProtocolKind:
        return self.kind


def test_completing_message_also_delivers_payload(
    alice_and_bob: tuple[ChatServer, ChatServer], network: LoopbackNetwork
) -> None:
    alice, bob = alice_and_bob
    bob.sessions.protocol_factory = CompletingProtocol
    message = HandshakeMessage.addressed(
        alice.user,
        bob.user,
        round=0,
        protocol_kind=ProtocolKind.X25519,
        secret=b"aboard",
    )
    bob.handle_message(message, "10.0.0.1")

    assert len(bob.sessions.find_sessions(alice.user)) == 1
    assert bob.display.lines == ["alice: welcome aboard"]  # type: ignore[attr-defined]
    assert network.sent == []


def test_self_talk_chat_requires_both_sessions(
    loner: ChatServer, network: LoopbackNetwork
) -> None:
    loner.start_session("me", ProtocolKind.X25519)
    source_ip, _, data = network.queue.popleft()
    loner.handle_message(decode_message(data), source_ip)  # round 1 is lost
    network.queue.clear()

    (responder,) = loner.sessions.find_sessions(loner.user)
    assert responder.is_active()
    sent_before = len(network.sent)

    with pytest.raises(NoSessionError):
        loner.send_chat_message("me", "hi")
    assert len(network.sent) == sent_before
