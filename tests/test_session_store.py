from __future__ import annotations

import threading

import pytest

from peerchat.common.exceptions import NoSessionError
from peerchat.common.models import (
    ChatMessage,
    HandshakeMessage,
    Identity,
    ProtocolKind,
)
from peerchat.node.session_store import SessionStore

LOCAL = Identity(mac="aa:aa:aa:aa:aa:01", username="alice")
PEER = Identity(mac="bb:bb:bb:bb:bb:02", username="bob")


class StubProtocol:
    """Protocol stand-in that only records its kind."""

    def __init__(self, kind: ProtocolKind) -> None:
        self.kind = kind

    def new_session(self) -> bytes:
        return b"hello"

    def decrypt(self, data: bytes) -> list[bytes]:
        return [data]

    def encrypt(self, data: bytes) -> list[bytes]:
        return [data]

    def is_active(self) -> bool:
        return True

    def protocol_kind(self) -> ProtocolKind:
        return self.kind


@pytest.fixture
def store() -> SessionStore:
    return SessionStore(protocol_factory=StubProtocol)


def handshake(source: Identity, round_: int, session_time: int = 0) -> HandshakeMessage:
    return HandshakeMessage.addressed(
        source,
        LOCAL,
        round=round_,
        protocol_kind=ProtocolKind.X25519,
        session_time=session_time,
        secret=b"step",
    )


def chat(source: Identity, session_time: int) -> ChatMessage:
    return ChatMessage.addressed(source, LOCAL, session_time=session_time, text=b"x")


def test_find_sessions_keeps_insertion_order(store: SessionStore) -> None:
    first = store.create_session(PEER, ProtocolKind.X25519)
    second = store.create_session(PEER, ProtocolKind.X25519)
    store.create_session(LOCAL, ProtocolKind.X25519)
    assert store.find_sessions(PEER) == [first, second]
    assert first.start_time < second.start_time


def test_create_session_uses_given_time(store: SessionStore) -> None:
    session = store.create_session(PEER, ProtocolKind.X25519, session_time=42)
    assert session.start_time == 42  # noqa: PLR2004


def test_start_times_are_unique(store: SessionStore) -> None:
    times = {store.create_session(PEER, ProtocolKind.X25519).start_time for _ in range(50)}
    assert len(times) == 50  # noqa: PLR2004


def test_peer_handshake_creates_one_session_then_reuses(store: SessionStore) -> None:
    session, created = store.resolve_handshake(handshake(PEER, 0), LOCAL)
    assert created
    for round_ in (2, 4):
        again, created = store.resolve_handshake(handshake(PEER, round_), LOCAL)
        assert not created
        assert again is session
    assert len(store.find_sessions(PEER)) == 1


def test_self_talk_creates_two_sessions(store: SessionStore) -> None:
    first, created_first = store.resolve_handshake(handshake(LOCAL, 0), LOCAL)
    second, created_second = store.resolve_handshake(handshake(LOCAL, 1), LOCAL)
    assert created_first
    assert created_second
    assert first is not second
    assert store.find_sessions(LOCAL) == [first, second]


def test_self_talk_parity_selection(store: SessionStore) -> None:
    store.resolve_handshake(handshake(LOCAL, 0), LOCAL)
    store.resolve_handshake(handshake(LOCAL, 1), LOCAL)
    sessions = store.find_sessions(LOCAL)

    for round_ in range(2, 7):
        session, created = store.resolve_handshake(handshake(LOCAL, round_), LOCAL)
        assert not created
        assert session is sessions[round_ % 2]

    even, _ = store.resolve_handshake(handshake(LOCAL, 0), LOCAL)
    odd, _ = store.resolve_handshake(handshake(LOCAL, 1), LOCAL)
    assert even is not odd
    assert len(store.find_sessions(LOCAL)) == 2  # noqa: PLR2004


def test_pending_initiator_is_adopted_on_reply(store: SessionStore) -> None:
    protocol = StubProtocol(ProtocolKind.X25519)
    pending = store.begin_session(PEER, protocol)
    assert pending is not None
    assert store.find_sessions(PEER) == []

    session, created = store.resolve_handshake(handshake(PEER, 1), LOCAL)
    assert created
    assert session is pending
    assert session.protocol is protocol
    assert not store.has_pending(PEER)


def test_pending_initiator_is_not_adopted_for_round_zero(store: SessionStore) -> None:
    pending = store.begin_session(LOCAL, StubProtocol(ProtocolKind.X25519))

    responder, _ = store.resolve_handshake(handshake(LOCAL, 0), LOCAL)
    assert responder is not pending
    initiator, _ = store.resolve_handshake(handshake(LOCAL, 1), LOCAL)
    assert initiator is pending
    assert store.find_sessions(LOCAL) == [responder, pending]


def test_pending_with_other_protocol_is_not_adopted(store: SessionStore) -> None:
    pending = store.begin_session(PEER, StubProtocol(ProtocolKind.X25519_CONFIRM))
    session, _ = store.resolve_handshake(handshake(PEER, 1), LOCAL)
    assert session is not pending
    assert store.has_pending(PEER)


def test_begin_session_refuses_duplicates(store: SessionStore) -> None:
    assert store.begin_session(PEER, StubProtocol(ProtocolKind.X25519)) is not None
    assert store.begin_session(PEER, StubProtocol(ProtocolKind.X25519)) is None

    store.abandon_session(PEER)
    assert not store.has_pending(PEER)

    store.create_session(PEER, ProtocolKind.X25519)
    assert store.begin_session(PEER, StubProtocol(ProtocolKind.X25519)) is None


def test_chat_without_session_is_an_error(store: SessionStore) -> None:
    with pytest.raises(NoSessionError):
        store.resolve_chat(chat(PEER, 0), LOCAL)


def test_self_talk_chat_needs_both_sessions(store: SessionStore) -> None:
    store.resolve_handshake(handshake(LOCAL, 0), LOCAL)
    with pytest.raises(NoSessionError):
        store.resolve_chat(chat(LOCAL, 0), LOCAL)


def test_peer_chat_uses_the_only_session(store: SessionStore) -> None:
    session = store.create_session(PEER, ProtocolKind.X25519)
    assert store.resolve_chat(chat(PEER, 12345), LOCAL) is session


def test_self_talk_chat_selects_by_session_time(store: SessionStore) -> None:
    store.resolve_handshake(handshake(LOCAL, 0), LOCAL)
    store.resolve_handshake(handshake(LOCAL, 1), LOCAL)
    first, second = store.find_sessions(LOCAL)

    assert store.resolve_chat(chat(LOCAL, first.start_time), LOCAL) is second
    assert store.resolve_chat(chat(LOCAL, second.start_time), LOCAL) is first


def test_concurrent_handshakes_create_a_single_session(store: SessionStore) -> None:
    barrier = threading.Barrier(8)
    results = []

    def resolve() -> None:
        barrier.wait()
        results.append(store.resolve_handshake(handshake(PEER, 0), LOCAL))

    threads = [threading.Thread(target=resolve) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(store.find_sessions(PEER)) == 1
    assert sum(created for _, created in results) == 1


def test_snapshot(store: SessionStore) -> None:
    session = store.create_session(PEER, ProtocolKind.X25519)
    (info,) = store.snapshot()
    assert info.peer == PEER
    assert info.start_time == session.start_time
    assert info.active
