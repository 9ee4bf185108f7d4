"""
Session storage and resolution for the chat node.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from peerchat.common.exceptions import NoSessionError
from peerchat.common.models import SessionInfo
from peerchat.protocols import create_protocol

if TYPE_CHECKING:
    from peerchat.common.interfaces import IChatProtocol
    from peerchat.common.models import (
        ChatMessage,
        HandshakeMessage,
        Identity,
        ProtocolKind,
    )

SELF_TALK_SESSIONS = 2


@dataclass
class Session:
    """Cryptographic conversation state with one peer."""

    peer: Identity
    protocol: IChatProtocol
    start_time: int
    lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    @property
    def protocol_kind(self) -> ProtocolKind:
        return self.protocol.protocol_kind()

    def is_active(self) -> bool:
        return self.protocol.is_active()

    def info(self) -> SessionInfo:
        return SessionInfo(
            peer=self.peer,
            protocol_kind=self.protocol_kind,
            start_time=self.start_time,
            active=self.is_active(),
        )


class SessionStore:
    """
    All sessions owned by one node.

    Sessions are kept in insertion order and never removed. A peer has at
    most one session, except the local user, who has two: one per direction
    of the conversation with itself. Every read and create goes through the
    store lock so that resolve-or-create is atomic across connection threads.
    """

    def __init__(
        self,
        protocol_factory: Callable[[ProtocolKind], IChatProtocol] = create_protocol,
    ):
        self.protocol_factory = protocol_factory
        self._sessions: list[Session] = []
        self._pending: dict[Identity, Session] = {}
        self._lock = threading.RLock()
        self._last_start_time = 0

    def _next_start_time(self) -> int:
        """Strictly increasing timestamp, so no two sessions share a start time."""
        now = max(time.time_ns(), self._last_start_time + 1)
        self._last_start_time = now
        return now

    def find_sessions(self, peer: Identity) -> list[Session]:
        """Sessions with a peer, in insertion order."""
        with self._lock:
            return [s for s in self._sessions if s.peer == peer]

    def create_session(
        self,
        peer: Identity,
        protocol_kind: ProtocolKind,
        session_time: int | None = None,
    ) -> Session:
        """Create a session with fresh protocol state and append it."""
        with self._lock:
            session = Session(
                peer=peer,
                protocol=self.protocol_factory(protocol_kind),
                start_time=session_time or self._next_start_time(),
            )
            self._sessions.append(session)
            return session

    def begin_session(self, peer: Identity, protocol: IChatProtocol) -> Session | None:
        """
        Register an initiator session until the peer's first reply arrives.

        Returns None if the peer already has a session or a pending handshake.
        """
        with self._lock:
            if self.has_pending(peer) or self.find_sessions(peer):
                return None
            session = Session(
                peer=peer, protocol=protocol, start_time=self._next_start_time()
            )
            self._pending[peer] = session
            return session

    def has_pending(self, peer: Identity) -> bool:
        with self._lock:
            return peer in self._pending

    def abandon_session(self, peer: Identity) -> None:
        """Forget a pending initiator session."""
        with self._lock:
            self._pending.pop(peer, None)

    def resolve_handshake(
        self, message: HandshakeMessage, local: Identity
    ) -> tuple[Session, bool]:
        """
        Select or create the session an inbound handshake message belongs to.

        Returns the session and whether it was created by this call.
        """
        peer = message.source
        is_self_talk = peer == local
        with self._lock:
            sessions = self.find_sessions(peer)
            n = len(sessions)
            if (is_self_talk and n != SELF_TALK_SESSIONS) or (
                not is_self_talk and n != 1
            ):
                return self._create_for_handshake(message), True
            if is_self_talk:
                # Even rounds go to the responder, odd rounds to the initiator
                return sessions[message.round % 2], False
            return sessions[0], False

    def _create_for_handshake(self, message: HandshakeMessage) -> Session:
        peer = message.source
        pending = self._pending.get(peer)
        if (
            pending is not None
            and message.round > 0
            and pending.protocol_kind == message.protocol_kind
        ):
            del self._pending[peer]
            self._sessions.append(pending)
            return pending
        return self.create_session(peer, message.protocol_kind)

    def resolve_chat(self, message: ChatMessage, local: Identity) -> Session:
        """Select the session an inbound chat message belongs to. Never creates."""
        peer = message.source
        with self._lock:
            sessions = self.find_sessions(peer)
            if peer == local:
                if len(sessions) != SELF_TALK_SESSIONS:
                    msg = "Cannot talk to yourself without both sessions established"
                    raise NoSessionError(msg)
                # The sender stamped its own session; pick the other one
                if sessions[0].start_time == message.session_time:
                    return sessions[1]
                return sessions[0]
            if not sessions:
                msg = f"Cannot communicate with {peer} without an active session"
                raise NoSessionError(msg)
            return sessions[0]

    def snapshot(self) -> list[SessionInfo]:
        with self._lock:
            return [s.info() for s in self._sessions]
