"""Chat message handler for the chat node.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import TYPE_CHECKING

from peerchat.common.exceptions import NoSessionError, ProtocolViolationError
from peerchat.common.models import ChatLine
from peerchat.protocols import HandshakeStep

from .friend_handler import require_friend

if TYPE_CHECKING:
    from peerchat.common.interfaces import IContactDirectory, IDisplay
    from peerchat.common.models import ChatMessage, Contact, Identity
    from peerchat.node.session_store import Session, SessionStore

logger = logging.getLogger(__name__)


class ChatHandler:
    """Decrypts inbound chat messages and shows them to the local user."""

    def __init__(
        self,
        user: Identity,
        sessions: SessionStore,
        directory: IContactDirectory,
        display: IDisplay,
        inbox_size: int,
    ):
        self.user = user
        self.sessions = sessions
        self.directory = directory
        self.display = display
        self._inbox: deque[ChatLine] = deque(maxlen=inbox_size)
        self._inbox_lock = threading.Lock()

    def handle(self, message: ChatMessage, source_ip: str) -> None:
        contact = require_friend(self.directory, message.source, source_ip, "chat")
        session = self.sessions.resolve_chat(message, self.user)
        if not session.is_active():
            msg = f"Cannot communicate with {contact.display_name} without an active session"
            raise NoSessionError(msg)

        with session.lock:
            try:
                payloads = session.protocol.decrypt(message.text)
            except HandshakeStep as e:
                msg = "chat message advanced the handshake"
                raise ProtocolViolationError(msg) from e
        self.deliver(contact, session, payloads)

    def deliver(self, contact: Contact, session: Session, payloads: list[bytes]) -> None:
        """Show every non-empty decrypted payload from an active session."""
        if not session.is_active():
            return
        for payload in payloads:
            if not payload:
                continue
            text = payload.decode("utf-8", errors="replace")
            line = ChatLine(
                sender=contact.display_name, text=text, received_at=int(time.time())
            )
            with self._inbox_lock:
                self._inbox.append(line)
            self.display.show(f"{line.sender}: {line.text}")

    def recent(self) -> list[ChatLine]:
        with self._inbox_lock:
            return list(self._inbox)
