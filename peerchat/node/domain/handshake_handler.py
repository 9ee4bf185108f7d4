"""Handshake relay for the chat node.

Each inbound handshake message is fed to the protocol of the session it
resolves to. An intermediate step is answered with the next round and the
exchange ends there; a completed handshake falls through to chat delivery,
so a completing message may also carry the first payload.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from peerchat.common.models import HandshakeMessage
from peerchat.protocols import HandshakeStep

from .friend_handler import require_friend

if TYPE_CHECKING:
    from peerchat.common.interfaces import IContactDirectory
    from peerchat.common.models import Identity, Message
    from peerchat.node.session_store import Session, SessionStore

    from .chat_handler import ChatHandler

logger = logging.getLogger(__name__)


class HandshakeHandler:
    """Advances handshakes and relays intermediate steps back to the sender."""

    def __init__(
        self,
        user: Identity,
        sessions: SessionStore,
        directory: IContactDirectory,
        chat_handler: ChatHandler,
        send: Callable[[str, Message], None],
    ):
        self.user = user
        self.sessions = sessions
        self.directory = directory
        self.chat_handler = chat_handler
        self.send = send

    def handle(self, message: HandshakeMessage, source_ip: str) -> None:
        contact = require_friend(
            self.directory, message.source, source_ip, "handshake"
        )
        session, created = self.sessions.resolve_handshake(message, self.user)
        if created:
            logger.debug(
                "Created %s session with %s at round %s",
                message.protocol_kind.value,
                contact.display_name,
                message.round,
            )

        with session.lock:
            try:
                payloads = session.protocol.decrypt(message.secret)
            except HandshakeStep as step:
                replies = [
                    self._build_reply(message, session, created, payload)
                    for payload in step.payloads
                ]
            else:
                replies = None

        if replies is not None:
            for reply in replies:
                self.send(source_ip, reply)
            logger.debug(
                "Relayed handshake round %s to %s", message.round + 1, contact.display_name
            )
            return

        logger.info(
            "Session with %s established (%s)",
            contact.display_name,
            message.protocol_kind.value,
        )
        self.chat_handler.deliver(contact, session, payloads)

    def _build_reply(
        self,
        message: HandshakeMessage,
        session: Session,
        created: bool,  # noqa: FBT001
        payload: bytes,
    ) -> HandshakeMessage:
        """Wrap one step payload as the next round, addressed back to the sender."""
        return HandshakeMessage.addressed(
            self.user,
            message.source,
            round=message.round + 1,
            protocol_kind=message.protocol_kind,
            session_time=session.start_time if created else message.session_time,
            secret=payload,
        )
