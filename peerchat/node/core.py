"""
Chat node server: accept loop, per-connection dispatch and outbound operations.
"""

from __future__ import annotations

import logging
import socket
import threading
import time
from typing import TYPE_CHECKING

from peerchat.common.config import Config
from peerchat.common.exceptions import (
    MalformedMessageError,
    NoSessionError,
    ProtocolViolationError,
    UnknownFriendError,
)
from peerchat.common.logging_utils import setup_logger
from peerchat.common.models import ChatMessage, HandshakeMessage, Identity
from peerchat.protocols import create_protocol

from .display import ConsoleDisplay
from .domain import ChatHandler, FriendHandler, FriendRequestQueue, HandshakeHandler
from .session_store import SELF_TALK_SESSIONS, SessionStore
from .transport import TcpTransport, read_message

if TYPE_CHECKING:
    from peerchat.common.interfaces import IContactDirectory, IDisplay, ITransport
    from peerchat.common.models import (
        ChatLine,
        Contact,
        Message,
        PendingFriendRequest,
        ProtocolKind,
        SessionInfo,
    )

LISTEN_BACKLOG = 128
ACCEPT_RETRY_DELAY = 0.1


class ChatServer:
    """
    A peer-to-peer chat node.

    Listens for one-message connections from peers and dials peers to
    deliver messages. Owns the local identity and every session the node
    takes part in.
    """

    def __init__(  # noqa: PLR0913
        self,
        username: str,
        mac: str,
        directory: IContactDirectory,
        display: IDisplay | None = None,
        transport: ITransport | None = None,
        host: str | None = None,
        port: int | None = None,
        default_protocol: ProtocolKind | None = None,
        max_message_len: int | None = None,
        inbox_size: int | None = None,
        log_level: int | None = None,
        config: Config | None = None,
    ):
        config = config or Config()
        self.user = Identity(mac=mac, username=username)
        self.directory = directory
        self.display = display or ConsoleDisplay()
        self.host = host or config.HOST
        self.port = port if port is not None else config.PORT
        self.transport = transport or TcpTransport(self.port)
        self.default_protocol = default_protocol or config.DEFAULT_PROTOCOL
        self.max_message_len = max_message_len or config.MAX_MESSAGE_LEN

        self.logger = logging.getLogger(__name__)
        setup_logger(
            logging.getLogger("peerchat"),
            log_level if log_level is not None else config.LOG_LEVEL,
        )

        self.sessions = SessionStore()
        self.friend_requests = FriendRequestQueue()
        self.chat_handler = ChatHandler(
            user=self.user,
            sessions=self.sessions,
            directory=self.directory,
            display=self.display,
            inbox_size=inbox_size or config.INBOX_SIZE,
        )
        self.handshake_handler = HandshakeHandler(
            user=self.user,
            sessions=self.sessions,
            directory=self.directory,
            chat_handler=self.chat_handler,
            send=self.send_message,
        )
        self.friend_handler = FriendHandler(
            user=self.user,
            directory=self.directory,
            requests=self.friend_requests,
            display=self.display,
            send=self.send_message,
        )
        self._handlers = {
            "friend": self.friend_handler.handle,
            "handshake": self.handshake_handler.handle,
            "chat": self.chat_handler.handle,
        }

        self.listener: socket.socket | None = None
        self._accept_thread: threading.Thread | None = None
        self._running = False

    # Lifecycle

    def start(self) -> None:
        """Bind the listening socket and start accepting connections."""
        self.logger.info("Launching chat node for %s", self.user)
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        listener.bind((self.host, self.port))
        listener.listen(LISTEN_BACKLOG)
        self.listener = listener
        self.port = listener.getsockname()[1]
        self._running = True
        self._accept_thread = threading.Thread(
            target=self._accept_loop, name="peerchat-accept", daemon=True
        )
        self._accept_thread.start()
        self.logger.info("Listening on %s:%s", self.host, self.port)

    def shutdown(self) -> None:
        """Stop accepting connections and close the listener."""
        self.logger.info("Shutting down chat node")
        self._running = False
        listener, self.listener = self.listener, None
        if listener is not None:
            try:
                listener.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass  # not connected on some platforms
            listener.close()
        if self._accept_thread is not None:
            self._accept_thread.join(timeout=1)
            self._accept_thread = None

    def _accept_loop(self) -> None:
        while self._running:
            listener = self.listener
            if listener is None:
                break
            try:
                conn, addr = listener.accept()
            except OSError as e:
                if self._running:
                    self.logger.debug("Accept failed: %s", e)
                    time.sleep(ACCEPT_RETRY_DELAY)
                continue
            threading.Thread(
                target=self.handle_connection, args=(conn, addr), daemon=True
            ).start()

    # Inbound

    def handle_connection(self, conn: socket.socket, addr: tuple[str, int]) -> None:
        """Read one message from a connection and handle it. Never raises."""
        source_ip = addr[0]
        try:
            with conn:
                message = read_message(conn, self.max_message_len)
            self.handle_message(message, source_ip)
        except MalformedMessageError as e:
            self.logger.warning("Dropped malformed message from %s: %s", source_ip, e)
        except ProtocolViolationError as e:
            self.logger.error("Protocol violation from %s: %s", source_ip, e)  # noqa: TRY400
        except NoSessionError as e:
            self.logger.warning("Dropped message from %s: %s", source_ip, e)
        except Exception:
            self.logger.exception("Failed to handle connection from %s", source_ip)

    def handle_message(self, message: Message, source_ip: str) -> None:
        """Dispatch a decoded message to the handler for its variant."""
        if message.destination != self.user:
            self.logger.warning(
                "Discarded %s message for %s, this node is %s",
                message.kind,
                message.destination,
                self.user,
            )
            return
        self.logger.debug(
            "Received %s message from %s at %s", message.kind, message.source, source_ip
        )
        self._handlers[message.kind](message, source_ip)

    # Outbound

    def send_message(self, destination_ip: str, message: Message) -> None:
        """Deliver one message to a peer over a new connection."""
        self.transport.send(destination_ip, message)

    def start_session(
        self, display_name: str, protocol_kind: ProtocolKind | None = None
    ) -> bool:
        """
        Start a handshake with a friend.

        Returns False without sending anything if a session or a pending
        handshake with that friend already exists.
        """
        contact = self._require_contact(display_name)
        kind = protocol_kind or self.default_protocol
        protocol = create_protocol(kind)
        first_payload = protocol.new_session()

        session = self.sessions.begin_session(contact.identity, protocol)
        if session is None:
            self.logger.info("Session with %s already exists", display_name)
            return False

        message = HandshakeMessage.addressed(
            self.user,
            contact.identity,
            round=0,
            protocol_kind=kind,
            session_time=session.start_time,
            secret=first_payload,
        )
        try:
            self.send_message(contact.ip, message)
        except Exception:
            self.sessions.abandon_session(contact.identity)
            raise
        self.logger.info("Started %s handshake with %s", kind.value, display_name)
        return True

    def send_chat_message(self, display_name: str, text: str | bytes) -> None:
        """Encrypt text under the session with a friend and send it."""
        contact = self._require_contact(display_name)
        sessions = self.sessions.find_sessions(contact.identity)
        # Talking to yourself needs both directions established
        required = SELF_TALK_SESSIONS if contact.identity == self.user else 1
        if len(sessions) < required or not all(s.is_active() for s in sessions):
            msg = f"Cannot communicate with {display_name} without an active session"
            raise NoSessionError(msg)

        session = sessions[0]
        data = text.encode("utf-8") if isinstance(text, str) else text
        with session.lock:
            chunks = session.protocol.encrypt(data)
        for chunk in chunks:
            self.send_message(
                contact.ip,
                ChatMessage.addressed(
                    self.user,
                    contact.identity,
                    session_time=session.start_time,
                    text=chunk,
                ),
            )

    def send_friend_request(
        self, ip: str, mac: str, username: str, display_name: str
    ) -> Contact:
        return self.friend_handler.send_request(ip, mac, username, display_name)

    def approve_friend_request(self, request_id: str, display_name: str) -> Contact:
        return self.friend_handler.approve(request_id, display_name)

    def reject_friend_request(self, request_id: str) -> None:
        self.friend_handler.reject(request_id)

    # Queries

    def pending_friend_requests(self) -> list[PendingFriendRequest]:
        return self.friend_requests.all()

    def session_snapshot(self) -> list[SessionInfo]:
        return self.sessions.snapshot()

    def inbox(self) -> list[ChatLine]:
        return self.chat_handler.recent()

    def _require_contact(self, display_name: str) -> Contact:
        contact = self.directory.find_by_name(display_name)
        if contact is None:
            msg = f"No friend named {display_name}"
            raise UnknownFriendError(msg)
        return contact
