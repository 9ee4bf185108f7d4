"""
Wire codec and TCP transport.

One JSON-encoded message per connection: the sender writes the message,
half-closes and closes; the receiver reads until EOF.
"""

from __future__ import annotations

import logging
import socket
from typing import TYPE_CHECKING

from pydantic import ValidationError

from peerchat.common.exceptions import DeliveryError, MalformedMessageError
from peerchat.common.models import MESSAGE_ADAPTER

if TYPE_CHECKING:
    from peerchat.common.models import Message

logger = logging.getLogger(__name__)

RECV_CHUNK = 4096


def encode_message(message: Message) -> bytes:
    return message.model_dump_json().encode("utf-8")


def decode_message(data: bytes) -> Message:
    """Decode one message, rejecting unknown variants and empty identities."""
    try:
        return MESSAGE_ADAPTER.validate_json(data)
    except ValidationError as e:
        msg = f"invalid message: {e.error_count()} validation error(s)"
        raise MalformedMessageError(msg) from e


def read_message(conn: socket.socket, max_len: int) -> Message:
    """Read a connection to EOF and decode the single message it carries."""
    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = conn.recv(RECV_CHUNK)
        if not chunk:
            break
        total += len(chunk)
        if total > max_len:
            msg = f"message exceeds {max_len} bytes"
            raise MalformedMessageError(msg)
        chunks.append(chunk)
    if not chunks:
        msg = "connection closed without a message"
        raise MalformedMessageError(msg)
    return decode_message(b"".join(chunks))


class TcpTransport:
    """Delivers each message over its own short-lived TCP connection."""

    def __init__(self, port: int, timeout: float | None = None):
        self.port = port
        self.timeout = timeout

    def send(self, ip: str, message: Message) -> None:
        data = encode_message(message)
        try:
            with socket.create_connection((ip, self.port), timeout=self.timeout) as sock:
                sock.sendall(data)
                sock.shutdown(socket.SHUT_WR)
        except OSError as e:
            msg = f"could not deliver {message.kind} message to {ip}:{self.port}: {e}"
            raise DeliveryError(msg) from e
        logger.debug("Sent %s message to %s:%s", message.kind, ip, self.port)
