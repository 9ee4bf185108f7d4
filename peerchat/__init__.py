# peerchat: peer-to-peer encrypted chat node

from peerchat.client.client import ControlClient
from peerchat.common.models import (
    ChatMessage,
    FriendMessage,
    HandshakeMessage,
    Identity,
    ProtocolKind,
)
from peerchat.node.core import ChatServer

__all__ = [
    "ChatMessage",
    "ChatServer",
    "ControlClient",
    "FriendMessage",
    "HandshakeMessage",
    "Identity",
    "ProtocolKind",
]
