"""
Pydantic models for wire messages and control API payloads.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    TypeAdapter,
)


def _bytes_from_hex(value: Any) -> Any:
    if isinstance(value, str):
        return bytes.fromhex(value)
    return value


# Raw bytes in Python, hex strings on the wire.
HexBytes = Annotated[
    bytes,
    BeforeValidator(_bytes_from_hex),
    PlainSerializer(lambda value: value.hex(), return_type=str, when_used="json"),
]


class ProtocolKind(str, Enum):
    X25519 = "x25519"
    X25519_CONFIRM = "x25519-confirm"


class Identity(BaseModel):
    """A peer: hardware address plus username. IP is routing, not identity."""

    model_config = ConfigDict(frozen=True)

    mac: str = Field(min_length=1)
    username: str = Field(min_length=1)

    def __str__(self) -> str:
        return f"{self.username}@{self.mac}"


class BaseMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_mac: str = Field(min_length=1)
    source_username: str = Field(min_length=1)
    dest_mac: str = Field(min_length=1)
    dest_username: str = Field(min_length=1)

    @property
    def source(self) -> Identity:
        return Identity(mac=self.source_mac, username=self.source_username)

    @property
    def destination(self) -> Identity:
        return Identity(mac=self.dest_mac, username=self.dest_username)

    @classmethod
    def addressed(cls, source: Identity, destination: Identity, **fields: Any) -> Any:
        """Build a message of this variant from two identities."""
        return cls(
            source_mac=source.mac,
            source_username=source.username,
            dest_mac=destination.mac,
            dest_username=destination.username,
            **fields,
        )


class FriendMessage(BaseMessage):
    kind: Literal["friend"] = "friend"


class HandshakeMessage(BaseMessage):
    kind: Literal["handshake"] = "handshake"
    round: int = Field(ge=0)
    protocol_kind: ProtocolKind
    session_time: int = Field(default=0, ge=0)
    secret: HexBytes


class ChatMessage(BaseMessage):
    kind: Literal["chat"] = "chat"
    session_time: int = Field(default=0, ge=0)
    text: HexBytes


Message = Annotated[
    Union[FriendMessage, HandshakeMessage, ChatMessage],
    Field(discriminator="kind"),
]

MESSAGE_ADAPTER: TypeAdapter[Message] = TypeAdapter(Message)


class Contact(BaseModel):
    mac: str = Field(min_length=1)
    username: str = Field(min_length=1)
    display_name: str = Field(min_length=1)
    ip: str

    @property
    def identity(self) -> Identity:
        return Identity(mac=self.mac, username=self.username)


class PendingFriendRequest(BaseModel):
    request_id: str
    identity: Identity
    ip: str
    received_at: int


class ChatLine(BaseModel):
    sender: str
    text: str
    received_at: int


class SessionInfo(BaseModel):
    peer: Identity
    protocol_kind: ProtocolKind
    start_time: int
    active: bool


class StartSessionRequest(BaseModel):
    peer: str
    protocol: ProtocolKind | None = None


class ChatRequest(BaseModel):
    peer: str
    text: str


class FriendRequest(BaseModel):
    ip: str
    mac: str = Field(min_length=1)
    username: str = Field(min_length=1)
    display_name: str = Field(min_length=1)


class ApproveRequest(BaseModel):
    display_name: str = Field(min_length=1)
