"""
Interfaces and protocols for dependency injection.
"""

from __future__ import annotations

from typing import Protocol

from peerchat.common.models import Contact, Identity, Message, ProtocolKind


class IChatProtocol(Protocol):
    """Protocol for the cryptographic session capability."""

    def new_session(self) -> bytes: ...

    def decrypt(self, data: bytes) -> list[bytes]: ...

    def encrypt(self, data: bytes) -> list[bytes]: ...

    def is_active(self) -> bool: ...

    def protocol_kind(self) -> ProtocolKind: ...


class IContactDirectory(Protocol):
    """Protocol for the friend directory."""

    def get(self, identity: Identity) -> Contact | None: ...

    def find_by_name(self, display_name: str) -> Contact | None: ...

    def add(self, contact: Contact) -> None: ...

    def update_ip(self, identity: Identity, ip: str) -> None: ...

    def is_friend(self, identity: Identity) -> bool: ...

    def all(self) -> list[Contact]: ...


class IDisplay(Protocol):
    """Protocol for showing lines to the local user."""

    def show(self, line: str) -> None: ...


class ITransport(Protocol):
    """Protocol for delivering one message to a peer address."""

    def send(self, ip: str, message: Message) -> None: ...
