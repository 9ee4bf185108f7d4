"""
Custom exceptions for the chat node.
"""

from __future__ import annotations


class ChatError(Exception):
    """Base exception for chat node failures."""

    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedMessageError(ChatError):
    """Exception for messages that cannot be decoded or are incomplete."""

    def __init__(self, message: str) -> None:
        super().__init__(message, 400)


class ProtocolViolationError(ChatError):
    """Exception for messages that break the session protocol."""

    def __init__(self, message: str) -> None:
        super().__init__(message, 403)


class UnknownFriendError(ChatError):
    """Exception for lookups of friends or friend requests that do not exist."""

    def __init__(self, message: str) -> None:
        super().__init__(message, 404)


class NoSessionError(ChatError):
    """Exception for chat attempts without an established session."""

    def __init__(self, message: str) -> None:
        super().__init__(message, 409)


class ContactConflictError(ChatError):
    """Exception for display names that are already taken."""

    def __init__(self, message: str) -> None:
        super().__init__(message, 409)


class DeliveryError(ChatError):
    """Exception for failed outbound connections."""

    def __init__(self, message: str) -> None:
        super().__init__(message, 502)
