"""
Signals and errors shared by protocol implementations.
"""

from __future__ import annotations

from peerchat.common.exceptions import ProtocolViolationError


class HandshakeStep(Exception):  # noqa: N818
    """
    Raised by decrypt when the handshake is still in progress.

    Not an error: each payload must be relayed to the peer as the next round.
    """

    def __init__(self, payloads: list[bytes]) -> None:
        super().__init__(f"handshake step with {len(payloads)} payload(s)")
        self.payloads = payloads


class ProtocolError(ProtocolViolationError):
    """Exception for invalid protocol input or state."""
