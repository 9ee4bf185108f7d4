"""
Protocol registry: maps a ProtocolKind to the class implementing it.
"""

from __future__ import annotations

from peerchat.common.interfaces import IChatProtocol
from peerchat.common.models import ProtocolKind

from .base import HandshakeStep, ProtocolError
from .ecdh import ConfirmedX25519Protocol, X25519Protocol

PROTOCOLS: dict[ProtocolKind, type[X25519Protocol]] = {
    ProtocolKind.X25519: X25519Protocol,
    ProtocolKind.X25519_CONFIRM: ConfirmedX25519Protocol,
}


def create_protocol(kind: ProtocolKind) -> IChatProtocol:
    """Build fresh protocol state for the given kind."""
    try:
        return PROTOCOLS[ProtocolKind(kind)]()
    except (KeyError, ValueError) as e:
        msg = f"unsupported protocol: {kind}"
        raise ProtocolError(msg) from e


__all__ = [
    "PROTOCOLS",
    "ConfirmedX25519Protocol",
    "HandshakeStep",
    "ProtocolError",
    "X25519Protocol",
    "create_protocol",
]
