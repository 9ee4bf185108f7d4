"""
Configuration settings for the chat node.
"""

from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path

from peerchat.common.models import ProtocolKind


def _default_mac() -> str:
    """Format the hardware address reported by the host as aa:bb:cc:dd:ee:ff."""
    node = uuid.getnode()
    return ":".join(f"{(node >> shift) & 0xFF:02x}" for shift in range(40, -8, -8))


class Config:
    """Central configuration class for all node settings."""

    def __init__(self) -> None:
        # Local identity (login and address discovery happen outside the node)
        self.USERNAME: str = os.getenv(
            "PEERCHAT_USERNAME", os.getenv("USER", "anonymous")
        )
        self.MAC: str = os.getenv("PEERCHAT_MAC", _default_mac())

        # Peer transport
        self.HOST: str = os.getenv("PEERCHAT_HOST", "127.0.0.1")
        self.PORT: int = int(os.getenv("PEERCHAT_PORT", "4242"))
        self.MAX_MESSAGE_LEN: int = 64 * 1024  # one message per connection

        # Control API
        self.CONTROL_HOST: str = os.getenv("PEERCHAT_CONTROL_HOST", "127.0.0.1")
        self.CONTROL_PORT: int = int(os.getenv("PEERCHAT_CONTROL_PORT", "8042"))
        self.CONTROL_URL: str = f"http://{self.CONTROL_HOST}:{self.CONTROL_PORT}"

        # Sessions
        self.DEFAULT_PROTOCOL: ProtocolKind = ProtocolKind(
            os.getenv("PEERCHAT_PROTOCOL", ProtocolKind.X25519_CONFIRM.value)
        )
        self.INBOX_SIZE: int = 100

        # File paths
        self.DATA_DIR: Path = Path(
            os.getenv("PEERCHAT_DATA_DIR", str(Path.home() / ".peerchat"))
        )
        self.CONTACTS_FILE_PATH: Path = self.DATA_DIR / "contacts.json"

        # Logging
        self.LOG_LEVEL: int = getattr(
            logging, os.getenv("PEERCHAT_LOG_LEVEL", "INFO").upper(), logging.INFO
        )
        self.LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        self.LOG_FILE: str | None = os.getenv("PEERCHAT_LOG_FILE")
