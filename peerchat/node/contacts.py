"""
Friend directory for the chat node.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from peerchat.common.exceptions import ContactConflictError

from .persistence import DataPersistence

if TYPE_CHECKING:
    from pathlib import Path

    from peerchat.common.models import Contact, Identity

logger = logging.getLogger(__name__)


class ContactDirectory:
    """Thread-safe contact list, saved to a JSON file when a path is given."""

    def __init__(self, file_path: Path | None = None):
        self.file_path = file_path
        self._lock = threading.Lock()
        self._contacts: dict[Identity, Contact] = {}
        if file_path is not None:
            for contact in DataPersistence.load_contacts(file_path):
                self._contacts[contact.identity] = contact

    def get(self, identity: Identity) -> Contact | None:
        with self._lock:
            return self._contacts.get(identity)

    def find_by_name(self, display_name: str) -> Contact | None:
        with self._lock:
            for contact in self._contacts.values():
                if contact.display_name == display_name:
                    return contact
            return None

    def is_friend(self, identity: Identity) -> bool:
        with self._lock:
            return identity in self._contacts

    def all(self) -> list[Contact]:
        with self._lock:
            return list(self._contacts.values())

    def add(self, contact: Contact) -> None:
        """Add or replace a contact. Display names must stay unique."""
        with self._lock:
            for existing in self._contacts.values():
                if (
                    existing.display_name == contact.display_name
                    and existing.identity != contact.identity
                ):
                    msg = f"display name already in use: {contact.display_name}"
                    raise ContactConflictError(msg)
            self._contacts[contact.identity] = contact
            self._save()
        logger.info("Added friend %s (%s)", contact.display_name, contact.identity)

    def update_ip(self, identity: Identity, ip: str) -> None:
        """Record the address a friend was last seen at."""
        with self._lock:
            contact = self._contacts.get(identity)
            if contact is None or contact.ip == ip:
                return
            self._contacts[identity] = contact.model_copy(update={"ip": ip})
            self._save()
        logger.debug("Friend %s moved to %s", identity, ip)

    def _save(self) -> None:
        if self.file_path is not None:
            DataPersistence.save_contacts(self.file_path, list(self._contacts.values()))
