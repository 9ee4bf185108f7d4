"""
Data persistence utilities.
"""

from __future__ import annotations

import json
from pathlib import Path  # noqa: TC003

from peerchat.common.models import Contact


class DataPersistence:
    """Handles loading and saving persistent data."""

    @staticmethod
    def load_contacts(file_path: Path) -> list[Contact]:
        """Load contacts from file."""
        try:
            with file_path.open() as f:
                return [Contact.model_validate(item) for item in json.load(f)]
        except (FileNotFoundError, json.JSONDecodeError):
            return []

    @staticmethod
    def save_contacts(file_path: Path, contacts: list[Contact]) -> None:
        """Save contacts to file."""
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with file_path.open("w") as f:
            json.dump([c.model_dump() for c in contacts], f, indent=2)
