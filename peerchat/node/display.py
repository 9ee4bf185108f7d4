"""
Console output for chat lines and notifications.
"""

from __future__ import annotations

import click


class ConsoleDisplay:
    """Prints lines for the local user on stdout."""

    def show(self, line: str) -> None:
        click.echo(line)
