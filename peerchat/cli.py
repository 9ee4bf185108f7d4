"""
Command-line interface for peerchat.
"""

from __future__ import annotations

import functools
import os
from typing import Any, Callable

import click
import requests

from peerchat.client.client import ControlClient, ControlError
from peerchat.common.config import Config
from peerchat.common.models import ProtocolKind


def _control_call(func: Callable[..., Any]) -> Callable[..., Any]:
    """Turn control API failures into click errors."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except ControlError as e:
            raise click.ClickException(f"{e} (HTTP {e.status_code})") from e
        except requests.ConnectionError as e:
            msg = "Cannot reach the node control API. Is 'peerchat serve' running?"
            raise click.ClickException(msg) from e

    return wrapper


@click.group()
@click.option(
    "--control-url",
    envvar="PEERCHAT_CONTROL_URL",
    default=None,
    help="Control API of the local node (default: from PEERCHAT_CONTROL_* env)",
)
@click.pass_context
def cli(ctx: click.Context, control_url: str | None) -> None:
    """peerchat: peer-to-peer encrypted chat"""
    ctx.obj = ControlClient(control_url)


@cli.command()
@click.option("--username", default=None, help="Local username")
@click.option("--mac", default=None, help="Local hardware address")
@click.option("--host", default=None, help="Address to listen on for peers")
@click.option("--port", default=None, type=int, help="Peer port (default: 4242)")
@click.option(
    "--control-port", default=None, type=int, help="Control API port (default: 8042)"
)
@click.option("--data-dir", default=None, help="Directory for the contact list")
def serve(  # noqa: PLR0913
    username: str | None,
    mac: str | None,
    host: str | None,
    port: int | None,
    control_port: int | None,
    data_dir: str | None,
) -> None:
    """Start the chat node"""
    # Set environment variables before building the config
    overrides = {
        "PEERCHAT_USERNAME": username,
        "PEERCHAT_MAC": mac,
        "PEERCHAT_HOST": host,
        "PEERCHAT_PORT": port,
        "PEERCHAT_CONTROL_PORT": control_port,
        "PEERCHAT_DATA_DIR": data_dir,
    }
    for name, value in overrides.items():
        if value:
            os.environ[name] = str(value)

    from peerchat.node import start_node  # noqa: PLC0415

    start_node(Config())


@cli.command()
@click.pass_obj
@_control_call
def status(client: ControlClient) -> None:
    """Show the local node identity"""
    health = client.health()
    user = health["user"]
    click.echo(f"{user['username']} ({user['mac']}) listening on port {health['port']}")


@cli.command()
@click.pass_obj
@_control_call
def sessions(client: ControlClient) -> None:
    """List sessions"""
    rows = client.sessions()
    if not rows:
        click.echo("No sessions")
    for row in rows:
        state = "active" if row["active"] else "handshaking"
        peer = row["peer"]
        click.echo(
            f"{peer['username']} ({peer['mac']}) {row['protocol_kind']} {state}"
        )


@cli.command()
@click.pass_obj
@_control_call
def friends(client: ControlClient) -> None:
    """List friends"""
    for contact in client.friends():
        click.echo(
            f"{contact['display_name']}: {contact['username']} "
            f"({contact['mac']}) at {contact['ip']}"
        )


@cli.command("add-friend")
@click.argument("ip")
@click.argument("mac")
@click.argument("username")
@click.argument("display_name")
@click.pass_obj
@_control_call
def add_friend(
    client: ControlClient, ip: str, mac: str, username: str, display_name: str
) -> None:
    """Send a friend request"""
    client.add_friend(ip, mac, username, display_name)
    click.echo(f"Friend request sent to {display_name}")


@cli.command("requests")
@click.pass_obj
@_control_call
def friend_requests(client: ControlClient) -> None:
    """List pending friend requests"""
    pending = client.friend_requests()
    if not pending:
        click.echo("No pending friend requests")
    for request in pending:
        identity = request["identity"]
        click.echo(
            f"{request['request_id']}: {identity['username']} "
            f"({identity['mac']}) at {request['ip']}"
        )


@cli.command()
@click.argument("request_id")
@click.argument("display_name")
@click.pass_obj
@_control_call
def approve(client: ControlClient, request_id: str, display_name: str) -> None:
    """Accept a friend request"""
    client.approve(request_id, display_name)
    click.echo(f"{display_name} is now a friend")


@cli.command()
@click.argument("request_id")
@click.pass_obj
@_control_call
def reject(client: ControlClient, request_id: str) -> None:
    """Reject a friend request"""
    client.reject(request_id)
    click.echo("Friend request rejected")


@cli.command("start-session")
@click.argument("peer")
@click.option(
    "--protocol",
    type=click.Choice([kind.value for kind in ProtocolKind]),
    default=None,
    help="Handshake protocol (default: node setting)",
)
@click.pass_obj
@_control_call
def start_session(client: ControlClient, peer: str, protocol: str | None) -> None:
    """Start an encrypted session with a friend"""
    kind = ProtocolKind(protocol) if protocol else None
    if client.start_session(peer, kind):
        click.echo(f"Handshake with {peer} started")
    else:
        click.echo(f"Session with {peer} already exists")


@cli.command()
@click.argument("peer")
@click.argument("text", nargs=-1, required=True)
@click.pass_obj
@_control_call
def send(client: ControlClient, peer: str, text: tuple[str, ...]) -> None:
    """Send a chat message to a friend"""
    client.send(peer, " ".join(text))


@cli.command()
@click.pass_obj
@_control_call
def inbox(client: ControlClient) -> None:
    """Show received chat messages"""
    for line in client.inbox():
        click.echo(f"{line['sender']}: {line['text']}")


if __name__ == "__main__":
    cli()
