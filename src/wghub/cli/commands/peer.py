"""Peer management commands."""

from datetime import datetime
from typing import Annotated

import typer

from wghub.cli.formatters.peer import format_peer_detail, format_peer_table
from wghub.cli.output import console, print_error, print_success
from wghub.cli.state import get_context
from wghub.exceptions import WgHubError
from wghub.models.requests import (
    NodeInfo,
    PeerCheckInRequest,
    PeerCreateRequest,
    PeerUpdateRequest,
)
from wghub.services import peers

app = typer.Typer(help="Peer management commands")


def _parse_labels(values: list[str] | None) -> dict[str, str]:
    labels = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            print_error(f"Invalid label '{item}', expected key=value")
            raise typer.Exit(1)
        labels[key.strip()] = value.strip()
    return labels


@app.command("list")
def list_peers(
    network_id: Annotated[str, typer.Argument(help="Network ID")],
    status: Annotated[
        str | None,
        typer.Option("--status", "-s", help="Filter by status"),
    ] = None,
):
    """List the peers of a network with their live status."""
    try:
        found = peers.list_peers(get_context(), network_id)
    except WgHubError as e:
        print_error(str(e))
        raise typer.Exit(1)

    items = [peers.peer_view(p) for p in found]
    if status:
        items = [p for p in items if p["status"] == status]
    if not items:
        console.print("[yellow]No peers found.[/yellow]")
        return
    console.print(format_peer_table(items))


@app.command("show")
def show_peer(
    peer_id: Annotated[str, typer.Argument(help="Peer ID")],
):
    """Show one peer in detail."""
    try:
        peer = peers.get_peer(get_context(), peer_id)
    except WgHubError as e:
        print_error(str(e))
        raise typer.Exit(1)
    console.print(format_peer_detail(peers.peer_view(peer)))


@app.command("add")
def add_peer(
    network_id: Annotated[str, typer.Argument(help="Network ID")],
    name: Annotated[str, typer.Option("--name", "-n", help="Peer name")],
    public_key: Annotated[
        str | None,
        typer.Option("--public-key", "-k", help="Use a client-generated public key"),
    ] = None,
    label: Annotated[
        list[str] | None,
        typer.Option("--label", "-l", help="Label as key=value (repeatable)"),
    ] = None,
    expires: Annotated[
        datetime | None,
        typer.Option("--expires", "-e", help="Expiration time"),
    ] = None,
):
    """Provision a peer with the next free address."""
    request = PeerCreateRequest(
        name=name,
        public_key=public_key,
        labels=_parse_labels(label),
        expires_at=expires,
    )
    try:
        result = peers.provision_peer(get_context(), network_id, request)
    except WgHubError as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(f"Provisioned peer [cyan]{result.peer.name}[/cyan]")
    console.print(format_peer_detail(peers.peer_view(result.peer), result.private_key))


@app.command("update")
def update_peer(
    peer_id: Annotated[str, typer.Argument(help="Peer ID")],
    name: Annotated[str | None, typer.Option("--name", "-n", help="New name")] = None,
    status: Annotated[
        str | None,
        typer.Option("--status", "-s", help="pending|online|offline|expired"),
    ] = None,
    expires: Annotated[
        datetime | None,
        typer.Option("--expires", "-e", help="New expiration time"),
    ] = None,
    clear_expiration: Annotated[
        bool,
        typer.Option("--clear-expiration", help="Remove the expiration"),
    ] = False,
):
    """Rename a peer, change its expiration or set its status."""
    request = PeerUpdateRequest(
        name=name,
        status=status,
        expires_at=expires,
        clear_expiration=clear_expiration,
    )
    try:
        peer = peers.update_peer(get_context(), peer_id, request)
    except WgHubError as e:
        print_error(str(e))
        raise typer.Exit(1)
    console.print(format_peer_detail(peers.peer_view(peer)))


@app.command("check-in")
def check_in(
    peer_id: Annotated[str, typer.Argument(help="Peer ID")],
    os_name: Annotated[str | None, typer.Option("--os", help="OS name")] = None,
    arch: Annotated[str | None, typer.Option("--arch", help="Architecture")] = None,
    hostname: Annotated[str | None, typer.Option("--hostname")] = None,
    label: Annotated[
        list[str] | None,
        typer.Option("--label", "-l", help="Label as key=value (repeatable)"),
    ] = None,
):
    """Record node info reported by a peer."""
    request = PeerCheckInRequest(
        node_info=NodeInfo(os=os_name, arch=arch, hostname=hostname),
        labels=_parse_labels(label),
    )
    try:
        peer = peers.check_in(get_context(), peer_id, request)
    except WgHubError as e:
        print_error(str(e))
        raise typer.Exit(1)
    print_success(f"Updated node info of {peer.name}")


@app.command("remove")
def remove_peer(
    peer_id: Annotated[str, typer.Argument(help="Peer ID")],
    yes: Annotated[
        bool, typer.Option("--yes", "-y", help="Skip confirmation")
    ] = False,
):
    """Remove a peer from its interface and delete it."""
    if not yes:
        typer.confirm(f"Delete peer {peer_id}?", abort=True)
    try:
        peers.delete_peer(get_context(), peer_id)
    except WgHubError as e:
        print_error(str(e))
        raise typer.Exit(1)
    print_success(f"Deleted peer {peer_id}")
