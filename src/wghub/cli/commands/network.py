"""Network management commands."""

from typing import Annotated

import typer

from wghub.cli.formatters.network import format_debug, format_network_table
from wghub.cli.output import console, print_error, print_success
from wghub.cli.state import get_context
from wghub.exceptions import WgHubError
from wghub.models.requests import NetworkCreateRequest
from wghub.services import networks, peers

app = typer.Typer(help="Network management commands")


@app.command("list")
def list_networks():
    """List all networks."""
    try:
        items = networks.list_networks(get_context())
    except WgHubError as e:
        print_error(str(e))
        raise typer.Exit(1)

    if not items:
        console.print("[yellow]No networks found.[/yellow]")
        return
    console.print(format_network_table([n.to_dict() for n in items]))


@app.command("create")
def create_network(
    name: Annotated[str, typer.Argument(help="Network name")],
    cidr: Annotated[str, typer.Argument(help="Address block, e.g. 10.20.0.0/24")],
):
    """Create a network with its own WireGuard interface."""
    try:
        request = NetworkCreateRequest(name=name, cidr=cidr)
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(1)

    try:
        network = networks.create_network(get_context(), request)
    except WgHubError as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(
        f"Created network [cyan]{network.name}[/cyan] ({network.cidr}) "
        f"on {network.interface_name}, endpoint {network.hub_endpoint}"
    )
    console.print(f"ID: {network.id}")


@app.command("delete")
def delete_network(
    network_id: Annotated[str, typer.Argument(help="Network ID")],
    yes: Annotated[
        bool, typer.Option("--yes", "-y", help="Skip confirmation")
    ] = False,
):
    """Delete a network, its interface and all of its peers."""
    if not yes:
        typer.confirm(f"Delete network {network_id} and all of its peers?", abort=True)
    try:
        networks.delete_network(get_context(), network_id)
    except WgHubError as e:
        print_error(str(e))
        raise typer.Exit(1)
    print_success(f"Deleted network {network_id}")


@app.command("debug")
def debug_network(
    network_id: Annotated[str, typer.Argument(help="Network ID")],
):
    """Compare live interface peers with stored peers."""
    try:
        info = peers.debug_network(get_context(), network_id)
    except WgHubError as e:
        print_error(str(e))
        raise typer.Exit(1)
    console.print(format_debug(info))
