"""
wghub unified CLI entry point.

Usage:
    wghub [OPTIONS] COMMAND [ARGS]...

Commands:
    init      Initialize the database and the admin network
    daemon    Run startup and periodic reconciliation
    sync      Reconcile stored and live peers now
    stats     Peer statistics per network
    network   Network management
    peer      Peer management
    version   Show version
"""

import asyncio
from typing import Annotated

import typer

from wghub import __version__
from wghub.background.reconcile import start_background_tasks
from wghub.cli.commands import network, peer
from wghub.cli.formatters.network import format_reconcile_reports, format_stats
from wghub.cli.output import console, print_error, print_success
from wghub.cli.state import get_context
from wghub.config import config
from wghub.exceptions import WgHubError
from wghub.models.enums import LogLevel
from wghub.services.networks import bootstrap_admin_network
from wghub.services.peers import stats_overview
from wghub.services.reconciler import PeerReconciler
from wghub.utils.logger import configure_logging, get_logger

logger = get_logger(__name__)

app = typer.Typer(
    name="wghub",
    help="Hub-and-spoke WireGuard control plane",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Register command groups
app.add_typer(network.app, name="network", help="Network management")
app.add_typer(peer.app, name="peer", help="Peer management")


@app.callback()
def main(
    config_file: Annotated[
        str | None,
        typer.Option(
            "--config", "-c", help="Python config file", envvar="WGHUB_CONFIG"
        ),
    ] = None,
    db_file: Annotated[
        str | None,
        typer.Option("--db", help="SQLite database path"),
    ] = None,
    log_level: Annotated[
        LogLevel | None,
        typer.Option("--log-level", help="Logging verbosity"),
    ] = None,
):
    """
    wghub control plane CLI.

    Manage networks and peers and keep the live WireGuard interfaces in sync.
    """
    try:
        config.reload(config_file)
    except (FileNotFoundError, ValueError) as e:
        print_error(str(e))
        raise typer.Exit(1)
    if db_file:
        config.DB_FILE = db_file
    if log_level:
        config.LOG_LEVEL = log_level
    configure_logging(config.LOG_LEVEL, config.LOG_FILE)


@app.command("init")
def init(
    cidr: Annotated[
        str | None,
        typer.Option("--cidr", help="Admin network block (default: ADMIN_CIDR)"),
    ] = None,
):
    """Create the database and bootstrap the admin network."""
    try:
        network = bootstrap_admin_network(get_context(), cidr)
    except WgHubError as e:
        print_error(str(e))
        raise typer.Exit(1)
    print_success(
        f"Admin network {network.cidr} on {network.interface_name} "
        f"({network.hub_endpoint})"
    )


@app.command("sync")
def sync(
    network_id: Annotated[
        str | None,
        typer.Argument(help="Network ID (default: all networks)"),
    ] = None,
):
    """Reconcile stored peers with the live interfaces."""
    reconciler = PeerReconciler(get_context())
    try:
        if network_id:
            reports = [reconciler.reconcile_network(network_id)]
        else:
            reports = reconciler.reconcile_all()
    except WgHubError as e:
        print_error(str(e))
        raise typer.Exit(1)

    console.print(format_reconcile_reports(reports))
    if any(r.error or r.pushed.failed for r in reports):
        raise typer.Exit(1)


@app.command("stats")
def stats():
    """Show peer status counts and traffic per network."""
    try:
        overview = stats_overview(get_context())
    except WgHubError as e:
        print_error(str(e))
        raise typer.Exit(1)
    console.print(format_stats(overview))


@app.command("daemon")
def daemon():
    """
    Reconcile once after startup, then periodically until interrupted.

    With RECONCILE_INTERVAL_SECONDS = 0 the daemon exits after the startup pass.
    """
    ctx = get_context()

    async def _serve():
        tasks = start_background_tasks(ctx)
        await asyncio.gather(*tasks)

    logger.info("wghub daemon starting")
    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        logger.info("wghub daemon stopped")


@app.command("version")
def version():
    """Show version."""
    console.print(f"wghub {__version__}")


if __name__ == "__main__":
    app()
