"""Network tables and panels."""

from rich.panel import Panel
from rich.table import Table

from wghub.cli.output import format_bytes, format_status
from wghub.models.requests import ReconcileReport, StatsOverview


def format_network_table(networks: list[dict]) -> Table:
    table = Table(title="Networks")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("CIDR")
    table.add_column("Interface")
    table.add_column("Endpoint")
    table.add_column("Hub Public Key", overflow="fold")

    for n in networks:
        table.add_row(
            n["id"],
            n["name"],
            n["cidr"],
            n.get("interface_name") or "-",
            n.get("hub_endpoint") or "-",
            n.get("hub_public_key") or "-",
        )
    return table


def format_stats(overview: StatsOverview) -> Table:
    table = Table(title="Peer Statistics")
    table.add_column("Network")
    table.add_column("Interface")
    table.add_column("Peers", justify="right")
    table.add_column(format_status("online"), justify="right")
    table.add_column(format_status("offline"), justify="right")
    table.add_column(format_status("pending"), justify="right")
    table.add_column(format_status("expired"), justify="right")
    table.add_column("RX", justify="right")
    table.add_column("TX", justify="right")

    for s in overview.networks:
        table.add_row(
            s.name,
            s.interface_name or "-",
            str(s.total_peers),
            str(s.online),
            str(s.offline),
            str(s.pending),
            str(s.expired),
            format_bytes(s.transfer_rx),
            format_bytes(s.transfer_tx),
        )

    table.add_section()
    table.add_row(
        "[bold]Total[/bold]",
        "",
        str(overview.total_peers),
        str(overview.online),
        str(overview.offline),
        str(overview.pending),
        str(overview.expired),
        format_bytes(overview.transfer_rx),
        format_bytes(overview.transfer_tx),
    )
    return table


def format_reconcile_reports(reports: list[ReconcileReport]) -> Table:
    table = Table(title="Reconciliation")
    table.add_column("Interface")
    table.add_column("Expired", justify="right")
    table.add_column("Imported", justify="right")
    table.add_column("Added", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Error")

    for r in reports:
        table.add_row(
            r.interface_name or r.network_id,
            str(r.expired),
            str(r.imported.imported),
            str(r.pushed.added),
            str(r.pushed.skipped),
            f"[red]{r.pushed.failed}[/red]" if r.pushed.failed else "0",
            f"[red]{r.error}[/red]" if r.error else "",
        )
    return table


def format_debug(info: dict) -> Panel:
    network = info["network"]
    lines = [
        f"[bold]Network:[/bold] {network['name']} ({network['cidr']})",
        f"[bold]Interface:[/bold] {network.get('interface_name') or '-'}",
        f"[bold]Control registered:[/bold] {info['control_registered']}",
    ]
    if info["live_error"]:
        lines.append(f"[bold red]Live error:[/bold red] {info['live_error']}")
    lines.append(f"[bold]Live peers:[/bold] {len(info['live_peers'])}")
    lines.append(f"[bold]Stored peers:[/bold] {len(info['stored_peers'])}")
    for key in info["live_only"]:
        lines.append(f"  [yellow]live only[/yellow]   {key}")
    for key in info["stored_only"]:
        lines.append(f"  [yellow]stored only[/yellow] {key}")
    return Panel("\n".join(lines), title="Network Debug", expand=False)
