"""Peer tables and panels."""

from rich.panel import Panel
from rich.table import Table

from wghub.cli.output import format_bytes, format_status


def format_peer_table(peers: list[dict]) -> Table:
    table = Table(title="Peers")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("IP")
    table.add_column("Status")
    table.add_column("Last Seen")
    table.add_column("Endpoint")
    table.add_column("RX", justify="right")
    table.add_column("TX", justify="right")
    table.add_column("Expires")

    for p in peers:
        table.add_row(
            p["id"][:8],
            p["name"],
            p["virtual_ip"],
            format_status(p["status"]),
            p["last_seen"] or "-",
            p["public_ip"] or "-",
            format_bytes(p["transfer_rx"]),
            format_bytes(p["transfer_tx"]),
            p["expires_at"] or "-",
        )
    return table


def format_peer_detail(peer: dict, private_key: str | None = None) -> Panel:
    info = peer.get("node_info") or {}
    labels = peer.get("labels") or {}
    lines = [
        f"[bold]ID:[/bold] {peer['id']}",
        f"[bold]Network:[/bold] {peer['network_id']}",
        f"[bold]Address:[/bold] {peer['virtual_ip']}",
        f"[bold]Status:[/bold] {format_status(peer['status'])}",
        f"[bold]Public key:[/bold] {peer['public_key'] or '-'}",
        f"[bold]Last seen:[/bold] {peer['last_seen'] or '-'}",
        f"[bold]Endpoint:[/bold] {peer['public_ip'] or '-'}",
        f"[bold]Traffic:[/bold] rx {format_bytes(peer['transfer_rx'])}, "
        f"tx {format_bytes(peer['transfer_tx'])}",
        f"[bold]Expires:[/bold] {peer['expires_at'] or 'never'}",
        f"[bold]Node:[/bold] {info.get('hostname') or '-'} "
        f"({info.get('os') or '?'}/{info.get('arch') or '?'})",
    ]
    if labels:
        lines.append(
            "[bold]Labels:[/bold] " + ", ".join(f"{k}={v}" for k, v in labels.items())
        )
    if private_key:
        lines.append("")
        lines.append(f"[bold yellow]Private key (shown once):[/] {private_key}")
    return Panel("\n".join(lines), title=peer["name"], expand=False)
