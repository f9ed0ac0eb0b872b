"""
Parser for `wg show <interface> dump` output.

The first line describes the interface itself (private key, public key,
listen port, fwmark) and every following line describes one peer:

    public-key  preshared-key  endpoint  allowed-ips  latest-handshake
    transfer-rx  transfer-tx  persistent-keepalive

Lines with fewer than 8 fields, including the interface line, are skipped.
Counters that do not parse read as 0.
"""

from wghub.tunnel.base import LiveSnapshot

PEER_FIELDS = 8


def _to_int(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0


def parse_dump_line(line: str) -> LiveSnapshot | None:
    """Parse one peer line, or return None for anything else."""
    fields = line.split()
    if len(fields) < PEER_FIELDS:
        return None

    public_key, _psk, endpoint, allowed, handshake, rx, tx, keepalive = fields[
        :PEER_FIELDS
    ]
    allowed_ips = [] if allowed == "(none)" else [a for a in allowed.split(",") if a]
    return LiveSnapshot(
        public_key=public_key,
        endpoint=None if endpoint == "(none)" else endpoint,
        allowed_ips=allowed_ips,
        latest_handshake=_to_int(handshake),
        rx_bytes=_to_int(rx),
        tx_bytes=_to_int(tx),
        keepalive=None if keepalive == "off" else (_to_int(keepalive) or None),
    )


def parse_dump(output: str) -> dict[str, LiveSnapshot]:
    """Parse full dump output into snapshots keyed by public key."""
    peers: dict[str, LiveSnapshot] = {}
    for line in output.splitlines():
        snapshot = parse_dump_line(line)
        if snapshot is not None:
            peers[snapshot.public_key] = snapshot
    return peers
