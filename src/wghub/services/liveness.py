"""
Peer liveness classification.

Two signals, checked in order:
    1. Activity: the rx counter advanced within ACTIVITY_WINDOW_SECONDS
       (fast detection, driven by keepalive traffic).
    2. Handshake: the latest handshake is within HANDSHAKE_WINDOW_SECONDS
       (slow fallback for peers without keepalive).
    Neither -> offline.

last_seen is the most recent qualifying timestamp when online, and the most
recent timestamp known at all when offline, so it never regresses to a
stale signal while a fresher one exists.
A pending peer that is on the interface but was never heard from stays
pending.

Expiration is decided before liveness and handled by the reconciler; a peer
missing from the live snapshot keeps its stored status.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import TYPE_CHECKING

from wghub.models.enums import PeerStatus
from wghub.services.activity import ActivityTracker

if TYPE_CHECKING:
    from wghub.db.peer import Peer
    from wghub.tunnel.base import LiveSnapshot


def classify_liveness(
    activity_seen: float | None,
    handshake: float | None,
    now: float,
    activity_window: float,
    handshake_window: float,
) -> tuple[PeerStatus, float | None]:
    """
    Classify a peer from its two signals.

    Args:
        activity_seen: When the rx counter last advanced (unix seconds).
        handshake: Latest handshake (unix seconds); 0 or None = never.
        now: Current time (unix seconds).

    Returns:
        (status, last_seen) where last_seen is None if nothing was ever seen.
    """
    handshake = handshake or None
    qualifying = []
    if activity_seen is not None and now - activity_seen < activity_window:
        qualifying.append(activity_seen)
    if handshake is not None and now - handshake < handshake_window:
        qualifying.append(handshake)

    if qualifying:
        return PeerStatus.ONLINE, max(qualifying)

    known = [t for t in (activity_seen, handshake) if t is not None]
    return PeerStatus.OFFLINE, max(known) if known else None


@dataclass
class Observation:
    """Liveness fields derived for one peer."""

    status: PeerStatus
    last_seen: datetime.datetime | None
    transfer_rx: int
    transfer_tx: int
    public_ip: str | None

    def differs_from(self, peer: Peer) -> bool:
        return (
            peer.status != self.status.value
            or peer.last_seen != self.last_seen
            or peer.transfer_rx != self.transfer_rx
            or peer.transfer_tx != self.transfer_tx
            or peer.public_ip != self.public_ip
        )

    def apply_to(self, peer: Peer) -> None:
        peer.status = self.status.value
        peer.last_seen = self.last_seen
        peer.transfer_rx = self.transfer_rx
        peer.transfer_tx = self.transfer_tx
        peer.public_ip = self.public_ip


class LivenessTracker:
    """Turns live snapshots into peer observations."""

    def __init__(
        self,
        activity: ActivityTracker,
        activity_window: float = 45.0,
        handshake_window: float = 150.0,
    ):
        self.activity = activity
        self.activity_window = activity_window
        self.handshake_window = handshake_window

    def observe(self, peer: Peer, snapshot: LiveSnapshot, now: float) -> Observation:
        """Classify a non-expired peer that is present on the live interface."""
        record = self.activity.observe(snapshot.public_key, snapshot.rx_bytes, now)
        status, seen_ts = classify_liveness(
            record.last_seen,
            snapshot.latest_handshake,
            now,
            self.activity_window,
            self.handshake_window,
        )

        last_seen = peer.last_seen
        if seen_ts is not None:
            seen = datetime.datetime.fromtimestamp(seen_ts)
            if last_seen is None or seen > last_seen:
                last_seen = seen

        # Present on the interface but never heard from
        if (
            status is PeerStatus.OFFLINE
            and last_seen is None
            and peer.status == PeerStatus.PENDING.value
        ):
            status = PeerStatus.PENDING

        return Observation(
            status=status,
            last_seen=last_seen,
            transfer_rx=snapshot.rx_bytes,
            transfer_tx=snapshot.tx_bytes,
            public_ip=snapshot.endpoint_host or peer.public_ip,
        )
