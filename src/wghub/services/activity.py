"""
Per-peer traffic activity, observed from the receive counter.

WireGuard only renews handshakes about every two minutes, but a peer with
persistent keepalive sends traffic every 15-25 seconds. Watching the rx
counter advance therefore detects a live peer much sooner than handshakes
alone. The records live only in process memory; after a restart every peer
starts from a fresh baseline.
"""

from dataclasses import dataclass, replace

from wghub.utils.logger import get_logger
from wghub.utils.rwlock import RWLock

logger = get_logger(__name__)


@dataclass
class ActivityRecord:
    """Last observed receive counter and when it last advanced."""

    last_rx_bytes: int = 0
    last_seen: float | None = None  # Unix seconds


class ActivityTracker:
    """Thread-safe public key -> ActivityRecord map."""

    def __init__(self):
        self._records: dict[str, ActivityRecord] = {}
        self._lock = RWLock()

    def get(self, public_key: str) -> ActivityRecord | None:
        with self._lock.read_locked():
            record = self._records.get(public_key)
            return replace(record) if record else None

    def observe(self, public_key: str, rx_bytes: int, now: float) -> ActivityRecord:
        """
        Record a receive counter reading.

        The counter advancing marks activity at `now`. A counter below the
        cached one means the interface was reset; the new reading becomes the
        baseline without counting as activity.

        Returns:
            A copy of the updated record.
        """
        with self._lock.write_locked():
            record = self._records.get(public_key)
            if record is None:
                record = self._records[public_key] = ActivityRecord()

            if rx_bytes > record.last_rx_bytes:
                record.last_rx_bytes = rx_bytes
                record.last_seen = now
            elif rx_bytes < record.last_rx_bytes:
                logger.debug(
                    f"rx counter of {public_key[:8]}... went back "
                    f"({record.last_rx_bytes} -> {rx_bytes}), new baseline"
                )
                record.last_rx_bytes = rx_bytes

            return replace(record)

    def forget(self, public_key: str) -> None:
        with self._lock.write_locked():
            self._records.pop(public_key, None)

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._records)
