import datetime
from types import SimpleNamespace

import pytest

from conftest import T0

from wghub.models.enums import PeerStatus
from wghub.services.activity import ActivityTracker
from wghub.services.liveness import LivenessTracker, classify_liveness
from wghub.tunnel.base import LiveSnapshot

ACTIVITY = 45.0
HANDSHAKE = 150.0


def _classify(activity_seen, handshake, now):
    return classify_liveness(activity_seen, handshake, now, ACTIVITY, HANDSHAKE)


def _peer(**kwargs):
    fields = dict(
        status="pending",
        last_seen=None,
        transfer_rx=0,
        transfer_tx=0,
        public_ip=None,
    )
    fields.update(kwargs)
    return SimpleNamespace(**fields)


# =============================================================================
# Activity map
# =============================================================================


def test_counter_increase_marks_activity():
    tracker = ActivityTracker()
    record = tracker.observe("k", 100, T0)
    assert record.last_seen == T0
    assert record.last_rx_bytes == 100


def test_unchanged_counter_keeps_last_seen():
    tracker = ActivityTracker()
    tracker.observe("k", 100, T0)
    record = tracker.observe("k", 100, T0 + 30)
    assert record.last_seen == T0


def test_zero_counter_is_not_activity():
    tracker = ActivityTracker()
    assert tracker.observe("k", 0, T0).last_seen is None


def test_counter_reset_is_new_baseline():
    tracker = ActivityTracker()
    tracker.observe("k", 5000, T0)
    record = tracker.observe("k", 200, T0 + 10)
    assert record.last_rx_bytes == 200
    assert record.last_seen == T0

    record = tracker.observe("k", 300, T0 + 20)
    assert record.last_seen == T0 + 20


def test_forget_drops_record():
    tracker = ActivityTracker()
    tracker.observe("k", 1, T0)
    tracker.forget("k")
    assert tracker.get("k") is None
    assert len(tracker) == 0


# =============================================================================
# Classification
# =============================================================================


def test_recent_activity_is_online():
    status, seen = _classify(T0, 0, T0 + 30)
    assert status is PeerStatus.ONLINE
    assert seen == T0


def test_stale_activity_without_handshake_is_offline():
    status, seen = _classify(T0, 0, T0 + 200)
    assert status is PeerStatus.OFFLINE
    assert seen == T0


def test_recent_handshake_is_online():
    status, seen = _classify(None, T0 - 100, T0)
    assert status is PeerStatus.ONLINE
    assert seen == T0 - 100


def test_old_handshake_is_offline():
    status, seen = _classify(None, T0 - 200, T0)
    assert status is PeerStatus.OFFLINE
    assert seen == T0 - 200


def test_never_seen_is_offline_without_timestamp():
    assert _classify(None, 0, T0) == (PeerStatus.OFFLINE, None)


def test_both_signals_prefer_the_most_recent():
    status, seen = _classify(T0 - 10, T0 - 5, T0)
    assert status is PeerStatus.ONLINE
    assert seen == T0 - 5


@pytest.mark.parametrize(
    "age,expected",
    [(44.9, PeerStatus.ONLINE), (45.0, PeerStatus.OFFLINE)],
)
def test_activity_window_boundary(age, expected):
    status, _ = _classify(T0, 0, T0 + age)
    assert status is expected


# =============================================================================
# Tracker
# =============================================================================


def test_traffic_then_silence_goes_offline():
    tracker = LivenessTracker(ActivityTracker(), ACTIVITY, HANDSHAKE)
    peer = _peer()

    tracker.observe(peer, LiveSnapshot("k", rx_bytes=0), T0 - 60)
    obs = tracker.observe(peer, LiveSnapshot("k", rx_bytes=1200), T0)
    assert obs.status is PeerStatus.ONLINE
    obs.apply_to(peer)

    obs = tracker.observe(peer, LiveSnapshot("k", rx_bytes=1200), T0 + 30)
    assert obs.status is PeerStatus.ONLINE

    obs = tracker.observe(peer, LiveSnapshot("k", rx_bytes=1200), T0 + 200)
    assert obs.status is PeerStatus.OFFLINE
    assert obs.last_seen == datetime.datetime.fromtimestamp(T0)


def test_observation_copies_counters_and_endpoint():
    tracker = LivenessTracker(ActivityTracker(), ACTIVITY, HANDSHAKE)
    snapshot = LiveSnapshot(
        "k",
        endpoint="198.51.100.7:5000",
        latest_handshake=int(T0 - 20),
        rx_bytes=10,
        tx_bytes=20,
    )
    obs = tracker.observe(_peer(), snapshot, T0)
    assert obs.transfer_rx == 10
    assert obs.transfer_tx == 20
    assert obs.public_ip == "198.51.100.7"


def test_last_seen_never_regresses():
    tracker = LivenessTracker(ActivityTracker(), ACTIVITY, HANDSHAKE)
    later = datetime.datetime.fromtimestamp(T0 + 500)
    peer = _peer(last_seen=later)
    obs = tracker.observe(peer, LiveSnapshot("k", latest_handshake=int(T0 - 300)), T0)
    assert obs.status is PeerStatus.OFFLINE
    assert obs.last_seen == later


def test_never_seen_pending_peer_stays_pending():
    tracker = LivenessTracker(ActivityTracker(), ACTIVITY, HANDSHAKE)
    obs = tracker.observe(_peer(), LiveSnapshot("k"), T0)
    assert obs.status is PeerStatus.PENDING


def test_observation_detects_changes():
    tracker = LivenessTracker(ActivityTracker(), ACTIVITY, HANDSHAKE)
    peer = _peer(status="online")
    obs = tracker.observe(peer, LiveSnapshot("k"), T0)
    assert obs.differs_from(peer)
    obs.apply_to(peer)
    assert not tracker.observe(peer, LiveSnapshot("k"), T0 + 1).differs_from(peer)
