import datetime

import pytest

from wghub.exceptions import (
    AddressSpaceExhausted,
    ControlError,
    InvalidRequestError,
    NotFound,
)
from wghub.models.enums import PeerStatus
from wghub.models.requests import (
    NetworkCreateRequest,
    NodeInfo,
    PeerCheckInRequest,
    PeerCreateRequest,
    PeerUpdateRequest,
)
from wghub.services import networks, peers


def _provision(ctx, network, name="laptop", **kwargs):
    return peers.provision_peer(ctx, network.id, PeerCreateRequest(name=name, **kwargs))


# =============================================================================
# Provisioning
# =============================================================================


def test_provision_allocates_and_pushes(ctx, network, control):
    result = _provision(ctx, network)

    assert result.peer.virtual_ip == "10.10.0.3"
    assert result.peer.status == PeerStatus.PENDING.value
    assert result.private_key == "priv-2"
    assert result.peer.public_key == "pub-priv-2"
    assert ("add", "pub-priv-2", ("10.10.0.3/32",)) in control.calls


def test_provision_uses_next_free_address(ctx, network):
    first = _provision(ctx, network, name="a")
    second = _provision(ctx, network, name="b")
    peers.delete_peer(ctx, first.peer.id)
    third = _provision(ctx, network, name="c")

    assert second.peer.virtual_ip == "10.10.0.4"
    assert third.peer.virtual_ip == "10.10.0.3"


def test_provision_with_client_key_returns_no_private_key(ctx, network):
    result = _provision(ctx, network, public_key="client-key")
    assert result.private_key is None
    assert result.peer.public_key == "client-key"


def test_provision_rejects_duplicate_client_key(ctx, network):
    _provision(ctx, network, name="a", public_key="client-key")
    with pytest.raises(InvalidRequestError):
        _provision(ctx, network, name="b", public_key="client-key")


def test_provision_in_full_network(ctx):
    tiny = networks.create_network(
        ctx, NetworkCreateRequest(name="tiny", cidr="10.99.0.0/29")
    )
    for i in range(4):
        _provision(ctx, tiny, name=f"p{i}")
    with pytest.raises(AddressSpaceExhausted):
        _provision(ctx, tiny, name="one-too-many")


def test_provision_surfaces_push_failure_after_storing(ctx, network, control, keygen):
    control.fail_add.add("pub-priv-2")
    with pytest.raises(ControlError):
        _provision(ctx, network)
    assert len(ctx.store.list_peers(network.id)) == 1


def test_provision_unknown_network(ctx):
    with pytest.raises(NotFound):
        peers.provision_peer(ctx, "missing", PeerCreateRequest(name="x"))


# =============================================================================
# Enriched views
# =============================================================================


def test_live_traffic_marks_online_and_persists(ctx, network, control, clock):
    peer = _provision(ctx, network).peer
    control.set_live(
        peer.public_key, ["10.10.0.3/32"], rx=500, tx=700, endpoint="198.51.100.4:3333"
    )

    [view] = peers.list_peers(ctx, network.id)

    assert view.status == PeerStatus.ONLINE.value
    stored = ctx.store.get_peer(peer.id)
    assert stored.status == PeerStatus.ONLINE.value
    assert stored.transfer_rx == 500
    assert stored.transfer_tx == 700
    assert stored.public_ip == "198.51.100.4"
    assert stored.last_seen == datetime.datetime.fromtimestamp(clock.now)


def test_silent_peer_goes_offline(ctx, network, control, clock):
    peer = _provision(ctx, network).peer
    control.set_live(peer.public_key, ["10.10.0.3/32"], rx=500)
    peers.list_peers(ctx, network.id)

    clock.advance(30)
    assert peers.get_peer(ctx, peer.id).status == PeerStatus.ONLINE.value

    clock.advance(170)
    assert peers.get_peer(ctx, peer.id).status == PeerStatus.OFFLINE.value


def test_peer_without_snapshot_keeps_status(ctx, network, control):
    peer = _provision(ctx, network).peer
    ctx.store.update_peer(peer.id, status=PeerStatus.ONLINE)
    control.peers.clear()

    assert peers.get_peer(ctx, peer.id).status == PeerStatus.ONLINE.value


def test_listing_failure_returns_stored_status(ctx, network, control):
    peer = _provision(ctx, network).peer
    control.fail_list = True
    assert peers.get_peer(ctx, peer.id).status == PeerStatus.PENDING.value


def test_expired_peer_is_marked_and_removed(ctx, network, control):
    past = ctx.now_datetime() - datetime.timedelta(minutes=1)
    peer = _provision(ctx, network).peer
    ctx.store.update_peer(peer.id, expires_at=past)

    view = peers.get_peer(ctx, peer.id)

    assert view.status == PeerStatus.EXPIRED.value
    assert peer.public_key not in control.peers
    assert ("remove", peer.public_key) in control.calls


def test_expired_peer_stays_expired_despite_live_traffic(ctx, network, control, clock):
    peer = _provision(ctx, network).peer
    control.set_live(
        peer.public_key, ["10.10.0.3/32"], handshake=ctx.now() - 5, rx=1_000
    )
    assert peers.get_peer(ctx, peer.id).status == PeerStatus.ONLINE.value

    ctx.store.update_peer(
        peer.id, expires_at=ctx.now_datetime() - datetime.timedelta(seconds=1)
    )
    clock.advance(10)
    control.set_live(
        peer.public_key, ["10.10.0.3/32"], handshake=ctx.now() - 1, rx=50_000
    )

    view = peers.get_peer(ctx, peer.id)

    assert view.status == PeerStatus.EXPIRED.value
    assert ("remove", peer.public_key) in control.calls
    assert peer.public_key not in control.peers
    assert ctx.store.get_peer(peer.id).status == PeerStatus.EXPIRED.value


def test_node_info_falls_back_to_labels(ctx, network):
    peer = _provision(
        ctx,
        network,
        labels={"os": "linux", "hostname": "box"},
        node_info=NodeInfo(arch="arm64", hostname="reported"),
    ).peer
    info = peers.peer_view(peers.get_peer(ctx, peer.id))["node_info"]
    assert info == {"os": "linux", "arch": "arm64", "hostname": "reported"}


# =============================================================================
# Updates
# =============================================================================


def test_expiring_a_peer_removes_it(ctx, network, control):
    peer = _provision(ctx, network).peer
    past = ctx.now_datetime() - datetime.timedelta(seconds=1)

    updated = peers.update_peer(ctx, peer.id, PeerUpdateRequest(expires_at=past))

    assert updated.status == PeerStatus.EXPIRED.value
    assert peer.public_key not in control.peers


def test_extending_an_expired_peer_reactivates_it(ctx, network, control):
    peer = _provision(ctx, network).peer
    past = ctx.now_datetime() - datetime.timedelta(seconds=1)
    peers.update_peer(ctx, peer.id, PeerUpdateRequest(expires_at=past))

    future = ctx.now_datetime() + datetime.timedelta(days=7)
    updated = peers.update_peer(ctx, peer.id, PeerUpdateRequest(expires_at=future))

    assert updated.status == PeerStatus.PENDING.value
    assert peer.public_key in control.peers


def test_clearing_expiration_reactivates(ctx, network, control):
    peer = _provision(ctx, network).peer
    peers.update_peer(ctx, peer.id, PeerUpdateRequest(status="expired"))
    assert peer.public_key not in control.peers

    updated = peers.update_peer(ctx, peer.id, PeerUpdateRequest(clear_expiration=True))

    assert updated.status == PeerStatus.PENDING.value
    assert updated.expires_at is None
    assert peer.public_key in control.peers


def test_rename_keeps_live_state(ctx, network, control):
    peer = _provision(ctx, network).peer
    calls = len(control.calls)

    updated = peers.update_peer(ctx, peer.id, PeerUpdateRequest(name="desktop"))

    assert updated.name == "desktop"
    assert control.count("add") == 1
    assert all(c[0] == "list" for c in control.calls[calls:])


def test_unknown_status_is_rejected(ctx, network):
    peer = _provision(ctx, network).peer
    with pytest.raises(InvalidRequestError):
        peers.update_peer(ctx, peer.id, PeerUpdateRequest(status="asleep"))


def test_check_in_merges_node_info_and_labels(ctx, network):
    peer = _provision(ctx, network, labels={"team": "ops"}).peer

    updated = peers.check_in(
        ctx,
        peer.id,
        PeerCheckInRequest(
            node_info=NodeInfo(os="linux", hostname="box"), labels={"site": "hq"}
        ),
    )

    assert updated.get_labels() == {"team": "ops", "site": "hq"}
    assert updated.get_node_info().os == "linux"
    assert updated.get_node_info().hostname == "box"


def test_delete_peer_is_best_effort_on_interface(ctx, network, control):
    peer = _provision(ctx, network).peer
    control.fail_remove = True

    peers.delete_peer(ctx, peer.id)

    assert ctx.store.get_peer(peer.id) is None
    with pytest.raises(NotFound):
        peers.get_peer(ctx, peer.id)


# =============================================================================
# Statistics and diagnostics
# =============================================================================


def test_stats_overview_counts_statuses(ctx, network, control):
    online = _provision(ctx, network, name="on").peer
    _provision(ctx, network, name="waiting")
    expired = _provision(ctx, network, name="old").peer
    control.set_live(online.public_key, ["10.10.0.3/32"], rx=100, tx=50)
    ctx.store.update_peer(
        expired.id, expires_at=ctx.now_datetime() - datetime.timedelta(days=1)
    )

    overview = peers.stats_overview(ctx)

    assert overview.total_networks == 1
    assert overview.total_peers == 3
    assert overview.online == 1
    assert overview.expired == 1
    assert overview.pending == 1
    assert overview.transfer_rx == 100
    assert overview.networks[0].interface_name == network.interface_name


def test_debug_network_compares_live_and_stored(ctx, network, control):
    peer = _provision(ctx, network).peer
    control.peers.clear()
    control.set_live("STRAY", ["10.10.0.50/32"])

    info = peers.debug_network(ctx, network.id)

    assert info["control_registered"] is True
    assert info["live_only"] == ["STRAY"]
    assert info["stored_only"] == [peer.public_key]
    assert "hub_private_key" not in info["network"]
