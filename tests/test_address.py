import pytest

from wghub.exceptions import AddressSpaceExhausted, InvalidRequestError
from wghub.services.address import allocate_ip, hub_address, in_block


def test_first_allocation_skips_reserved_addresses():
    assert allocate_ip("10.10.0.0/24", []) == "10.10.0.3"


def test_lowest_free_address_wins():
    allocated = ["10.10.0.3", "10.10.0.4", "10.10.0.6"]
    assert allocate_ip("10.10.0.0/24", allocated) == "10.10.0.5"


def test_allocation_is_deterministic():
    allocated = ["10.10.0.3", "10.10.0.5"]
    assert allocate_ip("10.10.0.0/24", allocated) == allocate_ip(
        "10.10.0.0/24", list(reversed(allocated))
    )


def test_allocated_addresses_with_prefix_are_understood():
    assert allocate_ip("10.10.0.0/24", ["10.10.0.3/32"]) == "10.10.0.4"


def test_unparsable_allocations_are_ignored():
    assert allocate_ip("10.10.0.0/24", ["garbage", ""]) == "10.10.0.3"


def test_broadcast_is_never_allocated():
    # /29: .0 network, .1 hub, .2 reserved, .3-.6 peers, .7 broadcast
    allocated = ["192.168.5.3", "192.168.5.4", "192.168.5.5"]
    assert allocate_ip("192.168.5.0/29", allocated) == "192.168.5.6"
    with pytest.raises(AddressSpaceExhausted):
        allocate_ip("192.168.5.0/29", allocated + ["192.168.5.6"])


def test_tiny_block_is_exhausted_immediately():
    with pytest.raises(AddressSpaceExhausted) as exc_info:
        allocate_ip("10.0.0.0/30", [])
    assert exc_info.value.cidr == "10.0.0.0/30"


def test_host_bits_in_block_are_tolerated():
    assert allocate_ip("10.10.0.77/24", []) == "10.10.0.3"


def test_invalid_block_is_rejected():
    with pytest.raises(InvalidRequestError):
        allocate_ip("not-a-cidr", [])


def test_hub_address_is_first_host_with_prefix():
    assert hub_address("10.20.0.0/16") == "10.20.0.1/16"


@pytest.mark.parametrize(
    "ip,expected",
    [
        ("10.10.0.7", True),
        ("10.10.1.7", False),
        ("fd00::1", False),
        ("nope", False),
    ],
)
def test_in_block(ip, expected):
    assert in_block("10.10.0.0/24", ip) is expected
