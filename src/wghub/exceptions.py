"""wghub exception classes."""


class WgHubError(Exception):
    """Base exception for wghub operations."""

    pass


class ControlError(WgHubError):
    """A tunnel control command failed, timed out, or its tool is missing."""

    def __init__(self, message: str, interface: str | None = None):
        self.interface = interface
        if interface:
            message = f"{interface}: {message}"
        super().__init__(message)


class AddressSpaceExhausted(WgHubError):
    """No free virtual address is left in a network's block."""

    def __init__(self, cidr: str):
        self.cidr = cidr
        super().__init__(f"No free addresses left in {cidr}")


class OverlapConflict(WgHubError):
    """A requested address block overlaps an existing network."""

    def __init__(self, cidr: str, network_name: str, network_cidr: str):
        self.cidr = cidr
        self.network_name = network_name
        self.network_cidr = network_cidr
        super().__init__(
            f"Network range {cidr} overlaps with existing network "
            f"'{network_name}' ({network_cidr})"
        )


class NotFound(WgHubError):
    """A network or peer does not exist."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")


class StoreError(WgHubError):
    """The desired-state store failed."""

    pass


class ProtectedNetworkError(WgHubError):
    """The admin network cannot be deleted."""

    def __init__(self, network_id: str):
        self.network_id = network_id
        super().__init__(f"Network {network_id} is the admin network")


class InvalidRequestError(WgHubError):
    """Malformed input such as an unparsable address block."""

    pass
