"""Pick the address the remote-execution layer should connect to."""

from __future__ import annotations

from enum import Enum

from ec2_kitchen.config.validation import ConfigurationError
from ec2_kitchen.providers.base import ServerRecord


class InterfaceType(str, Enum):
    DNS = "dns"
    PUBLIC = "public"
    PRIVATE = "private"


# Ordered by preference when no interface is configured.
INTERFACE_TYPES: dict[InterfaceType, str] = {
    InterfaceType.DNS: "dns_name",
    InterfaceType.PUBLIC: "public_ip_address",
    InterfaceType.PRIVATE: "private_ip_address",
}


def resolve_hostname(server: ServerRecord, interface: str | None = None) -> str | None:
    """Return the hostname of *server*.

    With an explicit *interface* only that address is consulted. Otherwise the
    first address set among dns, public and private wins.

    Raises:
        ConfigurationError: If *interface* is not a known interface type.
    """
    if interface is not None:
        try:
            interface_type = InterfaceType(interface)
        except ValueError:
            raise ConfigurationError(f"Invalid interface [{interface}]") from None
        return getattr(server, INTERFACE_TYPES[interface_type])

    for attribute in INTERFACE_TYPES.values():
        value = getattr(server, attribute)
        if value:
            return value
    return None
