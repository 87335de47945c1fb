"""Provider-neutral lifecycle records, errors and the driver interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ProvisioningState:
    """Lifecycle record for one test environment.

    Only the driver that owns the environment mutates it.
    """

    server_id: str | None = None
    hostname: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"server_id": self.server_id, "hostname": self.hostname}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProvisioningState:
        return cls(server_id=data.get("server_id"), hostname=data.get("hostname"))


@dataclass(frozen=True)
class ServerRecord:
    """Snapshot of an instance as last described by the provider."""

    id: str
    state: str
    dns_name: str | None = None
    public_ip_address: str | None = None
    private_ip_address: str | None = None

    @property
    def ready(self) -> bool:
        return self.state == "running"


@dataclass(frozen=True)
class SpotRequestRecord:
    """Snapshot of a spot instance request."""

    id: str
    state: str
    instance_id: str | None = None
    price: str | None = None
    tags: dict[str, str] = field(default_factory=dict)
    status: str | None = None


@dataclass(frozen=True)
class ImageRecord:
    """The parts of a machine image the driver needs."""

    id: str
    root_device_name: str | None = None


class ActionFailed(Exception):
    """Raised when a lifecycle action fails at the provider.

    Attributes:
        state: The state as it stood when the action failed. A ``server_id``
            already assigned stays set so the caller can destroy or inspect it.
    """

    def __init__(self, message: str, state: ProvisioningState | None = None) -> None:
        super().__init__(message)
        self.state = state


class ProvisioningError(Exception):
    """Raised when the provider reports a request it will never fulfil."""


class ResourceNotFoundError(Exception):
    """Raised when a resource the request depends on does not exist."""


class ReadinessTimeoutError(Exception):
    """Raised when a readiness wait runs out of attempts or time."""


class Provider(ABC):
    """Abstract base class for test-environment drivers."""

    @abstractmethod
    def create(self, state: ProvisioningState) -> ProvisioningState:
        """Provision an instance unless *state* already has one.

        Raises:
            ActionFailed: If the provider rejects a request or the instance
                never becomes reachable.
        """

    @abstractmethod
    def destroy(self, state: ProvisioningState) -> ProvisioningState:
        """Terminate the instance recorded in *state*, if any."""
