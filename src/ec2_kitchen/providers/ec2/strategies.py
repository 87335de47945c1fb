"""On-demand and spot launch strategies sharing a ``submit() -> ServerRecord`` contract."""

from __future__ import annotations

import base64
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path
from typing import Any

from ec2_kitchen.config.schema import DriverConfig
from ec2_kitchen.providers.base import (
    ProvisioningError,
    ReadinessTimeoutError,
    ServerRecord,
    SpotRequestRecord,
)
from ec2_kitchen.providers.ec2.client import Ec2Connection, tags_to_list
from ec2_kitchen.providers.ec2.mappings import block_device_mappings
from ec2_kitchen.providers.wait import RetryPolicy, wait_until

logger = logging.getLogger(__name__)

SPOT_ACTIVE = "active"
# A spot request in one of these states will never produce an instance
SPOT_TERMINAL = frozenset({"closed", "cancelled", "failed"})

# Called with the instance id as soon as the provider has assigned one
OnLaunched = Callable[[str], None]


def resolve_user_data(value: str | None) -> str | None:
    """Return the user data to send: file contents if *value* names a file, else *value*."""
    if value is None:
        return None
    path = Path(value)
    try:
        is_file = path.is_file()
    except OSError:
        # Scripts too long to be a path
        is_file = False
    if is_file:
        return path.read_text()
    return value


def debug_server_config(config: DriverConfig) -> None:
    """Log every setting that shapes the launch request."""
    for key in (
        "region",
        "availability_zone",
        "flavor_id",
        "ebs_optimized",
        "image_id",
        "security_group_ids",
        "tags",
        "aws_ssh_key_id",
        "subnet_id",
        "iam_profile_name",
        "associate_public_ip",
        "user_data",
        "ssh_timeout",
        "ssh_retries",
        "price",
    ):
        logger.debug("ec2:%s '%s'", key, getattr(config, key))


def _launch_params(
    config: DriverConfig, connection: Ec2Connection, user_data: str | None
) -> dict[str, Any]:
    """Fields shared by on-demand requests and spot launch specifications."""
    params: dict[str, Any] = {
        "ImageId": config.image_id,
        "InstanceType": config.flavor_id,
        "EbsOptimized": config.ebs_optimized,
        "BlockDeviceMappings": block_device_mappings(config, connection),
    }
    if config.aws_ssh_key_id:
        params["KeyName"] = config.aws_ssh_key_id
    if config.availability_zone:
        params["Placement"] = {"AvailabilityZone": config.availability_zone}
    if config.iam_profile_name:
        params["IamInstanceProfile"] = {"Name": config.iam_profile_name}
    if user_data is not None:
        params["UserData"] = user_data
    return params


class ProvisioningStrategy(ABC):
    """Submits a launch request and returns the resulting server."""

    def __init__(self, config: DriverConfig, connection: Ec2Connection) -> None:
        self.config = config
        self.connection = connection

    @abstractmethod
    def build_params(self) -> dict[str, Any]:
        """Build the provider request for this strategy."""

    @abstractmethod
    def submit(self, on_launched: OnLaunched | None = None) -> ServerRecord:
        """Submit the request and return the server it produced.

        *on_launched* receives the instance id before any follow-up call that
        could fail, so the caller can still clean the instance up.
        """


class OnDemandStrategy(ProvisioningStrategy):
    """Launch an on-demand instance with ``run_instances``."""

    def build_params(self) -> dict[str, Any]:
        config = self.config
        params = _launch_params(config, self.connection, resolve_user_data(config.user_data))
        params["MinCount"] = 1
        params["MaxCount"] = 1

        if config.associate_public_ip:
            interface: dict[str, Any] = {
                "DeviceIndex": 0,
                "AssociatePublicIpAddress": True,
            }
            if config.subnet_id:
                interface["SubnetId"] = config.subnet_id
            if config.security_group_ids:
                interface["Groups"] = list(config.security_group_ids)
            params["NetworkInterfaces"] = [interface]
        else:
            if config.subnet_id:
                params["SubnetId"] = config.subnet_id
            if config.security_group_ids:
                params["SecurityGroupIds"] = list(config.security_group_ids)

        if config.tags:
            params["TagSpecifications"] = [
                {"ResourceType": "instance", "Tags": tags_to_list(config.tags)}
            ]
        return params

    def submit(self, on_launched: OnLaunched | None = None) -> ServerRecord:
        debug_server_config(self.config)
        server = self.connection.run_instance(self.build_params())
        if on_launched is not None:
            on_launched(server.id)
        return server


class SpotStrategy(ProvisioningStrategy):
    """Request a spot instance, wait for the request to be active, tag the instance."""

    def __init__(
        self,
        config: DriverConfig,
        connection: Ec2Connection,
        policy: RetryPolicy | None = None,
    ) -> None:
        super().__init__(config, connection)
        self.policy = policy or RetryPolicy.unbounded(config.poll_interval)

    def build_params(self) -> dict[str, Any]:
        config = self.config
        user_data = resolve_user_data(config.user_data)
        if user_data is not None:
            # request_spot_instances, unlike run_instances, expects base64 already applied
            user_data = base64.b64encode(user_data.encode()).decode("ascii")

        specification = _launch_params(config, self.connection, user_data)
        if config.subnet_id:
            specification["SubnetId"] = config.subnet_id
        if config.security_group_ids:
            specification["SecurityGroupIds"] = list(config.security_group_ids)

        params: dict[str, Any] = {
            "SpotPrice": str(config.price),
            "InstanceCount": config.instance_count,
            "LaunchSpecification": specification,
        }
        if config.tags:
            params["TagSpecifications"] = [
                {"ResourceType": "spot-instances-request", "Tags": tags_to_list(config.tags)}
            ]
        return params

    def _wait_for_active(self, request_id: str) -> SpotRequestRecord:
        """Poll until the request is active and has an instance assigned.

        Raises:
            ProvisioningError: If the request closes, is cancelled or fails.
        """
        latest: dict[str, SpotRequestRecord] = {}

        def _active() -> bool:
            spot = self.connection.get_spot_request(request_id)
            if spot is None:
                return False
            latest["spot"] = spot
            if spot.state in SPOT_TERMINAL:
                logger.warning(
                    "Spot request <%s> is %s (%s)", request_id, spot.state, spot.status
                )
                raise ProvisioningError(
                    f"Spot request [{request_id}] is {spot.state}: {spot.status or 'no status'}"
                )
            if spot.state == SPOT_ACTIVE and spot.instance_id is None:
                logger.debug("Spot request %s active, no instance assigned yet", request_id)
                return False
            return spot.state == SPOT_ACTIVE

        wait_until(_active, self.policy, description=f"spot request {request_id}")
        logger.info("Spot request <%s> active", request_id)
        return latest["spot"]

    def submit(self, on_launched: OnLaunched | None = None) -> ServerRecord:
        debug_server_config(self.config)
        spot = self.connection.request_spot(self.build_params())
        logger.info("Spot instance <%s> requested.", spot.id)
        logger.info("Spot price is <%s>.", spot.price)

        try:
            spot = self._wait_for_active(spot.id)
        except (ProvisioningError, ReadinessTimeoutError):
            # No instance yet; cancel so the request cannot launch one later
            logger.warning("Cancelling spot request <%s>", spot.id)
            self.connection.cancel_spot_request(spot.id)
            raise

        instance_id = spot.instance_id
        if on_launched is not None:
            on_launched(instance_id)

        # Spot instances do not inherit the request's tags
        if self.config.tags:
            self.connection.create_tags(instance_id, spot.tags or dict(self.config.tags))

        server = self.connection.get_server(instance_id)
        if server is None:
            # Not described yet; the readiness wait picks it up by id
            return ServerRecord(id=instance_id, state="pending")
        return server


def select_strategy(
    config: DriverConfig,
    connection: Ec2Connection,
    policy: RetryPolicy | None = None,
) -> ProvisioningStrategy:
    """Spot when a price is configured, on-demand otherwise."""
    if config.is_spot:
        return SpotStrategy(config, connection, policy=policy)
    return OnDemandStrategy(config, connection)
