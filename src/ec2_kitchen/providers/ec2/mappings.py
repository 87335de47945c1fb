"""Translate configured block device mappings into ``BlockDeviceMappings`` entries."""

from __future__ import annotations

import logging
from typing import Any

from ec2_kitchen.config.schema import BlockDeviceMapping, DriverConfig
from ec2_kitchen.providers.base import ResourceNotFoundError
from ec2_kitchen.providers.ec2.client import Ec2Connection

logger = logging.getLogger(__name__)

DEFAULT_VOLUME_TYPE = "standard"

# config key -> EC2 field path
CONFIG_TO_AWS: dict[str, tuple[str, ...]] = {
    "ebs_volume_size": ("Ebs", "VolumeSize"),
    "ebs_volume_type": ("Ebs", "VolumeType"),
    "ebs_delete_on_termination": ("Ebs", "DeleteOnTermination"),
    "ebs_snapshot_id": ("Ebs", "SnapshotId"),
    "ebs_device_name": ("DeviceName",),
    "ebs_virtual_name": ("VirtualName",),
}


def default_mapping(
    config: DriverConfig, root_device_name: str | None = None
) -> BlockDeviceMapping:
    """Build the single mapping used when none is configured, from the legacy keys.

    Without a legacy ``ebs_device_name`` the mapping targets *root_device_name*.
    """
    return BlockDeviceMapping(
        ebs_volume_type=DEFAULT_VOLUME_TYPE,
        ebs_volume_size=config.ebs_volume_size,
        ebs_delete_on_termination=config.ebs_delete_on_termination,
        ebs_snapshot_id=None,
        ebs_device_name=config.ebs_device_name or root_device_name,
        ebs_virtual_name=None,
    )


def to_aws(mapping: BlockDeviceMapping | dict[str, Any]) -> dict[str, Any]:
    """Rename one mapping's keys to the EC2 vocabulary.

    Keys without an EC2 equivalent and null values are dropped; boto3 rejects
    ``None`` parameters.
    """
    values = mapping.model_dump() if isinstance(mapping, BlockDeviceMapping) else mapping
    translated: dict[str, Any] = {}
    for key, value in values.items():
        path = CONFIG_TO_AWS.get(key)
        if path is None or value is None:
            continue
        target = translated
        for part in path[:-1]:
            target = target.setdefault(part, {})
        target[path[-1]] = value
    return translated


def block_device_mappings(config: DriverConfig, connection: Ec2Connection) -> list[dict[str, Any]]:
    """Return the ``BlockDeviceMappings`` parameter for a launch request.

    Raises:
        ResourceNotFoundError: If ``config.image_id`` does not name an image.
    """
    image_id = config.image_id
    image = connection.get_image(image_id) if image_id else None
    if image is None:
        raise ResourceNotFoundError(f"Could not find image [{image_id}]")
    root_device_name = image.root_device_name

    mappings = list(config.block_device_mappings)
    if not mappings:
        mappings = [default_mapping(config, root_device_name)]

    for mapping in mappings:
        if root_device_name is not None and mapping.ebs_device_name == root_device_name:
            logger.info("Overriding root device [%s] from image [%s]", root_device_name, image_id)
            break

    return [to_aws(mapping) for mapping in mappings]
