"""Narrow boto3 EC2 wrapper returning the driver's own records.

Every method may raise ``botocore.exceptions.ClientError`` (the API rejected
the call) or ``botocore.exceptions.BotoCoreError`` (transport or credential
failure). Lookups translate "not found" into ``None`` instead.
"""

from __future__ import annotations

import logging
from typing import Any

import boto3
from botocore.exceptions import ClientError

from ec2_kitchen.config.schema import DriverConfig
from ec2_kitchen.providers.base import ImageRecord, ServerRecord, SpotRequestRecord

logger = logging.getLogger(__name__)

_INSTANCE_NOT_FOUND = {"InvalidInstanceID.NotFound", "InvalidInstanceID.Malformed"}
_IMAGE_NOT_FOUND = {"InvalidAMIID.NotFound", "InvalidAMIID.Malformed", "InvalidAMIID.Unavailable"}
_SPOT_REQUEST_NOT_FOUND = {"InvalidSpotInstanceRequestID.NotFound"}


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


def _tags_to_dict(tags: list[dict[str, str]] | None) -> dict[str, str]:
    return {tag["Key"]: tag["Value"] for tag in tags or []}


def tags_to_list(tags: dict[str, str]) -> list[dict[str, str]]:
    """Convert ``{key: value}`` into the EC2 ``[{"Key", "Value"}]`` shape."""
    return [{"Key": key, "Value": value} for key, value in tags.items()]


def parse_server(raw: dict[str, Any]) -> ServerRecord:
    """Build a ServerRecord from one ``Instances`` entry.

    EC2 reports unassigned addresses as empty strings; they become ``None``.
    """
    return ServerRecord(
        id=raw["InstanceId"],
        state=raw.get("State", {}).get("Name", "pending"),
        dns_name=raw.get("PublicDnsName") or None,
        public_ip_address=raw.get("PublicIpAddress") or None,
        private_ip_address=raw.get("PrivateIpAddress") or None,
    )


def parse_spot_request(raw: dict[str, Any]) -> SpotRequestRecord:
    """Build a SpotRequestRecord from one ``SpotInstanceRequests`` entry."""
    return SpotRequestRecord(
        id=raw["SpotInstanceRequestId"],
        state=raw.get("State", "open"),
        instance_id=raw.get("InstanceId"),
        price=raw.get("SpotPrice"),
        tags=_tags_to_dict(raw.get("Tags")),
        status=raw.get("Status", {}).get("Code"),
    )


def session_kwargs(config: DriverConfig) -> dict[str, Any]:
    """Session arguments for *config*.

    With ``use_iam_profile`` no explicit credential is passed, leaving boto3
    to pick up the instance profile.
    """
    kwargs: dict[str, Any] = {"region_name": config.region}
    if config.use_iam_profile:
        return kwargs
    kwargs["aws_access_key_id"] = config.aws_access_key_id
    kwargs["aws_secret_access_key"] = config.aws_secret_access_key
    if config.aws_session_token:
        kwargs["aws_session_token"] = config.aws_session_token
    return kwargs


class Ec2Connection:
    """EC2 operations the driver needs, over a single boto3 client."""

    def __init__(self, client: Any) -> None:
        self._client = client

    @classmethod
    def from_config(cls, config: DriverConfig) -> Ec2Connection:
        """Open a fresh session and client for *config*."""
        session = boto3.session.Session(**session_kwargs(config))
        client = session.client("ec2", endpoint_url=config.endpoint)
        return cls(client)

    def run_instance(self, params: dict[str, Any]) -> ServerRecord:
        response = self._client.run_instances(**params)
        return parse_server(response["Instances"][0])

    def request_spot(self, params: dict[str, Any]) -> SpotRequestRecord:
        response = self._client.request_spot_instances(**params)
        return parse_spot_request(response["SpotInstanceRequests"][0])

    def get_spot_request(self, request_id: str) -> SpotRequestRecord | None:
        try:
            response = self._client.describe_spot_instance_requests(
                SpotInstanceRequestIds=[request_id]
            )
        except ClientError as e:
            if _error_code(e) in _SPOT_REQUEST_NOT_FOUND:
                logger.debug("Spot request %s not visible yet", request_id)
                return None
            raise
        requests = response.get("SpotInstanceRequests", [])
        return parse_spot_request(requests[0]) if requests else None

    def cancel_spot_request(self, request_id: str) -> None:
        self._client.cancel_spot_instance_requests(SpotInstanceRequestIds=[request_id])

    def create_tags(self, resource_id: str, tags: dict[str, str]) -> None:
        self._client.create_tags(Resources=[resource_id], Tags=tags_to_list(tags))

    def get_server(self, instance_id: str) -> ServerRecord | None:
        try:
            response = self._client.describe_instances(InstanceIds=[instance_id])
        except ClientError as e:
            if _error_code(e) in _INSTANCE_NOT_FOUND:
                return None
            raise
        for reservation in response.get("Reservations", []):
            for raw in reservation.get("Instances", []):
                return parse_server(raw)
        return None

    def terminate(self, instance_id: str) -> None:
        self._client.terminate_instances(InstanceIds=[instance_id])

    def get_image(self, image_id: str) -> ImageRecord | None:
        try:
            response = self._client.describe_images(ImageIds=[image_id])
        except ClientError as e:
            if _error_code(e) in _IMAGE_NOT_FOUND:
                return None
            raise
        images = response.get("Images", [])
        if not images:
            return None
        return ImageRecord(id=images[0]["ImageId"], root_device_name=images[0].get("RootDeviceName"))
