"""Pydantic v2 models defining all configuration structures."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

DEFAULT_TAGS: dict[str, str] = {"created-by": "test-kitchen"}


# --- Driver config models (in dependency order) ---


class BlockDeviceMapping(BaseModel):
    """One storage volume to attach at launch.

    ``ebs_volume_size``, ``ebs_delete_on_termination`` and ``ebs_device_name``
    must be present in every mapping, although their values may be null.
    """

    model_config = ConfigDict(frozen=True)

    ebs_volume_size: int | None
    ebs_delete_on_termination: bool | None
    ebs_device_name: str | None
    ebs_volume_type: str | None = None
    ebs_snapshot_id: str | None = None
    ebs_virtual_name: str | None = None


class DriverConfig(BaseModel):
    """Per-run EC2 driver settings loaded from YAML."""

    model_config = ConfigDict(frozen=True)

    # Credentials
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    aws_session_token: str | None = None
    aws_ssh_key_id: str | None = None
    use_iam_profile: bool = False

    # Placement
    region: str = "us-east-1"
    endpoint: str | None = None
    availability_zone: str | None = None
    subnet_id: str | None = None
    security_group_ids: list[str] = Field(default_factory=list)

    # Sizing and image
    flavor_id: str = "m1.small"
    ebs_optimized: bool = False
    image_id: str | None = None
    platform: str | None = None
    username: str | None = None

    # Launch settings
    tags: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_TAGS))
    user_data: str | None = None
    iam_profile_name: str | None = None
    price: float | None = Field(default=None, gt=0)
    instance_count: int = Field(default=1, gt=0)
    associate_public_ip: bool | None = None

    # Readiness
    interface: str | None = None
    ssh_timeout: float = Field(default=1, gt=0)
    ssh_retries: int = Field(default=3, gt=0)
    ssh_port: int = 22
    poll_interval: float = Field(default=1.0, gt=0)
    ready_timeout: float | None = Field(default=None, gt=0)

    # Storage
    block_device_mappings: list[BlockDeviceMapping] = Field(default_factory=list)
    # Deprecated in favour of block_device_mappings
    ebs_volume_size: int | None = None
    ebs_delete_on_termination: bool | None = None
    ebs_device_name: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _derive_defaults(cls, data: Any) -> Any:
        """Fill fields whose defaults depend on other fields."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        region = data.get("region") or "us-east-1"
        if data.get("endpoint") is None:
            data["endpoint"] = f"https://ec2.{region}.amazonaws.com/"
        # An explicit null leaves placement to AWS
        if "availability_zone" not in data:
            data["availability_zone"] = f"{region}b"
        if data.get("associate_public_ip") is None:
            data["associate_public_ip"] = bool(data.get("subnet_id"))
        return data

    @property
    def is_spot(self) -> bool:
        return self.price is not None


# --- App config models (separate from driver configs) ---


class AwsAppConfig(BaseModel):
    """AWS credentials shared by every driver config on this machine."""

    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_session_token: str = ""
    aws_ssh_key_id: str = ""


class DefaultsAppConfig(BaseModel):
    """Default application settings."""

    region: str = "us-east-1"


class AppConfig(BaseModel):
    """Application-level config stored at ~/.ec2-kitchen/config.yaml."""

    aws: AwsAppConfig = AwsAppConfig()
    defaults: DefaultsAppConfig = DefaultsAppConfig()
