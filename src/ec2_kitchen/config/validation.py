"""Semantic cross-field validation for driver configs.

Goes beyond Pydantic's structural checks to enforce rules like credential
presence and the allowed interface names.
"""

from __future__ import annotations

import logging

from ec2_kitchen.config.schema import DriverConfig

logger = logging.getLogger(__name__)

INTERFACE_NAMES: tuple[str, ...] = ("dns", "public", "private")

DEPRECATED_KEYS: tuple[str, ...] = (
    "ebs_volume_size",
    "ebs_delete_on_termination",
    "ebs_device_name",
)


class ConfigurationError(Exception):
    """Raised when user-supplied configuration cannot be used."""


class ConfigValidationError(ConfigurationError):
    """Raised when semantic validation fails.

    Attributes:
        errors: All validation errors found (not just the first).
    """

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__(f"Config validation failed: {'; '.join(errors)}")


def validate_driver(config: DriverConfig) -> list[str]:
    """Validate a driver config beyond structural checks.

    Returns:
        Empty list if valid, otherwise a list of error messages.
    """
    errors: list[str] = []

    # 1. Explicit credentials unless the instance profile supplies them
    if not config.use_iam_profile:
        if not config.aws_access_key_id:
            errors.append("'aws_access_key_id' is required unless 'use_iam_profile' is set")
        if not config.aws_secret_access_key:
            errors.append("'aws_secret_access_key' is required unless 'use_iam_profile' is set")

    # 2. Key pair and image are always required
    if not config.aws_ssh_key_id:
        errors.append("'aws_ssh_key_id' is required")
    if not config.image_id:
        errors.append(
            f"'image_id' is required (no default image for platform "
            f"'{config.platform}' in region '{config.region}')"
        )

    # 3. Interface must name a known address type
    if config.interface is not None and config.interface not in INTERFACE_NAMES:
        errors.append(
            f"Invalid interface [{config.interface}]. Known: {', '.join(INTERFACE_NAMES)}"
        )

    return errors


def deprecation_warnings(config: DriverConfig) -> list[str]:
    """Return a warning for every legacy storage key that is set."""
    warnings: list[str] = []
    for key in DEPRECATED_KEYS:
        if getattr(config, key) is not None:
            warnings.append(
                f"The config key `{key}` is deprecated, please use `block_device_mappings`"
            )
    return warnings


def warn_deprecated(config: DriverConfig) -> None:
    """Log every deprecation warning for *config*. Never raises."""
    for message in deprecation_warnings(config):
        logger.warning(message)
