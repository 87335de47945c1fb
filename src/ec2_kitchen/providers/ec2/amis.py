"""Hardcoded default AMIs and login users with staleness checking.

AMI IDs are region-specific and are retired over time. Verify them against
``ec2.describe_images(ImageIds=[...])`` before relying on a default.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date

from ec2_kitchen.config.schema import DriverConfig

AMIS_LAST_UPDATED: date = date(2026, 9, 14)

# region -> platform name -> AMI id
DEFAULT_AMIS: dict[str, dict[str, str]] = {
    "us-east-1": {
        "ubuntu-22.04": "ami-0c7217cdde317cfec",
        "ubuntu-24.04": "ami-04b70fa74e45c3917",
        "amazon-2023": "ami-0230bd60aa48260c6",
        "debian-12": "ami-058bd2d568351da34",
    },
    "us-west-2": {
        "ubuntu-22.04": "ami-008fe2fc65df48dac",
        "ubuntu-24.04": "ami-0cf2b4e024cdb6960",
        "amazon-2023": "ami-0944e91aed79c721c",
        "debian-12": "ami-0c2644caf041bb6de",
    },
    "eu-west-1": {
        "ubuntu-22.04": "ami-0905a3c97561e0b69",
        "ubuntu-24.04": "ami-0776c814353b4814d",
        "amazon-2023": "ami-0bc691261a82b32bc",
    },
}

# platform name or family -> login user
DEFAULT_USERNAMES: dict[str, str] = {
    "ubuntu": "ubuntu",
    "amazon": "ec2-user",
    "rhel": "ec2-user",
    "fedora": "fedora",
    "debian": "admin",
    "centos": "centos",
}

FALLBACK_USERNAME = "root"

_STALENESS_THRESHOLD_DAYS = 90


class ImageCatalog:
    """Read-only lookup of default images and login users.

    Tables are injected so tests can substitute fixtures for the built-in data.
    """

    def __init__(
        self,
        amis: Mapping[str, Mapping[str, str]] | None = None,
        usernames: Mapping[str, str] | None = None,
    ) -> None:
        self._amis = DEFAULT_AMIS if amis is None else amis
        self._usernames = DEFAULT_USERNAMES if usernames is None else usernames

    def lookup_image(self, region: str, platform: str | None) -> str | None:
        """Return the default AMI for *platform* in *region*, or None."""
        if platform is None:
            return None
        images = self._amis.get(region)
        return images.get(platform) if images else None

    def lookup_username(self, platform: str | None) -> str:
        """Return the login user for *platform*.

        Tries the exact platform name, then its family (``ubuntu-22.04`` ->
        ``ubuntu``), then falls back to ``root``.
        """
        if platform is None:
            return FALLBACK_USERNAME
        if platform in self._usernames:
            return self._usernames[platform]
        family = platform.split("-", 1)[0]
        return self._usernames.get(family, FALLBACK_USERNAME)

    def apply_defaults(self, config: DriverConfig) -> DriverConfig:
        """Return *config* with ``image_id`` and ``username`` filled from the tables."""
        updates: dict[str, str] = {}
        if config.image_id is None:
            image_id = self.lookup_image(config.region, config.platform)
            if image_id is not None:
                updates["image_id"] = image_id
        if config.username is None:
            updates["username"] = self.lookup_username(config.platform)
        return config.model_copy(update=updates) if updates else config


def check_amis_staleness() -> tuple[bool, int]:
    """Check if the AMI table is stale.

    Returns:
        (is_stale, age_days); stale if older than 90 days.
    """
    age_days = (date.today() - AMIS_LAST_UPDATED).days
    return age_days > _STALENESS_THRESHOLD_DAYS, age_days
