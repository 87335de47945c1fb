"""Tests for the default AMI and username tables."""

from __future__ import annotations

from datetime import date
from unittest.mock import patch

from ec2_kitchen.config.schema import DriverConfig
from ec2_kitchen.providers.ec2.amis import (
    DEFAULT_AMIS,
    ImageCatalog,
    check_amis_staleness,
)

AMIS = {"us-east-1": {"ubuntu-22.04": "ami-east"}, "us-west-2": {"ubuntu-22.04": "ami-west"}}
USERNAMES = {"ubuntu": "ubuntu", "centos-7": "centos"}


def _catalog() -> ImageCatalog:
    return ImageCatalog(amis=AMIS, usernames=USERNAMES)


class TestLookupImage:
    def test_found(self):
        assert _catalog().lookup_image("us-west-2", "ubuntu-22.04") == "ami-west"

    def test_unknown_platform(self):
        assert _catalog().lookup_image("us-east-1", "arch") is None

    def test_unknown_region(self):
        assert _catalog().lookup_image("mars-1", "ubuntu-22.04") is None

    def test_no_platform(self):
        assert _catalog().lookup_image("us-east-1", None) is None

    def test_builtin_table(self):
        catalog = ImageCatalog()
        assert catalog.lookup_image("us-east-1", "ubuntu-22.04") == DEFAULT_AMIS["us-east-1"]["ubuntu-22.04"]


class TestLookupUsername:
    def test_exact_match(self):
        assert _catalog().lookup_username("centos-7") == "centos"

    def test_family_match(self):
        assert _catalog().lookup_username("ubuntu-24.04") == "ubuntu"

    def test_fallback_root(self):
        assert _catalog().lookup_username("windows-2022") == "root"

    def test_no_platform(self):
        assert _catalog().lookup_username(None) == "root"


class TestApplyDefaults:
    def test_fills_image_and_username(self):
        config = DriverConfig(platform="ubuntu-22.04", region="us-west-2")
        result = _catalog().apply_defaults(config)
        assert result.image_id == "ami-west"
        assert result.username == "ubuntu"

    def test_explicit_values_kept(self):
        config = DriverConfig(platform="ubuntu-22.04", image_id="ami-mine", username="me")
        result = _catalog().apply_defaults(config)
        assert result is config

    def test_unknown_platform_leaves_image_unset(self):
        result = _catalog().apply_defaults(DriverConfig(platform="arch"))
        assert result.image_id is None
        assert result.username == "root"


class TestCheckAmisStaleness:
    def test_fresh_data(self):
        with patch("ec2_kitchen.providers.ec2.amis.date") as mock_date:
            mock_date.today.return_value = date(2026, 9, 20)
            is_stale, age = check_amis_staleness()
        assert not is_stale
        assert age == 6

    def test_stale_data(self):
        with patch("ec2_kitchen.providers.ec2.amis.date") as mock_date:
            mock_date.today.return_value = date(2027, 6, 1)
            is_stale, age = check_amis_staleness()
        assert is_stale
        assert age > 90
