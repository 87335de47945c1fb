"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
import yaml
from botocore.exceptions import ClientError

from ec2_kitchen.config.schema import DriverConfig
from ec2_kitchen.providers.base import ImageRecord, ServerRecord, SpotRequestRecord
from ec2_kitchen.providers.wait import RetryPolicy


def client_error(code: str, message: str = "boom", operation: str = "RunInstances") -> ClientError:
    """Build a botocore ClientError as the EC2 API would raise it."""
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


class FakeConnection:
    """In-memory stand-in for Ec2Connection.

    ``servers`` and ``spot_requests`` are returned one per lookup; the last
    entry repeats once the list is exhausted.
    """

    def __init__(self, image: ImageRecord | None = None) -> None:
        self.image = image or ImageRecord(id="ami-12345678", root_device_name="/dev/sda1")
        self.servers: list[ServerRecord | None] = []
        self.spot_requests: list[SpotRequestRecord | None] = []
        self.errors: dict[str, Exception] = {}
        self.calls: list[str] = []
        self.run_params: dict[str, Any] | None = None
        self.spot_params: dict[str, Any] | None = None
        self.tagged: dict[str, dict[str, str]] = {}
        self.terminated: list[str] = []
        self.cancelled: list[str] = []

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if name in self.errors:
            raise self.errors[name]

    @staticmethod
    def _next(items: list):
        if not items:
            return None
        return items.pop(0) if len(items) > 1 else items[0]

    def run_instance(self, params: dict[str, Any]) -> ServerRecord:
        self._record("run_instance")
        self.run_params = params
        return ServerRecord(id="i-0abc", state="pending")

    def request_spot(self, params: dict[str, Any]) -> SpotRequestRecord:
        self._record("request_spot")
        self.spot_params = params
        return SpotRequestRecord(id="sir-1", state="open", price=params["SpotPrice"])

    def get_spot_request(self, request_id: str) -> SpotRequestRecord | None:
        self._record("get_spot_request")
        return self._next(self.spot_requests)

    def cancel_spot_request(self, request_id: str) -> None:
        self._record("cancel_spot_request")
        self.cancelled.append(request_id)

    def create_tags(self, resource_id: str, tags: dict[str, str]) -> None:
        self._record("create_tags")
        self.tagged[resource_id] = tags

    def get_server(self, instance_id: str) -> ServerRecord | None:
        self._record("get_server")
        return self._next(self.servers)

    def terminate(self, instance_id: str) -> None:
        self._record("terminate")
        self.terminated.append(instance_id)

    def get_image(self, image_id: str) -> ImageRecord | None:
        self._record("get_image")
        return self.image if self.image is not None and image_id == self.image.id else None


@pytest.fixture()
def fake_connection() -> FakeConnection:
    return FakeConnection()


@pytest.fixture()
def make_client_error():
    """Factory fixture for botocore ClientErrors."""
    return client_error


@pytest.fixture()
def no_sleep_policy() -> RetryPolicy:
    """Unbounded policy that never actually sleeps."""
    return RetryPolicy(interval=0, sleep=lambda _: None)


@pytest.fixture()
def minimal_driver_dict() -> dict[str, Any]:
    """Minimal valid driver config as a dict."""
    return {
        "aws_access_key_id": "AKIAEXAMPLE",
        "aws_secret_access_key": "secret",
        "aws_ssh_key_id": "test-key",
        "image_id": "ami-12345678",
    }


@pytest.fixture()
def driver_config(minimal_driver_dict: dict[str, Any]) -> DriverConfig:
    return DriverConfig(**minimal_driver_dict)


@pytest.fixture()
def minimal_driver_yaml(tmp_path: Path, minimal_driver_dict: dict[str, Any]) -> Path:
    """Write a minimal valid driver config to a temp YAML file."""
    config_path = tmp_path / "driver.yaml"
    config_path.write_text(yaml.dump(minimal_driver_dict))
    return config_path


@pytest.fixture()
def base_driver_yaml(tmp_path: Path) -> Path:
    """Write a base driver config for extends testing."""
    base_dir = tmp_path / "base"
    base_dir.mkdir()
    base_path = base_dir / "defaults.yaml"
    base_path.write_text(
        yaml.dump(
            {
                "region": "us-west-2",
                "flavor_id": "t3.micro",
                "aws_ssh_key_id": "base-key",
                "tags": {"created-by": "test-kitchen", "team": "infra"},
            }
        )
    )
    return base_path
