"""Tests for CLI commands."""

from __future__ import annotations

from unittest.mock import patch

import pytest
import yaml
from typer.testing import CliRunner

from ec2_kitchen.cli import app
from ec2_kitchen.providers.base import ActionFailed, ProvisioningState

runner = CliRunner()

_CREDENTIAL_VARS = (
    "AWS_ACCESS_KEY",
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_KEY",
    "AWS_SECRET_ACCESS_KEY",
    "AWS_SESSION_TOKEN",
    "AWS_TOKEN",
    "AWS_SSH_KEY_ID",
)


@pytest.fixture(autouse=True)
def _isolated_app_config(tmp_path, monkeypatch):
    """Keep the real ~/.ec2-kitchen out of every test."""
    for var in _CREDENTIAL_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(
        "ec2_kitchen.config.loader.APP_CONFIG_PATH", tmp_path / "no-app-config.yaml"
    )


class TestInit:
    def test_creates_config(self, tmp_path):
        config_dir = tmp_path / ".ec2-kitchen"
        config_path = config_dir / "config.yaml"

        with (
            patch("ec2_kitchen.cli.APP_CONFIG_DIR", config_dir),
            patch("ec2_kitchen.cli.APP_CONFIG_PATH", config_path),
        ):
            result = runner.invoke(app, ["init"])

        assert result.exit_code == 0
        data = yaml.safe_load(config_path.read_text())
        assert data["aws"]["aws_access_key_id"] == ""
        assert data["defaults"]["region"] == "us-east-1"

    def test_does_not_overwrite(self, tmp_path):
        config_dir = tmp_path / ".ec2-kitchen"
        config_dir.mkdir()
        config_path = config_dir / "config.yaml"
        config_path.write_text("existing: true\n")

        with (
            patch("ec2_kitchen.cli.APP_CONFIG_DIR", config_dir),
            patch("ec2_kitchen.cli.APP_CONFIG_PATH", config_path),
        ):
            result = runner.invoke(app, ["init"])

        assert result.exit_code == 0
        assert "already exists" in result.output
        assert config_path.read_text() == "existing: true\n"


class TestDoctor:
    def test_passes_with_credentials(self, monkeypatch):
        monkeypatch.setenv("AWS_ACCESS_KEY_ID", "AKIA")
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "secret")
        with patch("httpx.get") as mock_get:
            mock_get.return_value.status_code = 400
            result = runner.invoke(app, ["doctor"])
        assert result.exit_code == 0
        assert "AWS credentials configured" in result.output
        assert "EC2 endpoint reachable" in result.output

    def test_fails_without_credentials(self):
        with patch("httpx.get") as mock_get:
            mock_get.return_value.status_code = 200
            result = runner.invoke(app, ["doctor"])
        assert result.exit_code == 1
        assert "FAIL" in result.output

    def test_offline_is_only_a_warning(self, monkeypatch):
        monkeypatch.setenv("AWS_ACCESS_KEY_ID", "AKIA")
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "secret")
        with patch("httpx.get", side_effect=OSError("offline")):
            result = runner.invoke(app, ["doctor"])
        assert result.exit_code == 0
        assert "Could not reach" in result.output


class TestCreate:
    def test_dry_run_valid_config(self, minimal_driver_yaml):
        result = runner.invoke(app, ["create", str(minimal_driver_yaml), "--dry-run"])
        assert result.exit_code == 0
        assert "Config is valid" in result.output
        assert "ami-12345678" in result.output

    def test_dry_run_invalid_interface(self, tmp_path, minimal_driver_dict):
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.dump(dict(minimal_driver_dict, interface="bogus")))
        result = runner.invoke(app, ["create", str(path), "--dry-run"])
        assert result.exit_code == 1
        assert "bogus" in result.output

    def test_platform_selects_default_image(self, tmp_path, minimal_driver_dict):
        data = {k: v for k, v in minimal_driver_dict.items() if k != "image_id"}
        path = tmp_path / "platform.yaml"
        path.write_text(yaml.dump(data))

        result = runner.invoke(app, ["create", str(path), "--platform", "ubuntu-22.04", "--dry-run"])

        assert result.exit_code == 0
        assert "ami-0c7217cdde317cfec" in result.output
        assert "ubuntu" in result.output

    def test_missing_image_without_platform(self, tmp_path, minimal_driver_dict):
        data = {k: v for k, v in minimal_driver_dict.items() if k != "image_id"}
        path = tmp_path / "noimage.yaml"
        path.write_text(yaml.dump(data))
        result = runner.invoke(app, ["create", str(path), "--dry-run"])
        assert result.exit_code == 1
        assert "Config validation failed" in result.output

    def test_existing_server_skips_creation(self, minimal_driver_yaml):
        with patch("ec2_kitchen.cli.Ec2Driver._connect") as mock_connect:
            result = runner.invoke(
                app, ["create", str(minimal_driver_yaml), "--server-id", "i-existing"]
            )

        assert result.exit_code == 0
        assert "skipped" in result.output
        assert '"server_id": "i-existing"' in result.output
        mock_connect.assert_not_called()

    def test_missing_config_file(self, tmp_path):
        result = runner.invoke(app, ["create", str(tmp_path / "nope.yaml")])
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_prints_state(self, minimal_driver_yaml):
        def _create(state):
            state.server_id = "i-0abc"
            state.hostname = "1.2.3.4"
            return state

        with patch("ec2_kitchen.cli.Ec2Driver.create", side_effect=_create):
            result = runner.invoke(app, ["create", str(minimal_driver_yaml)])

        assert result.exit_code == 0
        assert "i-0abc" in result.output
        assert '"hostname": "1.2.3.4"' in result.output

    def test_failure_reports_leftover_instance(self, minimal_driver_yaml):
        failure = ActionFailed("boom", state=ProvisioningState(server_id="i-left"))
        with patch("ec2_kitchen.cli.Ec2Driver.create", side_effect=failure):
            result = runner.invoke(app, ["create", str(minimal_driver_yaml)])

        assert result.exit_code == 1
        assert "Create failed" in result.output
        assert "i-left" in result.output
        assert "may still be running" in result.output


class TestDestroy:
    def test_destroys(self, minimal_driver_yaml):
        with patch("ec2_kitchen.cli.Ec2Driver.destroy") as mock_destroy:
            result = runner.invoke(
                app, ["destroy", str(minimal_driver_yaml), "--server-id", "i-0abc"]
            )
        assert result.exit_code == 0
        assert mock_destroy.call_args.args[0] == ProvisioningState(server_id="i-0abc")
        assert "Instance destroyed" in result.output

    def test_failure(self, minimal_driver_yaml):
        with patch("ec2_kitchen.cli.Ec2Driver.destroy", side_effect=ActionFailed("denied")):
            result = runner.invoke(
                app, ["destroy", str(minimal_driver_yaml), "--server-id", "i-0abc"]
            )
        assert result.exit_code == 1
        assert "MANUAL ACTION REQUIRED" in result.output
