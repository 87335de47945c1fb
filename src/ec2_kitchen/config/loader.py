"""YAML loading with ``extends`` inheritance, credential and path resolution."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ec2_kitchen.config.schema import AppConfig, DriverConfig
from ec2_kitchen.config.validation import ConfigValidationError

APP_CONFIG_DIR: Path = Path.home() / ".ec2-kitchen"
APP_CONFIG_PATH: Path = APP_CONFIG_DIR / "config.yaml"

# config key -> environment variables, first set one wins
CREDENTIAL_ENV_VARS: dict[str, tuple[str, ...]] = {
    "aws_access_key_id": ("AWS_ACCESS_KEY", "AWS_ACCESS_KEY_ID"),
    "aws_secret_access_key": ("AWS_SECRET_KEY", "AWS_SECRET_ACCESS_KEY"),
    "aws_session_token": ("AWS_SESSION_TOKEN", "AWS_TOKEN"),
    "aws_ssh_key_id": ("AWS_SSH_KEY_ID",),
}


def overlay(parent: dict[str, Any], child: dict[str, Any]) -> dict[str, Any]:
    """Apply *child* settings on top of *parent*.

    Mappings such as ``tags`` combine key by key. Lists such as
    ``security_group_ids`` or ``block_device_mappings`` are replaced whole.
    """
    combined = dict(parent)
    for key, value in child.items():
        inherited = combined.get(key)
        if isinstance(inherited, dict) and isinstance(value, dict):
            value = overlay(inherited, value)
        combined[key] = value
    return combined


def read_settings(path: Path) -> dict[str, Any]:
    """Read one YAML settings file. An empty file holds no settings."""
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must hold a mapping of settings, not a {type(data).__name__}")
    return data


def apply_extends(data: dict[str, Any], config_dir: Path) -> dict[str, Any]:
    """Layer *data* over the file named by its ``extends`` key.

    The parent path is relative to *config_dir*. Only one level is followed;
    an ``extends`` inside the parent is ignored.
    """
    parent_name = data.get("extends")
    if parent_name is None:
        return data

    parent_path = (config_dir / parent_name).resolve()
    if not parent_path.is_file():
        raise FileNotFoundError(f"Config extends [{parent_name}], not found at {parent_path}")

    parent = read_settings(parent_path)
    parent.pop("extends", None)
    return overlay(parent, {k: v for k, v in data.items() if k != "extends"})


def resolve_credentials(data: dict[str, Any], app_config: AppConfig) -> None:
    """Fill missing credentials: explicit > env var > app config.

    Nothing is filled in when ``use_iam_profile`` is set, so no secret leaks
    into a session that should rely on the instance profile.
    """
    if data.get("use_iam_profile"):
        return

    for key, env_vars in CREDENTIAL_ENV_VARS.items():
        if data.get(key):
            continue
        for var in env_vars:
            value = os.environ.get(var, "")
            if value:
                data[key] = value
                break
        else:
            stored = getattr(app_config.aws, key)
            if stored:
                data[key] = stored


def _resolve_user_data_path(data: dict[str, Any], config_dir: Path) -> None:
    """Resolve a relative user_data file path against the config file's directory.

    Literal scripts are left alone: only values naming an existing file move.
    """
    user_data = data.get("user_data")
    if not isinstance(user_data, str) or "\n" in user_data:
        return

    candidate = Path(user_data)
    if candidate.is_absolute():
        return
    try:
        resolved = (config_dir / candidate).resolve()
        is_file = resolved.is_file()
    except OSError:
        return
    if is_file:
        data["user_data"] = str(resolved)


def load_driver_config(path: str | Path, app_config: AppConfig | None = None) -> DriverConfig:
    """Build a DriverConfig from *path*: extends, region, credentials, then user data.

    Structural errors from Pydantic are reported as ``ConfigValidationError``
    so callers handle one configuration error type.

    Raises:
        FileNotFoundError: If the config or parent file doesn't exist.
        ValueError: If the YAML is malformed.
        ConfigValidationError: If structural validation fails.
    """
    config_path = Path(path).resolve()
    config_dir = config_path.parent

    if app_config is None:
        app_config = load_app_config()

    data = apply_extends(read_settings(config_path), config_dir)
    data.setdefault("region", app_config.defaults.region)
    resolve_credentials(data, app_config)
    _resolve_user_data_path(data, config_dir)

    try:
        config = DriverConfig(**data)
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
            for err in e.errors()
        ]
        raise ConfigValidationError(errors) from e

    return config


def load_app_config() -> AppConfig:
    """Read the machine-wide settings written by ``ec2-kitchen init``.

    Without the file, credentials come from the environment alone.
    """
    if not APP_CONFIG_PATH.is_file():
        return AppConfig()
    return AppConfig(**read_settings(APP_CONFIG_PATH))
