"""CLI entry point for ec2-kitchen."""

from __future__ import annotations

import logging
import os
import sys

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from ec2_kitchen.config.loader import (
    APP_CONFIG_DIR,
    APP_CONFIG_PATH,
    CREDENTIAL_ENV_VARS,
    load_app_config,
    load_driver_config,
)
from ec2_kitchen.config.schema import AppConfig, DriverConfig
from ec2_kitchen.config.validation import ConfigValidationError
from ec2_kitchen.output.console import LifecycleProgress, config_table
from ec2_kitchen.providers.base import ActionFailed, ProvisioningState, ResourceNotFoundError
from ec2_kitchen.providers.ec2.amis import check_amis_staleness
from ec2_kitchen.providers.ec2.driver import Ec2Driver

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="ec2-kitchen",
    help="Provision and tear down disposable EC2 instances for test suites.",
)

console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Configure logging for every command."""
    package_logger = logging.getLogger("ec2_kitchen")
    package_logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    if not any(isinstance(h, RichHandler) for h in package_logger.handlers):
        package_logger.addHandler(RichHandler(console=console, show_path=False))


def _credentials_configured() -> bool:
    """Non-raising check for whether AWS keys are available."""
    key_vars = CREDENTIAL_ENV_VARS["aws_access_key_id"]
    secret_vars = CREDENTIAL_ENV_VARS["aws_secret_access_key"]
    if any(os.environ.get(v) for v in key_vars) and any(os.environ.get(v) for v in secret_vars):
        return True
    aws = load_app_config().aws
    return bool(aws.aws_access_key_id and aws.aws_secret_access_key)


def _load_driver(config: str, platform: str | None) -> tuple[DriverConfig, Ec2Driver]:
    """Load a driver config and build the driver, exiting with 1 on bad config."""
    try:
        driver_config = load_driver_config(config)
        if platform is not None:
            driver_config = driver_config.model_copy(update={"platform": platform})
        driver = Ec2Driver(driver_config)
    except ConfigValidationError as e:
        console.print("[red]Config validation failed:[/red]")
        for err in e.errors:
            console.print(f"  - {escape(err)}")
        raise typer.Exit(1)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    return driver.config, driver


@app.command()
def init() -> None:
    """Create default application config at ~/.ec2-kitchen/config.yaml."""
    APP_CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    if APP_CONFIG_PATH.exists():
        console.print(f"[yellow]Config already exists:[/yellow] {APP_CONFIG_PATH}")
        console.print("Edit it to update your settings. Not overwriting.")
        return

    defaults = AppConfig()
    with open(APP_CONFIG_PATH, "w") as f:
        yaml.dump(defaults.model_dump(), f, default_flow_style=False, sort_keys=False)

    console.print(f"[green]Created config:[/green] {APP_CONFIG_PATH}")
    console.print("Set your AWS credentials:")
    console.print(f"  Edit {APP_CONFIG_PATH} and set aws.aws_access_key_id and friends")
    console.print("  Or set AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY / AWS_SSH_KEY_ID")


@app.command()
def doctor(
    region: str = typer.Option("us-east-1", "--region", help="Region whose endpoint to check"),
) -> None:
    """Check environment readiness."""
    all_ok = True

    # 1. Python version
    py_ver = sys.version_info
    if py_ver >= (3, 10):
        console.print(f"[green]OK[/green]   Python {py_ver.major}.{py_ver.minor}.{py_ver.micro}")
    else:
        console.print(
            f"[red]FAIL[/red] Python {py_ver.major}.{py_ver.minor}.{py_ver.micro} "
            f"(need >= 3.10)"
        )
        all_ok = False

    # 2. AWS credentials
    if _credentials_configured():
        console.print("[green]OK[/green]   AWS credentials configured")
    else:
        console.print("[red]FAIL[/red] AWS credentials not found")
        console.print("       Set AWS_ACCESS_KEY_ID/AWS_SECRET_ACCESS_KEY or run 'ec2-kitchen init'")
        all_ok = False

    # 3. AMI table staleness
    is_stale, age_days = check_amis_staleness()
    if is_stale:
        console.print(f"[yellow]WARN[/yellow] Default AMI table is {age_days} days old")
    else:
        console.print(f"[green]OK[/green]   Default AMI table ({age_days} days old)")

    # 4. Network connectivity (non-fatal)
    try:
        import httpx

        resp = httpx.get(f"https://ec2.{region}.amazonaws.com/", timeout=5)
        if resp.status_code < 500:  # unsigned requests are rejected, but the API answered
            console.print(f"[green]OK[/green]   EC2 endpoint reachable ({region})")
        else:
            console.print(f"[yellow]WARN[/yellow] EC2 endpoint returned status {resp.status_code}")
    except Exception:
        console.print("[yellow]WARN[/yellow] Could not reach the EC2 endpoint (are you offline?)")

    if not all_ok:
        raise typer.Exit(1)


@app.command()
def create(
    config: str = typer.Argument(help="Path to driver YAML config"),
    platform: str | None = typer.Option(None, "--platform", help="Platform name for AMI defaults"),
    server_id: str | None = typer.Option(
        None, "--server-id", help="Instance already created; creation is skipped"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Validate config and show summary only"),
) -> None:
    """Create an instance and print its state."""
    driver_config, driver = _load_driver(config, platform)
    console.print(config_table(driver_config, title="EC2 instance"))

    if dry_run:
        console.print("\n[green]Config is valid.[/green] Dry run complete.")
        return

    progress = LifecycleProgress()
    state = ProvisioningState(server_id=server_id)
    if state.server_id:
        progress.phase_create_skipped(state)
    else:
        progress.phase_create(driver_config)

    try:
        driver.create(state)
    except ActionFailed as e:
        console.print(f"\n[red]Create failed:[/red] {escape(str(e))}")
        if e.state is not None and e.state.server_id:
            console.print(
                f"[red]Instance {e.state.server_id} may still be running. "
                f"Run 'ec2-kitchen destroy {config} --server-id {e.state.server_id}'.[/red]"
            )
        raise typer.Exit(1)
    except ResourceNotFoundError as e:
        console.print(f"\n[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        if state.server_id:
            console.print(f"[yellow]Instance {state.server_id} was left running.[/yellow]")
        raise typer.Exit(1)

    progress.phase_create_done(state)
    progress.phase_state(state, driver_config.username)


@app.command()
def destroy(
    config: str = typer.Argument(help="Path to driver YAML config"),
    server_id: str = typer.Option(..., "--server-id", help="Instance to terminate"),
) -> None:
    """Terminate an instance created by ``create``."""
    _, driver = _load_driver(config, None)
    progress = LifecycleProgress()
    progress.phase_destroy(server_id)

    try:
        driver.destroy(ProvisioningState(server_id=server_id))
    except ActionFailed as e:
        console.print(
            f"[red]Failed to terminate instance {server_id}:[/red] {escape(str(e))}\n"
            f"[red]MANUAL ACTION REQUIRED: terminate via the EC2 console.[/red]"
        )
        raise typer.Exit(1)

    progress.phase_destroy_done()


if __name__ == "__main__":
    app()
