"""Rich console output for the create and destroy phases."""

from __future__ import annotations

import json

from rich.console import Console
from rich.table import Table

from ec2_kitchen.config.schema import DriverConfig
from ec2_kitchen.providers.base import ProvisioningState

console = Console()


def config_table(config: DriverConfig, title: str) -> Table:
    """Summarise the settings that decide what gets launched."""
    table = Table(title=title)
    table.add_column("Setting", style="bold")
    table.add_column("Value")

    table.add_row("Region", config.region)
    if config.availability_zone:
        table.add_row("Availability zone", config.availability_zone)
    table.add_row("Instance type", config.flavor_id)
    table.add_row("Image", config.image_id or "-")
    table.add_row("Username", config.username or "-")
    table.add_row("Purchasing", f"spot (max ${config.price}/hr)" if config.is_spot else "on-demand")
    if config.subnet_id:
        table.add_row("Subnet", config.subnet_id)
    table.add_row("Public IP", "yes" if config.associate_public_ip else "no")
    table.add_row("Interface", config.interface or "dns > public > private")
    if config.block_device_mappings:
        devices = ", ".join(m.ebs_device_name or "?" for m in config.block_device_mappings)
        table.add_row("Block devices", devices)
    return table


class LifecycleProgress:
    """Manages Rich output for the create and destroy phases."""

    # --- Create ---

    def phase_create(self, config: DriverConfig) -> None:
        purchasing = "spot" if config.is_spot else "on-demand"
        console.print(
            f"\n[bold][1/2] Creating instance...[/bold]\n"
            f"      Type: {config.flavor_id} ({purchasing})"
        )

    def phase_create_done(self, state: ProvisioningState) -> None:
        console.print(f"      [green]Instance created:[/green] {state.server_id}")
        console.print(f"      [green]Hostname:[/green] {state.hostname}")

    def phase_create_skipped(self, state: ProvisioningState) -> None:
        console.print(
            f"\n[bold][1/2] Creating instance[/bold] [dim]skipped (already created)[/dim]\n"
            f"      Instance: {state.server_id}"
        )

    # --- State handoff ---

    def phase_state(self, state: ProvisioningState, username: str | None) -> None:
        console.print("\n[bold][2/2] State[/bold]")
        payload = dict(state.to_dict(), username=username)
        console.print_json(json.dumps(payload))

    # --- Destroy ---

    def phase_destroy(self, server_id: str) -> None:
        console.print(f"\n[bold]Destroying instance...[/bold]\n      Instance: {server_id}")

    def phase_destroy_done(self) -> None:
        console.print("      [green]Instance destroyed[/green]")
