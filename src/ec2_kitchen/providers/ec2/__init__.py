"""EC2 provider package: re-exports."""

from __future__ import annotations

from ec2_kitchen.providers.ec2.amis import ImageCatalog
from ec2_kitchen.providers.ec2.client import Ec2Connection
from ec2_kitchen.providers.ec2.driver import Ec2Driver
from ec2_kitchen.providers.ec2.hostname import InterfaceType, resolve_hostname
from ec2_kitchen.providers.ec2.strategies import OnDemandStrategy, SpotStrategy, select_strategy

__all__ = [
    "Ec2Connection",
    "Ec2Driver",
    "ImageCatalog",
    "InterfaceType",
    "OnDemandStrategy",
    "SpotStrategy",
    "resolve_hostname",
    "select_strategy",
]
