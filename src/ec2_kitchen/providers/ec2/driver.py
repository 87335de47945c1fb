"""EC2 test-environment driver: create and destroy one instance per state record."""

from __future__ import annotations

import logging
from collections.abc import Callable

from botocore.exceptions import BotoCoreError, ClientError

from ec2_kitchen.config.schema import DriverConfig
from ec2_kitchen.config.validation import ConfigValidationError, validate_driver, warn_deprecated
from ec2_kitchen.providers.base import (
    ActionFailed,
    Provider,
    ProvisioningError,
    ProvisioningState,
    ReadinessTimeoutError,
)
from ec2_kitchen.providers.ec2.amis import ImageCatalog
from ec2_kitchen.providers.ec2.client import Ec2Connection
from ec2_kitchen.providers.ec2.hostname import resolve_hostname
from ec2_kitchen.providers.ec2.strategies import select_strategy
from ec2_kitchen.providers.wait import RetryPolicy, wait_for_sshd, wait_until

logger = logging.getLogger(__name__)

# Some providers report an instance ready before it has a real address
NULL_ADDRESS = "0.0.0.0"

PROVIDER_ERRORS = (ClientError, BotoCoreError)

COST_NOTICE = (
    "If you are not using an account that qualifies under the AWS free-tier, "
    "you may be charged to run these suites. The charge should be minimal, "
    "but neither ec2-kitchen nor its maintainers are responsible for your incurred costs."
)


class Ec2Driver(Provider):
    """Amazon EC2 lifecycle manager for disposable test instances."""

    def __init__(
        self,
        config: DriverConfig,
        catalog: ImageCatalog | None = None,
        connection_factory: Callable[[DriverConfig], Ec2Connection] | None = None,
        policy: RetryPolicy | None = None,
        sshd_check: Callable[[str, int, float], bool] | None = None,
    ) -> None:
        """
        Raises:
            ConfigValidationError: If the config cannot be used to launch anything.
        """
        self.catalog = catalog or ImageCatalog()
        self.config = self.catalog.apply_defaults(config)
        warn_deprecated(self.config)
        errors = validate_driver(self.config)
        if errors:
            raise ConfigValidationError(errors)

        self._connection_factory = connection_factory or Ec2Connection.from_config
        self.policy = policy or RetryPolicy(
            interval=self.config.poll_interval, deadline=self.config.ready_timeout
        )
        self._sshd_kwargs: dict = {"sleep": self.policy.sleep}
        if sshd_check is not None:
            self._sshd_kwargs["check"] = sshd_check

    def _connect(self) -> Ec2Connection:
        """Open a fresh connection; nothing is cached between operations."""
        return self._connection_factory(self.config)

    def _wait_for_server(self, connection: Ec2Connection, server_id: str) -> str:
        """Wait until the instance is running with a usable address; return it."""
        resolved: dict[str, str] = {}

        def _ready() -> bool:
            server = connection.get_server(server_id)
            if server is None or not server.ready:
                return False
            hostname = resolve_hostname(server, self.config.interface)
            if hostname is None or hostname == NULL_ADDRESS:
                return False
            resolved["hostname"] = hostname
            return True

        wait_until(_ready, self.policy, description=f"EC2 instance {server_id}")
        logger.info("EC2 instance <%s> ready", server_id)
        return resolved["hostname"]

    def create(self, state: ProvisioningState) -> ProvisioningState:
        """Launch an instance and wait until SSH accepts connections.

        Does nothing if *state* already records a server.

        Raises:
            ActionFailed: On any EC2 error, a spot request that will never be
                fulfilled, or if SSH never becomes reachable.
                ``state.server_id`` stays set if the instance was launched.
            ResourceNotFoundError: If the configured image does not exist.
        """
        if state.server_id:
            return state

        logger.info("Creating EC2 instance...")
        logger.info(COST_NOTICE)

        def _launched(server_id: str) -> None:
            state.server_id = server_id
            logger.info("EC2 instance <%s> created.", server_id)

        try:
            connection = self._connect()
            strategy = select_strategy(self.config, connection, policy=self.policy)
            server = strategy.submit(on_launched=_launched)

            state.hostname = self._wait_for_server(connection, server.id)
            wait_for_sshd(
                state.hostname,
                port=self.config.ssh_port,
                timeout=self.config.ssh_timeout,
                retries=self.config.ssh_retries,
                interval=self.config.poll_interval,
                **self._sshd_kwargs,
            )
            logger.info("SSH ready on %s", state.hostname)
        except (*PROVIDER_ERRORS, ProvisioningError, ReadinessTimeoutError) as e:
            raise ActionFailed(str(e), state=state) from e

        logger.debug("ec2:create '%s'", state.hostname)
        return state

    def destroy(self, state: ProvisioningState) -> ProvisioningState:
        """Terminate the recorded instance and clear *state*.

        An instance that no longer exists counts as destroyed.

        Raises:
            ActionFailed: On any EC2 error; *state* is left unchanged.
        """
        if state.server_id is None:
            return state

        try:
            connection = self._connect()
            server = connection.get_server(state.server_id)
            if server is not None:
                connection.terminate(server.id)
        except PROVIDER_ERRORS as e:
            raise ActionFailed(str(e), state=state) from e

        logger.info("EC2 instance <%s> destroyed.", state.server_id)
        state.server_id = None
        state.hostname = None
        return state
