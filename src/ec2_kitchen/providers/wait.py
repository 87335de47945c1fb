"""Generic wait/polling utilities for providers.

Instance and spot-request readiness wait without a deadline by default: boot
times are unpredictable and the provider is trusted to fail a request it
cannot fulfil. A stuck instance therefore blocks ``create`` until
``ready_timeout`` is configured.
"""

from __future__ import annotations

import logging
import socket
import time
from collections.abc import Callable
from dataclasses import dataclass

from ec2_kitchen.providers.base import ReadinessTimeoutError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """How often and for how long to re-evaluate a readiness predicate.

    Attributes:
        interval: Seconds slept between attempts.
        max_attempts: Give up after this many evaluations. ``None`` = no limit.
        deadline: Give up once this many seconds have elapsed. ``None`` = no limit.
        sleep: Sleep function, replaceable in tests.
        clock: Monotonic clock, replaceable in tests.
    """

    interval: float = 1.0
    max_attempts: int | None = None
    deadline: float | None = None
    sleep: Callable[[float], None] = time.sleep
    clock: Callable[[], float] = time.monotonic

    @classmethod
    def unbounded(cls, interval: float = 1.0) -> RetryPolicy:
        return cls(interval=interval)

    @property
    def is_unbounded(self) -> bool:
        return self.max_attempts is None and self.deadline is None


def wait_until(
    predicate: Callable[[], bool],
    policy: RetryPolicy,
    description: str = "resource",
) -> int:
    """Block until *predicate* returns True.

    Returns:
        The number of attempts it took.

    Raises:
        ReadinessTimeoutError: If the policy's attempts or deadline run out.
    """
    start = policy.clock()
    attempt = 0

    while True:
        attempt += 1
        if predicate():
            logger.debug("%s ready after %d attempt(s)", description, attempt)
            return attempt

        if policy.max_attempts is not None and attempt >= policy.max_attempts:
            raise ReadinessTimeoutError(
                f"{description} not ready after {attempt} attempts"
            )

        elapsed = policy.clock() - start
        if policy.deadline is not None and elapsed >= policy.deadline:
            raise ReadinessTimeoutError(
                f"{description} not ready within {policy.deadline:.0f}s"
            )

        logger.debug("[%.0fs] Waiting for %s (attempt %d)", elapsed, description, attempt)
        policy.sleep(policy.interval)


def port_open(host: str, port: int, timeout: float) -> bool:
    """Return True if a TCP connection to *host*:*port* succeeds within *timeout*."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError as e:
        logger.debug("Connection to %s:%d failed: %s", host, port, e)
        return False


def wait_for_sshd(
    host: str,
    port: int = 22,
    timeout: float = 1,
    retries: int = 3,
    interval: float = 1.0,
    check: Callable[[str, int, float], bool] = port_open,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Wait for the SSH daemon on *host* to accept connections.

    Raises:
        ReadinessTimeoutError: If no attempt succeeds within *retries* attempts.
    """
    logger.info("Waiting for SSH on %s:%d (%d attempts, %ss each)", host, port, retries, timeout)
    policy = RetryPolicy(interval=interval, max_attempts=retries, sleep=sleep)
    wait_until(lambda: check(host, port, timeout), policy, description=f"SSH on {host}:{port}")
