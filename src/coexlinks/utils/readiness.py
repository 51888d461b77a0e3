"""
Bounded wait for a collaborator that finishes loading in the background.

The Gene Ontology service loads its ontology asynchronously; callers poll
`is_ready()` until it reports True. The wait is bounded: after `timeout`
seconds a ServiceNotReadyError is raised instead of blocking forever.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from coexlinks.exceptions import ServiceNotReadyError

__all__ = ['wait_until_ready', 'DEFAULT_TIMEOUT', 'DEFAULT_POLL_INTERVAL']

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300.0
DEFAULT_POLL_INTERVAL = 1.0


def wait_until_ready(
    is_ready: Callable[[], bool],
    timeout: float = DEFAULT_TIMEOUT,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    name: str = "service",
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> float:
    """
    Poll `is_ready` until it returns True or the timeout expires.

    Args:
        is_ready: Readiness probe
        timeout: Maximum seconds to wait (must be >= 0)
        poll_interval: Seconds between probes (must be > 0)
        name: Service name for log and error messages
        sleep, clock: Injectable for tests

    Returns:
        Seconds spent waiting

    Raises:
        ServiceNotReadyError: If the service is still not ready after `timeout`
    """
    if timeout < 0:
        raise ValueError(f"timeout must be >= 0, got {timeout}")
    if poll_interval <= 0:
        raise ValueError(f"poll_interval must be > 0, got {poll_interval}")

    start = clock()
    waited_logged = False
    while not is_ready():
        elapsed = clock() - start
        if elapsed >= timeout:
            raise ServiceNotReadyError(f"{name} not ready after {timeout:.0f}s")
        if not waited_logged:
            logger.info(f"Waiting for {name} to be ready (timeout {timeout:.0f}s)...")
            waited_logged = True
        sleep(min(poll_interval, max(timeout - elapsed, 0.0)))

    elapsed = clock() - start
    if waited_logged:
        logger.info(f"{name} ready after {elapsed:.1f}s")
    return elapsed
