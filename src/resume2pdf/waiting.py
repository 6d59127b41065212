"""
Poll-until-ready primitive shared by every wait in the preparation stage.
"""

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


async def poll_until(check: Callable[[], Awaitable[bool]],
                     timeout: float,
                     interval: float = 0.2,
                     description: str = "condition") -> bool:
    """
    Await ``check`` until it returns a truthy value or ``timeout`` seconds pass.

    The first check runs immediately, so an already-satisfied condition never
    sleeps. An exception from ``check`` counts as "not ready yet".

    Args:
        check: coroutine function returning readiness
        timeout: seconds before giving up
        interval: seconds between checks
        description: label used in log messages

    Returns:
        True if the condition was met, False on timeout
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + max(timeout, 0)
    attempts = 0

    while True:
        attempts += 1
        try:
            if await check():
                logger.debug(f"{description}: ready after {attempts} check(s)")
                return True
        except Exception as e:
            logger.debug(f"{description}: check failed ({e}), retrying")

        remaining = deadline - loop.time()
        if remaining <= 0:
            logger.warning(f"Timed out after {timeout}s waiting for {description}")
            return False
        await asyncio.sleep(min(interval, remaining))


async def settle(seconds: float):
    """Fixed stabilization delay for animations and transitions."""
    if seconds and seconds > 0:
        await asyncio.sleep(seconds)
