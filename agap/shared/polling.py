"""
Fixed-interval status polling.

A single timer with two exit conditions: the checked status reaches a
terminal value, or the timeout elapses. Used by the alert and report
"watch" websockets so a citizen can wait for a responder without hammering
the API from the device.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from agap.shared import config

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = frozenset({"accepted", "rejected", "canceled", "completed"})

TIMEOUT_MESSAGE = "No response received. Please try again."


class PollTimeout(Exception):
    """Raised when no terminal status was seen before the timeout."""

    def __init__(self, last_status: Optional[dict] = None, message: str = TIMEOUT_MESSAGE):
        super().__init__(message)
        self.last_status = last_status


def is_terminal(status: Optional[dict]) -> bool:
    return bool(status) and status.get("status") in TERMINAL_STATUSES


async def poll_status(
    check: Callable[[], Awaitable[dict]],
    interval: Optional[float] = None,
    timeout: Optional[float] = None,
    on_update: Optional[Callable[[dict], Awaitable[None]]] = None,
    on_error: Optional[Callable[[str], Awaitable[None]]] = None,
    sleep=asyncio.sleep,
    clock=time.monotonic,
) -> dict:
    """
    Call ``check`` immediately and then once per ``interval`` seconds.

    Returns the first status whose ``status`` field is terminal. Raises
    PollTimeout once ``timeout`` seconds have passed without one. A failing
    check is logged and reported through ``on_error``; polling carries on.
    """
    interval = config.STATUS_POLL_INTERVAL_SECONDS if interval is None else interval
    timeout = config.STATUS_POLL_TIMEOUT_SECONDS if timeout is None else timeout
    deadline = clock() + timeout
    last_status = None

    while True:
        try:
            last_status = await check()
        except Exception as e:
            logger.warning(f"Status check failed: {e}")
            if on_error:
                await on_error("Failed to check status")
        else:
            if on_update:
                await on_update(last_status)
            if is_terminal(last_status):
                logger.debug(f"Terminal status reached: {last_status}")
                return last_status

        remaining = deadline - clock()
        if remaining <= 0:
            logger.info("Status polling timed out")
            raise PollTimeout(last_status)
        await sleep(min(interval, remaining))
        if clock() >= deadline:
            logger.info("Status polling timed out")
            raise PollTimeout(last_status)
