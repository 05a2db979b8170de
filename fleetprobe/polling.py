"""
Bounded polling combinator.

``poll()`` owns the attempt counting and the timeout; callers supply the
status check and the evaluation of its result.  No blind sleeps beyond
the fixed interval, and no sleep once a result has been produced.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from fleetprobe.config import POLL_INTERVAL, POLL_MAX_ATTEMPTS
from fleetprobe.errors import PollTimeout, TransientPollFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


async def poll(
    check: Callable[[int], Awaitable[T]],
    evaluate: Callable[[T], R | None],
    *,
    interval: float = POLL_INTERVAL,
    max_attempts: int = POLL_MAX_ATTEMPTS,
    timeout_message: str = "Polling timed out",
    on_transient: Callable[[int, TransientPollFailure], None] | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> R:
    """Run *check* up to *max_attempts* times, *interval* seconds apart.

    Each attempt sleeps first, then calls ``check(attempt)`` (1-based).
    A :class:`TransientPollFailure` from the check is reported through
    *on_transient* and costs only that attempt.  ``evaluate(result)``
    returns the final value, ``None`` to keep polling, or raises a
    terminal error which propagates unchanged.

    Raises :class:`PollTimeout` once every attempt is spent.
    """
    for attempt in range(1, max_attempts + 1):
        await sleep(interval)
        try:
            result = await check(attempt)
        except TransientPollFailure as exc:
            logger.debug("Poll attempt %d/%d failed: %s", attempt, max_attempts, exc.detail)
            if on_transient is not None:
                on_transient(attempt, exc)
            continue

        value = evaluate(result)
        if value is not None:
            return value

    raise PollTimeout(timeout_message)
