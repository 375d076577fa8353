"""
Structured fan-out helpers for the web pipeline.

first_successful races coroutine factories and cancels the losers once a
winner is accepted; gather_settled runs everything to completion and splits
results from errors. Both cancel their children when the caller is
cancelled, so no request outlives the call that started it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple, TypeVar

from .errors import AllSourcesExhausted

T = TypeVar("T")
Factory = Callable[[], Awaitable[T]]

log = logging.getLogger(__name__)


async def _cancel_all(tasks: Sequence[asyncio.Task]) -> None:
    for task in tasks:
        if not task.done():
            task.cancel()
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)


async def first_successful(
    factories: Sequence[Factory],
    accept: Optional[Callable[[T], bool]] = None,
) -> T:
    """
    Start one task per factory and return the first result that completes
    without raising (and passes `accept`, when given). Remaining tasks are
    cancelled and awaited before returning.
    """
    if not factories:
        raise AllSourcesExhausted("nothing to race", "race")

    tasks = [asyncio.ensure_future(factory()) for factory in factories]
    pending = set(tasks)
    last_error: Optional[BaseException] = None
    try:
        while pending:
            done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                if task.cancelled():
                    continue
                error = task.exception()
                if error is not None:
                    log.debug("Race participant failed: %s", error)
                    last_error = error
                    continue
                result = task.result()
                if accept is not None and not accept(result):
                    continue
                return result
    finally:
        await _cancel_all(tasks)

    raise AllSourcesExhausted("every source failed", "race") from last_error


async def gather_settled(factories: Sequence[Factory]) -> Tuple[List[T], List[BaseException]]:
    """Run all factories concurrently; results keep submission order."""
    tasks = [asyncio.ensure_future(factory()) for factory in factories]
    try:
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)
    except asyncio.CancelledError:
        await _cancel_all(tasks)
        raise

    results: List[T] = []
    errors: List[BaseException] = []
    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            errors.append(outcome)
        else:
            results.append(outcome)
    return results, errors
