"""Ordered fan-out for the per-unit generation calls of steps 4 and 5."""

import asyncio
import logging
from functools import partial
from typing import Any, Awaitable, Iterable

logger = logging.getLogger(__name__)


def _log_unit_failure(label: str, task: asyncio.Task) -> None:
    # marks the exception retrieved once gather() has already raised
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning(f"{label} failed: {type(exc).__name__}: {exc}")


async def gather_units(units: Iterable[tuple[str, Awaitable[Any]]]) -> list[Any]:
    """Run labelled awaitables concurrently and return results in input order.

    The first failure propagates. Units still in flight keep running and
    their own failures are logged with their label.
    """
    tasks = []
    for label, awaitable in units:
        task = asyncio.ensure_future(awaitable)
        task.add_done_callback(partial(_log_unit_failure, label))
        tasks.append(task)
    return list(await asyncio.gather(*tasks))
