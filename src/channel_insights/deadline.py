import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar

from channel_insights.errors import OperationTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_deadline(awaitable: Awaitable[T], seconds: float | None, operation: str) -> T:
    """Await ``awaitable`` for at most ``seconds``.

    On expiry the pending operation is cancelled and its late result discarded.
    ``None`` disables the deadline.
    """
    if seconds is None:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError as exc:
        logger.warning("%s timed out after %.1fs", operation, seconds)
        raise OperationTimeoutError(operation, seconds) from exc
