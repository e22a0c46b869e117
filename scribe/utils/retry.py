"""
RETRY UTILITY
=============

Awaits a coroutine factory and, if it raises one of the retryable exception
types, retries a few times with exponential backoff. Used for embedding calls
so a dropped connection or a network blip doesn't immediately fail retrieval.
HTTP error answers are not retried (they are raised as UpstreamHTTPError,
which callers leave out of retry_on).

Example:
  vectors = await with_retry(lambda: self._post(body), retry_on=(httpx.TransportError,))
"""

import asyncio
import logging
from typing import Awaitable, Callable, Tuple, Type, TypeVar


logger = logging.getLogger("scribe")

# Type variable: with_retry returns whatever the awaited callable returns.
T = TypeVar("T")


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    initial_delay: float = 1.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
) -> T:
    """
    Await fn(). If it raises a retry_on exception, sleep initial_delay seconds and try
    again; delay doubles each retry. After max_retries attempts (including the first),
    re-raise the last exception. Other exceptions propagate immediately.
    """
    delay = initial_delay

    for attempt in range(max_retries):
        try:
            return await fn()
        except retry_on as e:
            if attempt == max_retries - 1:
                raise
            logger.warning(
                "Attempt %s/%s failed (%s). Retrying in %.1fs: %s",
                attempt + 1,
                max_retries,
                fn.__name__ if hasattr(fn, "__name__") else "call",
                delay,
                e,
            )
            await asyncio.sleep(delay)
            delay *= 2  # Exponential backoff: 1s, 2s, 4s, ...

    raise RuntimeError("with_retry called with max_retries < 1")
