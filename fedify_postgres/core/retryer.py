"""
Retryer for message handlers.

Runs a sync or async handler for one message up to OnError.max_retries times
with the configured backoff between attempts.
"""

import asyncio
import inspect
from typing import Any, Callable, Optional

from ..helper.logging import get_logger
from ..model.options_on_error import OnError

logger = get_logger(__name__)


async def call_handler(function: Callable[..., Any], *args: Any) -> Any:
    """Call a handler and await its result if it returned an awaitable."""
    result = function(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class Retryer:
    """Retries a handler call with a backoff strategy."""

    def __init__(self, function: Callable[..., Any], options: Optional[OnError]):
        """Initialize the retryer.

        :param function: The function to execute with retries (can be sync or async)
        :param options: OnError options for retry behavior
        :raises ValueError: If options are invalid
        """
        if options is None or options.max_retries <= 0 or options.retry_delay < 0:
            raise ValueError("No valid retry options provided")

        self.function = function
        self.options = options

    async def retry(self, *args: Any) -> Optional[Exception]:
        """Attempt to execute the function up to max_retries times.

        The wait before retry n is OnError.delay_before(n), so the backoff
        starts over for every call.

        :param args: Arguments passed to the function on every attempt.
        :returns: The last exception if all attempts fail, otherwise None.
        """
        last_error: Optional[Exception] = None
        attempts = self.options.max_retries

        for attempt in range(1, attempts + 1):
            if attempt > 1:
                await asyncio.sleep(self.options.delay_before(attempt - 1))
            try:
                await call_handler(self.function, *args)
                return None
            except Exception as err:
                last_error = err
                logger.warning(
                    f"Handler attempt {attempt}/{attempts} failed", error=repr(err)
                )

        return last_error
