"""
Retry policy for message handlers.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union


class RetryBackoff(str, Enum):
    """Growth of the wait between two handler attempts."""

    NONE = "none"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


@dataclass(frozen=True)
class OnError:
    """
    Options for handling handler failures while draining the queue.

    Without an OnError a failing handler ends listen(). With one, the handler
    is attempted up to max_retries times for the same message before the last
    error is raised.

    :param max_retries: Number of attempts for one message, at least 1.
    :param retry_delay: Seconds to wait before the first retry.
    :param retry_backoff: How the wait grows for later retries.
    """

    max_retries: int = 3
    retry_delay: float = 1.0
    retry_backoff: Union[RetryBackoff, str] = RetryBackoff.NONE

    def __post_init__(self):
        if self.max_retries < 1:
            raise ValueError("max retries must be at least 1")
        if self.retry_delay < 0:
            raise ValueError("retry delay cannot be negative")
        try:
            backoff = RetryBackoff(self.retry_backoff)
        except ValueError:
            raise ValueError(f"invalid retry backoff: {self.retry_backoff!r}") from None
        object.__setattr__(self, "retry_backoff", backoff)

    def delay_before(self, retry: int) -> float:
        """
        Seconds to wait before a retry.

        :param retry: 1 for the first retry, i.e. the second attempt.
        """
        if self.retry_backoff is RetryBackoff.LINEAR:
            return self.retry_delay * retry
        if self.retry_backoff is RetryBackoff.EXPONENTIAL:
            return self.retry_delay * 2 ** (retry - 1)
        return self.retry_delay
