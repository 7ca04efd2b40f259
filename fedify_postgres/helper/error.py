"""
Error type of the PostgreSQL message queue and key-value store.

Driver exceptions are wrapped once where they happen. Wrapping a StoreError
again keeps the first driver exception and appends to its trace, so the
message reads from the innermost operation outwards.
"""

import sys
from typing import List


def _caller_name(depth: int) -> str:
    try:
        return sys._getframe(depth + 1).f_code.co_name
    except ValueError:
        return "<unknown>"


class StoreError(Exception):
    """
    Error raised by the queue and key-value store.

    :param trace: The operation that failed, e.g. ``"claim message from t"``.
    :param original: The exception that caused the failure.
    """

    original: BaseException
    trace: List[str]

    def __init__(self, trace: str, original: BaseException):
        # Entry is "<function that raised> - <operation>"
        entry = f"{_caller_name(1)} - {trace}"

        if isinstance(original, StoreError):
            self.original = original.original
            self.trace = [*original.trace, entry]
        else:
            self.original = original
            self.trace = [entry]

        super().__init__(str(self.original))
        self.__cause__ = original

    @property
    def operation(self) -> str:
        """The outermost operation, without the function name."""
        return self.trace[-1].split(" - ", 1)[-1]

    def __str__(self) -> str:
        return f"{self.original} | Trace: {', '.join(self.trace)}"
