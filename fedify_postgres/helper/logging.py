"""
Logging utilities for the PostgreSQL message queue.

All module loggers are children of the ``fedify_postgres`` logger, which owns
the single console handler. Keyword arguments passed to a log call are
rendered as ``key=value`` pairs after the message.
"""

import logging
import sys
from typing import Any, Dict, Optional, TextIO

ROOT_LOGGER_NAME = "fedify_postgres"


class ColorFormatter(logging.Formatter):
    """
    Console formatter that colours the level name.
    """

    LEVEL_COLORS: Dict[int, str] = {
        logging.DEBUG: "\033[95m",
        logging.INFO: "\033[94m",
        logging.WARNING: "\033[93m",
        logging.ERROR: "\033[91m",
        logging.CRITICAL: "\033[41m",
    }
    RESET = "\033[0m"

    def __init__(
        self,
        use_colors: bool = True,
        include_timestamp: bool = True,
        stream: Optional[TextIO] = None,
    ):
        """
        :param use_colors: Colour the level name, only honoured on a TTY.
        :param include_timestamp: Prefix every line with the local time.
        :param stream: Stream the output goes to, used for TTY detection.
        """
        target = stream or sys.stdout
        self.use_colors = use_colors and hasattr(target, "isatty") and target.isatty()
        self.include_timestamp = include_timestamp

        fmt = "%(levelname)s [%(name)s]: %(message)s"
        if include_timestamp:
            fmt = "%(asctime)s " + fmt
        super().__init__(fmt, datefmt="%Y-%m-%d %H:%M:%S")

    def formatMessage(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno) if self.use_colors else None
        if color is None:
            return super().formatMessage(record)

        plain = record.levelname
        record.levelname = f"{color}{plain}{self.RESET}"
        try:
            return super().formatMessage(record)
        finally:
            record.levelname = plain


def format_context(context: Dict[str, Any]) -> str:
    """Render keyword context as ``key=value`` pairs, skipping None values."""
    return " ".join(f"{k}={v}" for k, v in context.items() if v is not None)


class StoreLogger:
    """
    Thin wrapper around a stdlib logger that accepts keyword context.

    Example::

        logger = get_logger(__name__)
        logger.info("Enqueued message", table="fedify_message_v2", delay="PT3S")
    """

    def __init__(self, name: str = ROOT_LOGGER_NAME, level: Optional[int] = None):
        self.logger = logging.getLogger(name)
        if level is not None:
            self.logger.setLevel(level)

    @property
    def name(self) -> str:
        return self.logger.name

    def debug(self, message: str, **kwargs: Any) -> None:
        self.log_with_context(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self.log_with_context(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self.log_with_context(logging.WARNING, message, **kwargs)

    def error(
        self, message: str, error: Optional[BaseException] = None, **kwargs: Any
    ) -> None:
        """
        Log an error, the exception text follows the message.

        :param message: The log message.
        :param error: Optional exception to include in the log.
        :param kwargs: Additional context to include in the log.
        """
        if error is not None:
            message = f"{message}: {error}"
        self.log_with_context(logging.ERROR, message, **kwargs)

    def log_with_context(self, level: int, message: str, **kwargs: Any) -> None:
        if not self.logger.isEnabledFor(level):
            return
        context = format_context(kwargs)
        if context:
            message = f"{message} | {context}"
        # stacklevel points the record at the caller of debug()/info()/...
        self.logger.log(level, message, stacklevel=3)

    def set_level(self, level: int) -> None:
        self.logger.setLevel(level)


_loggers: Dict[str, StoreLogger] = {}
_handler: Optional[logging.Handler] = None


def setup_logging(
    level: int = logging.INFO,
    use_colors: bool = True,
    stream: Optional[TextIO] = None,
) -> logging.Handler:
    """
    Configure the package console handler and level.
    Calling it again replaces the handler installed by the previous call.

    :param level: Level of the ``fedify_postgres`` logger, inherited by all
        module loggers that have no level of their own.
    :param use_colors: Whether to colour the level name.
    :param stream: Output stream, sys.stdout by default.
    :returns: The installed handler.
    """
    global _handler
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if _handler is not None:
        root.removeHandler(_handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(ColorFormatter(use_colors=use_colors, stream=stream))
    root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False
    _handler = handler
    return handler


def get_logger(name: str = ROOT_LOGGER_NAME) -> StoreLogger:
    """
    Get or create the logger for a module, usually called with ``__name__``.
    Installs the default console handler on first use.
    """
    if _handler is None:
        setup_logging()
    if name not in _loggers:
        _loggers[name] = StoreLogger(name)
    return _loggers[name]
