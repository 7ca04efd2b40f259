"""
Model package for fedify_postgres.

Contains the message row and the option objects.
"""

from .message import Message
from .options import (
    DEFAULT_CHANNEL,
    DEFAULT_KV_TABLE,
    DEFAULT_MESSAGE_TABLE,
    DEFAULT_POLL_INTERVAL,
    KvStoreOptions,
    MessageQueueOptions,
)
from .options_on_error import OnError, RetryBackoff

__all__ = [
    # Message
    "Message",
    # Options
    "MessageQueueOptions",
    "KvStoreOptions",
    "DEFAULT_MESSAGE_TABLE",
    "DEFAULT_CHANNEL",
    "DEFAULT_KV_TABLE",
    "DEFAULT_POLL_INTERVAL",
    "OnError",
    "RetryBackoff",
]
