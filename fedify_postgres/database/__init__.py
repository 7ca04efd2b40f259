"""
Database package for the PostgreSQL message queue and key-value store.
Provides the table handlers and the notification listener.
"""

from .db_message import (
    MessageDBHandler,
)

from .db_kv import (
    KvDBHandler,
    to_key,
)

from .db_listener import (
    MessageListener,
    new_message_listener,
)

__all__ = [
    # Message handler
    "MessageDBHandler",
    # Key-value handler
    "KvDBHandler",
    "to_key",
    # Listener
    "MessageListener",
    "new_message_listener",
]
