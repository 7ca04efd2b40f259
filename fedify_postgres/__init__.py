"""
fedify_postgres - PostgreSQL drivers for Fedify style message queues and key-value stores

Provides:
- A message queue with delayed delivery, woken up by LISTEN/NOTIFY
- Polling as a fallback for missed notifications
- Competing consumers via an atomic claim of due messages
- A key-value store with per-entry TTL
"""

from ._version import __version__

from .message_queue import (
    PostgresMessageQueue,
)

from .kv_store import (
    PostgresKvStore,
)

from .helper.database import (
    Database,
    DatabaseConfiguration,
    new_database,
    new_database_from_env,
    new_database_with_connection,
)

from .model.message import (
    Message,
)

from .model.options import (
    MessageQueueOptions,
    KvStoreOptions,
)

from .model.options_on_error import (
    OnError,
    RetryBackoff,
)

from .helper.error import (
    StoreError,
)

from . import core
from . import database
from . import helper
from . import model

__all__ = [
    # Stores
    "PostgresMessageQueue",
    "PostgresKvStore",
    # Connection
    "Database",
    "DatabaseConfiguration",
    "new_database",
    "new_database_from_env",
    "new_database_with_connection",
    # Models
    "Message",
    "MessageQueueOptions",
    "KvStoreOptions",
    "OnError",
    "RetryBackoff",
    # Exceptions
    "StoreError",
    # Submodules
    "core",
    "database",
    "helper",
    "model",
    # Version info
    "__version__",
]
