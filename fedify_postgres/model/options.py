"""
Options for the PostgreSQL message queue and key-value store.
"""

from dataclasses import dataclass, field
from datetime import timedelta

from ..helper.duration import DurationLike, to_timedelta

DEFAULT_MESSAGE_TABLE = "fedify_message_v2"
DEFAULT_CHANNEL = "fedify_channel"
DEFAULT_KV_TABLE = "fedify_kv_v2"
DEFAULT_POLL_INTERVAL = timedelta(seconds=5)


def _check_name(kind: str, value: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{kind} must be a non-empty string")
    # PostgreSQL truncates identifiers and channel names to 63 bytes
    if len(value.encode("utf-8")) > 63:
        raise ValueError(f"{kind} must be at most 63 bytes long")


@dataclass(frozen=True)
class MessageQueueOptions:
    """
    Options for PostgresMessageQueue.

    :param table_name: The table holding pending messages.
    :param channel_name: The LISTEN/NOTIFY channel used for wake-up hints.
    :param poll_interval: Longest idle time before a listener polls the table
        anyway. Accepts anything to_timedelta() accepts, stored as timedelta.
    :param initialized: Skip the table check when the caller knows it exists.
    """

    table_name: str = DEFAULT_MESSAGE_TABLE
    channel_name: str = DEFAULT_CHANNEL
    poll_interval: DurationLike = field(default=DEFAULT_POLL_INTERVAL)
    initialized: bool = False

    def __post_init__(self):
        _check_name("table name", self.table_name)
        _check_name("channel name", self.channel_name)
        poll_interval = to_timedelta(self.poll_interval)
        if poll_interval <= timedelta(0):
            raise ValueError("poll interval must be positive")
        object.__setattr__(self, "poll_interval", poll_interval)


@dataclass(frozen=True)
class KvStoreOptions:
    """
    Options for PostgresKvStore.

    :param table_name: The table holding the key-value pairs.
    :param initialized: Skip the table check when the caller knows it exists.
    """

    table_name: str = DEFAULT_KV_TABLE
    initialized: bool = False

    def __post_init__(self):
        _check_name("table name", self.table_name)
