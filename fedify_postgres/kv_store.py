"""
PostgreSQL key-value store.
"""

import asyncio
from typing import Any, Optional, Sequence

from .database.db_kv import KvDBHandler
from .helper.database import Database
from .helper.duration import DurationLike, to_timedelta
from .helper.logging import get_logger
from .model.options import KvStoreOptions

logger = get_logger(__name__)


class PostgresKvStore:
    """
    A key-value store that uses PostgreSQL as the underlying storage.
    Expired entries are purged after every set() and delete().
    """

    def __init__(self, db: Database, options: Optional[KvStoreOptions] = None):
        """
        :param db: The shared database connection, never closed by the store.
        :param options: Table name and initialized flag.
        """
        self.db = db
        self.options = options or KvStoreOptions()
        self.db_kv = KvDBHandler(db, self.options.table_name)
        self._initialized: bool = self.options.initialized
        self._initialize_lock = asyncio.Lock()

    @property
    def table_name(self) -> str:
        return self.options.table_name

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """
        Create the table used by the key-value store if it does not already
        exist. Does nothing if the table already exists.
        """
        if self._initialized:
            return
        async with self._initialize_lock:
            if self._initialized:
                return
            await self.db_kv.create_table()
            self._initialized = True

    async def drop(self) -> None:
        """Drop the table. Does nothing if the table does not exist."""
        await self.db_kv.drop_table()
        self._initialized = False

    async def get(self, key: Sequence[str], default: Any = None) -> Any:
        """
        Get the value of a key.

        :param key: Sequence of strings, e.g. ``("actor", "alice")``.
        :param default: Returned when the key is absent or expired.
        """
        await self.initialize()
        found = await self.db_kv.select_value(key)
        return default if found is None else found[0]

    async def set(
        self, key: Sequence[str], value: Any, ttl: Optional[DurationLike] = None
    ) -> None:
        """
        Set the value of a key.

        :param key: Sequence of strings.
        :param value: A JSON serialisable value.
        :param ttl: Time to live, the entry never expires without one.
        :raises ValueError: If the key or ttl is invalid.
        """
        duration = to_timedelta(ttl) if ttl is not None else None
        await self.initialize()
        await self.db_kv.upsert_value(key, value, duration)
        await self._expire()

    async def delete(self, key: Sequence[str]) -> None:
        """Delete a key, missing keys are ignored."""
        await self.initialize()
        await self.db_kv.delete_value(key)
        await self._expire()

    async def _expire(self) -> None:
        expired = await self.db_kv.expire()
        if expired:
            logger.debug("Purged expired entries", table=self.table_name, count=expired)
