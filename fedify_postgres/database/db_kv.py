"""
Key-value database handler.
Keys are arrays of strings, values jsonb, entries may expire after a TTL.
"""

from datetime import timedelta
from typing import Any, List, Optional, Sequence

from psycopg import sql
from psycopg.types.json import Jsonb

from ..helper.database import Database
from ..helper.error import StoreError
from ..helper.logging import get_logger
from ..helper.sql import is_duplicate_definition, run_ddl

logger = get_logger(__name__)


def to_key(key: Sequence[str]) -> List[str]:
    """
    Normalise a key to the list form adapted to text[].

    :raises ValueError: If the key is empty or not made of strings.
    """
    if isinstance(key, (str, bytes)) or not key:
        raise ValueError("Key must be a non-empty sequence of strings")
    parts = list(key)
    if not all(isinstance(part, str) for part in parts):
        raise ValueError("Key must be a non-empty sequence of strings")
    return parts


class KvDBHandler:
    """
    Key-value database handler.
    Borrows the shared Database connection, one handler per table.
    """

    def __init__(self, db_connection: Database, table_name: str):
        """Initialize key-value database handler."""
        self.db: Database = db_connection
        self.table_name: str = table_name
        self._table = sql.Identifier(table_name)

    async def create_table(self) -> None:
        """Create the unlogged key-value table if it does not exist."""
        try:
            await run_ddl(
                self.db.connection(),
                sql.SQL(
                    """
                    CREATE UNLOGGED TABLE IF NOT EXISTS {} (
                        key text[] PRIMARY KEY,
                        value jsonb NOT NULL,
                        created timestamp with time zone DEFAULT CURRENT_TIMESTAMP,
                        ttl interval
                    );
                    """
                ).format(self._table),
            )
        except Exception as e:
            original = e.original if isinstance(e, StoreError) else e
            if not is_duplicate_definition(original):
                raise StoreError(f"create table {self.table_name}", e)
            logger.warning(
                "Table was created concurrently by another session",
                table=self.table_name,
            )
            return
        logger.info("Key-value table ready", table=self.table_name)

    async def drop_table(self) -> None:
        """Drop the key-value table if it exists."""
        try:
            await run_ddl(
                self.db.connection(),
                sql.SQL("DROP TABLE IF EXISTS {};").format(self._table),
            )
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"drop table {self.table_name}", e)
        logger.info("Key-value table dropped", table=self.table_name)

    async def expire(self) -> int:
        """
        Delete expired entries.

        :return: Number of deleted entries.
        """
        try:
            cur = await self.db.connection().execute(
                sql.SQL(
                    """
                    DELETE FROM {}
                    WHERE ttl IS NOT NULL AND created + ttl < CURRENT_TIMESTAMP;
                    """
                ).format(self._table)
            )
        except Exception as e:
            raise StoreError(f"expire entries in {self.table_name}", e)
        return max(cur.rowcount, 0)

    async def select_value(self, key: Sequence[str]) -> Optional[List[Any]]:
        """
        Select the value of a live entry.

        :return: A one-element list holding the value, None if absent or
            expired. The list tells a stored JSON null apart from a missing key.
        """
        params = (to_key(key),)
        try:
            cur = await self.db.connection().execute(
                sql.SQL(
                    """
                    SELECT value
                    FROM {}
                    WHERE key = %s
                    AND (ttl IS NULL OR created + ttl > CURRENT_TIMESTAMP);
                    """
                ).format(self._table),
                params,
            )
            row = await cur.fetchone()
        except Exception as e:
            raise StoreError(f"select value from {self.table_name}", e)
        return [row[0]] if row is not None else None

    async def upsert_value(
        self, key: Sequence[str], value: Any, ttl: Optional[timedelta]
    ) -> None:
        """Insert or replace an entry, restarting its TTL."""
        params = (to_key(key), Jsonb(value), ttl)
        try:
            await self.db.connection().execute(
                sql.SQL(
                    """
                    INSERT INTO {} (key, value, ttl)
                    VALUES (%s, %s, %s)
                    ON CONFLICT (key)
                    DO UPDATE SET
                        value = EXCLUDED.value,
                        ttl = EXCLUDED.ttl,
                        created = CURRENT_TIMESTAMP;
                    """
                ).format(self._table),
                params,
            )
        except Exception as e:
            raise StoreError(f"upsert value into {self.table_name}", e)

    async def delete_value(self, key: Sequence[str]) -> None:
        """Delete an entry, missing keys are ignored."""
        params = (to_key(key),)
        try:
            await self.db.connection().execute(
                sql.SQL("DELETE FROM {} WHERE key = %s;").format(self._table),
                params,
            )
        except Exception as e:
            raise StoreError(f"delete value from {self.table_name}", e)
