"""
Message database handler for the PostgreSQL message queue.
Table creation, insert, notify and the atomic claim of due messages.
"""

from datetime import timedelta
from typing import Any, Optional

from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from ..helper.database import Database
from ..helper.duration import format_duration
from ..helper.error import StoreError
from ..helper.logging import get_logger
from ..helper.sql import is_duplicate_definition, run_ddl
from ..model.message import Message

logger = get_logger(__name__)


class MessageDBHandler:
    """
    Message database handler.
    Borrows the shared Database connection, one handler per queue table.
    """

    def __init__(self, db_connection: Database, table_name: str, channel_name: str):
        """Initialize message database handler."""
        self.db: Database = db_connection
        self.table_name: str = table_name
        self.channel_name: str = channel_name
        self._table = sql.Identifier(table_name)

    async def check_table_existence(self) -> bool:
        """
        Check if the message table exists.

        :return: True if the table exists, False otherwise.
        """
        return await self.db.check_table_existence(self.table_name)

    async def create_table(self) -> None:
        """
        Create the message table if it does not exist.
        A concurrent creation of the same table or index by another session
        is ignored.
        """
        try:
            await run_ddl(
                self.db.connection(),
                sql.SQL(
                    """
                    CREATE TABLE IF NOT EXISTS {} (
                        id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
                        message jsonb NOT NULL,
                        delay interval DEFAULT '0 seconds',
                        created timestamp with time zone DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                ).format(self._table),
            )
        except Exception as e:
            if not is_duplicate_definition(e):
                raise StoreError(f"create table {self.table_name}", e)
            logger.warning(
                "Table was created concurrently by another session",
                table=self.table_name,
            )

        try:
            await self.db.create_index(self.table_name, "created")
        except StoreError as e:
            if not is_duplicate_definition(e.original):
                raise StoreError(f"create index on {self.table_name}", e)
            logger.warning(
                "Index was created concurrently by another session",
                table=self.table_name,
            )

        logger.info("Message table ready", table=self.table_name)

    async def drop_table(self) -> None:
        """Drop the message table if it exists."""
        try:
            await run_ddl(
                self.db.connection(),
                sql.SQL("DROP TABLE IF EXISTS {};").format(self._table),
            )
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"drop table {self.table_name}", e)
        logger.info("Message table dropped", table=self.table_name)

    async def insert_message(self, message: Any, delay: timedelta) -> Message:
        """
        Insert a message. The row is committed when this returns.

        :param message: JSON serialisable payload.
        :param delay: Time after creation before the message is due.
        :return: The inserted Message.
        """
        try:
            async with self.db.connection().cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    sql.SQL(
                        """
                        INSERT INTO {} (message, delay)
                        VALUES (%s, %s)
                        RETURNING id, message, delay, created;
                        """
                    ).format(self._table),
                    (Jsonb(message), delay),
                )
                row = await cur.fetchone()
        except Exception as e:
            raise StoreError(f"insert message into {self.table_name}", e)

        if row is None:
            raise StoreError(
                f"insert message into {self.table_name}",
                RuntimeError("Insert returned no row"),
            )
        return Message.from_row(row)

    async def notify(self, delay: timedelta) -> None:
        """
        Publish a wake-up hint carrying the delay on the channel.

        :param delay: Delay of the message that was just inserted.
        """
        try:
            await self.db.connection().execute(
                "SELECT pg_notify(%s, %s);",
                (self.channel_name, format_duration(delay)),
            )
        except Exception as e:
            raise StoreError(f"notify channel {self.channel_name}", e)

    async def claim_message(self) -> Optional[Message]:
        """
        Atomically delete and return the oldest due message.
        Rows locked by a concurrent claim are skipped, so competing
        consumers never claim the same row.

        :return: The claimed Message, or None if nothing is due.
        """
        try:
            async with self.db.connection().cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    sql.SQL(
                        """
                        DELETE FROM {table}
                        WHERE id = (
                            SELECT id
                            FROM {table}
                            WHERE created + delay <= CURRENT_TIMESTAMP
                            ORDER BY created
                            LIMIT 1
                            FOR UPDATE SKIP LOCKED
                        )
                        RETURNING id, message, delay, created;
                        """
                    ).format(table=self._table),
                )
                row = await cur.fetchone()
        except Exception as e:
            raise StoreError(f"claim message from {self.table_name}", e)

        if row is None:
            return None
        return Message.from_row(row)

    async def count_messages(self) -> int:
        """Number of messages in the table, due or not."""
        try:
            async with self.db.connection().cursor() as cur:
                await cur.execute(
                    sql.SQL("SELECT count(*) FROM {};").format(self._table)
                )
                row = await cur.fetchone()
        except Exception as e:
            raise StoreError(f"count messages in {self.table_name}", e)
        return int(row[0]) if row else 0
