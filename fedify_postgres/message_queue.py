"""
PostgreSQL message queue.

Messages are rows of a table, claimed with an atomic DELETE ... RETURNING.
Consumers wake up on LISTEN/NOTIFY hints and poll the table at a fixed
interval in case a hint was missed.

Example::

    db = await new_database("fedify", DatabaseConfiguration.from_env())
    queue = PostgresMessageQueue(db)

    await queue.enqueue({"type": "Follow"}, delay=timedelta(seconds=3))

    stop = asyncio.Event()
    await queue.listen(handle_activity, stop_event=stop)
"""

import asyncio
from datetime import timedelta
from typing import Any, Callable, Optional

from .core.dispatcher import Dispatcher
from .database.db_listener import new_message_listener
from .database.db_message import MessageDBHandler
from .helper.database import Database
from .helper.duration import DurationLike, format_duration, to_timedelta
from .helper.logging import get_logger
from .model.message import Message
from .model.options import MessageQueueOptions
from .model.options_on_error import OnError

logger = get_logger(__name__)


class PostgresMessageQueue:
    """
    A message queue that uses PostgreSQL as the underlying storage.

    The queue borrows the Database and never closes it. Several queues may
    share one Database as long as they use different table and channel
    names, and queues in different processes may compete for the same
    table and channel.
    """

    def __init__(
        self,
        db: Database,
        options: Optional[MessageQueueOptions] = None,
    ):
        """
        :param db: The shared database connection.
        :param options: Table, channel, poll interval and initialized flag.
        """
        self.db = db
        self.options = options or MessageQueueOptions()
        self.db_message = MessageDBHandler(
            db, self.options.table_name, self.options.channel_name
        )
        self._initialized: bool = self.options.initialized
        self._initialize_lock = asyncio.Lock()

    @property
    def table_name(self) -> str:
        return self.options.table_name

    @property
    def channel_name(self) -> str:
        return self.options.channel_name

    @property
    def poll_interval(self) -> timedelta:
        return self.options.poll_interval  # type: ignore[return-value]

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """
        Create the message table if it does not already exist.
        Only the first successful call of an instance touches the database.
        """
        if self._initialized:
            return
        async with self._initialize_lock:
            if self._initialized:
                return
            await self.db_message.create_table()
            self._initialized = True

    async def drop(self) -> None:
        """Drop the message table if it exists. The next use recreates it."""
        await self.db_message.drop_table()
        self._initialized = False

    async def enqueue(self, message: Any, delay: Optional[DurationLike] = None) -> Message:
        """
        Persist a message and notify listeners.

        :param message: A JSON serialisable payload.
        :param delay: Time before the message may be claimed, zero by default.
        :returns: The stored message.
        :raises ValueError: If the delay is invalid.
        :raises StoreError: If the database operation fails.
        """
        duration = to_timedelta(delay) if delay is not None else timedelta(0)
        await self.initialize()

        stored = await self.db_message.insert_message(message, duration)
        await self.db_message.notify(duration)
        logger.debug(
            "Enqueued message",
            id=stored.id,
            table=self.table_name,
            delay=format_duration(duration),
        )
        return stored

    async def claim(self) -> Optional[Message]:
        """Claim the oldest due message, None if nothing is due."""
        await self.initialize()
        return await self.db_message.claim_message()

    async def listen(
        self,
        handler: Callable[[Any], Any],
        stop_event: Optional[asyncio.Event] = None,
        on_error: Optional[OnError] = None,
    ) -> None:
        """
        Handle messages until the stop event is set.

        Messages of one listener are handled one at a time, the handler may be
        a plain function or a coroutine function. A handler failure ends the
        loop and is raised here, unless on_error allows further attempts.

        :param handler: Called with the payload of every claimed message.
        :param stop_event: Set it to stop listening.
        :param on_error: Retry policy for failing handlers.
        """
        await self.initialize()

        listener = None
        if self.db.config is not None:
            listener = new_message_listener(self.db.config, self.channel_name)
        else:
            logger.warning(
                "No database configuration for a LISTEN connection, relying on polling",
                channel=self.channel_name,
            )

        dispatcher = Dispatcher(
            claim=self.db_message.claim_message,
            handler=handler,
            poll_interval=self.poll_interval,
            stop_event=stop_event,
            listener=listener,
            on_error=on_error,
        )
        logger.info(
            "Listening for messages",
            table=self.table_name,
            channel=self.channel_name,
            poll_interval=format_duration(self.poll_interval),
        )
        await dispatcher.run()
        logger.info("Stopped listening", table=self.table_name)
