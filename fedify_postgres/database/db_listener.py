"""
Database listener for PostgreSQL LISTEN/NOTIFY.
Owns a dedicated connection, the shared query connection is never used for LISTEN.
"""

import asyncio
from typing import Awaitable, Callable, Optional

import psycopg
from psycopg import AsyncConnection, sql

from ..helper.database import DatabaseConfiguration, connect
from ..helper.error import StoreError
from ..helper.logging import get_logger

logger = get_logger(__name__)

NotifyFunction = Callable[[str], Awaitable[None]]
ListenFunction = Callable[[], Awaitable[None]]


class MessageListener:
    """
    Async database listener for one notification channel.
    """

    def __init__(
        self,
        db_config: DatabaseConfiguration,
        channel: str,
        wait_timeout: float = 0.5,
    ):
        """
        Initialize async database listener.

        Args:
            db_config: Database configuration for the dedicated connection
            channel: Channel name to listen on
            wait_timeout: Seconds between checks of the stop flag while idle
        """
        self.db_config = db_config
        self.channel = channel
        self.wait_timeout = wait_timeout
        self.connection: Optional[AsyncConnection] = None
        self.listening = False
        self._stopped = False
        self._stop_event = asyncio.Event()

    async def connect(self) -> None:
        """Open the dedicated connection and subscribe to the channel."""
        try:
            self.connection = await connect(self.db_config)
            await self.connection.execute(
                sql.SQL("LISTEN {};").format(sql.Identifier(self.channel))
            )
            logger.info("Listening", channel=self.channel)
        except Exception as e:
            logger.error("Failed to subscribe", error=e, channel=self.channel)
            await self._close_connection()
            raise StoreError("listen", e)

    async def listen(
        self,
        notify_function: NotifyFunction,
        on_listen: Optional[ListenFunction] = None,
    ) -> None:
        """
        Receive notifications until stop() is called.

        :param notify_function: Called with the payload of every notification
            on this channel. Errors are logged and do not end the loop.
        :param on_listen: Called after every successful subscribe, including
            after a reconnect, since notifications sent in between are lost.
        """
        if self.listening or self._stopped:
            return

        self.listening = True
        try:
            if self.connection is None:
                await self.connect()
            if on_listen is not None:
                await on_listen()

            while not self._stop_event.is_set():
                try:
                    await self._receive(notify_function)
                except psycopg.OperationalError as e:
                    if self._stop_event.is_set():
                        break
                    logger.error("Listener connection lost", error=e, channel=self.channel)
                    await self._close_connection()
                    try:
                        await self.connect()
                    except StoreError:
                        logger.error("Failed to reconnect, stopping listener", channel=self.channel)
                        raise
                    if on_listen is not None:
                        await on_listen()
        finally:
            self.listening = False

    async def _receive(self, notify_function: NotifyFunction) -> None:
        """Process notifications arriving within one wait_timeout window."""
        if self.connection is None:
            raise psycopg.OperationalError("listener connection is closed")

        async for notify in self.connection.notifies(timeout=self.wait_timeout):
            if notify.channel != self.channel:
                continue
            try:
                await notify_function(notify.payload or "")
            except Exception as e:
                logger.error("Error processing notification", error=e, channel=self.channel)

    async def stop(self) -> None:
        """
        Unsubscribe and close the dedicated connection.
        Safe to call any number of times, the teardown only runs once.
        """
        if self._stopped:
            return
        self._stopped = True
        self._stop_event.set()

        if self.connection is not None and not self.connection.closed:
            try:
                await self.connection.execute(
                    sql.SQL("UNLISTEN {};").format(sql.Identifier(self.channel))
                )
            except Exception as e:
                logger.debug(f"Error unlistening: {e}")
        await self._close_connection()
        logger.info("Listener stopped", channel=self.channel)

    @property
    def stopped(self) -> bool:
        return self._stopped

    async def _close_connection(self) -> None:
        if self.connection is None:
            return
        try:
            await self.connection.close()
        except Exception as e:
            logger.debug(f"Error closing connection: {e}")
        self.connection = None


def new_message_listener(
    db_config: DatabaseConfiguration, channel: str
) -> MessageListener:
    """
    Create a new MessageListener instance.
    """
    return MessageListener(db_config, channel)
