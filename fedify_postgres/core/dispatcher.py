"""
Wake-up dispatcher for the message queue listen loop.

Drains due messages whenever one of the triggers fires: the start of the
loop, a notification without delay, a one-shot timer scheduled for a delayed
notification, a (re)subscribe of the listener, or the poll interval passing
without any of those. All triggers set one wake event consumed by a single
loop, so drains never overlap within a process.
"""

import asyncio
from datetime import timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Set

from ..database.db_listener import MessageListener
from ..helper.duration import parse_duration
from ..helper.logging import get_logger
from ..model.message import Message
from ..model.options_on_error import OnError
from .retryer import Retryer, call_handler

logger = get_logger(__name__)

# Delays below this drain right away instead of scheduling a timer
IMMEDIATE_THRESHOLD = timedelta(milliseconds=1)

ClaimFunction = Callable[[], Awaitable[Optional[Message]]]
Handler = Callable[[Any], Any]


class DispatcherState(str, Enum):
    """Lifecycle states of a dispatcher."""

    IDLE = "idle"
    DRAINING = "draining"
    CANCELLED = "cancelled"


class Dispatcher:
    """
    Runs one consumer's listen loop.

    :param claim: Claims the next due message, None when nothing is due.
    :param handler: Called with the payload of every claimed message.
    :param poll_interval: Longest idle time before draining anyway.
    :param stop_event: Ends the loop when set.
    :param listener: Notification listener, None to rely on polling alone.
    :param on_error: Retry policy for failing handlers.
    """

    def __init__(
        self,
        claim: ClaimFunction,
        handler: Handler,
        poll_interval: timedelta,
        stop_event: Optional[asyncio.Event] = None,
        listener: Optional[MessageListener] = None,
        on_error: Optional[OnError] = None,
    ):
        self.claim = claim
        self.handler = handler
        self.poll_interval = poll_interval
        self.stop_event = stop_event or asyncio.Event()
        self.listener = listener
        self.retryer: Optional[Retryer] = (
            Retryer(handler, on_error) if on_error is not None else None
        )

        self.state: DispatcherState = DispatcherState.IDLE
        self.drain_count = 0
        self.handled_count = 0
        self._wake = asyncio.Event()
        self._timers: Set[asyncio.TimerHandle] = set()
        self._listener_task: Optional[asyncio.Task[None]] = None
        self._torn_down = False

    @property
    def pending_timers(self) -> int:
        """Number of one-shot timers that have not fired yet."""
        return len(self._timers)

    async def run(self) -> None:
        """
        Run until the stop event is set, the task is cancelled or a
        handler fails. Teardown runs exactly once on every exit path.
        """
        try:
            if self.stop_event.is_set():
                return

            if self.listener is not None:
                await self.listener.connect()
                self._listener_task = asyncio.create_task(
                    self.listener.listen(self.on_notification, self._on_listen)
                )
                self._listener_task.add_done_callback(self._on_listener_done)

            # Catch messages that were already due before we subscribed
            await self.drain()

            while not self.stop_event.is_set():
                await self._wait_for_trigger()
                if self.stop_event.is_set():
                    break
                await self.drain()
        finally:
            await self.teardown()

    async def drain(self) -> None:
        """Claim and handle messages until none is due or the loop is stopped."""
        self.state = DispatcherState.DRAINING
        self._wake.clear()
        self.drain_count += 1
        try:
            while not self.stop_event.is_set():
                message = await self.claim()
                if message is None:
                    break
                logger.debug("Claimed message", id=message.id)
                await self._handle(message)
                self.handled_count += 1
        finally:
            if self.state is DispatcherState.DRAINING:
                self.state = DispatcherState.IDLE

    async def _handle(self, message: Message) -> None:
        if self.retryer is None:
            try:
                await call_handler(self.handler, message.message)
            except Exception as e:
                logger.error("Message handler failed", error=e, id=message.id)
                raise
            return

        error = await self.retryer.retry(message.message)
        if error is not None:
            logger.error("Message handler failed after retries", error=error, id=message.id)
            raise error

    async def on_notification(self, payload: str) -> None:
        """Turn a notification payload into an immediate or delayed wake-up."""
        if self._torn_down:
            return
        try:
            delay = parse_duration(payload)
        except ValueError:
            logger.warning("Invalid delay in notification, draining now", payload=payload)
            delay = timedelta(0)

        if delay < IMMEDIATE_THRESHOLD:
            self._wake.set()
        else:
            self.schedule_wake(delay)

    def schedule_wake(self, delay: timedelta) -> None:
        """Wake the loop once after the delay."""
        loop = asyncio.get_running_loop()
        handle: Optional[asyncio.TimerHandle] = None

        def fire() -> None:
            self._timers.discard(handle)  # type: ignore[arg-type]
            self._wake.set()

        handle = loop.call_later(delay.total_seconds(), fire)
        self._timers.add(handle)

    async def _on_listen(self) -> None:
        # Notifications sent while we were not subscribed are lost
        self._wake.set()

    def _on_listener_done(self, task: "asyncio.Task[None]") -> None:
        if task.cancelled() or task.exception() is None:
            return
        logger.warning(
            "Notification listener failed, relying on polling",
            error=task.exception(),
        )

    async def _wait_for_trigger(self) -> None:
        """Wait for a wake-up, the stop event or the poll interval, whichever comes first."""
        wake = asyncio.ensure_future(self._wake.wait())
        stop = asyncio.ensure_future(self.stop_event.wait())
        try:
            await asyncio.wait(
                {wake, stop},
                timeout=self.poll_interval.total_seconds(),
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            wake.cancel()
            stop.cancel()
            await asyncio.gather(wake, stop, return_exceptions=True)

    async def teardown(self) -> None:
        """Clear all timers and unsubscribe. Only the first call has an effect."""
        if self._torn_down:
            return
        self._torn_down = True
        self.state = DispatcherState.CANCELLED

        for handle in self._timers:
            handle.cancel()
        self._timers.clear()

        if self.listener is not None:
            await self.listener.stop()

        if self._listener_task is not None and not self._listener_task.done():
            try:
                await asyncio.wait_for(
                    asyncio.shield(self._listener_task),
                    timeout=self.listener.wait_timeout * 2 if self.listener else 1.0,
                )
            except asyncio.TimeoutError:
                self._listener_task.cancel()
                await asyncio.gather(self._listener_task, return_exceptions=True)
            except Exception as e:
                logger.debug(f"Listener ended with error during teardown: {e}")

        logger.debug("Dispatcher stopped", drains=self.drain_count, handled=self.handled_count)
