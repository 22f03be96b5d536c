"""
Connectivity monitor.
Separates "the device has a link" from "the survey server answers": link-up events
can arrive before DNS and routing are back, so every restoration is confirmed with a
bounded reachability probe before queued data is replayed.
"""
import asyncio
import inspect
import logging
from typing import Awaitable, Callable, List, Optional, Set

from ..core.config import settings
from .offline_queue import OfflineQueue
from .survey_client import SurveyApiClient

logger = logging.getLogger(__name__)

RestoredHandler = Callable[[], Awaitable[None]]


class Subscription:
    """Handle returned by ``ConnectivityMonitor.subscribe``; ``cancel`` makes it inert."""

    def __init__(self, monitor: "ConnectivityMonitor", handler: RestoredHandler):
        self._monitor = monitor
        self.handler = handler
        self.active = True

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self._monitor._unsubscribe(self)


class ConnectivityMonitor:
    def __init__(
        self,
        api_client: SurveyApiClient,
        queue: OfflineQueue,
        link_up: bool = False,
        max_attempts: Optional[int] = None,
        delay_ms: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.api_client = api_client
        self.queue = queue
        self.max_attempts = max_attempts if max_attempts is not None else settings.PROBE_MAX_ATTEMPTS
        self.delay_ms = delay_ms if delay_ms is not None else settings.PROBE_DELAY_MS
        self._sleep = sleep
        self._link_up = link_up
        self._subscriptions: List[Subscription] = []
        self._lock = asyncio.Lock()
        self._tasks: Set[asyncio.Task] = set()

    @property
    def is_link_up(self) -> bool:
        return self._link_up

    async def probe_server(self, max_attempts: Optional[int] = None, delay_ms: Optional[int] = None) -> bool:
        """
        Ping the health endpoint up to ``max_attempts`` times, pausing ``delay_ms``
        between attempts. Unreachable is a normal ``False`` result, never an exception.
        """
        attempts = max_attempts if max_attempts is not None else self.max_attempts
        delay = (delay_ms if delay_ms is not None else self.delay_ms) / 1000.0

        for attempt in range(1, attempts + 1):
            logger.info("Checking server connectivity (%d/%d)", attempt, attempts)
            try:
                if await self.api_client.ping():
                    return True
            except Exception as exc:
                logger.warning("Reachability check raised: %s", exc)
            if attempt < attempts:
                await self._sleep(delay)

        logger.warning("Server still unreachable after %d attempt(s)", attempts)
        return False

    # ------------------------------------------------------------------
    # Link-status signal
    # ------------------------------------------------------------------

    def subscribe(self, handler: RestoredHandler) -> Subscription:
        subscription = Subscription(self, handler)
        self._subscriptions.append(subscription)
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def notify_online(self) -> asyncio.Task:
        """Platform hook for a "became online" transition. Must run inside the event loop."""
        self._link_up = True
        task = asyncio.get_running_loop().create_task(self._handle_restored())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def notify_offline(self) -> None:
        self._link_up = False

    async def wait_idle(self) -> None:
        """Wait for every in-flight restoration to settle."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def _handle_restored(self) -> None:
        # One restoration at a time; a later transition waits and then sees the queue as it is then.
        async with self._lock:
            if not self._subscriptions:
                return
            if self.queue.count() == 0:
                logger.debug("Link restored, nothing queued")
                return
            for subscription in list(self._subscriptions):
                if not subscription.active:
                    continue
                try:
                    await subscription.handler()
                except Exception:
                    logger.exception("Connectivity restored handler failed")

    async def watch_link(self, check: Callable[[], object], interval: Optional[float] = None) -> None:
        """Poll ``check`` (sync or async) for link state and emit transitions until cancelled."""
        interval = interval if interval is not None else settings.LINK_POLL_INTERVAL
        while True:
            try:
                up = check()
                if inspect.isawaitable(up):
                    up = await up
            except Exception as exc:
                logger.warning("Link status check failed: %s", exc)
                up = False
            if up and not self._link_up:
                logger.info("Link is up")
                self.notify_online()
            elif not up and self._link_up:
                logger.info("Link is down")
                self.notify_offline()
            await self._sleep(interval)
