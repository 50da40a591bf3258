"""Update scheduler.

Decides when to fetch a new snapshot and publishes it to subscribers.

Fetches are triggered by a fallback timer (always armed while polling),
by push notifications when the backend supports them, and by system wake.
At most one fetch runs at a time: a trigger that arrives while a fetch is in
flight is dropped, not queued, since the in-flight fetch will already see
(or closely follow) the change.

A failed fetch never publishes anything; subscribers keep the last good
snapshot until a later fetch succeeds.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional

from .errors import SpacesError
from .models import SpacesSnapshot
from .providers.selector import SelectedProvider
from .services.notifications import NotificationListener

logger = logging.getLogger(__name__)

Subscriber = Callable[[SpacesSnapshot], None]

DEFAULT_POLL_INTERVAL = 0.5


class SchedulerState(Enum):
    IDLE = "idle"
    POLLING = "polling"
    FETCHING = "fetching"
    SUSPENDED = "suspended"


@dataclass
class SchedulerStats:
    """Fetch counters since the scheduler was created."""
    fetch_count: int = 0
    failure_count: int = 0
    dropped_triggers: int = 0
    last_error: Optional[str] = None
    last_success: Optional[datetime] = None


class UpdateScheduler:
    """Drives fetches for the selected provider and publishes snapshots."""

    def __init__(
        self,
        provider: Optional[SelectedProvider],
        listener: Optional[NotificationListener] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timer_sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize scheduler.

        Args:
            provider: Selected backend, or None if none was reachable
            listener: Notification listener used when the backend can push
            poll_interval: Fallback timer interval in seconds
            timer_sleep: Sleep used by the fallback timer (injectable for tests)
        """
        self.provider = provider
        self.listener = listener
        self.poll_interval = poll_interval
        self._timer_sleep = timer_sleep

        self.state = SchedulerState.IDLE
        self._snapshot: Optional[SpacesSnapshot] = None
        self._subscribers: List[Subscriber] = []
        self._stats = SchedulerStats()

        self._timer_task: Optional[asyncio.Task] = None
        self._fetch_task: Optional[asyncio.Task] = None
        self._notifications_prepared = False
        self._wanted = False
        # Serialises lifecycle transitions (stop, suspend, resume, set_provider)
        self._lifecycle_lock = asyncio.Lock()

    # Publication

    @property
    def current_snapshot(self) -> Optional[SpacesSnapshot]:
        """Last successfully fetched snapshot (None before the first success)."""
        return self._snapshot

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback for new snapshots.

        Returns:
            Function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def stats(self) -> SchedulerStats:
        return replace(self._stats)

    def _publish(self, snapshot: SpacesSnapshot) -> None:
        self._snapshot = snapshot
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception as e:
                logger.error(f"Snapshot subscriber {callback!r} failed: {e}", exc_info=True)

    # Lifecycle

    async def start(self) -> Optional[asyncio.Task]:
        """Start polling and run an initial fetch.

        Returns:
            Initial fetch task, or None if there is no provider
        """
        self._wanted = True

        if self.state != SchedulerState.IDLE:
            logger.warning(f"Scheduler already started (state: {self.state.value})")
            return None

        if self.provider is None:
            logger.warning("No window manager backend selected, scheduler staying idle")
            return None

        push = self.provider.push
        if push is not None and self.listener is not None:
            try:
                await push.prepare_notifications()
                self._notifications_prepared = True
            except Exception as e:
                logger.warning(f"Preparing push notifications failed, polling only: {e}")

        self.state = SchedulerState.POLLING
        task = self.trigger("start")
        await self._arm()
        logger.info(f"Scheduler started for {self.provider.name} (poll every {self.poll_interval}s)")
        return task

    async def stop(self) -> None:
        """Stop polling, cancel any fetch, and tear down push notifications."""
        self._wanted = False
        async with self._lifecycle_lock:
            await self._shutdown()

    async def _shutdown(self) -> None:
        if self.state == SchedulerState.IDLE:
            return

        self.state = SchedulerState.IDLE
        await self._disarm()

        if self._fetch_task and not self._fetch_task.done():
            self._fetch_task.cancel()
            try:
                await self._fetch_task
            except asyncio.CancelledError:
                pass
        self._fetch_task = None

        if self.provider is not None:
            if self._notifications_prepared and self.provider.push is not None:
                try:
                    await self.provider.push.teardown_notifications()
                except Exception as e:
                    logger.warning(f"Tearing down push notifications failed: {e}")
            self.provider.close()
        self._notifications_prepared = False

        logger.info("Scheduler stopped")

    async def suspend(self) -> None:
        """Pause fetching while the system sleeps."""
        async with self._lifecycle_lock:
            await self._suspend()

    async def _suspend(self) -> None:
        if self.state in (SchedulerState.IDLE, SchedulerState.SUSPENDED):
            return

        self.state = SchedulerState.SUSPENDED
        await self._disarm()
        logger.info("Scheduler suspended")

    async def resume(self) -> Optional[asyncio.Task]:
        """Resume after wake and fetch immediately.

        Waits for a fetch that was in flight when the system went to sleep,
        then starts a fresh one.

        Returns:
            The wake fetch task
        """
        async with self._lifecycle_lock:
            if self.state != SchedulerState.SUSPENDED:
                return None

            await self.wait_idle()
            if self.state != SchedulerState.SUSPENDED:
                return None

            self.state = SchedulerState.POLLING
            task = self.trigger("wake")
            await self._arm()
            logger.info("Scheduler resumed")
            return task

    async def set_provider(self, provider: Optional[SelectedProvider]) -> Optional[asyncio.Task]:
        """Swap the backend (explicit reconfiguration).

        If the scheduler was started, it is restarted against the new
        provider; a suspended scheduler stays suspended.

        Returns:
            Initial fetch task of the restarted scheduler, if any
        """
        async with self._lifecycle_lock:
            suspended = self.state == SchedulerState.SUSPENDED
            wanted = self._wanted

            await self._shutdown()
            self.provider = provider
            logger.info(f"Provider set to {provider.name if provider else 'none'}")

            if not wanted:
                return None

            task = await self.start()
            if suspended and self.state != SchedulerState.IDLE:
                await self._suspend()
            return task

    async def wait_idle(self) -> None:
        """Wait until no fetch is in flight."""
        if self._fetch_task is not None and not self._fetch_task.done():
            await asyncio.wait([self._fetch_task])

    # Triggers

    def trigger(self, reason: str) -> Optional[asyncio.Task]:
        """Request a fetch.

        Returns:
            The started fetch task, or None if the trigger was ignored or dropped
        """
        if self.state in (SchedulerState.IDLE, SchedulerState.SUSPENDED):
            logger.debug(f"Ignoring {reason} trigger while {self.state.value}")
            return None

        if self._fetch_task is not None and not self._fetch_task.done():
            self._stats.dropped_triggers += 1
            logger.debug(f"Dropping {reason} trigger, fetch in flight")
            return None

        self.state = SchedulerState.FETCHING
        self._fetch_task = asyncio.create_task(self._fetch(reason), name=f"fetch-{reason}")
        return self._fetch_task

    def _on_notification(self, name: str) -> None:
        self.trigger(f"notification {name}")

    async def _fetch(self, reason: str) -> None:
        provider = self.provider
        self._stats.fetch_count += 1
        try:
            snapshot = await provider.fetch_snapshot()
        except SpacesError as e:
            self._record_failure(e)
            logger.warning(f"Fetch ({reason}) failed, keeping previous snapshot: {e}")
        except Exception as e:
            self._record_failure(e)
            logger.error(f"Unexpected error during fetch ({reason}): {e}", exc_info=True)
        else:
            if provider is not self.provider:
                logger.debug("Discarding snapshot from replaced provider")
            else:
                self._stats.last_success = datetime.now()
                logger.debug(f"Fetch ({reason}) succeeded: {len(snapshot.spaces)} spaces")
                self._publish(snapshot)
        finally:
            if self.state == SchedulerState.FETCHING:
                self.state = SchedulerState.POLLING

    def _record_failure(self, error: Exception) -> None:
        self._stats.failure_count += 1
        self._stats.last_error = str(error)

    # Timer and listener

    async def _arm(self) -> None:
        if self._timer_task is None or self._timer_task.done():
            self._timer_task = asyncio.create_task(self._timer_loop(), name="poll-timer")

        if self._notifications_prepared and self.listener is not None and not self.listener.running:
            try:
                await self.listener.start(self.provider.push.notification_names(), self._on_notification)
            except Exception as e:
                logger.warning(f"Notification listener failed to start, polling only: {e}")

    async def _disarm(self) -> None:
        if self._timer_task is not None:
            self._timer_task.cancel()
            try:
                await self._timer_task
            except asyncio.CancelledError:
                pass
            self._timer_task = None

        if self.listener is not None and self.listener.running:
            await self.listener.stop()

    async def _timer_loop(self) -> None:
        while True:
            await self._timer_sleep(self.poll_interval)
            self.trigger("timer")
