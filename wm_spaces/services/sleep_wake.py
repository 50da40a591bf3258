"""System sleep/wake detection.

The scheduler suspends polling while the machine sleeps and refreshes as
soon as it wakes; window manager state often changes across sleep (displays
disconnect, spaces move) without any event being posted.
"""

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, Set

try:
    from AppKit import (
        NSWorkspace,
        NSWorkspaceDidWakeNotification,
        NSWorkspaceWillSleepNotification,
    )
    from Foundation import NSDate, NSObject, NSRunLoop
    APPKIT_AVAILABLE = True
except ImportError:
    APPKIT_AVAILABLE = False

logger = logging.getLogger(__name__)

# Callbacks may be plain functions or return an awaitable
PowerCallback = Callable[[], Any]

RUN_LOOP_PUMP_INTERVAL = 0.25


class SleepWakeMonitor(ABC):
    """Source of system sleep and wake events."""

    @abstractmethod
    def start(self, on_sleep: PowerCallback, on_wake: PowerCallback) -> None:
        ...

    @abstractmethod
    def stop(self) -> None:
        ...


if APPKIT_AVAILABLE:
    class _PowerObserver(NSObject):
        """Receives NSWorkspace power notifications."""

        def willSleep_(self, notification):
            self.monitor._dispatch("sleep")

        def didWake_(self, notification):
            self.monitor._dispatch("wake")


class WorkspaceSleepWakeMonitor(SleepWakeMonitor):
    """NSWorkspace will-sleep / did-wake observer (requires PyObjC on macOS).

    NSWorkspace delivers notifications through the Cocoa run loop of the
    thread that registered the observer. That run loop is pumped from a task
    on the asyncio loop so notifications arrive without a second thread.
    """

    def __init__(self, pump_interval: float = RUN_LOOP_PUMP_INTERVAL):
        self.pump_interval = pump_interval
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._on_sleep: Optional[PowerCallback] = None
        self._on_wake: Optional[PowerCallback] = None
        self._observer = None
        self._pump_task: Optional[asyncio.Task] = None
        self._callback_tasks: Set[asyncio.Task] = set()

    def start(self, on_sleep: PowerCallback, on_wake: PowerCallback) -> None:
        if not APPKIT_AVAILABLE:
            logger.warning("PyObjC AppKit not available: sleep/wake detection disabled")
            return

        self._loop = asyncio.get_running_loop()
        self._on_sleep = on_sleep
        self._on_wake = on_wake

        self._observer = _PowerObserver.alloc().init()
        self._observer.monitor = self
        center = NSWorkspace.sharedWorkspace().notificationCenter()
        center.addObserver_selector_name_object_(
            self._observer, "willSleep:", NSWorkspaceWillSleepNotification, None
        )
        center.addObserver_selector_name_object_(
            self._observer, "didWake:", NSWorkspaceDidWakeNotification, None
        )

        self._pump_task = self._loop.create_task(self._pump_run_loop())
        logger.info("Sleep/wake monitor started")

    def _dispatch(self, event: str) -> None:
        callback = self._on_sleep if event == "sleep" else self._on_wake
        if callback is None or self._loop is None:
            return
        logger.info(f"System {event} notification received")
        self._loop.call_soon_threadsafe(self._invoke, event, callback)

    def _invoke(self, event: str, callback: PowerCallback) -> None:
        result = callback()
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result, loop=self._loop)
            self._callback_tasks.add(task)
            task.add_done_callback(lambda t: self._callback_done(event, t))

    def _callback_done(self, event: str, task: asyncio.Task) -> None:
        self._callback_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"System {event} handler failed: {error}", exc_info=error)

    async def _pump_run_loop(self) -> None:
        run_loop = NSRunLoop.currentRunLoop()
        while True:
            run_loop.runUntilDate_(NSDate.dateWithTimeIntervalSinceNow_(0))
            await asyncio.sleep(self.pump_interval)

    def stop(self) -> None:
        if self._pump_task:
            self._pump_task.cancel()
            self._pump_task = None

        if self._observer is not None:
            NSWorkspace.sharedWorkspace().notificationCenter().removeObserver_(self._observer)
            self._observer = None
            logger.info("Sleep/wake monitor stopped")

        self._on_sleep = None
        self._on_wake = None


class ManualSleepWakeMonitor(SleepWakeMonitor):
    """Sleep/wake events triggered by hand (tests)."""

    def __init__(self):
        self._on_sleep: Optional[PowerCallback] = None
        self._on_wake: Optional[PowerCallback] = None

    @property
    def started(self) -> bool:
        return self._on_sleep is not None

    def start(self, on_sleep: PowerCallback, on_wake: PowerCallback) -> None:
        self._on_sleep = on_sleep
        self._on_wake = on_wake

    def stop(self) -> None:
        self._on_sleep = None
        self._on_wake = None

    async def sleep(self) -> None:
        await self._fire(self._on_sleep)

    async def wake(self) -> None:
        await self._fire(self._on_wake)

    async def _fire(self, callback: Optional[PowerCallback]) -> None:
        if callback is None:
            return
        result = callback()
        if inspect.isawaitable(result):
            await result


def default_sleep_wake_monitor() -> SleepWakeMonitor:
    """Return the sleep/wake source for this host."""
    return WorkspaceSleepWakeMonitor()
