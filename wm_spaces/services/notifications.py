"""Darwin notification listeners.

Push-capable backends announce changes as named, payload-less Darwin
notifications. A listener subscribes to a set of names and calls back with
the name of each notification received; every name means the same thing to
the scheduler: something changed, fetch again.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Set

logger = logging.getLogger(__name__)

NotificationCallback = Callable[[str], None]

RESTART_DELAY = 1.0


class NotificationListener(ABC):
    """Source of named notifications."""

    @abstractmethod
    async def start(self, names: List[str], callback: NotificationCallback) -> None:
        """Subscribe to names; callback runs on the event loop for each post."""

    @abstractmethod
    async def stop(self) -> None:
        """Unsubscribe from everything."""

    @property
    @abstractmethod
    def running(self) -> bool:
        ...


class DarwinNotificationListener(NotificationListener):
    """Listens through `notifyutil -w <name> ...`.

    notifyutil prints one line per delivered notification, ending in the
    notification name. If it exits while the listener is running it is
    restarted after a short delay.
    """

    def __init__(self, notifyutil_path: str = "/usr/bin/notifyutil", restart_delay: float = RESTART_DELAY):
        self.notifyutil_path = notifyutil_path
        self.restart_delay = restart_delay
        self._names: Set[str] = set()
        self._callback: Optional[NotificationCallback] = None
        self._process: Optional[asyncio.subprocess.Process] = None
        self._reader_task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._reader_task is not None and not self._reader_task.done()

    async def start(self, names: List[str], callback: NotificationCallback) -> None:
        if self.running:
            logger.warning("Notification listener already running")
            return
        if not names:
            logger.debug("No notification names to listen for")
            return

        self._names = set(names)
        self._callback = callback
        self._reader_task = asyncio.create_task(self._listen(list(names)), name="notifyutil-listener")
        logger.info(f"Listening for {len(names)} Darwin notifications")

    async def _spawn(self, names: List[str]) -> asyncio.subprocess.Process:
        return await asyncio.create_subprocess_exec(
            self.notifyutil_path, "-w", *names,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )

    async def _listen(self, names: List[str]) -> None:
        while True:
            try:
                self._process = await self._spawn(names)
            except OSError as e:
                logger.error(f"Cannot start {self.notifyutil_path}: {e}; push updates disabled")
                return

            while True:
                line = await self._process.stdout.readline()
                if not line:
                    break
                self._dispatch(line.decode("utf-8", errors="replace"))

            returncode = await self._process.wait()
            logger.warning(f"notifyutil exited with status {returncode}, restarting in {self.restart_delay}s")
            await asyncio.sleep(self.restart_delay)

    def _dispatch(self, line: str) -> None:
        parts = line.split()
        if not parts:
            return
        name = parts[-1]
        if name not in self._names:
            logger.debug(f"Ignoring notifyutil output: {line.strip()}")
            return
        logger.debug(f"Notification: {name}")
        if self._callback:
            self._callback(name)

    async def stop(self) -> None:
        if self._reader_task:
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
            self._reader_task = None

        if self._process and self._process.returncode is None:
            self._process.kill()
            await self._process.wait()
        self._process = None
        self._callback = None
        logger.info("Notification listener stopped")


class InMemoryNotificationBus(NotificationListener):
    """In-process notification bus for tests."""

    def __init__(self):
        self.names: Set[str] = set()
        self.posted: List[str] = []
        self._callback: Optional[NotificationCallback] = None

    @property
    def running(self) -> bool:
        return self._callback is not None

    async def start(self, names: List[str], callback: NotificationCallback) -> None:
        self.names = set(names)
        self._callback = callback

    async def stop(self) -> None:
        self._callback = None

    def post(self, name: str) -> bool:
        """Post a notification.

        Returns:
            True if a subscriber received it
        """
        self.posted.append(name)
        if self._callback is None or name not in self.names:
            return False
        self._callback(name)
        return True
