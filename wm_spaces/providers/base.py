"""Provider interfaces for window manager backends.

SpacesProvider is the contract every backend satisfies: fetch a merged
snapshot, focus a space, focus a window. PushNotifications is an optional
capability; only backends that can announce state changes on the Darwin
notification bus implement it.

CommandLineProvider holds the parts both CLI backends share: the concurrent
spaces/windows join, decoding, and the corrective follow-up after a space
focus.
"""

import asyncio
import logging
import os
import shutil
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, List, Optional, Set, Type

from pydantic import TypeAdapter, ValidationError

from ..errors import DecodeFailure, PartialFetchFailure, SpacesError
from ..models import Space, SpaceId, SpacesSnapshot, Window
from ..services.command_runner import CommandRunner
from ..services.session import ApplicationSession
from ..window_filtering import build_spaces

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[Any]]

DEFAULT_RECHECK_DELAY = 0.1


class SpacesProvider(ABC):
    """Operations every window manager backend supports."""

    name: str = "unknown"

    @abstractmethod
    async def fetch_snapshot(self) -> SpacesSnapshot:
        """Query the window manager and return the merged, filtered spaces.

        Raises:
            SpacesError: Any query failed; no partial snapshot is returned
        """

    @abstractmethod
    async def focus_space(self, space_id: SpaceId, need_window_focus: bool = False) -> Optional[asyncio.Task]:
        """Focus a space.

        Args:
            space_id: Space to focus
            need_window_focus: Make sure a window inside the space ends up focused

        Returns:
            Follow-up task handle when a focus re-check was scheduled, else None
        """

    @abstractmethod
    async def focus_window(self, window_id: int) -> None:
        """Focus a window."""

    @abstractmethod
    async def probe(self) -> bool:
        """Check whether the backend is installed and answering queries."""


class PushNotifications(ABC):
    """Optional capability: backend posts Darwin notifications on state changes."""

    @abstractmethod
    def notification_names(self) -> List[str]:
        """Notification names that signal a space or window change."""

    async def prepare_notifications(self) -> None:
        """Set up whatever makes the backend post notifications."""

    async def teardown_notifications(self) -> None:
        """Undo prepare_notifications()."""


def resolve_executable(path: str) -> Optional[str]:
    """Resolve a configured executable to a runnable path.

    Absolute or relative paths must point at an executable file; bare names
    are looked up on PATH.
    """
    if os.sep in path:
        if os.path.isfile(path) and os.access(path, os.X_OK):
            return path
        return None
    return shutil.which(path)


def decode_list(model: Type[Any], data: Any, what: str) -> List[Any]:
    """Validate decoded JSON as a list of wire models.

    Raises:
        DecodeFailure: Data does not match the expected shape
    """
    try:
        return TypeAdapter(List[model]).validate_python(data)
    except ValidationError as e:
        raise DecodeFailure(what, f"{e.error_count()} validation error(s): {e.errors()[0]['msg']}")


class CommandLineProvider(SpacesProvider):
    """Backend driven through a command-line client."""

    def __init__(
        self,
        executable: str,
        runner: CommandRunner,
        session: ApplicationSession,
        recheck_delay: float = DEFAULT_RECHECK_DELAY,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """Initialize provider.

        Args:
            executable: Configured path to the backend CLI
            runner: Command runner (owns the timeout)
            session: Desktop session used for accessory app filtering
            recheck_delay: Seconds between a space focus and the window focus re-check
            sleep: Awaitable sleep used by the re-check (injectable for tests)
        """
        self.executable = executable
        self.runner = runner
        self.session = session
        self.recheck_delay = recheck_delay
        self._sleep = sleep
        self._followups: Set[asyncio.Task] = set()

    # Backend-specific commands

    @abstractmethod
    async def query_spaces(self) -> List[Space]:
        """Run the spaces query and decode it (windows left empty)."""

    @abstractmethod
    async def query_windows(self) -> List[Window]:
        """Run the windows query and decode it."""

    @abstractmethod
    def focus_space_command(self, space_id: SpaceId) -> List[str]:
        ...

    @abstractmethod
    def focus_window_command(self, window_id: int) -> List[str]:
        ...

    @abstractmethod
    def probe_command(self) -> List[str]:
        ...

    # Shared behaviour

    async def fetch_snapshot(self) -> SpacesSnapshot:
        spaces_result, windows_result = await asyncio.gather(
            self.query_spaces(),
            self.query_windows(),
            return_exceptions=True,
        )

        for result in (spaces_result, windows_result):
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result

        spaces_failed = isinstance(spaces_result, Exception)
        windows_failed = isinstance(windows_result, Exception)

        if spaces_failed and windows_failed:
            logger.debug(f"{self.name} windows query also failed: {windows_result}")
            raise spaces_result
        if spaces_failed:
            raise PartialFetchFailure("spaces", spaces_result)
        if windows_failed:
            raise PartialFetchFailure("windows", windows_result)

        # Accessory apps change over time, so query them on every fetch
        accessory_apps = self.session.accessory_applications()
        spaces = build_spaces(spaces_result, windows_result, accessory_apps)

        snapshot = SpacesSnapshot(spaces=tuple(spaces), provider=self.name)
        logger.debug(
            f"{self.name} snapshot: {len(snapshot.spaces)} spaces, "
            f"{snapshot.window_count} windows ({len(accessory_apps)} accessory apps)"
        )
        return snapshot

    async def focus_space(self, space_id: SpaceId, need_window_focus: bool = False) -> Optional[asyncio.Task]:
        await self.runner.run(self.focus_space_command(space_id))
        logger.debug(f"{self.name}: focused space {space_id}")

        if not need_window_focus:
            return None

        task = asyncio.create_task(
            self._ensure_window_focus(space_id),
            name=f"{self.name}-focus-recheck-{space_id}",
        )
        self._followups.add(task)
        task.add_done_callback(self._followups.discard)
        return task

    async def focus_window(self, window_id: int) -> None:
        await self.runner.run(self.focus_window_command(window_id))
        logger.debug(f"{self.name}: focused window {window_id}")

    async def _ensure_window_focus(self, space_id: SpaceId) -> Optional[int]:
        """Focus the first window of a space if focusing the space left none focused.

        Some window managers focus a space without focusing any window in it,
        which leaves keyboard input going nowhere.

        Returns:
            ID of the window that was focused, or None if no action was needed
        """
        await self._sleep(self.recheck_delay)

        try:
            snapshot = await self.fetch_snapshot()
        except SpacesError as e:
            logger.warning(f"Focus re-check for space {space_id} failed: {e}")
            return None

        space = snapshot.get_space(space_id)
        if space is None:
            logger.debug(f"Focus re-check: space {space_id} no longer exists")
            return None

        if space.focused_window is not None or space.first_window is None:
            return None

        window_id = space.first_window.id
        try:
            await self.focus_window(window_id)
        except SpacesError as e:
            logger.warning(f"Focus re-check could not focus window {window_id}: {e}")
            return None

        logger.info(f"Space {space_id} had no focused window, focused window {window_id}")
        return window_id

    def cancel_followups(self) -> None:
        """Cancel pending focus re-checks."""
        for task in list(self._followups):
            task.cancel()

    async def probe(self) -> bool:
        resolved = resolve_executable(self.executable)
        if resolved is None:
            logger.info(f"{self.name}: executable {self.executable} not found")
            return False

        try:
            await self.runner.run(self.probe_command())
        except SpacesError as e:
            logger.info(f"{self.name}: probe failed: {e}")
            return False

        logger.info(f"{self.name}: reachable at {resolved}")
        return True
