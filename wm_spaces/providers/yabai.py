"""yabai backend.

Queries spaces and windows through `yabai -m query` and can push change
notifications: labelled yabai signals run `notifyutil -p <name>` so every
relevant yabai event lands on the Darwin notification bus.
"""

import asyncio
import logging
from typing import List

from ..errors import SpacesError
from ..models import RawYabaiSpace, RawYabaiWindow, Space, SpaceId, Window
from ..services.command_runner import CommandRunner
from ..services.session import ApplicationSession
from .base import DEFAULT_RECHECK_DELAY, CommandLineProvider, PushNotifications, SleepFunc, decode_list

logger = logging.getLogger(__name__)

DEFAULT_YABAI_PATH = "/opt/homebrew/bin/yabai"
DEFAULT_NOTIFYUTIL_PATH = "/usr/bin/notifyutil"
DEFAULT_PREFIX = "wm-spaces"

# yabai events that change what the bar shows
YABAI_EVENTS = [
    "space_changed",
    "space_created",
    "space_destroyed",
    "display_changed",
    "window_created",
    "window_destroyed",
    "window_moved",
    "window_focused",
    "window_minimized",
    "window_deminimized",
    "window_title_changed",
    "application_launched",
    "application_terminated",
    "application_front_switched",
    "application_hidden",
    "application_visible",
]


class YabaiProvider(CommandLineProvider, PushNotifications):
    """Spaces provider backed by the yabai CLI."""

    name = "yabai"

    def __init__(
        self,
        runner: CommandRunner,
        session: ApplicationSession,
        executable: str = DEFAULT_YABAI_PATH,
        notifyutil_path: str = DEFAULT_NOTIFYUTIL_PATH,
        prefix: str = DEFAULT_PREFIX,
        install_signals: bool = True,
        recheck_delay: float = DEFAULT_RECHECK_DELAY,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        super().__init__(executable, runner, session, recheck_delay=recheck_delay, sleep=sleep)
        self.notifyutil_path = notifyutil_path
        self.prefix = prefix
        self.install_signals = install_signals
        self._installed_labels: List[str] = []

    async def query_spaces(self) -> List[Space]:
        data = await self.runner.run_json([self.executable, "-m", "query", "--spaces"], "yabai spaces")
        return [raw.to_space() for raw in decode_list(RawYabaiSpace, data, "yabai spaces")]

    async def query_windows(self) -> List[Window]:
        data = await self.runner.run_json([self.executable, "-m", "query", "--windows"], "yabai windows")
        return [raw.to_window() for raw in decode_list(RawYabaiWindow, data, "yabai windows")]

    def focus_space_command(self, space_id: SpaceId) -> List[str]:
        return [self.executable, "-m", "space", "--focus", str(space_id)]

    def focus_window_command(self, window_id: int) -> List[str]:
        return [self.executable, "-m", "window", "--focus", str(window_id)]

    def probe_command(self) -> List[str]:
        return [self.executable, "-m", "query", "--spaces", "--space"]

    # Push notifications

    def notification_name(self, event: str) -> str:
        return f"{self.prefix}.yabai.{event}"

    def signal_label(self, event: str) -> str:
        return f"{self.prefix.replace('.', '_').replace('-', '_')}_{event}"

    def notification_names(self) -> List[str]:
        return [self.notification_name(event) for event in YABAI_EVENTS]

    async def prepare_notifications(self) -> None:
        """Register one labelled yabai signal per event.

        Re-adding a signal with an existing label replaces it, so this is
        safe to call after a restart without a prior teardown.
        """
        if not self.install_signals:
            logger.info("yabai signal installation disabled, relying on externally configured signals")
            return

        installed = 0
        for event in YABAI_EVENTS:
            label = self.signal_label(event)
            action = f"{self.notifyutil_path} -p {self.notification_name(event)}"
            try:
                await self.runner.run([
                    self.executable, "-m", "signal", "--add",
                    f"label={label}",
                    f"event={event}",
                    f"action={action}",
                ])
            except SpacesError as e:
                logger.warning(f"Could not register yabai signal for {event}: {e}")
                continue
            self._installed_labels.append(label)
            installed += 1

        logger.info(f"Registered {installed}/{len(YABAI_EVENTS)} yabai signals")

    async def teardown_notifications(self) -> None:
        """Remove the signals registered by prepare_notifications()."""
        labels, self._installed_labels = self._installed_labels, []
        for label in labels:
            try:
                await self.runner.run([self.executable, "-m", "signal", "--remove", label])
            except SpacesError as e:
                logger.warning(f"Could not remove yabai signal {label}: {e}")

        if labels:
            logger.info(f"Removed {len(labels)} yabai signals")
