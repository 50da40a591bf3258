"""AeroSpace backend (poll-only).

AeroSpace has no notification hook usable from outside its config file, so
the scheduler's fallback timer is the only update source for it.
"""

import asyncio
import logging
from typing import List, Optional

from ..errors import SpacesError
from ..models import RawAerospaceWindow, RawAerospaceWorkspace, Space, SpaceId, Window
from ..services.command_runner import CommandRunner
from ..services.session import ApplicationSession
from .base import DEFAULT_RECHECK_DELAY, CommandLineProvider, SleepFunc, decode_list

logger = logging.getLogger(__name__)

DEFAULT_AEROSPACE_PATH = "/opt/homebrew/bin/aerospace"

# With --json, --format only selects which fields to emit
WORKSPACE_FORMAT = "%{workspace} %{workspace-is-focused} %{workspace-is-visible} %{monitor-id}"
WINDOW_FORMAT = "%{window-id} %{app-name} %{app-bundle-id} %{window-title} %{workspace}"


class AerospaceProvider(CommandLineProvider):
    """Spaces provider backed by the aerospace CLI."""

    name = "aerospace"

    def __init__(
        self,
        runner: CommandRunner,
        session: ApplicationSession,
        executable: str = DEFAULT_AEROSPACE_PATH,
        recheck_delay: float = DEFAULT_RECHECK_DELAY,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        super().__init__(executable, runner, session, recheck_delay=recheck_delay, sleep=sleep)

    async def query_spaces(self) -> List[Space]:
        data = await self.runner.run_json(
            [self.executable, "list-workspaces", "--all", "--json", "--format", WORKSPACE_FORMAT],
            "aerospace workspaces",
        )
        return [raw.to_space() for raw in decode_list(RawAerospaceWorkspace, data, "aerospace workspaces")]

    async def query_windows(self) -> List[Window]:
        windows_data, focused_id = await asyncio.gather(
            self.runner.run_json(
                [self.executable, "list-windows", "--all", "--json", "--format", WINDOW_FORMAT],
                "aerospace windows",
            ),
            self.query_focused_window_id(),
        )
        raw_windows = decode_list(RawAerospaceWindow, windows_data, "aerospace windows")
        return [raw.to_window(stack_index=i, focused_id=focused_id) for i, raw in enumerate(raw_windows)]

    async def query_focused_window_id(self) -> Optional[int]:
        """Return the focused window ID, or None when nothing is focused.

        AeroSpace exits non-zero when no window has focus (empty workspace),
        so any failure here means "no focused window".
        """
        try:
            data = await self.runner.run_json(
                [self.executable, "list-windows", "--focused", "--json"],
                "aerospace focused window",
            )
            focused = decode_list(RawAerospaceWindow, data, "aerospace focused window")
        except SpacesError as e:
            logger.debug(f"No focused aerospace window: {e}")
            return None

        return focused[0].window_id if focused else None

    def focus_space_command(self, space_id: SpaceId) -> List[str]:
        return [self.executable, "workspace", str(space_id)]

    def focus_window_command(self, window_id: int) -> List[str]:
        return [self.executable, "focus", "--window-id", str(window_id)]

    def probe_command(self) -> List[str]:
        return [self.executable, "list-workspaces", "--focused"]
