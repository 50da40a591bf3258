"""Focus requests from the bar.

Focus commands are fire-and-forget: failures are logged, never raised, and
never retried. The next snapshot shows whatever the window manager actually
did.
"""

import asyncio
import logging
from typing import Optional

from .errors import SpacesError
from .models import SpaceId
from .providers.selector import SelectedProvider

logger = logging.getLogger(__name__)


class FocusController:
    """Routes focus requests to the selected provider."""

    def __init__(self, provider: Optional[SelectedProvider] = None):
        self.provider = provider

    def set_provider(self, provider: Optional[SelectedProvider]) -> None:
        self.provider = provider

    async def request_focus_space(self, space_id: SpaceId, need_window_focus: bool = False) -> Optional[asyncio.Task]:
        """Focus a space.

        Args:
            space_id: Space to focus
            need_window_focus: Also make sure a window in the space gets focus

        Returns:
            Focus re-check task (await or cancel it), or None
        """
        if self.provider is None:
            logger.warning(f"No backend selected, ignoring focus request for space {space_id}")
            return None

        try:
            return await self.provider.focus_space(space_id, need_window_focus)
        except SpacesError as e:
            logger.warning(f"Focusing space {space_id} failed: {e}")
            return None

    async def request_focus_window(self, window_id: int) -> bool:
        """Focus a window.

        Returns:
            True if the command succeeded
        """
        if self.provider is None:
            logger.warning(f"No backend selected, ignoring focus request for window {window_id}")
            return False

        try:
            await self.provider.focus_window(window_id)
        except SpacesError as e:
            logger.warning(f"Focusing window {window_id} failed: {e}")
            return False
        return True
