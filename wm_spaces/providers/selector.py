"""Backend selection.

Builds the configured backends in preference order, probes them, and wraps
the first reachable one in a SelectedProvider.
"""

import asyncio
import logging
from typing import List, Optional, Tuple

from ..config import SpacesConfig
from ..errors import NoProviderAvailable
from ..models import SpaceId, SpacesSnapshot
from ..services.command_runner import CommandRunner
from ..services.session import ApplicationSession, default_session
from .aerospace import AerospaceProvider
from .base import CommandLineProvider, PushNotifications, SleepFunc, SpacesProvider
from .yabai import YabaiProvider

logger = logging.getLogger(__name__)


class SelectedProvider:
    """The backend chosen at start-up.

    Exposes the provider operations directly and the push capability as a
    separate attribute, which is None for poll-only backends.
    """

    def __init__(self, provider: SpacesProvider):
        self.provider = provider
        self.push: Optional[PushNotifications] = provider if isinstance(provider, PushNotifications) else None

    @property
    def name(self) -> str:
        return self.provider.name

    async def fetch_snapshot(self) -> SpacesSnapshot:
        return await self.provider.fetch_snapshot()

    async def focus_space(self, space_id: SpaceId, need_window_focus: bool = False) -> Optional[asyncio.Task]:
        return await self.provider.focus_space(space_id, need_window_focus)

    async def focus_window(self, window_id: int) -> None:
        await self.provider.focus_window(window_id)

    def close(self) -> None:
        """Cancel outstanding work owned by the backend."""
        if isinstance(self.provider, CommandLineProvider):
            self.provider.cancel_followups()

    def __repr__(self) -> str:
        return f"SelectedProvider(name={self.name!r}, push={self.push is not None})"


class ProviderSelector:
    """Builds and probes backends from configuration."""

    def __init__(
        self,
        config: SpacesConfig,
        runner: Optional[CommandRunner] = None,
        session: Optional[ApplicationSession] = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.config = config
        self.runner = runner or CommandRunner(timeout=config.command_timeout)
        self.session = session or default_session()
        self.sleep = sleep

    def build_providers(self) -> List[SpacesProvider]:
        """Instantiate enabled backends in provider_order."""
        providers: List[SpacesProvider] = []
        for name in self.config.provider_order:
            if name == "yabai" and self.config.yabai.enabled:
                providers.append(YabaiProvider(
                    self.runner,
                    self.session,
                    executable=self.config.yabai.path,
                    notifyutil_path=self.config.notifications.notifyutil_path,
                    prefix=self.config.notifications.prefix,
                    install_signals=self.config.yabai.install_signals,
                    recheck_delay=self.config.focus_recheck_delay,
                    sleep=self.sleep,
                ))
            elif name == "aerospace" and self.config.aerospace.enabled:
                providers.append(AerospaceProvider(
                    self.runner,
                    self.session,
                    executable=self.config.aerospace.path,
                    recheck_delay=self.config.focus_recheck_delay,
                    sleep=self.sleep,
                ))
            else:
                logger.debug(f"Backend {name} disabled in config")
        return providers

    async def probe_all(self) -> List[Tuple[SpacesProvider, bool]]:
        """Probe every enabled backend (for diagnostics)."""
        results = []
        for provider in self.build_providers():
            results.append((provider, await provider.probe()))
        return results

    async def select(self) -> SelectedProvider:
        """Return the first reachable backend.

        Raises:
            NoProviderAvailable: No enabled backend answered its probe
        """
        tried = []
        for provider in self.build_providers():
            tried.append(provider.name)
            if await provider.probe():
                selected = SelectedProvider(provider)
                logger.info(f"Selected {selected.name} backend (push: {selected.push is not None})")
                return selected

        raise NoProviderAvailable(tried)
