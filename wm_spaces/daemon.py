"""wm-spaces daemon.

Selects a window manager backend, keeps a live snapshot of its spaces and
windows, and writes every new snapshot to stdout as one JSON line for the
status bar to consume.
"""

import asyncio
import json
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Optional, TextIO

from .config import ConfigWatcher, SpacesConfig, load_config, resolve_config_path
from .errors import NoProviderAvailable
from .focus import FocusController
from .models import SpacesSnapshot
from .providers.selector import ProviderSelector, SelectedProvider
from .scheduler import UpdateScheduler
from .services.command_runner import CommandRunner
from .services.icon_resolver import IconResolver
from .services.notifications import DarwinNotificationListener, NotificationListener
from .services.session import ApplicationSession, default_session
from .services.sleep_wake import SleepWakeMonitor, default_sleep_wake_monitor

logger = logging.getLogger(__name__)


class StdoutPublisher:
    """Writes snapshots as JSON lines."""

    def __init__(self, stream: TextIO, icons: Optional[IconResolver] = None):
        self.stream = stream
        self.icons = icons
        self.published = 0

    def __call__(self, snapshot: SpacesSnapshot) -> None:
        icon_for = self.icons.icon_for if self.icons else None
        self.stream.write(json.dumps(snapshot.to_publish_dict(icon_for)) + "\n")
        self.stream.flush()
        self.published += 1


class SpacesDaemon:
    """Main daemon class."""

    def __init__(
        self,
        config_path: Optional[Path] = None,
        config: Optional[SpacesConfig] = None,
        session: Optional[ApplicationSession] = None,
        runner: Optional[CommandRunner] = None,
        listener: Optional[NotificationListener] = None,
        sleep_wake: Optional[SleepWakeMonitor] = None,
        output: Optional[TextIO] = None,
        watch_config: bool = True,
    ) -> None:
        """Initialize daemon.

        Collaborators left as None are created for the host in initialize().
        """
        self.config_path = resolve_config_path(config_path)
        self.config = config
        self.session = session
        self.runner = runner
        self.listener = listener
        self.sleep_wake = sleep_wake
        self.output = output or sys.stdout
        self.watch_config = watch_config

        self.provider: Optional[SelectedProvider] = None
        self.scheduler: Optional[UpdateScheduler] = None
        self.focus: Optional[FocusController] = None
        self.icons = IconResolver()
        self.config_watcher: Optional[ConfigWatcher] = None
        self.shutdown_event = asyncio.Event()
        self._reconfigure_task: Optional[asyncio.Task] = None

    async def initialize(self) -> None:
        """Select a backend and start publishing."""
        logger.info("Initializing wm-spaces daemon...")

        if self.config is None:
            self.config = load_config(self.config_path)
        if self.session is None:
            self.session = default_session()
        if self.listener is None:
            self.listener = DarwinNotificationListener(self.config.notifications.notifyutil_path)
        if self.sleep_wake is None:
            self.sleep_wake = default_sleep_wake_monitor()

        self.provider = await self._select_provider(self.config)

        self.scheduler = UpdateScheduler(
            self.provider,
            listener=self.listener,
            poll_interval=self.config.poll_interval,
        )
        self.scheduler.subscribe(StdoutPublisher(self.output, self.icons))
        self.focus = FocusController(self.provider)

        await self.scheduler.start()
        self.sleep_wake.start(self.scheduler.suspend, self.scheduler.resume)

        if self.watch_config:
            self.config_watcher = ConfigWatcher(
                self.config_path, self._on_config_reload, asyncio.get_running_loop()
            )
            self.config_watcher.start()

        logger.info("Daemon initialized")

    async def _select_provider(self, config: SpacesConfig) -> Optional[SelectedProvider]:
        runner = self.runner or CommandRunner(timeout=config.command_timeout)
        selector = ProviderSelector(config, runner=runner, session=self.session)
        try:
            return await selector.select()
        except NoProviderAvailable as e:
            logger.error(f"{e.message}. {e.suggestion}")
            return None

    def _on_config_reload(self, config: SpacesConfig) -> None:
        if self._reconfigure_task and not self._reconfigure_task.done():
            self._reconfigure_task.cancel()
        self._reconfigure_task = asyncio.create_task(self.reconfigure(config))

    async def reconfigure(self, config: SpacesConfig) -> None:
        """Apply a new configuration and re-run backend selection."""
        self.config = config
        self.icons.clear()
        self.provider = await self._select_provider(config)

        self.scheduler.poll_interval = config.poll_interval
        if isinstance(self.listener, DarwinNotificationListener):
            self.listener.notifyutil_path = config.notifications.notifyutil_path

        await self.scheduler.set_provider(self.provider)
        self.focus.set_provider(self.provider)
        logger.info(f"Reconfigured: backend {self.provider.name if self.provider else 'none'}")

    async def run(self) -> None:
        """Run until shutdown is requested."""
        await self.shutdown_event.wait()

    async def shutdown(self) -> None:
        """Stop every component, bounding each step with a timeout."""
        logger.info("Shutting down daemon...")

        if self.config_watcher:
            try:
                self.config_watcher.stop()
            except Exception as e:
                logger.error(f"Error stopping config watcher: {e}")

        if self._reconfigure_task and not self._reconfigure_task.done():
            self._reconfigure_task.cancel()

        if self.sleep_wake:
            self.sleep_wake.stop()

        if self.scheduler:
            try:
                await asyncio.wait_for(self.scheduler.stop(), timeout=5.0)
            except asyncio.TimeoutError:
                logger.warning("Scheduler shutdown timed out after 5s (continuing)")
            except Exception as e:
                logger.error(f"Error stopping scheduler: {e}")

        logger.info("Daemon shutdown complete")

    def setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def shutdown_handler(signum, frame):
            logger.info(f"Received signal {signum}, initiating shutdown...")
            loop.call_soon_threadsafe(self.shutdown_event.set)

        def debug_handler(signum, frame):
            """Log scheduler state on SIGUSR1 without shutting down."""
            logger.info("=== DEBUG INFO (USR1) ===")
            logger.info(f"PID: {os.getpid()}")
            if self.scheduler:
                stats = self.scheduler.stats()
                logger.info(f"State: {self.scheduler.state.value}")
                logger.info(
                    f"Fetches: {stats.fetch_count}, failures: {stats.failure_count}, "
                    f"dropped triggers: {stats.dropped_triggers}, last error: {stats.last_error}"
                )
            logger.info("======================")

        signal.signal(signal.SIGTERM, shutdown_handler)
        signal.signal(signal.SIGINT, shutdown_handler)
        signal.signal(signal.SIGUSR1, debug_handler)


def setup_logging() -> None:
    """Setup logging to stderr (stdout carries snapshots)."""
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s [%(name)s] %(message)s"))
    root_logger.addHandler(handler)

    logger.info(f"Logging configured: level={log_level}")


async def main_async(config_path: Optional[Path] = None) -> int:
    """Async main function.

    Returns:
        Exit code (0 = success, non-zero = error)
    """
    daemon = SpacesDaemon(config_path=config_path)

    try:
        daemon.setup_signal_handlers()
        await daemon.initialize()
        await daemon.run()
        await daemon.shutdown()
        return 0

    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        await daemon.shutdown()
        return 1


def main(config_path: Optional[Path] = None) -> None:
    """Main entry point."""
    setup_logging()

    logger.info("wm-spaces daemon starting...")
    logger.info(f"PID: {os.getpid()}")

    try:
        exit_code = asyncio.run(main_async(config_path))
        sys.exit(exit_code)

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)
