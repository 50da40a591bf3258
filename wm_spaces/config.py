"""Configuration loading and watching for wm-spaces.

The config file is JSON (default ~/.config/wm-spaces/config.json, or the
path in WM_SPACES_CONFIG). Every field has a default, so a missing file is
a valid configuration.
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Callable, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "WM_SPACES_CONFIG"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / "wm-spaces" / "config.json"
KNOWN_PROVIDERS = ("yabai", "aerospace")


class YabaiSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    path: str = Field("/opt/homebrew/bin/yabai", description="Path to the yabai executable")
    install_signals: bool = Field(True, description="Register yabai signals that post Darwin notifications")


class AerospaceSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    path: str = Field("/opt/homebrew/bin/aerospace", description="Path to the aerospace executable")


class NotificationSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    notifyutil_path: str = Field("/usr/bin/notifyutil", description="Path to notifyutil")
    prefix: str = Field("wm-spaces", min_length=1, description="Prefix of posted notification names")


class SpacesConfig(BaseModel):
    """Top-level wm-spaces configuration."""

    model_config = ConfigDict(extra="forbid")

    provider_order: List[str] = Field(
        default_factory=lambda: list(KNOWN_PROVIDERS),
        description="Backends to probe, in preference order",
    )
    poll_interval: float = Field(0.5, gt=0, description="Fallback timer interval in seconds")
    focus_recheck_delay: float = Field(0.1, ge=0, description="Delay before the window focus re-check")
    command_timeout: float = Field(3.0, gt=0, description="Timeout for each backend command in seconds")
    yabai: YabaiSettings = Field(default_factory=YabaiSettings)
    aerospace: AerospaceSettings = Field(default_factory=AerospaceSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)

    @field_validator("provider_order")
    @classmethod
    def validate_provider_order(cls, v: List[str]) -> List[str]:
        """Reject unknown backends and drop duplicates, keeping first occurrence."""
        unknown = [name for name in v if name not in KNOWN_PROVIDERS]
        if unknown:
            raise ValueError(f"Unknown provider(s): {', '.join(unknown)} (known: {', '.join(KNOWN_PROVIDERS)})")
        return list(dict.fromkeys(v))


def resolve_config_path(path: Optional[Union[str, Path]] = None) -> Path:
    """Pick the config file path: explicit argument, then env var, then default."""
    if path:
        return Path(path).expanduser()
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_PATH


def load_config(path: Optional[Union[str, Path]] = None, strict: bool = False) -> SpacesConfig:
    """Load configuration from a JSON file.

    Args:
        path: Config file path (see resolve_config_path for the fallback order)
        strict: Raise instead of falling back to defaults on an invalid file

    Returns:
        Parsed configuration, or defaults if the file is missing or invalid

    Raises:
        ConfigurationError: File unreadable or invalid and strict=True
    """
    config_file = resolve_config_path(path)

    if not config_file.exists():
        logger.info(f"No config file at {config_file}, using defaults")
        return SpacesConfig()

    try:
        with open(config_file) as f:
            data = json.load(f)
        config = SpacesConfig.model_validate(data)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        if strict:
            raise ConfigurationError(str(config_file), str(e))
        logger.error(f"Invalid config file {config_file}, using defaults: {e}")
        return SpacesConfig()

    logger.info(f"Loaded config from {config_file} (providers: {', '.join(config.provider_order)})")
    return config


class DebouncedReloadHandler(FileSystemEventHandler):
    """File system event handler with a debounced callback on the event loop.

    watchdog delivers events on its observer thread; they are handed to the
    loop with call_soon_threadsafe and collapsed so an editor's save sequence
    produces one reload.
    """

    def __init__(
        self,
        callback: Callable[[], None],
        loop: asyncio.AbstractEventLoop,
        debounce_ms: int = 200,
        target_filename: Optional[str] = None
    ):
        """Initialize debounced reload handler.

        Args:
            callback: Function called on the loop after the debounce period
            loop: Event loop that owns the callback
            debounce_ms: Debounce timeout in milliseconds
            target_filename: If set, only react to events for this filename
        """
        super().__init__()
        self.callback = callback
        self.loop = loop
        self.debounce_seconds = debounce_ms / 1000
        self.target_filename = target_filename
        self._debounce_task: Optional[asyncio.Task] = None

    def _should_trigger(self, event) -> bool:
        if event.is_directory:
            return False
        if self.target_filename:
            # Atomic saves rename a temp file onto the target
            event_path = getattr(event, "dest_path", None) or event.src_path
            return Path(event_path).name == self.target_filename
        return True

    def on_modified(self, event) -> None:
        if self._should_trigger(event):
            self.loop.call_soon_threadsafe(self._schedule_callback)

    def on_moved(self, event) -> None:
        if self._should_trigger(event):
            self.loop.call_soon_threadsafe(self._schedule_callback)

    def on_created(self, event) -> None:
        if self._should_trigger(event):
            self.loop.call_soon_threadsafe(self._schedule_callback)

    def _schedule_callback(self) -> None:
        """Restart the debounce timer (runs on the loop)."""
        if self._debounce_task and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = self.loop.create_task(self._debounced_callback())

    async def _debounced_callback(self) -> None:
        try:
            await asyncio.sleep(self.debounce_seconds)
        except asyncio.CancelledError:
            logger.debug("Debounced reload cancelled (rapid file changes)")
            return
        self.callback()

    def cancel(self) -> None:
        if self._debounce_task and not self._debounce_task.done():
            self._debounce_task.cancel()


class ConfigWatcher:
    """Watches the config file and reports validated reloads.

    Invalid edits are logged and ignored; the callback only ever sees a
    configuration that parsed cleanly.
    """

    def __init__(
        self,
        config_file: Path,
        on_reload: Callable[[SpacesConfig], None],
        loop: asyncio.AbstractEventLoop,
        debounce_ms: int = 200
    ):
        self.config_file = config_file
        self.on_reload = on_reload
        self.handler = DebouncedReloadHandler(
            self._reload, loop, debounce_ms, target_filename=config_file.name
        )
        self.observer: Optional[Observer] = None
        self._started = False

    def _reload(self) -> None:
        try:
            config = load_config(self.config_file, strict=True)
        except ConfigurationError as e:
            logger.error(f"Ignoring config change: {e.message}")
            return

        logger.info(f"Config file {self.config_file} changed, reconfiguring")
        self.on_reload(config)

    def start(self) -> None:
        """Start watching the config file.

        Watches the parent directory since editors that save atomically
        replace the file rather than modifying it.
        """
        if self._started:
            logger.warning("Config watcher already started")
            return

        watch_dir = self.config_file.parent
        if not watch_dir.is_dir():
            logger.info(f"Config directory {watch_dir} does not exist, not watching")
            return

        self.observer = Observer()
        self.observer.schedule(self.handler, str(watch_dir), recursive=False)
        self.observer.start()
        self._started = True

        logger.info(f"Watching {self.config_file} for changes")

    def stop(self) -> None:
        """Stop watching for changes."""
        self.handler.cancel()
        if not self._started:
            return

        self.observer.stop()
        self.observer.join(timeout=5.0)
        self._started = False

        logger.info(f"Stopped watching {self.config_file}")

    def is_running(self) -> bool:
        return self._started
