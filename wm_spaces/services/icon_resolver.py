"""Application icon lookup for window entries.

Icons are resolved lazily the first time an application is seen and cached
per application identity, misses included, so a bar refreshing twice a
second does not hit the filesystem for every window.
"""

import logging
import plistlib
from pathlib import Path
from typing import Callable, Dict, Optional

from ..models import Window

try:
    from AppKit import NSWorkspace
    APPKIT_AVAILABLE = True
except ImportError:
    APPKIT_AVAILABLE = False

logger = logging.getLogger(__name__)

IconLookup = Callable[[Optional[str], Optional[str]], Optional[Path]]


def application_bundle_path(app_name: Optional[str], bundle_id: Optional[str]) -> Optional[Path]:
    """Locate an application bundle through NSWorkspace."""
    if not APPKIT_AVAILABLE:
        return None

    workspace = NSWorkspace.sharedWorkspace()
    if bundle_id:
        url = workspace.URLForApplicationWithBundleIdentifier_(bundle_id)
        if url is not None:
            return Path(url.path())
    if app_name:
        path = workspace.fullPathForApplication_(app_name)
        if path:
            return Path(path)
    return None


def bundle_icon_path(bundle: Path) -> Optional[Path]:
    """Read CFBundleIconFile from a bundle's Info.plist."""
    info_plist = bundle / "Contents" / "Info.plist"
    try:
        with open(info_plist, "rb") as f:
            info = plistlib.load(f)
    except (OSError, plistlib.InvalidFileException) as e:
        logger.debug(f"Cannot read {info_plist}: {e}")
        return None

    icon_file = info.get("CFBundleIconFile")
    if not icon_file:
        return None
    if not icon_file.endswith(".icns"):
        icon_file += ".icns"

    icon = bundle / "Contents" / "Resources" / icon_file
    return icon if icon.exists() else None


def workspace_icon_lookup(app_name: Optional[str], bundle_id: Optional[str]) -> Optional[Path]:
    bundle = application_bundle_path(app_name, bundle_id)
    if bundle is None:
        return None
    return bundle_icon_path(bundle)


class IconResolver:
    """Per-application icon cache."""

    def __init__(self, lookup: IconLookup = workspace_icon_lookup):
        self.lookup = lookup
        self._cache: Dict[str, Optional[Path]] = {}

    def icon_for(self, window: Window) -> Optional[Path]:
        """Return the icon file of the window's application, or None."""
        key = window.app_identity
        if not key:
            return None
        if key in self._cache:
            return self._cache[key]

        try:
            icon = self.lookup(window.app_name, window.bundle_id)
        except Exception as e:
            logger.warning(f"Icon lookup for {key} failed: {e}")
            icon = None

        self._cache[key] = icon
        logger.debug(f"Resolved icon for {key}: {icon}")
        return icon

    def clear(self) -> None:
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)
