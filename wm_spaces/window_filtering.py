"""Window visibility filtering and space/window merging.

Turns the two independently fetched collections (spaces, windows) into the
space tree published to the bar:

1. Drop windows that are not user-facing (zero opacity, hidden, sticky,
   untitled floating helpers, accessory applications).
2. Attach each surviving window to its space, dropping windows whose space
   is not in the fetched space list.
3. Sort each space's windows by stack index (stable, so ties keep backend order).
"""

import logging
from typing import Dict, Iterable, List, Optional

from .models import Space, Window
from .services.session import AccessoryApplications

logger = logging.getLogger(__name__)


def is_user_window(window: Window, accessory_apps: Optional[AccessoryApplications] = None) -> bool:
    """Check whether a window should be shown in the bar.

    Args:
        window: Window reported by the window manager
        accessory_apps: Accessory applications from the desktop session

    Returns:
        True if the window is a regular, visible user window
    """
    if window.opacity <= 0 or window.is_hidden or window.is_sticky:
        return False

    # Untitled floating windows are helper panels and overlays
    if window.is_floating and not window.title.strip():
        return False

    if accessory_apps and accessory_apps.owns(window.app_name, window.bundle_id):
        return False

    return True


def filter_windows(
    windows: Iterable[Window],
    accessory_apps: Optional[AccessoryApplications] = None
) -> List[Window]:
    """Keep only user-facing windows, preserving input order."""
    return [w for w in windows if is_user_window(w, accessory_apps)]


def merge_spaces(spaces: Iterable[Space], windows: Iterable[Window]) -> List[Space]:
    """Attach windows to their spaces.

    Windows must already be filtered. Space order is the order the backend
    returned; it is not re-sorted.

    Args:
        spaces: Spaces as fetched (their own window lists are ignored)
        windows: Filtered windows

    Returns:
        New Space objects with windows sorted ascending by stack index
    """
    space_list: List[Space] = []
    by_space: Dict[str, List[Window]] = {}
    for space in spaces:
        key = str(space.id)
        if key in by_space:
            logger.warning(f"Ignoring duplicate space {space.id}")
            continue
        by_space[key] = []
        space_list.append(space)

    dropped = 0
    for window in windows:
        bucket = by_space.get(str(window.space_id))
        if bucket is None:
            # Window references a space that vanished between the two queries
            dropped += 1
            continue
        bucket.append(window)

    if dropped:
        logger.debug(f"Dropped {dropped} window(s) referencing unknown spaces")

    merged = []
    for space in space_list:
        ordered = sorted(by_space[str(space.id)], key=lambda w: w.stack_index)
        merged.append(space.model_copy(update={"windows": tuple(ordered)}))
    return merged


def build_spaces(
    spaces: Iterable[Space],
    windows: Iterable[Window],
    accessory_apps: Optional[AccessoryApplications] = None
) -> List[Space]:
    """Filter windows and merge them into spaces in one step."""
    window_list = list(windows)
    visible = filter_windows(window_list, accessory_apps)
    logger.debug(f"Window filter kept {len(visible)}/{len(window_list)} windows")
    return merge_spaces(spaces, visible)
