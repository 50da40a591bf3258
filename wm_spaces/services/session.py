"""Desktop session queries for accessory application detection.

Reports the running applications together with their activation policy so
the window filter can drop windows owned by apps that have no regular Dock
presence (menu bar utilities, launchers, background agents). Such apps keep
windows alive after the user "closes" them, and the window manager still
reports those windows as visible.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional

try:
    from AppKit import NSWorkspace
    APPKIT_AVAILABLE = True
except ImportError:
    APPKIT_AVAILABLE = False

logger = logging.getLogger(__name__)


class ActivationPolicy(Enum):
    """NSApplicationActivationPolicy values."""
    REGULAR = 0
    ACCESSORY = 1
    PROHIBITED = 2


@dataclass(frozen=True)
class RunningApplication:
    """One application in the desktop session."""
    name: Optional[str]
    bundle_id: Optional[str]
    activation_policy: ActivationPolicy

    @property
    def is_accessory(self) -> bool:
        """True for apps without a regular Dock presence."""
        return self.activation_policy != ActivationPolicy.REGULAR


@dataclass(frozen=True)
class AccessoryApplications:
    """Names and bundle IDs of accessory applications at one point in time."""
    names: FrozenSet[str] = frozenset()
    bundle_ids: FrozenSet[str] = frozenset()

    @classmethod
    def from_running(cls, apps: Iterable[RunningApplication]) -> "AccessoryApplications":
        accessory = [app for app in apps if app.is_accessory]
        return cls(
            names=frozenset(app.name for app in accessory if app.name),
            bundle_ids=frozenset(app.bundle_id for app in accessory if app.bundle_id),
        )

    def owns(self, app_name: Optional[str], bundle_id: Optional[str] = None) -> bool:
        """Check whether an application identity belongs to an accessory app.

        Bundle IDs are compared when the window carries one; names are the
        fallback since yabai only reports the localized app name.
        """
        if bundle_id and bundle_id in self.bundle_ids:
            return True
        return (app_name or "") in self.names

    def __len__(self) -> int:
        return len(self.names | self.bundle_ids)


class ApplicationSession(ABC):
    """Source of the running application list."""

    @abstractmethod
    def running_applications(self) -> List[RunningApplication]:
        """Return every application currently running in the session."""

    def accessory_applications(self) -> AccessoryApplications:
        """Query the session and collect the accessory applications."""
        return AccessoryApplications.from_running(self.running_applications())


class WorkspaceApplicationSession(ApplicationSession):
    """Running applications from NSWorkspace (requires PyObjC on macOS)."""

    def running_applications(self) -> List[RunningApplication]:
        if not APPKIT_AVAILABLE:
            logger.debug("AppKit not available, reporting no running applications")
            return []

        apps = []
        for app in NSWorkspace.sharedWorkspace().runningApplications():
            try:
                policy = ActivationPolicy(int(app.activationPolicy()))
            except ValueError:
                policy = ActivationPolicy.PROHIBITED
            apps.append(RunningApplication(
                name=app.localizedName(),
                bundle_id=app.bundleIdentifier(),
                activation_policy=policy,
            ))

        logger.debug(f"Queried {len(apps)} running applications from NSWorkspace")
        return apps


class StaticApplicationSession(ApplicationSession):
    """Fixed application list (tests, and hosts without AppKit)."""

    def __init__(self, apps: Optional[Iterable[RunningApplication]] = None) -> None:
        self.apps: List[RunningApplication] = list(apps or [])

    def running_applications(self) -> List[RunningApplication]:
        return list(self.apps)


def default_session() -> ApplicationSession:
    """Return the session source for this host."""
    if not APPKIT_AVAILABLE:
        logger.warning("PyObjC AppKit not available: accessory application filtering disabled")
        return StaticApplicationSession()
    return WorkspaceApplicationSession()
