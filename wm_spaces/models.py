"""
Pydantic data models for wm-spaces.

Defines the immutable domain records published to the bar (Window, Space,
SpacesSnapshot) and the wire models used to decode yabai and AeroSpace JSON.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

# yabai identifies spaces by mission-control index, AeroSpace by workspace name
SpaceId = Union[int, str]


# Domain Records

class Window(BaseModel):
    """One on-screen application window known to the window manager."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Window manager window ID")
    space_id: SpaceId = Field(..., description="ID of the owning space")
    stack_index: int = Field(0, description="Ordering within the space (ascending)")
    title: str = Field("", description="Window title (may be empty)")
    app_name: Optional[str] = Field(None, description="Owning application name")
    bundle_id: Optional[str] = Field(None, description="Owning application bundle identifier")
    pid: Optional[int] = Field(None, description="Owning process ID")
    is_floating: bool = False
    is_hidden: bool = False
    is_sticky: bool = False
    is_focused: bool = False
    opacity: float = Field(1.0, ge=0.0, le=1.0, description="Window opacity (visibility proxy)")

    @property
    def app_identity(self) -> Optional[str]:
        """Key identifying the owning application (bundle ID preferred)."""
        return self.bundle_id or self.app_name


class Space(BaseModel):
    """One workspace with its filtered, stack-ordered windows."""

    model_config = ConfigDict(frozen=True)

    id: SpaceId = Field(..., description="Space identifier used by focus commands")
    display_index: int = Field(1, description="Display the space lives on")
    label: str = Field("", description="User-assigned label")
    is_active: bool = Field(False, description="Space currently has focus")
    is_visible: bool = Field(False, description="Space is shown on its display")
    windows: Tuple[Window, ...] = ()

    @property
    def focused_window(self) -> Optional[Window]:
        """First window marked as focused, if any."""
        return next((w for w in self.windows if w.is_focused), None)

    @property
    def first_window(self) -> Optional[Window]:
        """First window in stack order, if any."""
        return self.windows[0] if self.windows else None


class SpacesSnapshot(BaseModel):
    """Spaces with their windows attached, as returned by one fetch cycle."""

    model_config = ConfigDict(frozen=True)

    spaces: Tuple[Space, ...] = ()
    provider: str = Field(..., description="Backend that produced the snapshot")
    fetched_at: datetime = Field(default_factory=datetime.now)

    def get_space(self, space_id: SpaceId) -> Optional[Space]:
        """Look up a space by ID.

        IDs are compared as strings so a space requested as "2" matches
        yabai's integer index 2.
        """
        wanted = str(space_id)
        return next((s for s in self.spaces if str(s.id) == wanted), None)

    @property
    def active_space(self) -> Optional[Space]:
        return next((s for s in self.spaces if s.is_active), None)

    @property
    def window_count(self) -> int:
        return sum(len(s.windows) for s in self.spaces)

    def to_publish_dict(self, icon_for: Optional[Callable[[Window], Any]] = None) -> Dict[str, Any]:
        """Serialize for bar consumers (one JSON object per snapshot).

        Args:
            icon_for: Optional icon lookup; adds an "icon" path to each window
        """
        def window_dict(w: Window) -> Dict[str, Any]:
            entry = {
                "id": w.id,
                "app": w.app_name,
                "title": w.title,
                "focused": w.is_focused,
                "floating": w.is_floating,
            }
            if icon_for is not None:
                icon = icon_for(w)
                entry["icon"] = str(icon) if icon else None
            return entry

        return {
            "provider": self.provider,
            "fetched_at": self.fetched_at.isoformat(),
            "spaces": [
                {
                    "id": space.id,
                    "display": space.display_index,
                    "label": space.label,
                    "active": space.is_active,
                    "visible": space.is_visible,
                    "windows": [window_dict(w) for w in space.windows],
                }
                for space in self.spaces
            ],
        }


# yabai Wire Models

class RawYabaiSpace(BaseModel):
    """Space object from `yabai -m query --spaces`."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: int
    index: int
    label: str = ""
    display: int = 1
    has_focus: bool = Field(False, alias="has-focus")
    is_visible: bool = Field(False, alias="is-visible")

    def to_space(self, windows: Tuple[Window, ...] = ()) -> Space:
        return Space(
            id=self.index,
            display_index=self.display,
            label=self.label,
            is_active=self.has_focus,
            is_visible=self.is_visible,
            windows=windows,
        )


class RawYabaiWindow(BaseModel):
    """Window object from `yabai -m query --windows`."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: int
    pid: Optional[int] = None
    app: Optional[str] = None
    title: Optional[str] = ""
    space: int
    opacity: float = 1.0
    stack_index: int = Field(0, alias="stack-index")
    has_focus: bool = Field(False, alias="has-focus")
    is_hidden: bool = Field(False, alias="is-hidden")
    is_floating: bool = Field(False, alias="is-floating")
    is_sticky: bool = Field(False, alias="is-sticky")

    def to_window(self) -> Window:
        return Window(
            id=self.id,
            space_id=self.space,
            stack_index=self.stack_index,
            title=self.title or "",
            app_name=self.app,
            pid=self.pid,
            is_floating=self.is_floating,
            is_hidden=self.is_hidden,
            is_sticky=self.is_sticky,
            is_focused=self.has_focus,
            opacity=min(max(self.opacity, 0.0), 1.0),
        )


# AeroSpace Wire Models

class RawAerospaceWorkspace(BaseModel):
    """Workspace object from `aerospace list-workspaces --json`."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    workspace: str
    is_focused: bool = Field(False, alias="workspace-is-focused")
    is_visible: bool = Field(False, alias="workspace-is-visible")
    monitor_id: int = Field(1, alias="monitor-id")

    def to_space(self, windows: Tuple[Window, ...] = ()) -> Space:
        return Space(
            id=self.workspace,
            display_index=self.monitor_id,
            label=self.workspace,
            is_active=self.is_focused,
            is_visible=self.is_visible or self.is_focused,
            windows=windows,
        )


class RawAerospaceWindow(BaseModel):
    """Window object from `aerospace list-windows --json`."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    window_id: int = Field(..., alias="window-id")
    app_name: Optional[str] = Field(None, alias="app-name")
    app_bundle_id: Optional[str] = Field(None, alias="app-bundle-id")
    window_title: Optional[str] = Field("", alias="window-title")
    workspace: Optional[str] = None

    def to_window(self, stack_index: int, focused_id: Optional[int]) -> Window:
        # AeroSpace has no opacity, hidden, sticky or floating flags in list-windows
        return Window(
            id=self.window_id,
            space_id=self.workspace or "",
            stack_index=stack_index,
            title=self.window_title or "",
            app_name=self.app_name,
            bundle_id=self.app_bundle_id or None,
            is_focused=self.window_id == focused_id,
        )
