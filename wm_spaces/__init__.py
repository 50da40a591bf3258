"""wm-spaces

Space and window state aggregation for macOS tiling window managers.

This package provides a long-running daemon that:
- Queries yabai or AeroSpace for spaces and windows
- Filters out accessory/background application windows
- Republishes merged snapshots to a status bar
- Forwards focus requests back to the window manager

License: MIT
Version: 1.0.0
"""

__version__ = "1.0.0"
