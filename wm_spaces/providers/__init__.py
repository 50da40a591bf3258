"""Window manager backends."""

from .aerospace import AerospaceProvider
from .base import CommandLineProvider, PushNotifications, SpacesProvider
from .selector import ProviderSelector, SelectedProvider
from .yabai import YabaiProvider

__all__ = [
    "AerospaceProvider",
    "CommandLineProvider",
    "ProviderSelector",
    "PushNotifications",
    "SelectedProvider",
    "SpacesProvider",
    "YabaiProvider",
]
