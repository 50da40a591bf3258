"""Pytest configuration and fixtures for wm-spaces tests."""

import sys
from pathlib import Path

import pytest

# Make wm_spaces and the shared test fakes importable without installing
package_root = Path(__file__).parent.parent
tests_root = Path(__file__).parent
for path in (package_root, tests_root):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from fakes import FakeRunner, ManualClock, make_executable  # noqa: E402
from wm_spaces.config import SpacesConfig  # noqa: E402
from wm_spaces.services.notifications import InMemoryNotificationBus  # noqa: E402
from wm_spaces.services.session import StaticApplicationSession  # noqa: E402
from wm_spaces.services.sleep_wake import ManualSleepWakeMonitor  # noqa: E402


@pytest.fixture
def runner():
    """Command runner that records commands and returns canned output."""
    return FakeRunner()


@pytest.fixture
def session():
    """Desktop session with no running applications."""
    return StaticApplicationSession()


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def bus():
    return InMemoryNotificationBus()


@pytest.fixture
def sleep_wake():
    return ManualSleepWakeMonitor()


@pytest.fixture
def bin_dir(tmp_path):
    """Directory with executable yabai and aerospace stand-ins."""
    directory = tmp_path / "bin"
    directory.mkdir()
    make_executable(directory / "yabai")
    make_executable(directory / "aerospace")
    return directory


@pytest.fixture
def config(bin_dir):
    """Configuration pointing at the stand-in executables."""
    return SpacesConfig(
        yabai={"path": str(bin_dir / "yabai")},
        aerospace={"path": str(bin_dir / "aerospace")},
    )
