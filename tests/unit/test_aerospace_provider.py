"""Unit tests for the AeroSpace provider."""

import pytest

from fakes import (
    AEROSPACE,
    AEROSPACE_FOCUSED,
    AEROSPACE_WINDOWS,
    AEROSPACE_WORKSPACES,
    aerospace_window,
    aerospace_workspace,
    set_aerospace_state,
)
from wm_spaces.errors import CommandTimeout, PartialFetchFailure
from wm_spaces.providers.aerospace import AerospaceProvider
from wm_spaces.providers.base import PushNotifications
from wm_spaces.services.session import ActivationPolicy, RunningApplication, StaticApplicationSession


async def instant_sleep(delay):
    return None


@pytest.fixture
def provider(runner, session):
    return AerospaceProvider(runner, session, sleep=instant_sleep)


class TestFetchSnapshot:
    @pytest.mark.asyncio
    async def test_workspaces_and_windows(self, runner, provider):
        set_aerospace_state(
            runner,
            [aerospace_workspace("1", focused=True), aerospace_workspace("web", monitor=2)],
            [
                aerospace_window(5, "1", app="Ghostty", title="zsh"),
                aerospace_window(3, "web", app="Safari", title="Docs"),
                aerospace_window(4, "1", app="Zed", title="main.py"),
            ],
            focused=aerospace_window(4, "1", app="Zed", title="main.py"),
        )

        snapshot = await provider.fetch_snapshot()

        assert snapshot.provider == "aerospace"
        assert [s.id for s in snapshot.spaces] == ["1", "web"]
        assert snapshot.active_space.id == "1"

        first = snapshot.get_space("1")
        assert [w.id for w in first.windows] == [5, 4]
        assert first.focused_window.id == 4
        assert [w.id for w in snapshot.get_space("web").windows] == [3]

    @pytest.mark.asyncio
    async def test_focused_query_failure_means_no_focus(self, runner, provider):
        set_aerospace_state(runner, [aerospace_workspace("1", focused=True)], [aerospace_window(1, "1")])
        runner.fail(AEROSPACE_FOCUSED, CommandTimeout(AEROSPACE_FOCUSED, 3.0))

        snapshot = await provider.fetch_snapshot()

        assert snapshot.window_count == 1
        assert snapshot.get_space("1").focused_window is None

    @pytest.mark.asyncio
    async def test_empty_focused_result(self, runner, provider):
        set_aerospace_state(runner, [aerospace_workspace("1")], [aerospace_window(1, "1")])
        runner.respond_json(AEROSPACE_FOCUSED, [])

        snapshot = await provider.fetch_snapshot()

        assert snapshot.get_space("1").focused_window is None

    @pytest.mark.asyncio
    async def test_accessory_windows_excluded_by_bundle_id(self, runner):
        session = StaticApplicationSession([
            RunningApplication("Menu Helper", "com.example.helper", ActivationPolicy.ACCESSORY),
        ])
        provider = AerospaceProvider(runner, session)
        set_aerospace_state(
            runner,
            [aerospace_workspace("1")],
            [aerospace_window(1, "1", app="Helper", bundle_id="com.example.helper"), aerospace_window(2, "1")],
        )

        snapshot = await provider.fetch_snapshot()

        assert [w.id for w in snapshot.get_space("1").windows] == [2]

    @pytest.mark.asyncio
    async def test_windows_query_failure(self, runner, provider):
        runner.respond_json(AEROSPACE_WORKSPACES, [aerospace_workspace("1")])
        runner.respond(AEROSPACE_WINDOWS, "", returncode=1)

        with pytest.raises(PartialFetchFailure) as exc_info:
            await provider.fetch_snapshot()

        assert exc_info.value.failed_query == "windows"

    @pytest.mark.asyncio
    async def test_invalid_json(self, runner, provider):
        runner.respond(AEROSPACE_WORKSPACES, "garbage")
        runner.respond_json(AEROSPACE_WINDOWS, [])

        with pytest.raises(PartialFetchFailure) as exc_info:
            await provider.fetch_snapshot()

        assert exc_info.value.failed_query == "spaces"


class TestFocus:
    def test_poll_only(self, provider):
        assert not isinstance(provider, PushNotifications)

    @pytest.mark.asyncio
    async def test_focus_workspace(self, runner, provider):
        assert await provider.focus_space("web") is None
        assert runner.calls == [[AEROSPACE, "workspace", "web"]]

    @pytest.mark.asyncio
    async def test_focus_window(self, runner, provider):
        await provider.focus_window(12)
        assert runner.calls == [[AEROSPACE, "focus", "--window-id", "12"]]

    @pytest.mark.asyncio
    async def test_focus_recheck(self, runner, provider):
        set_aerospace_state(
            runner,
            [aerospace_workspace("2", focused=True)],
            [aerospace_window(8, "2"), aerospace_window(9, "2")],
        )

        task = await provider.focus_space("2", need_window_focus=True)

        assert await task == 8
        assert runner.calls_with("workspace") == [[AEROSPACE, "workspace", "2"]]
        assert runner.calls_with("focus") == [[AEROSPACE, "focus", "--window-id", "8"]]

    @pytest.mark.asyncio
    async def test_probe_command(self, runner, session, bin_dir):
        exe = str(bin_dir / "aerospace")
        assert await AerospaceProvider(runner, session, executable=exe).probe()
        assert runner.calls == [[exe, "list-workspaces", "--focused"]]
