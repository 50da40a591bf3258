"""Integration tests for SpacesDaemon with in-memory collaborators."""

import io
import json
import logging

import pytest

from fakes import aerospace_window, aerospace_workspace, set_yabai_state, yabai_space, yabai_window
from wm_spaces.config import SpacesConfig
from wm_spaces.daemon import SpacesDaemon, StdoutPublisher, setup_logging
from wm_spaces.models import Space, SpacesSnapshot, Window
from wm_spaces.providers.yabai import YABAI_EVENTS
from wm_spaces.scheduler import SchedulerState
from wm_spaces.services.icon_resolver import IconResolver
from wm_spaces.services.session import ActivationPolicy, RunningApplication


def published(output: io.StringIO):
    return [json.loads(line) for line in output.getvalue().splitlines()]


@pytest.fixture
def yabai_exe(bin_dir):
    return str(bin_dir / "yabai")


@pytest.fixture
def daemon(config, runner, session, bus, sleep_wake):
    return SpacesDaemon(
        config=config,
        session=session,
        runner=runner,
        listener=bus,
        sleep_wake=sleep_wake,
        output=io.StringIO(),
        watch_config=False,
    )


class TestDaemon:
    @pytest.mark.asyncio
    async def test_publishes_initial_snapshot(self, daemon, runner, session, yabai_exe):
        session.apps.append(RunningApplication("Raycast", None, ActivationPolicy.ACCESSORY))
        set_yabai_state(
            runner,
            [yabai_space(1, focused=True), yabai_space(2)],
            [
                yabai_window(10, space=1, stack=2),
                yabai_window(11, space=1, stack=1),
                yabai_window(12, space=2, opacity=0.0),
                yabai_window(13, space=2, app="Raycast"),
            ],
            exe=yabai_exe,
        )

        await daemon.initialize()
        await daemon.scheduler.wait_idle()

        lines = published(daemon.output)
        assert len(lines) == 1
        assert lines[0]["provider"] == "yabai"
        spaces = {s["id"]: s for s in lines[0]["spaces"]}
        assert [w["id"] for w in spaces[1]["windows"]] == [11, 10]
        assert spaces[2]["windows"] == []
        await daemon.shutdown()

    @pytest.mark.asyncio
    async def test_push_notification_republishes(self, daemon, runner, bus, yabai_exe):
        set_yabai_state(runner, [yabai_space(1, focused=True)], [], exe=yabai_exe)
        await daemon.initialize()
        await daemon.scheduler.wait_idle()

        set_yabai_state(runner, [yabai_space(1, focused=True)], [yabai_window(5, space=1)], exe=yabai_exe)
        assert bus.post("wm-spaces.yabai.window_created")
        await daemon.scheduler.wait_idle()

        lines = published(daemon.output)
        assert len(lines) == 2
        assert [w["id"] for w in lines[1]["spaces"][0]["windows"]] == [5]
        await daemon.shutdown()

    @pytest.mark.asyncio
    async def test_sleep_and_wake(self, daemon, runner, sleep_wake, yabai_exe):
        set_yabai_state(runner, [yabai_space(1, focused=True)], [], exe=yabai_exe)
        await daemon.initialize()
        await daemon.scheduler.wait_idle()

        await sleep_wake.sleep()
        assert daemon.scheduler.state == SchedulerState.SUSPENDED

        await sleep_wake.wake()
        await daemon.scheduler.wait_idle()

        assert daemon.scheduler.state == SchedulerState.POLLING
        assert len(published(daemon.output)) == 2
        await daemon.shutdown()

    @pytest.mark.asyncio
    async def test_focus_through_daemon(self, daemon, runner, yabai_exe):
        set_yabai_state(runner, [yabai_space(1), yabai_space(2, focused=True)], [yabai_window(20, space=2)], exe=yabai_exe)
        await daemon.initialize()

        task = await daemon.focus.request_focus_space(2, need_window_focus=True)

        assert await task == 20
        assert [yabai_exe, "-m", "window", "--focus", "20"] in runner.calls
        await daemon.shutdown()

    @pytest.mark.asyncio
    async def test_reconfigure_switches_backend(self, daemon, runner, bin_dir, bus, yabai_exe):
        set_yabai_state(runner, [yabai_space(1, focused=True)], [], exe=yabai_exe)
        await daemon.initialize()
        await daemon.scheduler.wait_idle()

        aerospace_exe = str(bin_dir / "aerospace")
        runner.respond_json(
            [aerospace_exe, "list-workspaces", "--all", "--json", "--format",
             "%{workspace} %{workspace-is-focused} %{workspace-is-visible} %{monitor-id}"],
            [aerospace_workspace("main", focused=True)],
        )
        runner.respond_json(
            [aerospace_exe, "list-windows", "--all", "--json", "--format",
             "%{window-id} %{app-name} %{app-bundle-id} %{window-title} %{workspace}"],
            [aerospace_window(1, "main")],
        )

        new_config = SpacesConfig(
            provider_order=["aerospace", "yabai"],
            poll_interval=1.0,
            yabai={"path": yabai_exe},
            aerospace={"path": aerospace_exe},
        )
        await daemon.reconfigure(new_config)
        await daemon.scheduler.wait_idle()

        assert daemon.provider.name == "aerospace"
        assert daemon.focus.provider is daemon.provider
        assert daemon.scheduler.poll_interval == 1.0
        assert not bus.running
        assert published(daemon.output)[-1]["provider"] == "aerospace"
        await daemon.shutdown()

    @pytest.mark.asyncio
    async def test_no_backend_available(self, runner, session, bus, sleep_wake, tmp_path):
        config = SpacesConfig(
            yabai={"path": str(tmp_path / "missing-yabai")},
            aerospace={"path": str(tmp_path / "missing-aerospace")},
        )
        daemon = SpacesDaemon(
            config=config, session=session, runner=runner, listener=bus,
            sleep_wake=sleep_wake, output=io.StringIO(), watch_config=False,
        )

        await daemon.initialize()

        assert daemon.provider is None
        assert daemon.scheduler.state == SchedulerState.IDLE
        assert await daemon.focus.request_focus_window(1) is False
        assert daemon.output.getvalue() == ""
        assert runner.calls == []
        await daemon.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_removes_signals(self, daemon, runner, yabai_exe, sleep_wake):
        set_yabai_state(runner, [yabai_space(1)], [], exe=yabai_exe)
        await daemon.initialize()

        await daemon.shutdown()

        assert daemon.scheduler.state == SchedulerState.IDLE
        assert len(runner.calls_with("-m", "signal", "--remove")) == len(YABAI_EVENTS)
        assert not sleep_wake.started


class TestStdoutPublisher:
    def test_writes_one_line_per_snapshot(self):
        stream = io.StringIO()
        publisher = StdoutPublisher(stream)
        snapshot = SpacesSnapshot(provider="yabai", spaces=(Space(id=1),))

        publisher(snapshot)
        publisher(snapshot)

        assert publisher.published == 2
        assert len(stream.getvalue().splitlines()) == 2

    def test_includes_icons(self):
        stream = io.StringIO()
        icons = IconResolver(lambda name, bundle_id: None)
        publisher = StdoutPublisher(stream, icons)
        snapshot = SpacesSnapshot(provider="yabai", spaces=(
            Space(id=1, windows=(Window(id=1, space_id=1, app_name="Safari"),)),
        ))

        publisher(snapshot)

        window = json.loads(stream.getvalue())["spaces"][0]["windows"][0]
        assert "icon" in window
        assert window["icon"] is None


class TestSetupLogging:
    def test_level_from_environment(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level

        try:
            setup_logging()
            assert root.level == logging.DEBUG
            assert len(root.handlers) == len(handlers) + 1
        finally:
            root.handlers = handlers
            root.setLevel(level)
