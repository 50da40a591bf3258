"""Unit tests for notification listeners."""

import asyncio
from unittest.mock import AsyncMock, Mock, patch

import pytest

from fakes import settle
from wm_spaces.services.notifications import DarwinNotificationListener


class TestInMemoryNotificationBus:
    @pytest.mark.asyncio
    async def test_delivers_subscribed_names(self, bus):
        received = []
        await bus.start(["a.yabai.space_changed"], received.append)

        assert bus.post("a.yabai.space_changed") is True
        assert bus.post("a.yabai.other") is False
        assert received == ["a.yabai.space_changed"]

    @pytest.mark.asyncio
    async def test_nothing_delivered_after_stop(self, bus):
        received = []
        await bus.start(["n"], received.append)
        await bus.stop()

        assert not bus.running
        assert bus.post("n") is False
        assert received == []
        assert bus.posted == ["n"]


def notifyutil_process():
    proc = Mock()
    proc.stdout = asyncio.StreamReader()
    proc.returncode = None
    proc.kill = Mock()
    proc.wait = AsyncMock(return_value=0)
    return proc


class TestDarwinNotificationListener:
    @pytest.mark.asyncio
    async def test_reports_notification_names(self):
        proc = notifyutil_process()
        received = []
        listener = DarwinNotificationListener("/usr/bin/notifyutil")
        names = ["wm-spaces.yabai.space_changed", "wm-spaces.yabai.window_focused"]

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)) as spawn:
            await listener.start(names, received.append)
            await settle()

            proc.stdout.feed_data(b"[1] wm-spaces.yabai.window_focused\n")
            proc.stdout.feed_data(b"unrelated output\n")
            proc.stdout.feed_data(b"[2] wm-spaces.yabai.space_changed\n")
            await settle()

            assert listener.running
            await listener.stop()

        assert spawn.call_args.args == ("/usr/bin/notifyutil", "-w", *names)
        assert received == ["wm-spaces.yabai.window_focused", "wm-spaces.yabai.space_changed"]
        proc.kill.assert_called_once()
        assert not listener.running

    @pytest.mark.asyncio
    async def test_restarts_when_notifyutil_exits(self):
        first, second = notifyutil_process(), notifyutil_process()
        listener = DarwinNotificationListener(restart_delay=0)

        with patch("asyncio.create_subprocess_exec", AsyncMock(side_effect=[first, second])) as spawn:
            await listener.start(["n"], Mock())
            await settle()
            first.stdout.feed_eof()
            await settle()

            assert spawn.call_count == 2
            await listener.stop()

    @pytest.mark.asyncio
    async def test_missing_notifyutil(self):
        listener = DarwinNotificationListener("/nope/notifyutil")

        with patch("asyncio.create_subprocess_exec", AsyncMock(side_effect=FileNotFoundError())):
            await listener.start(["n"], Mock())
            await settle()

        assert not listener.running
        await listener.stop()

    @pytest.mark.asyncio
    async def test_no_names_does_nothing(self):
        listener = DarwinNotificationListener()

        with patch("asyncio.create_subprocess_exec", AsyncMock()) as spawn:
            await listener.start([], Mock())

        spawn.assert_not_called()
        assert not listener.running
