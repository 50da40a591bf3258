"""Unit tests for backend selection."""

import pytest

from wm_spaces.config import SpacesConfig
from wm_spaces.errors import NoProviderAvailable
from wm_spaces.providers.aerospace import AerospaceProvider
from wm_spaces.providers.selector import ProviderSelector, SelectedProvider
from wm_spaces.providers.yabai import YabaiProvider


def selector(config, runner, session):
    return ProviderSelector(config, runner=runner, session=session)


class TestBuildProviders:
    def test_default_order(self, config, runner, session):
        providers = selector(config, runner, session).build_providers()
        assert [p.name for p in providers] == ["yabai", "aerospace"]

    def test_custom_order(self, config, runner, session):
        config = config.model_copy(update={"provider_order": ["aerospace", "yabai"]})
        providers = selector(config, runner, session).build_providers()
        assert [p.name for p in providers] == ["aerospace", "yabai"]

    def test_disabled_backend_skipped(self, bin_dir, runner, session):
        config = SpacesConfig(yabai={"enabled": False}, aerospace={"path": str(bin_dir / "aerospace")})
        providers = selector(config, runner, session).build_providers()
        assert [p.name for p in providers] == ["aerospace"]

    def test_settings_passed_through(self, bin_dir, runner, session):
        config = SpacesConfig(
            focus_recheck_delay=0.3,
            yabai={"path": str(bin_dir / "yabai"), "install_signals": False},
            notifications={"prefix": "sketchybar", "notifyutil_path": "/opt/notifyutil"},
        )
        yabai = selector(config, runner, session).build_providers()[0]

        assert isinstance(yabai, YabaiProvider)
        assert yabai.executable == str(bin_dir / "yabai")
        assert yabai.recheck_delay == 0.3
        assert yabai.prefix == "sketchybar"
        assert yabai.notifyutil_path == "/opt/notifyutil"
        assert yabai.install_signals is False


class TestSelect:
    @pytest.mark.asyncio
    async def test_first_reachable_selected(self, config, runner, session):
        selected = await selector(config, runner, session).select()

        assert selected.name == "yabai"
        assert isinstance(selected.provider, YabaiProvider)
        assert selected.push is selected.provider

    @pytest.mark.asyncio
    async def test_falls_back_to_aerospace(self, bin_dir, runner, session, tmp_path):
        config = SpacesConfig(
            yabai={"path": str(tmp_path / "no-yabai")},
            aerospace={"path": str(bin_dir / "aerospace")},
        )

        selected = await selector(config, runner, session).select()

        assert selected.name == "aerospace"
        assert isinstance(selected.provider, AerospaceProvider)
        assert selected.push is None

    @pytest.mark.asyncio
    async def test_unresponsive_backend_skipped(self, config, runner, session, bin_dir):
        runner.respond([str(bin_dir / "yabai"), "-m", "query", "--spaces", "--space"], "", returncode=1)

        selected = await selector(config, runner, session).select()

        assert selected.name == "aerospace"

    @pytest.mark.asyncio
    async def test_nothing_reachable(self, runner, session, tmp_path):
        config = SpacesConfig(
            yabai={"path": str(tmp_path / "no-yabai")},
            aerospace={"path": str(tmp_path / "no-aerospace")},
        )

        with pytest.raises(NoProviderAvailable) as exc_info:
            await selector(config, runner, session).select()

        assert exc_info.value.tried == ["yabai", "aerospace"]

    @pytest.mark.asyncio
    async def test_probe_all(self, runner, session, bin_dir, tmp_path):
        config = SpacesConfig(
            yabai={"path": str(tmp_path / "no-yabai")},
            aerospace={"path": str(bin_dir / "aerospace")},
        )

        results = await selector(config, runner, session).probe_all()

        assert [(p.name, ok) for p, ok in results] == [("yabai", False), ("aerospace", True)]


class TestSelectedProvider:
    @pytest.mark.asyncio
    async def test_delegates_focus(self, runner, session):
        selected = SelectedProvider(AerospaceProvider(runner, session, executable="aerospace"))

        await selected.focus_window(3)
        await selected.focus_space("2")

        assert runner.calls == [["aerospace", "focus", "--window-id", "3"], ["aerospace", "workspace", "2"]]

    def test_repr(self, runner, session):
        assert repr(SelectedProvider(YabaiProvider(runner, session))) == "SelectedProvider(name='yabai', push=True)"
