"""Unit tests for the command line entry point."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from loxone_client import const, main
from loxone_client.config import LoxoneConfig
from loxone_client.exceptions import TransportClosedError
from loxone_client.protocol.event_tables import ValueUpdate
from loxone_client.registry import DeviceEntry, Registry


class TestParseCli:
    """Tests for parse_cli."""

    def test_defaults(self):
        args = main.parse_cli([])
        assert args.config is None
        assert args.env is None
        assert args.debug is False

    def test_all_options(self):
        args = main.parse_cli(["--config", "loxone.yaml", "--env", ".env", "-D"])
        assert args.config == Path("loxone.yaml")
        assert args.env == Path(".env")
        assert args.debug is True


class TestLoadEnvFile:
    """Tests for load_env_file."""

    def test_loads_variables_and_reloads_constants(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("LOXONE_HOST", raising=False)
        monkeypatch.setattr(const, "LOXONE_HOST", None)
        env_file = tmp_path / ".env"
        _ = env_file.write_text("LOXONE_HOST=10.1.1.1\n")

        main.load_env_file(env_file)

        assert const.LOXONE_HOST == "10.1.1.1"
        monkeypatch.delenv("LOXONE_HOST", raising=False)

    def test_missing_file_is_reported(self, tmp_path: Path):
        with patch.object(const, "reload_env") as reload_env:
            main.load_env_file(tmp_path / "missing.env")
        reload_env.assert_not_called()


class TestMain:
    """Tests for main()."""

    def test_config_error_exit_code(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(const, "LOXONE_HOST", None)
        monkeypatch.setattr(const, "LOXONE_USER", None)
        monkeypatch.setattr(const, "LOXONE_PASSWORD", None)
        assert main.main([]) == 2

    def test_runs_app_on_uvloop(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(const, "LOXONE_HOST", "10.0.0.2")
        monkeypatch.setattr(const, "LOXONE_USER", "u")
        monkeypatch.setattr(const, "LOXONE_PASSWORD", "p")

        def _close(coro):
            coro.close()

        with patch.object(main.uvloop, "run", side_effect=_close) as run:
            assert main.main([]) == 0
        run.assert_called_once()


class TestDebugFromEnvFile:
    """LOXONE_DEBUG may come from the --env file."""

    def test_env_file_enables_debug(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        for name in ("LOXONE_DEBUG", "LOXONE_HOST", "LOXONE_USER", "LOXONE_PASSWORD"):
            monkeypatch.setenv(name, "")
        monkeypatch.setattr(const, "LOXONE_DEBUG", False)
        monkeypatch.setattr(const, "LOXONE_HOST", None)
        monkeypatch.setattr(const, "LOXONE_USER", None)
        monkeypatch.setattr(const, "LOXONE_PASSWORD", None)
        env_file = tmp_path / ".env"
        _ = env_file.write_text("LOXONE_DEBUG=1\nLOXONE_HOST=10.0.0.3\nLOXONE_USER=u\nLOXONE_PASSWORD=p\n")

        def _close(coro):
            coro.close()

        with (
            patch.object(main, "enable_debug") as enable_debug,
            patch.object(main.uvloop, "run", side_effect=_close),
        ):
            assert main.main(["--env", str(env_file)]) == 0
        enable_debug.assert_called_once_with()


class TestLoxoneClientApp:
    """Tests for the session wiring."""

    def test_hooks_are_installed(self):
        app = main.LoxoneClientApp(LoxoneConfig(host="h", user="u", password="p"))
        assert app.session.on_update == app.on_update
        assert app.session.on_ready == app.on_ready
        assert app.session.on_state_change == app.on_state_change

    def test_on_update_uses_display_name(self):
        app = main.LoxoneClientApp(LoxoneConfig(host="h", user="u", password="p"))
        with patch.object(main, "logger", MagicMock()) as logger:
            app.on_update(ValueUpdate("id", 1.0), DeviceEntry(uuid="id", name="Lamp (Switch)", category="Switch"))
            app.on_update(ValueUpdate("other", 2.0), None)
        first, second = logger.info.call_args_list
        assert first.args[2:] == ("Lamp (Switch)", 1.0)
        assert second.args[2:] == ("other", 2.0)

    def test_text_hook_is_installed(self):
        app = main.LoxoneClientApp(LoxoneConfig(host="h", user="u", password="p"))
        assert app.session.on_text == app.on_text

    @pytest.mark.asyncio
    async def test_ready_queries_firmware_version(self):
        app = main.LoxoneClientApp(LoxoneConfig(host="h", user="u", password="p"))
        app.session.query_firmware_version = AsyncMock()

        app.on_ready(Registry())
        await asyncio.sleep(0)

        app.session.query_firmware_version.assert_awaited_once_with()

    @pytest.mark.asyncio
    async def test_firmware_query_on_closed_transport_is_logged(self):
        app = main.LoxoneClientApp(LoxoneConfig(host="h", user="u", password="p"))
        app.session.query_firmware_version = AsyncMock(side_effect=TransportClosedError())

        with patch.object(main, "logger", MagicMock()) as logger:
            await app._request_firmware_version()
        logger.warning.assert_called_once()
