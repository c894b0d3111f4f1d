"""Command line entry point: connect to a Miniserver and log state updates."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from pathlib import Path
from typing import Protocol, cast

import dotenv
import uvloop

from loxone_client import __version__, const
from loxone_client.config import LoxoneConfig, load_config
from loxone_client.exceptions import ConfigError, TransportClosedError
from loxone_client.logging_abstraction import get_logger
from loxone_client.protocol.event_tables import TableUpdate
from loxone_client.registry import DeviceEntry, Registry
from loxone_client.session import LoxoneSession, SessionState
from loxone_client.tracing import trace_context

logger = get_logger(__name__)


class _CLIArgs(Protocol):
    config: Path | None
    env: Path | None
    debug: bool


def parse_cli(argv: list[str] | None = None) -> _CLIArgs:
    """Parse CLI arguments for the client process."""
    parser = argparse.ArgumentParser(description="Loxone Miniserver websocket client")
    _ = parser.add_argument("--config", help="Path to a YAML config file with a 'loxone' section", type=Path)
    _ = parser.add_argument("--env", help="Path to the environment file", default=None, type=Path)
    _ = parser.add_argument("-D", "--debug", action="store_true", help="Enable debug mode")
    return cast("_CLIArgs", cast("object", parser.parse_args(argv)))


def enable_debug() -> None:
    logger.set_level(logging.DEBUG)
    for name, obj in list(logging.root.manager.loggerDict.items()):
        if name.startswith("loxone_client") and isinstance(obj, logging.Logger):
            get_logger(name).set_level(logging.DEBUG)


def load_env_file(env_file: Path) -> None:
    env_path = env_file.expanduser().resolve()
    if not env_path.exists():
        logger.error("Environment file not found", extra={"path": str(env_path)})
        return
    if dotenv.load_dotenv(env_path, override=True):
        logger.info("Environment variables loaded", extra={"source": str(env_path)})
        const.reload_env()
    else:
        logger.warning("No environment variables loaded from file", extra={"path": str(env_path)})


class LoxoneClientApp:
    """Wires a session to log output and POSIX signals."""

    lp: str = "LoxoneClientApp:"

    def __init__(self, config: LoxoneConfig) -> None:
        self.config: LoxoneConfig = config
        self.session: LoxoneSession = LoxoneSession(config)
        self.session.on_ready = self.on_ready
        self.session.on_update = self.on_update
        self.session.on_state_change = self.on_state_change
        self.session.on_text = self.on_text

    def on_state_change(self, old: SessionState, new: SessionState) -> None:
        logger.info("%s Session %s -> %s", self.lp, old, new)

    def on_ready(self, registry: Registry) -> None:
        logger.info(
            "%s Connected to %s",
            self.lp,
            self.config.host,
            extra={"entries": len(registry), "controls": len(registry.controls())},
        )
        _ = asyncio.get_running_loop().create_task(self._request_firmware_version())

    async def _request_firmware_version(self) -> None:
        try:
            await self.session.query_firmware_version()
        except TransportClosedError as e:
            logger.warning("%s Firmware version query not sent: %s", self.lp, e)

    def on_text(self, text: str) -> None:
        logger.info("%s <- %s", self.lp, text)

    def on_update(self, update: TableUpdate, entry: DeviceEntry | None) -> None:
        name = entry.name if entry is not None else update.uuid
        logger.info("%s %s = %s", self.lp, name, update.value)

    def _on_signal(self, signum: int) -> None:
        logger.info("%s Intercepted signal: %s (%s)", self.lp, signal.Signals(signum).name, signum)
        _ = asyncio.get_running_loop().create_task(self.session.stop())

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self._on_signal, sig)
        logger.debug("%s Signal handlers configured for SIGINT & SIGTERM", self.lp)
        try:
            await self.session.start()
            await self.session.wait_stopped()
        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                _ = loop.remove_signal_handler(sig)


def main(argv: list[str] | None = None) -> int:
    """Run the Loxone client entry point."""
    with trace_context():
        logger.info("Starting Loxone client", extra={"version": __version__})
        args = parse_cli(argv)
        if args.env:
            load_env_file(args.env)
        if args.debug or const.LOXONE_DEBUG:
            enable_debug()
            logger.info("Debug mode enabled")

        try:
            config = load_config(args.config)
        except ConfigError as e:
            logger.error("%s", e)
            return 2

        try:
            uvloop.run(LoxoneClientApp(config).run())
        except KeyboardInterrupt:
            logger.info("Keyboard interrupt received, shutting down...")
        logger.info("Loxone client shutdown complete")
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
