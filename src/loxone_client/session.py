"""Websocket session with the Miniserver.

One session owns one websocket at a time and walks it through the setup
sequence::

    Disconnected -> Connecting -> AwaitingKey -> Authenticating
        -> FetchingVersion -> Ready -> Closing -> Disconnected

Setup requests are sent one at a time and each waits for its response through
the ResponseCorrelator. Any failure along the way (rejected request, timeout,
structure download error, transport loss) ends in Closing and, while the
session is running, exactly one reconnect attempt is scheduled after
``reopen_interval`` seconds.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable
from enum import StrEnum

import aiohttp

from loxone_client.config import LoxoneConfig
from loxone_client.const import WS_PROTOCOL
from loxone_client.correlator import LoxoneResponse, Predicate, ResponseCorrelator, control_matches
from loxone_client.dispatcher import BinaryCallback, FrameDispatcher, TextCallback, UpdateCallback
from loxone_client.exceptions import (
    AuthenticationFailedError,
    HandshakeError,
    RemoteRejectedError,
    ResponseTimeoutError,
    TransportClosedError,
    VersionQueryFailedError,
)
from loxone_client.logging_abstraction import get_logger
from loxone_client.protocol.commands import (
    AUTHENTICATE_PATTERN,
    CMD_ENABLE_STATUS_UPDATES,
    CMD_FIRMWARE_VERSION,
    CMD_GET_KEY,
    CMD_KEEPALIVE,
    CMD_STRUCTURE_VERSION,
    GET_KEY_PATTERN,
    STRUCTURE_VERSION_PATTERN,
    authenticate_command,
    io_command,
    status_command,
)
from loxone_client.protocol.uuid_codec import Identifier
from loxone_client.registry import Registry, build_registry
from loxone_client.structure_api import StructureClient
from loxone_client.tracing import SessionTrace, begin_trace

logger = get_logger(__name__)


class SessionState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AWAITING_KEY = "awaiting_key"
    AUTHENTICATING = "authenticating"
    FETCHING_VERSION = "fetching_version"
    READY = "ready"
    CLOSING = "closing"


StateCallback = Callable[[SessionState, SessionState], None]
ReadyCallback = Callable[[Registry], None]


class LoxoneSession:
    """Connection lifecycle: handshake, keepalive and reconnect."""

    lp: str = "LoxoneSession:"

    def __init__(
        self,
        config: LoxoneConfig,
        http_session: aiohttp.ClientSession | None = None,
        structure_client: StructureClient | None = None,
    ) -> None:
        self.config: LoxoneConfig = config
        self.http_session: aiohttp.ClientSession | None = http_session
        self._owns_session: bool = http_session is None
        self.structure_client: StructureClient | None = structure_client

        self.state: SessionState = SessionState.DISCONNECTED
        self.correlator: ResponseCorrelator = ResponseCorrelator()
        self.dispatcher: FrameDispatcher = FrameDispatcher(self.correlator)
        self.registry: Registry | None = None
        self.structure_version: str | None = None
        self.last_error: BaseException | None = None
        self.attempts: int = 0
        self.trace: SessionTrace | None = None

        self.on_state_change: StateCallback | None = None
        self.on_ready: ReadyCallback | None = None

        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._running: bool = False
        self._stopped: asyncio.Event = asyncio.Event()
        self._receive_task: asyncio.Task[None] | None = None
        self._handshake_task: asyncio.Task[None] | None = None
        self._keepalive_task: asyncio.Task[None] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None

    # -- presentation hooks, forwarded to the frame dispatcher ---------------

    @property
    def on_update(self) -> UpdateCallback | None:
        return self.dispatcher.on_update

    @on_update.setter
    def on_update(self, callback: UpdateCallback | None) -> None:
        self.dispatcher.on_update = callback

    @property
    def on_text(self) -> TextCallback | None:
        return self.dispatcher.on_text

    @on_text.setter
    def on_text(self, callback: TextCallback | None) -> None:
        self.dispatcher.on_text = callback

    @property
    def on_binary_file(self) -> BinaryCallback | None:
        return self.dispatcher.on_binary_file

    @on_binary_file.setter
    def on_binary_file(self, callback: BinaryCallback | None) -> None:
        self.dispatcher.on_binary_file = callback

    # -- public API ----------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._running

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    @property
    def reconnect_scheduled(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    async def start(self) -> None:
        """Open the websocket and begin the setup sequence."""
        if self._running:
            logger.debug("%s Already running", f"{self.lp}start:")
            return
        self._running = True
        self._stopped.clear()
        await self._connect()

    async def stop(self) -> None:
        """Close the websocket, cancel timers and release HTTP resources."""
        lp = f"{self.lp}stop:"
        logger.info("%s Stopping session", lp)
        self._running = False
        reconnect, self._reconnect_task = self._reconnect_task, None
        if reconnect is not None and not reconnect.done():
            _ = reconnect.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reconnect
        await self._handle_close(None)
        if self.structure_client is not None:
            await self.structure_client.close()
        if self._owns_session and self.http_session is not None and not self.http_session.closed:
            await self.http_session.close()
        self.http_session = None
        self._stopped.set()

    async def wait_stopped(self) -> None:
        _ = await self._stopped.wait()

    async def send(self, payload: str) -> None:
        """Send a text command on the open websocket.

        Raises:
            TransportClosedError: No websocket is open or the send failed

        """
        ws = self._ws
        if ws is None or ws.closed:
            raise TransportClosedError
        shown = "authenticate/***" if AUTHENTICATE_PATTERN.match(payload) else payload
        logger.debug("%s -> sending: %s", f"{self.lp}send:", shown)
        try:
            await ws.send_str(payload)
        except (ConnectionError, aiohttp.ClientError) as e:
            raise TransportClosedError(str(e) or type(e).__name__) from e

    async def send_command(self, uuid: Identifier, command: str) -> None:
        """Send ``jdev/sps/io/<uuid>/<command>`` for a control."""
        await self.send(io_command(uuid, command))

    async def query_status(self, uuid: Identifier) -> None:
        """Ask for the current value of every output of a control; the reply reaches ``on_text``."""
        await self.send(status_command(uuid))

    async def query_firmware_version(self) -> None:
        """Ask for the Miniserver firmware version; the reply reaches ``on_text``."""
        await self.send(CMD_FIRMWARE_VERSION)

    # -- lifecycle -----------------------------------------------------------

    def _set_state(self, state: SessionState) -> None:
        old, self.state = self.state, state
        if self.trace is not None:
            self.trace.state = state.value
        if old is state:
            return
        logger.debug("%s %s -> %s", f"{self.lp}state:", old, state)
        if self.on_state_change is not None:
            try:
                self.on_state_change(old, state)
            except Exception:
                logger.exception("%s on_state_change callback failed", f"{self.lp}state:")

    async def _check_session(self) -> aiohttp.ClientSession:
        if self.http_session is None or self.http_session.closed:
            logger.debug("%s Creating new aiohttp ClientSession", f"{self.lp}_check_session:")
            self.http_session = aiohttp.ClientSession()
            self._owns_session = True
        if self.structure_client is None:
            self.structure_client = StructureClient(self.config, self.http_session)
        return self.http_session

    async def _connect(self) -> None:
        lp = f"{self.lp}connect:"
        self.attempts += 1
        self.trace = begin_trace(self.config.host, self.attempts)
        self._set_state(SessionState.CONNECTING)
        session = await self._check_session()
        logger.info("%s Opening websocket to %s", lp, self.config.ws_url)
        try:
            ws = await session.ws_connect(self.config.ws_url, protocols=(WS_PROTOCOL,))
        except (aiohttp.ClientError, OSError, TimeoutError) as e:
            self.last_error = e
            logger.error("%s Websocket connection failed: %s", lp, e)
            await self._handle_close(e)
            return

        self._ws = ws
        logger.info("%s Websocket is open", lp)
        self._receive_task = asyncio.create_task(self._receive_loop(ws), name="loxone-receive")
        self._handshake_task = asyncio.create_task(self._handshake(), name="loxone-handshake")

    async def _receive_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        lp = f"{self.lp}receive:"
        error: BaseException | None = None
        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    _ = self.dispatcher.handle_text(msg.data)
                elif msg.type == aiohttp.WSMsgType.BINARY:
                    _ = self.dispatcher.handle_binary(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    error = ws.exception()
                    logger.error("%s Websocket error: %s", lp, error)
                    break
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = e
            logger.exception("%s Receive loop failed", lp)

        if error is not None:
            self.last_error = error
        logger.info("%s Websocket closed", lp)
        await self._handle_close(error)

    async def _request(self, payload: str, purpose: str, predicate: Predicate) -> LoxoneResponse:
        """Send one setup request and wait for its matching response.

        Raises:
            RemoteRejectedError: Response code was not 200
            ResponseTimeoutError: No matching response within ``response_timeout``
            TransportClosedError: Send failed

        """
        future = self.correlator.expect(purpose, predicate)
        await self.send(payload)
        try:
            return await asyncio.wait_for(future, timeout=self.config.response_timeout)
        except TimeoutError:
            raise ResponseTimeoutError(purpose, self.config.response_timeout) from None

    async def _handshake(self) -> None:
        lp = f"{self.lp}handshake:"
        try:
            self._set_state(SessionState.AWAITING_KEY)
            key = await self._request(CMD_GET_KEY, "getkey", control_matches(GET_KEY_PATTERN))

            self._set_state(SessionState.AUTHENTICATING)
            try:
                auth_cmd = authenticate_command(str(key.value), self.config.user, self.config.password)
            except ValueError as e:
                msg = f"Challenge key is not valid hex: {key.value!r}"
                raise HandshakeError(msg) from e
            try:
                _ = await self._request(auth_cmd, "authenticate", control_matches(AUTHENTICATE_PATTERN))
            except RemoteRejectedError as e:
                raise AuthenticationFailedError(e.code) from e
            logger.info("%s Authentication successful", lp)

            self._set_state(SessionState.FETCHING_VERSION)
            try:
                version = await self._request(
                    CMD_STRUCTURE_VERSION,
                    "structure version",
                    control_matches(STRUCTURE_VERSION_PATTERN),
                )
            except RemoteRejectedError as e:
                raise VersionQueryFailedError(e.code) from e
            self.structure_version = str(version.value)
            logger.info("%s The current Loxone config timestamp: %s", lp, self.structure_version)

            assert self.structure_client is not None
            structure = await self.structure_client.fetch()
            registry = build_registry(structure)
            await self._enter_ready(registry)
        except asyncio.CancelledError:
            raise
        except (HandshakeError, RemoteRejectedError, TransportClosedError) as e:
            self.last_error = e
            logger.error("%s Session setup failed: %s", lp, e)
            await self._handle_close(e)
        except Exception as e:
            self.last_error = e
            logger.exception("%s Unexpected error during session setup", lp)
            await self._handle_close(e)

    async def _enter_ready(self, registry: Registry) -> None:
        lp = f"{self.lp}ready:"
        self.registry = registry
        self._keepalive_task = asyncio.create_task(self._keepalive_loop(), name="loxone-keepalive")
        self.dispatcher.registry = registry
        self._set_state(SessionState.READY)
        await self.send(CMD_ENABLE_STATUS_UPDATES)
        logger.info("%s Session ready (%d registry entries)", lp, len(registry))
        if self.on_ready is not None:
            try:
                self.on_ready(registry)
            except Exception:
                logger.exception("%s on_ready callback failed", lp)

    async def _keepalive_loop(self) -> None:
        lp = f"{self.lp}keepalive:"
        while True:
            await asyncio.sleep(self.config.keepalive_interval)
            try:
                await self.send(CMD_KEEPALIVE)
            except TransportClosedError as e:
                logger.debug("%s Stopping keepalive: %s", lp, e)
                return

    async def _handle_close(self, error: BaseException | None) -> None:
        """Tear down the current connection; runs once per connection attempt."""
        lp = f"{self.lp}close:"
        if self.state in (SessionState.CLOSING, SessionState.DISCONNECTED):
            return
        self._set_state(SessionState.CLOSING)
        if error is not None:
            logger.debug("%s Closing after: %s", lp, error)

        current = asyncio.current_task()
        owned = (self._keepalive_task, self._handshake_task, self._receive_task)
        tasks = [t for t in owned if t is not None and t is not current]
        self._keepalive_task = self._handshake_task = self._receive_task = None
        for task in tasks:
            _ = task.cancel()

        self.correlator.abandon()
        self.dispatcher.reset()
        self.dispatcher.registry = None

        ws, self._ws = self._ws, None
        if ws is not None and not ws.closed:
            try:
                _ = await ws.close()
            except (ConnectionError, aiohttp.ClientError) as e:
                logger.debug("%s Websocket close failed: %s", lp, e)
        _ = await asyncio.gather(*tasks, return_exceptions=True)

        self._set_state(SessionState.DISCONNECTED)
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        lp = f"{self.lp}reconnect:"
        if not self._running:
            return
        task = self._reconnect_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            logger.debug("%s Reconnect already scheduled", lp)
            return
        delay = self.config.reopen_interval
        logger.info("%s Will attempt to reopen websocket in %s seconds...", lp, delay)
        self._reconnect_task = asyncio.create_task(self._reconnect_after(delay), name="loxone-reconnect")

    async def _reconnect_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        if self._running:
            await self._connect()
