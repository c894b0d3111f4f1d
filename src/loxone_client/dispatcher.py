"""Routing of inbound websocket frames.

Binary payloads arrive as two consecutive frames: an 8-byte message header
announcing the type, then the body. The dispatcher keeps the announced type
between the two frames, decodes table bodies and applies them to the live
registry. Text frames go to the response correlator first; the rest reach the
presentation hook.

Every decode problem is logged and the frame dropped; the dispatcher never
raises into the receive loop.
"""

from __future__ import annotations

from collections.abc import Callable

from loxone_client.correlator import ResponseCorrelator
from loxone_client.exceptions import FrameDecodeError, MalformedHeaderError, UnknownIdentifierError
from loxone_client.logging_abstraction import get_logger
from loxone_client.protocol.event_tables import TableUpdate, decode_table
from loxone_client.protocol.message_header import TABLE_TYPES, MessageType, looks_like_header, parse_header
from loxone_client.registry import DeviceEntry, Registry

logger = get_logger(__name__)

UpdateCallback = Callable[[TableUpdate, DeviceEntry | None], None]
TextCallback = Callable[[str], None]
BinaryCallback = Callable[[bytes], None]


class FrameDispatcher:
    """Single consumer of the inbound frame sequence."""

    lp: str = "FrameDispatcher:"

    def __init__(self, correlator: ResponseCorrelator) -> None:
        self.correlator: ResponseCorrelator = correlator
        self.pending_type: MessageType | None = None
        # Set only while the session is Ready; tables are dropped otherwise
        self.registry: Registry | None = None

        self.on_update: UpdateCallback | None = None
        self.on_text: TextCallback | None = None
        self.on_binary_file: BinaryCallback | None = None

    def reset(self) -> None:
        """Forget any announced-but-not-received body."""
        self.pending_type = None

    def handle_text(self, text: str) -> bool:
        """Process a text frame.

        Responses awaited by the correlator are not passed on to ``on_text``.

        Returns:
            True if the correlator consumed it as the awaited response

        """
        self.pending_type = None
        logger.debug("%s <- text: %s", f"{self.lp}handle_text:", text[:200])
        consumed = self.correlator.feed(text)
        if not consumed and self.on_text is not None:
            try:
                self.on_text(text)
            except Exception:
                logger.exception("%s on_text callback failed", f"{self.lp}handle_text:")
        return consumed

    def handle_binary(self, frame: bytes) -> list[TableUpdate]:
        """Process a binary frame (header or body).

        Returns:
            Decoded updates when the frame was a table body, otherwise an empty list

        """
        lp = f"{self.lp}handle_binary:"
        if looks_like_header(frame):
            return self._handle_header(frame)

        pending, self.pending_type = self.pending_type, None
        if pending is None:
            err = MalformedHeaderError("binary frame not preceded by a message header", frame)
            logger.warning("%s %s (%d bytes), dropping", lp, err, len(frame))
            return []

        if pending in TABLE_TYPES:
            return self._handle_table(pending, frame)
        if pending is MessageType.BINARY_FILE:
            logger.debug("%s Received binary file (%d bytes)", lp, len(frame))
            if self.on_binary_file is not None:
                try:
                    self.on_binary_file(frame)
                except Exception:
                    logger.exception("%s on_binary_file callback failed", lp)
            return []

        logger.debug("%s Received binary data (%d) after %s header", lp, len(frame), pending.label)
        return []

    def _handle_header(self, frame: bytes) -> list[TableUpdate]:
        lp = f"{self.lp}header:"
        try:
            header = parse_header(frame)
        except FrameDecodeError as e:
            self.pending_type = None
            logger.warning("%s %s, dropping", lp, e)
            return []
        if self.pending_type is not None:
            logger.debug("%s %s header replaces pending %s", lp, header.message_type.label, self.pending_type.label)
        self.pending_type = header.message_type
        logger.debug("%s MessageHeader: %s", lp, header.message_type.label)
        return []

    def _handle_table(self, message_type: MessageType, frame: bytes) -> list[TableUpdate]:
        lp = f"{self.lp}table:"
        registry = self.registry
        if registry is None:
            logger.debug("%s Session not ready, dropping %s (%d bytes)", lp, message_type.label, len(frame))
            return []
        try:
            updates = decode_table(message_type, frame)
        except FrameDecodeError as e:
            logger.warning("%s Invalid %s: %s, dropping", lp, message_type.label, e)
            return []

        logger.debug("%s %s (%d)", lp, message_type.label, len(updates))
        for update in updates:
            entry: DeviceEntry | None
            try:
                entry = registry.apply(update)
            except UnknownIdentifierError as e:
                entry = None
                logger.warning("%s %s", lp, e)
            else:
                logger.debug("%s   %s: %s", lp, entry.name, update.value)
            if self.on_update is not None:
                try:
                    self.on_update(update, entry)
                except Exception:
                    logger.exception("%s on_update callback failed", lp)
        return updates
