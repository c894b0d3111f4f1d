"""Message header classification.

Every binary payload from the Miniserver is announced by an 8-byte header:

    byte 0     0x03 marker
    byte 1     message type (see MessageType)
    bytes 2..8 info flags / estimated length (not interpreted here)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from loxone_client.const import HEADER_LENGTH, HEADER_MARKER
from loxone_client.exceptions import MalformedHeaderError, UnknownHeaderTypeError


class MessageType(IntEnum):
    TEXT = 0
    BINARY_FILE = 1
    VALUE_TABLE = 2
    TEXT_TABLE = 3
    DAYTIMER_TABLE = 4
    OUT_OF_SERVICE = 5
    KEEPALIVE_ACK = 6
    WEATHER_TABLE = 7

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS: dict[MessageType, str] = {
    MessageType.TEXT: "Text-Message",
    MessageType.BINARY_FILE: "Binary File",
    MessageType.VALUE_TABLE: "Event-Table of Value-States",
    MessageType.TEXT_TABLE: "Event-Table of Text-States",
    MessageType.DAYTIMER_TABLE: "Event-Table of Daytimer-States",
    MessageType.OUT_OF_SERVICE: "Out-of-Service Indicator",
    MessageType.KEEPALIVE_ACK: "Keepalive response",
    MessageType.WEATHER_TABLE: "Event-Table of Weather-States",
}

# Types whose header is followed by a table body on the binary channel
TABLE_TYPES = frozenset(
    {
        MessageType.VALUE_TABLE,
        MessageType.TEXT_TABLE,
        MessageType.DAYTIMER_TABLE,
        MessageType.WEATHER_TABLE,
    },
)


@dataclass(frozen=True, slots=True)
class MessageHeader:
    message_type: MessageType
    info: bytes


def looks_like_header(frame: bytes | bytearray) -> bool:
    """Return True for frames shaped like a header (8 bytes, 0x03 marker)."""
    return len(frame) == HEADER_LENGTH and frame[0] == HEADER_MARKER


def parse_header(frame: bytes | bytearray) -> MessageHeader:
    """Classify an 8-byte header frame.

    Raises:
        MalformedHeaderError: Wrong length or missing 0x03 marker
        UnknownHeaderTypeError: Type byte outside 0..7

    """
    if len(frame) != HEADER_LENGTH:
        raise MalformedHeaderError(f"bad_length:{len(frame)}", bytes(frame))
    if frame[0] != HEADER_MARKER:
        raise MalformedHeaderError(f"bad_marker:0x{frame[0]:02x}", bytes(frame))
    try:
        message_type = MessageType(frame[1])
    except ValueError:
        raise UnknownHeaderTypeError(frame[1], bytes(frame)) from None
    return MessageHeader(message_type=message_type, info=bytes(frame[2:]))
