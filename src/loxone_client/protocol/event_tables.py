"""Decoders for the binary event tables pushed by the Miniserver.

All decoders are pure: they take the raw body that followed a message header
and return an ordered list of updates. Applying updates to the registry is the
caller's job. All numbers are little-endian.

Value table (type 2), fixed 24-byte records:
    uuid(16) | double value(8)

Text table (type 3), variable records:
    uuid(16) | icon uuid(16) | uint32 text length L | L bytes UTF-8 | pad to 4

Daytimer table (type 4):
    uuid(16) | double default(8) | uint32 N | N x entry(24)
    entry: uint32 mode | uint32 from | uint32 to | uint32 needActivate | double value

Weather table (type 7):
    uuid(16) | uint32 lastUpdate | uint32 N | N x entry(68)
    entry: uint32 timestamp | uint32 weatherType | uint32 windDirection |
           uint32 solarRadiation | uint32 relativeHumidity |
           double temperature | double perceivedTemperature | double dewPoint |
           double precipitation | double windSpeed | double barometricPressure
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

from loxone_client.const import (
    DAYTIMER_ENTRY_SIZE,
    DAYTIMER_HEADER_SIZE,
    TEXT_RECORD_HEADER_SIZE,
    UUID_LENGTH,
    VALUE_RECORD_SIZE,
    WEATHER_ENTRY_SIZE,
    WEATHER_HEADER_SIZE,
)
from loxone_client.exceptions import BufferUnderrunError, MalformedTableError
from loxone_client.protocol.message_header import MessageType
from loxone_client.protocol.uuid_codec import Identifier, decode_uuid

__all__ = [
    "DaytimerEntry",
    "DaytimerState",
    "TableUpdate",
    "TextUpdate",
    "ValueUpdate",
    "WeatherEntry",
    "WeatherState",
    "decode_daytimer_table",
    "decode_table",
    "decode_text_table",
    "decode_value_table",
    "decode_weather_table",
]

_DOUBLE = struct.Struct("<d")
_UINT32 = struct.Struct("<I")
_DAYTIMER_ENTRY = struct.Struct("<IIIId")
_WEATHER_ENTRY = struct.Struct("<IIIII6d")


@dataclass(frozen=True, slots=True)
class ValueUpdate:
    uuid: Identifier
    value: float


@dataclass(frozen=True, slots=True)
class TextUpdate:
    uuid: Identifier
    icon_uuid: Identifier
    value: str


@dataclass(frozen=True, slots=True)
class DaytimerEntry:
    mode: int
    from_minute: int
    to_minute: int
    need_activate: int
    value: float


@dataclass(frozen=True, slots=True)
class DaytimerState:
    """Decoded daytimer schedule. ``value`` mirrors the default value."""

    uuid: Identifier
    default_value: float
    entries: tuple[DaytimerEntry, ...]

    @property
    def value(self) -> float:
        return self.default_value


@dataclass(frozen=True, slots=True)
class WeatherEntry:
    timestamp: int
    weather_type: int
    wind_direction: int
    solar_radiation: int
    relative_humidity: int
    temperature: float
    perceived_temperature: float
    dew_point: float
    precipitation: float
    wind_speed: float
    barometric_pressure: float


@dataclass(frozen=True, slots=True)
class WeatherState:
    """Decoded weather forecast block. ``value`` is the lastUpdate timestamp."""

    uuid: Identifier
    last_update: int
    entries: tuple[WeatherEntry, ...]

    @property
    def value(self) -> int:
        return self.last_update


TableUpdate = ValueUpdate | TextUpdate | DaytimerState | WeatherState


def _unpack(fmt: struct.Struct, data: bytes | memoryview, offset: int) -> tuple:
    available = len(data) - offset
    if available < fmt.size:
        raise BufferUnderrunError(offset, fmt.size, max(available, 0), bytes(data[:16]))
    return fmt.unpack_from(data, offset)


def _uuid_at(data: bytes | memoryview, offset: int) -> Identifier:
    available = len(data) - offset
    if available < UUID_LENGTH:
        raise BufferUnderrunError(offset, UUID_LENGTH, max(available, 0), bytes(data[:16]))
    return decode_uuid(data, offset)


def decode_value_table(data: bytes) -> list[ValueUpdate]:
    """Decode a value-state table.

    Raises:
        MalformedTableError: Length is not a multiple of 24 (nothing is decoded)

    """
    if len(data) % VALUE_RECORD_SIZE != 0:
        msg = f"value_table_length:{len(data)}"
        raise MalformedTableError(msg, data)
    view = memoryview(data)
    updates: list[ValueUpdate] = []
    for offset in range(0, len(data), VALUE_RECORD_SIZE):
        (value,) = _DOUBLE.unpack_from(view, offset + UUID_LENGTH)
        updates.append(ValueUpdate(uuid=decode_uuid(view, offset), value=value))
    return updates


def decode_text_table(data: bytes) -> list[TextUpdate]:
    """Decode a text-state table.

    Padding after the last record may be omitted; any other truncation is an error.

    Raises:
        MalformedTableError: A record header or its text runs past the buffer end

    """
    view = memoryview(data)
    total = len(data)
    updates: list[TextUpdate] = []
    offset = 0
    while total - offset > 0:
        if total - offset < TEXT_RECORD_HEADER_SIZE:
            msg = f"text_record_header_truncated at {offset}"
            raise MalformedTableError(msg, data)
        uuid = decode_uuid(view, offset)
        icon_uuid = decode_uuid(view, offset + UUID_LENGTH)
        (length,) = _UINT32.unpack_from(view, offset + 2 * UUID_LENGTH)
        text_start = offset + TEXT_RECORD_HEADER_SIZE
        text_end = text_start + length
        if text_end > total:
            msg = f"text_record_truncated at {offset}: length {length}"
            raise MalformedTableError(msg, data)
        text = bytes(view[text_start:text_end]).decode("utf-8", errors="replace")
        updates.append(TextUpdate(uuid=uuid, icon_uuid=icon_uuid, value=text))
        padding = (4 - length % 4) % 4
        offset = min(text_end + padding, total)
    return updates


def decode_daytimer_table(data: bytes) -> list[DaytimerState]:
    """Decode a daytimer table.

    Entries beyond the declared count are ignored. A buffer holding fewer complete
    entries than declared stops early without error.

    Raises:
        BufferUnderrunError: The fixed 28-byte table header is incomplete

    """
    view = memoryview(data)
    uuid = _uuid_at(view, 0)
    (default_value,) = _unpack(_DOUBLE, view, UUID_LENGTH)
    (count,) = _unpack(_UINT32, view, UUID_LENGTH + 8)

    entries: list[DaytimerEntry] = []
    offset = DAYTIMER_HEADER_SIZE
    while len(entries) < count and offset + DAYTIMER_ENTRY_SIZE <= len(data):
        mode, from_minute, to_minute, need_activate, value = _DAYTIMER_ENTRY.unpack_from(view, offset)
        entries.append(DaytimerEntry(mode, from_minute, to_minute, need_activate, value))
        offset += DAYTIMER_ENTRY_SIZE
    return [DaytimerState(uuid=uuid, default_value=default_value, entries=tuple(entries))]


def decode_weather_table(data: bytes) -> list[WeatherState]:
    """Decode a weather table.

    Same permissive entry bound as the daytimer table.

    Raises:
        BufferUnderrunError: The fixed 24-byte table header is incomplete

    """
    view = memoryview(data)
    uuid = _uuid_at(view, 0)
    (last_update,) = _unpack(_UINT32, view, UUID_LENGTH)
    (count,) = _unpack(_UINT32, view, UUID_LENGTH + 4)

    entries: list[WeatherEntry] = []
    offset = WEATHER_HEADER_SIZE
    while len(entries) < count and offset + WEATHER_ENTRY_SIZE <= len(data):
        entries.append(WeatherEntry(*_WEATHER_ENTRY.unpack_from(view, offset)))
        offset += WEATHER_ENTRY_SIZE
    return [WeatherState(uuid=uuid, last_update=last_update, entries=tuple(entries))]


_DECODERS = {
    MessageType.VALUE_TABLE: decode_value_table,
    MessageType.TEXT_TABLE: decode_text_table,
    MessageType.DAYTIMER_TABLE: decode_daytimer_table,
    MessageType.WEATHER_TABLE: decode_weather_table,
}


def decode_table(message_type: MessageType, data: bytes) -> list[TableUpdate]:
    """Route a table body to the decoder for its announced type."""
    try:
        decoder = _DECODERS[message_type]
    except KeyError:
        msg = f"not_a_table:{message_type.name}"
        raise MalformedTableError(msg, data) from None
    return list(decoder(data))
