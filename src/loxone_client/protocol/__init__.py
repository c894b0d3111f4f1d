"""Loxone wire protocol: identifier codec, message headers and event tables.

Public API:
- Identifier codec (decode_uuid)
- Message header classification (MessageType, parse_header)
- Event table decoders and update dataclasses
"""

from loxone_client.protocol.event_tables import (
    DaytimerEntry,
    DaytimerState,
    TableUpdate,
    TextUpdate,
    ValueUpdate,
    WeatherEntry,
    WeatherState,
    decode_daytimer_table,
    decode_table,
    decode_text_table,
    decode_value_table,
    decode_weather_table,
)
from loxone_client.protocol.message_header import MessageHeader, MessageType, parse_header
from loxone_client.protocol.uuid_codec import Identifier, decode_uuid

__all__ = [
    # Identifier codec
    "Identifier",
    "decode_uuid",
    # Headers
    "MessageHeader",
    "MessageType",
    "parse_header",
    # Event tables
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
