"""Unit tests for message header classification."""

from __future__ import annotations

import pytest

from loxone_client.exceptions import MalformedHeaderError, UnknownHeaderTypeError
from loxone_client.protocol.message_header import (
    TABLE_TYPES,
    MessageType,
    looks_like_header,
    parse_header,
)
from tests.helpers.websocket import header


class TestParseHeader:
    """Tests for parse_header."""

    @pytest.mark.parametrize("message_type", list(MessageType))
    def test_every_known_type(self, message_type: MessageType):
        parsed = parse_header(header(message_type))
        assert parsed.message_type is message_type

    def test_info_bytes_are_kept(self):
        parsed = parse_header(bytes([0x03, 0x02, 0x00, 0x00, 0x30, 0x00, 0x00, 0x00]))
        assert parsed.message_type is MessageType.VALUE_TABLE
        assert parsed.info == b"\x00\x00\x30\x00\x00\x00"

    def test_wrong_length(self):
        with pytest.raises(MalformedHeaderError) as exc_info:
            _ = parse_header(b"\x03\x02\x00")
        assert exc_info.value.reason == "bad_length:3"

    def test_wrong_marker(self):
        with pytest.raises(MalformedHeaderError) as exc_info:
            _ = parse_header(b"\x04\x02" + b"\x00" * 6)
        assert exc_info.value.reason == "bad_marker:0x04"
        assert exc_info.value.data_preview == b"\x04\x02" + b"\x00" * 6

    def test_unknown_type(self):
        with pytest.raises(UnknownHeaderTypeError) as exc_info:
            _ = parse_header(header(9))
        assert exc_info.value.type_code == 9


class TestLooksLikeHeader:
    """Tests for looks_like_header."""

    def test_header_shape(self):
        assert looks_like_header(header(MessageType.TEXT_TABLE))

    def test_unknown_type_still_looks_like_header(self):
        assert looks_like_header(header(42))

    def test_body_of_header_length_without_marker(self):
        assert not looks_like_header(b"\x01" * 8)

    def test_longer_frame_starting_with_marker(self):
        assert not looks_like_header(b"\x03" * 24)


class TestMessageType:
    """Tests for MessageType metadata."""

    def test_table_types(self):
        assert {
            MessageType.VALUE_TABLE,
            MessageType.TEXT_TABLE,
            MessageType.DAYTIMER_TABLE,
            MessageType.WEATHER_TABLE,
        } == TABLE_TYPES

    def test_labels(self):
        assert MessageType.KEEPALIVE_ACK.label == "Keepalive response"
        assert MessageType.VALUE_TABLE.label == "Event-Table of Value-States"
