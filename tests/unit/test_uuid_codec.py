"""Unit tests for the identifier codec."""

from __future__ import annotations

import pytest

from loxone_client.exceptions import FrameDecodeError, InvalidLengthError
from loxone_client.protocol.uuid_codec import canonical_string, decode_uuid
from tests.helpers.websocket import encode_uuid

KNOWN_BYTES = bytes.fromhex("04030201060508070910111213141516")
KNOWN_UUID = "01020304-0506-0708-0910111213141516"


class TestDecodeUuid:
    """Tests for decode_uuid."""

    def test_known_vector(self):
        assert decode_uuid(KNOWN_BYTES) == KNOWN_UUID

    def test_middle_groups_are_little_endian(self):
        data = bytes.fromhex("00000000" "0605" "0807" "0000000000000000")
        assert decode_uuid(data) == "00000000-0506-0708-0000000000000000"

    def test_decoding_is_stable(self):
        assert decode_uuid(KNOWN_BYTES) == decode_uuid(KNOWN_BYTES)

    def test_decode_at_offset(self):
        data = b"\xff" * 8 + KNOWN_BYTES + b"\xff" * 4
        assert decode_uuid(data, 8) == KNOWN_UUID

    def test_accepts_memoryview(self):
        assert decode_uuid(memoryview(KNOWN_BYTES)) == KNOWN_UUID

    def test_lower_case_and_zero_padded(self):
        data = bytes.fromhex("0a000000" "0b00" "0c00" "ABCDEF0000000001")
        assert decode_uuid(data) == "0000000a-000b-000c-abcdef0000000001"

    def test_short_buffer_raises_invalid_length(self):
        with pytest.raises(InvalidLengthError) as exc_info:
            _ = decode_uuid(KNOWN_BYTES[:15])
        assert "uuid_too_short:15" in str(exc_info.value)
        assert isinstance(exc_info.value, FrameDecodeError)

    def test_offset_past_end_raises(self):
        with pytest.raises(InvalidLengthError):
            _ = decode_uuid(KNOWN_BYTES, 4)

    def test_inverse_of_test_encoder(self):
        uuid = "0b734138-037d-034e-ffff403fb0c34b9e"
        assert decode_uuid(encode_uuid(uuid)) == uuid


class TestCanonicalString:
    """Tests for canonical_string."""

    def test_groups(self):
        assert canonical_string(1, 2, 3, bytes(8)) == "00000001-0002-0003-0000000000000000"
