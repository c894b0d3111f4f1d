"""Identifier (UUID) codec for Loxone binary frames.

Loxone transmits a 16-byte identifier whose first three groups are
little-endian integers and whose last 8 bytes are sent in display order:

    bytes  0..4   uint32 LE  -> 8 hex digits
    bytes  4..6   uint16 LE  -> 4 hex digits
    bytes  6..8   uint16 LE  -> 4 hex digits
    bytes  8..16  raw        -> 16 hex digits

The canonical form is ``xxxxxxxx-xxxx-xxxx-xxxxxxxxxxxxxxxx`` in lower case,
which is also how identifiers appear as keys in LoxAPP3.json.
"""

from __future__ import annotations

import struct
from typing import TypeAlias

from loxone_client.const import UUID_LENGTH
from loxone_client.exceptions import InvalidLengthError

Identifier: TypeAlias = str

_UUID_STRUCT = struct.Struct("<IHH8s")


def decode_uuid(data: bytes | bytearray | memoryview, offset: int = 0) -> Identifier:
    """Decode the 16-byte identifier starting at ``offset``.

    Raises:
        InvalidLengthError: If fewer than 16 bytes are available from offset

    Example:
        >>> decode_uuid(bytes.fromhex("04030201060508070910111213141516"))
        '01020304-0506-0708-0910111213141516'

    """
    available = len(data) - offset
    if offset < 0 or available < UUID_LENGTH:
        raise InvalidLengthError(f"uuid_too_short:{max(available, 0)}", bytes(data[offset:]))
    part1, part2, part3, tail = _UUID_STRUCT.unpack_from(data, offset)
    return canonical_string(part1, part2, part3, tail)


def canonical_string(part1: int, part2: int, part3: int, tail: bytes) -> Identifier:
    """Format identifier groups as the lower-case hyphenated 8-4-4-16 string."""
    return f"{part1:08x}-{part2:04x}-{part3:04x}-{tail.hex()}"
