"""Exception hierarchy for the Loxone client.

Frame-level decode errors are reported and the frame dropped; handshake errors
abort the current session attempt; transport errors lead to a reconnect. Nothing
here is meant to terminate the process.
"""

from __future__ import annotations


class LoxoneError(Exception):
    """Base exception for all Loxone client errors."""


class ConfigError(LoxoneError):
    """Configuration file missing, unreadable or invalid."""


# ---------------------------------------------------------------------------
# Frame decoding
# ---------------------------------------------------------------------------


class FrameDecodeError(LoxoneError):
    """A binary frame cannot be decoded.

    Attributes:
        reason: Specific failure reason
        data_preview: First 16 bytes of the offending data (enough to identify
            the frame without dumping whole tables into logs)
    """

    def __init__(self, reason: str, data: bytes = b"") -> None:
        self.reason: str = reason
        self.data_preview: bytes = bytes(data[:16]) if data else b""
        super().__init__(f"Frame decode failed: {reason}")


class MalformedHeaderError(FrameDecodeError):
    """Frame is not an 8-byte message header starting with the 0x03 marker."""


class UnknownHeaderTypeError(FrameDecodeError):
    """Message header carries a type code outside the known set."""

    def __init__(self, type_code: int, data: bytes = b"") -> None:
        self.type_code: int = type_code
        super().__init__(f"unknown_header_type:{type_code}", data)


class MalformedTableError(FrameDecodeError):
    """Event table layout is inconsistent (bad record size or truncated record)."""


class BufferUnderrunError(FrameDecodeError):
    """A read ran past the end of the buffer.

    Attributes:
        offset: Offset the read started at
        needed: Bytes the read required
        available: Bytes available from offset
    """

    def __init__(self, offset: int, needed: int, available: int, data: bytes = b"") -> None:
        self.offset: int = offset
        self.needed: int = needed
        self.available: int = available
        super().__init__(f"buffer_underrun at {offset}: need {needed}, have {available}", data)


class InvalidLengthError(FrameDecodeError):
    """Fewer than 16 bytes available for an identifier."""


# ---------------------------------------------------------------------------
# Request / response
# ---------------------------------------------------------------------------


class RemoteRejectedError(LoxoneError):
    """The Miniserver answered a request with a non-200 code.

    Attributes:
        control: Control string echoed by the server
        code: Status code as sent by the server
    """

    def __init__(self, control: str, code: str) -> None:
        self.control: str = control
        self.code: str = code
        super().__init__(f"Request '{control}' rejected with code {code}")


class HandshakeError(LoxoneError):
    """The session setup sequence failed."""


class AuthenticationFailedError(HandshakeError):
    """The authenticate request was rejected."""

    def __init__(self, code: str) -> None:
        self.code: str = code
        super().__init__(f"Authentication failure (code {code})")


class VersionQueryFailedError(HandshakeError):
    """The structure-file version query was rejected."""

    def __init__(self, code: str) -> None:
        self.code: str = code
        super().__init__(f"Failed to get LoxAPPversion3 timestamp (code {code})")


class ResponseTimeoutError(HandshakeError):
    """No matching response arrived within the configured timeout."""

    def __init__(self, control: str, timeout: float) -> None:
        self.control: str = control
        self.timeout: float = timeout
        super().__init__(f"No response to '{control}' within {timeout}s")


class StructureFetchError(HandshakeError):
    """Loading the structure file over HTTP failed.

    Attributes:
        reason: Specific failure reason
        status: HTTP status, when one was received
    """

    def __init__(self, reason: str, status: int | None = None) -> None:
        self.reason: str = reason
        self.status: int | None = status
        suffix = f" (HTTP {status})" if status is not None else ""
        super().__init__(f"Failed to load structure from the miniserver: {reason}{suffix}")


# ---------------------------------------------------------------------------
# Registry / transport
# ---------------------------------------------------------------------------


class UnknownIdentifierError(LoxoneError, KeyError):
    """Identifier is not present in the registry."""

    def __init__(self, uuid: str) -> None:
        self.uuid: str = uuid
        super().__init__(f"Structure does not contain any control {uuid}")

    def __str__(self) -> str:
        return str(self.args[0])


class TransportClosedError(LoxoneError):
    """The websocket is closed or was never opened."""

    def __init__(self, reason: str = "not connected") -> None:
        self.reason: str = reason
        super().__init__(f"Transport closed: {reason}")
