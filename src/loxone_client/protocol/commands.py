"""Text commands understood by the Miniserver and response matchers."""

from __future__ import annotations

import hashlib
import hmac
import re

from loxone_client.protocol.uuid_codec import Identifier

CMD_GET_KEY = "jdev/sys/getkey"
CMD_AUTHENTICATE = "authenticate/{hash}"
CMD_STRUCTURE_VERSION = "jdev/sps/LoxAPPversion3"
CMD_ENABLE_STATUS_UPDATES = "jdev/sps/enablebinstatusupdate"
CMD_KEEPALIVE = "keepalive"
CMD_FIRMWARE_VERSION = "jdev/cfg/version"

# Controls echoed back in LL.control
GET_KEY_PATTERN = re.compile(r"^j?dev/sys/getkey$", re.IGNORECASE)
AUTHENTICATE_PATTERN = re.compile(r"authenticate/.*", re.IGNORECASE)
STRUCTURE_VERSION_PATTERN = re.compile(r"dev/sps/LoxAPPversion3", re.IGNORECASE)


def compute_auth_hash(key_hex: str, user: str, password: str) -> str:
    """HMAC-SHA1 of ``user:password`` keyed by the hex-decoded challenge key.

    Returns:
        Lower-case hex digest

    Raises:
        ValueError: If the key is not valid hex

    """
    key = bytes.fromhex(key_hex)
    message = f"{user}:{password}".encode()
    return hmac.new(key, message, hashlib.sha1).hexdigest()


def authenticate_command(key_hex: str, user: str, password: str) -> str:
    return CMD_AUTHENTICATE.format(hash=compute_auth_hash(key_hex, user, password))


def io_command(uuid: Identifier, state: str) -> str:
    """Build ``jdev/sps/io/<uuid>/<state>``.

    Raises:
        ValueError: If state is empty after stripping leading slashes

    """
    state = state.strip().lstrip("/")
    if not state:
        msg = "State change must not be empty"
        raise ValueError(msg)
    return f"jdev/sps/io/{uuid}/{state}"


def status_command(uuid: Identifier) -> str:
    """Build the query for the current status of all outputs of a control."""
    return io_command(uuid, "all")
