import os

from loxone_client import __version__

__all__ = [
    "CATEGORY_AUTOPILOT",
    "CATEGORY_CATEGORY",
    "CATEGORY_PRIMARY_STATE",
    "CATEGORY_ROOM",
    "CATEGORY_STATE",
    "DAYTIMER_ENTRY_SIZE",
    "DAYTIMER_HEADER_SIZE",
    "HEADER_LENGTH",
    "HEADER_MARKER",
    "LOXONE_DEBUG",
    "LOXONE_HOST",
    "LOXONE_HTTP_TIMEOUT",
    "LOXONE_KEEPALIVE_INTERVAL",
    "LOXONE_LOG_FORMAT",
    "LOXONE_LOG_HUMAN_OUTPUT",
    "LOXONE_LOG_JSON_FILE",
    "LOXONE_PASSWORD",
    "LOXONE_REOPEN_INTERVAL",
    "LOXONE_RESPONSE_TIMEOUT",
    "LOXONE_USER",
    "LOXONE_VERSION",
    "NON_COMMANDABLE_CATEGORIES",
    "STRUCTURE_PATH",
    "TEXT_RECORD_HEADER_SIZE",
    "UUID_LENGTH",
    "VALUE_RECORD_SIZE",
    "WEATHER_ENTRY_SIZE",
    "WEATHER_HEADER_SIZE",
    "WS_PATH",
    "WS_PROTOCOL",
    "YES_ANSWER",
    "reload_env",
]

YES_ANSWER = ("true", "1", "yes", "y", "t", "on", "o")
LOXONE_VERSION: str = __version__


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


LOXONE_HOST: str | None = os.environ.get("LOXONE_HOST") or None
LOXONE_USER: str | None = os.environ.get("LOXONE_USER") or None
LOXONE_PASSWORD: str | None = os.environ.get("LOXONE_PASSWORD") or None

# seconds
LOXONE_KEEPALIVE_INTERVAL: float = _env_float("LOXONE_KEEPALIVE_INTERVAL", 30.0)
LOXONE_REOPEN_INTERVAL: float = _env_float("LOXONE_REOPEN_INTERVAL", 5.0)
LOXONE_RESPONSE_TIMEOUT: float = _env_float("LOXONE_RESPONSE_TIMEOUT", 10.0)
LOXONE_HTTP_TIMEOUT: float = _env_float("LOXONE_HTTP_TIMEOUT", 8.0)

LOXONE_DEBUG: bool = os.environ.get("LOXONE_DEBUG", "0").casefold() in YES_ANSWER


def reload_env() -> None:
    """Re-read the connection settings after a .env file was loaded."""
    global LOXONE_HOST, LOXONE_USER, LOXONE_PASSWORD, LOXONE_DEBUG  # noqa: PLW0603
    global LOXONE_KEEPALIVE_INTERVAL, LOXONE_REOPEN_INTERVAL  # noqa: PLW0603
    global LOXONE_RESPONSE_TIMEOUT, LOXONE_HTTP_TIMEOUT  # noqa: PLW0603
    LOXONE_HOST = os.environ.get("LOXONE_HOST") or None
    LOXONE_USER = os.environ.get("LOXONE_USER") or None
    LOXONE_PASSWORD = os.environ.get("LOXONE_PASSWORD") or None
    LOXONE_KEEPALIVE_INTERVAL = _env_float("LOXONE_KEEPALIVE_INTERVAL", 30.0)
    LOXONE_REOPEN_INTERVAL = _env_float("LOXONE_REOPEN_INTERVAL", 5.0)
    LOXONE_RESPONSE_TIMEOUT = _env_float("LOXONE_RESPONSE_TIMEOUT", 10.0)
    LOXONE_HTTP_TIMEOUT = _env_float("LOXONE_HTTP_TIMEOUT", 8.0)
    LOXONE_DEBUG = os.environ.get("LOXONE_DEBUG", "0").casefold() in YES_ANSWER


# Logging Configuration
LOXONE_LOG_FORMAT: str = os.environ.get("LOXONE_LOG_FORMAT", "human")  # "json", "human", or "both"
LOXONE_LOG_JSON_FILE: str = os.environ.get("LOXONE_LOG_JSON_FILE", "loxone_client.json")
LOXONE_LOG_HUMAN_OUTPUT: str = os.environ.get("LOXONE_LOG_HUMAN_OUTPUT", "stdout")  # "stdout", "stderr", or file path

WS_PATH: str = "/ws/rfc6455"
WS_PROTOCOL: str = "remotecontrol"
STRUCTURE_PATH: str = "/data/LoxAPP3.json"

# Wire layout
HEADER_MARKER = 0x03
HEADER_LENGTH = 8
UUID_LENGTH = 16
VALUE_RECORD_SIZE = UUID_LENGTH + 8
TEXT_RECORD_HEADER_SIZE = UUID_LENGTH * 2 + 4
DAYTIMER_HEADER_SIZE = UUID_LENGTH + 8 + 4
DAYTIMER_ENTRY_SIZE = 24
WEATHER_HEADER_SIZE = UUID_LENGTH + 4 + 4
WEATHER_ENTRY_SIZE = 68

# Registry categories
CATEGORY_STATE = "_state_"
CATEGORY_PRIMARY_STATE = "_primarystate_"
CATEGORY_ROOM = "_room_"
CATEGORY_CATEGORY = "_category_"
CATEGORY_AUTOPILOT = "_autopilot_"
NON_COMMANDABLE_CATEGORIES = frozenset({CATEGORY_STATE, CATEGORY_ROOM, CATEGORY_CATEGORY, CATEGORY_AUTOPILOT})
