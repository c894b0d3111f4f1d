"""Client configuration: environment defaults overlaid with an optional YAML file.

Example ``loxone.yaml``::

    loxone:
      url: 192.168.1.77
      user: admin
      password: secret
      reopenInterval: 5
"""

from __future__ import annotations

from pathlib import Path
from typing import cast

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from loxone_client import const
from loxone_client.const import STRUCTURE_PATH, WS_PATH
from loxone_client.exceptions import ConfigError
from loxone_client.logging_abstraction import get_logger

logger = get_logger(__name__)


class LoxoneConfig(BaseModel):
    """Connection settings for one Miniserver."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    host: str = Field(min_length=1, validation_alias=AliasChoices("host", "url"))
    user: str
    password: str
    keepalive_interval: float = Field(
        default=30.0,
        gt=0,
        validation_alias=AliasChoices("keepalive_interval", "keepaliveInterval"),
    )
    reopen_interval: float = Field(
        default=5.0,
        gt=0,
        validation_alias=AliasChoices("reopen_interval", "reopenInterval"),
    )
    response_timeout: float = Field(
        default=10.0,
        gt=0,
        validation_alias=AliasChoices("response_timeout", "responseTimeout"),
    )
    http_timeout: float = Field(
        default=8.0,
        gt=0,
        validation_alias=AliasChoices("http_timeout", "httpTimeout"),
    )

    @property
    def ws_url(self) -> str:
        return f"ws://{self.host}{WS_PATH}"

    @property
    def structure_url(self) -> str:
        return f"http://{self.host}{STRUCTURE_PATH}"

    @classmethod
    def from_env(cls) -> LoxoneConfig:
        """Build from LOXONE_* environment variables.

        Raises:
            ConfigError: Host, user or password missing

        """
        return _validate(_env_values())


def _env_values() -> dict[str, object]:
    values: dict[str, object] = {
        "host": const.LOXONE_HOST,
        "user": const.LOXONE_USER,
        "password": const.LOXONE_PASSWORD,
        "keepalive_interval": const.LOXONE_KEEPALIVE_INTERVAL,
        "reopen_interval": const.LOXONE_REOPEN_INTERVAL,
        "response_timeout": const.LOXONE_RESPONSE_TIMEOUT,
        "http_timeout": const.LOXONE_HTTP_TIMEOUT,
    }
    return {k: v for k, v in values.items() if v is not None}


def _validate(values: dict[str, object]) -> LoxoneConfig:
    try:
        return LoxoneConfig.model_validate(values)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        msg = f"Invalid Loxone configuration ({fields})"
        raise ConfigError(msg) from e


def load_config(path: Path | str | None = None) -> LoxoneConfig:
    """Load configuration, overlaying the ``loxone:`` section of a YAML file on the environment.

    Args:
        path: YAML file; None uses the environment only

    Raises:
        ConfigError: File missing or unreadable, no ``loxone`` section, or invalid values

    """
    values = _env_values()
    if path is None:
        return _validate(values)

    cfg_path = Path(path).expanduser()
    logger.debug("Parsing config file: %s", cfg_path)
    try:
        with cfg_path.open() as f:
            data: object = yaml.safe_load(f)
    except FileNotFoundError as e:
        msg = f"Configuration file not found: {cfg_path}"
        raise ConfigError(msg) from e
    except (OSError, yaml.YAMLError) as e:
        msg = f"Failed to parse config file {cfg_path}: {e}"
        raise ConfigError(msg) from e

    if not isinstance(data, dict) or not isinstance(data.get("loxone"), dict):
        msg = f"No 'loxone' section found in config file {cfg_path}"
        raise ConfigError(msg)

    section = cast("dict[str, object]", data["loxone"])
    # file keys may use either spelling; drop env keys the file overrides
    overrides = {
        "host": ("host", "url"),
        "keepalive_interval": ("keepalive_interval", "keepaliveInterval"),
        "reopen_interval": ("reopen_interval", "reopenInterval"),
        "response_timeout": ("response_timeout", "responseTimeout"),
        "http_timeout": ("http_timeout", "httpTimeout"),
    }
    for env_key, file_keys in overrides.items():
        if any(k in section for k in file_keys):
            _ = values.pop(env_key, None)
    values.update(section)
    return _validate(values)
