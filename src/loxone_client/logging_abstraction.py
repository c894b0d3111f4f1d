"""Logging for the Loxone client.

Log lines are tagged with the current ``SessionTrace`` (trace id, connection
attempt and session state) and may carry structured context passed as
``extra={...}``. Output goes to stdout, stderr or a file in human-readable
form, to a JSON-lines file, or both, as selected by ``LOXONE_LOG_FORMAT``.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import cast, override

from loxone_client import const
from loxone_client.tracing import current_trace

__all__ = [
    "HumanReadableFormatter",
    "JSONFormatter",
    "LoxoneLogger",
    "get_logger",
]


def _context_of(record: logging.LogRecord) -> dict[str, object]:
    extra_data = getattr(record, "extra_data", None)
    if isinstance(extra_data, Mapping):
        return dict(cast("Mapping[str, object]", extra_data))
    return {}


class JSONFormatter(logging.Formatter):
    """One JSON object per line: message, source location, session and context."""

    @override
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "where": f"{record.module}:{record.funcName}:{record.lineno}",
            "message": record.getMessage(),
        }
        trace = current_trace()
        if trace is not None:
            entry["session"] = trace.fields()
        context = _context_of(record)
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """``12:00:00.123 INFO [session:42] [1a2b3c4d#2:ready] > message | key=value``"""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s [%(module)s:%(lineno)d] [%(session)s] > %(message)s",
            datefmt="%H:%M:%S",
        )

    @override
    def format(self, record: logging.LogRecord) -> str:
        trace = current_trace()
        record.session = trace.tag if trace is not None else "--------"
        formatted = super().format(record)
        context = _context_of(record)
        if context:
            formatted += " | " + " | ".join(f"{k}={v}" for k, v in context.items())
        return formatted


def _open_file(path: str | Path) -> logging.FileHandler:
    file_path = Path(path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(file_path, mode="a")


def _build_handlers() -> list[logging.Handler]:
    log_format = const.LOXONE_LOG_FORMAT
    handlers: list[logging.Handler] = []

    if log_format in ("json", "both") and const.LOXONE_LOG_JSON_FILE:
        try:
            json_handler = _open_file(const.LOXONE_LOG_JSON_FILE)
        except OSError as e:
            print(f"Warning: Failed to create JSON log file {const.LOXONE_LOG_JSON_FILE}: {e}", file=sys.stderr)
        else:
            json_handler.setFormatter(JSONFormatter())
            handlers.append(json_handler)

    if log_format in ("human", "both"):
        target = const.LOXONE_LOG_HUMAN_OUTPUT or "stdout"
        human_handler: logging.Handler
        if target in ("stdout", "stderr"):
            human_handler = logging.StreamHandler(getattr(sys, target))
        else:
            try:
                human_handler = _open_file(target)
            except OSError as e:
                print(f"Warning: Failed to create human log file {target}: {e}", file=sys.stderr)
                human_handler = logging.StreamHandler(sys.stdout)
        human_handler.setFormatter(HumanReadableFormatter())
        handlers.append(human_handler)

    return handlers


class LoxoneLogger:
    """Thin wrapper over a stdlib logger that accepts structured ``extra`` context."""

    def __init__(self, name: str) -> None:
        self.name: str = name
        self.logger: logging.Logger = logging.getLogger(name)
        if not self.logger.handlers:
            for handler in _build_handlers():
                self.logger.addHandler(handler)
            self.set_level(logging.DEBUG if const.LOXONE_DEBUG else logging.INFO)

    def _log(self, level: int, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        payload = {"extra_data": dict(extra)} if extra else None
        self.logger.log(level, msg, *args, extra=payload, stacklevel=3)

    def debug(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.DEBUG, msg, *args, extra=extra)

    def info(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.INFO, msg, *args, extra=extra)

    def warning(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.WARNING, msg, *args, extra=extra)

    def error(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.ERROR, msg, *args, extra=extra)

    def exception(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        payload = {"extra_data": dict(extra)} if extra else None
        self.logger.exception(msg, *args, extra=payload, stacklevel=2)

    def set_level(self, level: int) -> None:
        """Set the level of the logger and of every handler attached to it."""
        self.logger.setLevel(level)
        for handler in self.logger.handlers:
            handler.setLevel(level)


def get_logger(name: str) -> LoxoneLogger:
    """Return a LoxoneLogger configured from the ``LOXONE_LOG_*`` settings."""
    return LoxoneLogger(name)
