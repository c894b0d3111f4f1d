"""Per-connection log context.

Each websocket connection attempt runs under a ``SessionTrace``: a trace id,
the Miniserver host, the attempt number and the session state. The trace is
stored in a context variable, so the receive, handshake and keepalive tasks
created during the attempt all log with it. The object itself is shared by
those tasks, which is why state changes made by one of them show up in the
log lines of the others.
"""

from __future__ import annotations

import contextvars
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass

__all__ = [
    "SessionTrace",
    "begin_trace",
    "current_trace",
    "get_trace_id",
    "new_trace_id",
    "trace_context",
]


@dataclass(slots=True)
class SessionTrace:
    trace_id: str
    host: str | None = None
    attempt: int = 0
    state: str | None = None

    @property
    def tag(self) -> str:
        """Short ``id#attempt:state`` form used by the human formatter."""
        tag = self.trace_id[:8]
        if self.attempt:
            tag = f"{tag}#{self.attempt}"
        if self.state:
            tag = f"{tag}:{self.state}"
        return tag

    def fields(self) -> dict[str, object]:
        fields: dict[str, object] = {"trace_id": self.trace_id}
        if self.host:
            fields["host"] = self.host
        if self.attempt:
            fields["attempt"] = self.attempt
        if self.state:
            fields["state"] = self.state
        return fields


_current: contextvars.ContextVar[SessionTrace | None] = contextvars.ContextVar("loxone_trace", default=None)


def new_trace_id() -> str:
    return uuid.uuid4().hex


def current_trace() -> SessionTrace | None:
    return _current.get()


def get_trace_id() -> str | None:
    trace = _current.get()
    return trace.trace_id if trace is not None else None


def begin_trace(host: str | None = None, attempt: int = 0) -> SessionTrace:
    """Start a fresh trace for one connection attempt in the current context."""
    trace = SessionTrace(new_trace_id(), host=host, attempt=attempt)
    _ = _current.set(trace)
    return trace


@contextmanager
def trace_context(trace_id: str | None = None) -> Generator[SessionTrace]:
    """Run a block under its own trace, restoring the previous one on exit.

    Args:
        trace_id: Trace id to use (None to generate one)

    """
    trace = SessionTrace(trace_id or new_trace_id())
    token = _current.set(trace)
    try:
        yield trace
    finally:
        _current.reset(token)
