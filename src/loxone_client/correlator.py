"""Request/response correlation for the Miniserver text channel.

Text responses carry no request ID. The only way to pair a response with its
request is to look at the ``LL.control`` string the server echoes back, so a
waiter is a predicate over the parsed response plus a future that the
receive path resolves exactly once.

Only one waiter is outstanding at a time. The handshake issues its requests
strictly one after another, which is the only place responses are awaited.
"""

from __future__ import annotations

import asyncio
import json
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from loxone_client.exceptions import RemoteRejectedError
from loxone_client.logging_abstraction import get_logger

__all__ = [
    "LoxoneResponse",
    "ResponseCorrelator",
    "control_matches",
    "parse_response",
]

logger = get_logger(__name__)

SUCCESS_CODE = "200"


class LoxoneResponse(BaseModel):
    """The ``LL`` object of a JSON text response.

    Example:
        {"LL": {"control": "jdev/sys/getkey", "value": "3531...", "Code": "200"}}
    """

    model_config = ConfigDict(extra="ignore")

    control: str
    value: Any = None
    code: str = Field(default="", validation_alias=AliasChoices("Code", "code"))

    @field_validator("code", mode="before")
    @classmethod
    def _code_as_text(cls, v: object) -> str:
        return "" if v is None else str(v)

    @property
    def ok(self) -> bool:
        return self.code == SUCCESS_CODE


Predicate = Callable[[LoxoneResponse], bool]


def parse_response(text: str) -> LoxoneResponse | None:
    """Parse a text frame as a Loxone response.

    Not every text frame is JSON (icons are SVG, some replies are plain text), so
    anything that is not a JSON object with an ``LL.control`` string yields None.
    """
    try:
        payload: object = json.loads(text)
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    ll = payload.get("LL")
    if not isinstance(ll, dict):
        return None
    try:
        return LoxoneResponse.model_validate(ll)
    except ValidationError:
        return None


def control_matches(pattern: str | re.Pattern[str]) -> Predicate:
    """Predicate matching responses whose control contains ``pattern`` (case-insensitive)."""
    regex = pattern if isinstance(pattern, re.Pattern) else re.compile(pattern, re.IGNORECASE)

    def _predicate(response: LoxoneResponse) -> bool:
        return regex.search(response.control) is not None

    return _predicate


@dataclass(slots=True)
class _Waiter:
    purpose: str
    predicate: Predicate
    future: asyncio.Future[LoxoneResponse]


class ResponseCorrelator:
    """Single-slot, one-shot waiter for predicate-matched responses."""

    lp: str = "ResponseCorrelator:"

    def __init__(self) -> None:
        self._waiter: _Waiter | None = None

    @property
    def pending(self) -> str | None:
        """Purpose of the outstanding waiter, or None."""
        if self._waiter is None or self._waiter.future.done():
            return None
        return self._waiter.purpose

    def expect(self, purpose: str, predicate: Predicate) -> asyncio.Future[LoxoneResponse]:
        """Register the waiter and return the future it will resolve.

        The future resolves with the matching response when its code is 200 and
        fails with RemoteRejectedError otherwise. Registering while another waiter
        is pending abandons the older one.
        """
        lp = f"{self.lp}expect:"
        if self.pending is not None:
            assert self._waiter is not None
            logger.warning("%s Replacing pending waiter '%s' with '%s'", lp, self._waiter.purpose, purpose)
            self._abandon_waiter(self._waiter)
        future: asyncio.Future[LoxoneResponse] = asyncio.get_running_loop().create_future()
        self._waiter = _Waiter(purpose=purpose, predicate=predicate, future=future)
        logger.debug("%s Waiting for '%s'", lp, purpose)
        return future

    def feed(self, text: str) -> bool:
        """Offer an inbound text frame to the waiter.

        Returns:
            True if the frame matched and resolved the waiter

        """
        waiter = self._waiter
        if waiter is None:
            return False
        response = parse_response(text)
        if response is None or not waiter.predicate(response):
            return False

        self._waiter = None
        if waiter.future.done():
            # awaiting side gave up (timeout / cancellation)
            return True
        if response.ok:
            waiter.future.set_result(response)
            logger.debug("%s '%s' resolved", f"{self.lp}feed:", waiter.purpose)
        else:
            waiter.future.set_exception(RemoteRejectedError(response.control, response.code))
            logger.debug(
                "%s '%s' rejected with code %s",
                f"{self.lp}feed:",
                waiter.purpose,
                response.code,
            )
        return True

    def abandon(self) -> None:
        """Drop the outstanding waiter without resolving it (session closing)."""
        waiter, self._waiter = self._waiter, None
        if waiter is not None:
            logger.debug("%s Abandoning waiter '%s'", f"{self.lp}abandon:", waiter.purpose)
            self._abandon_waiter(waiter)

    @staticmethod
    def _abandon_waiter(waiter: _Waiter) -> None:
        if not waiter.future.done():
            _ = waiter.future.cancel()
