"""HTTP client for the Miniserver structure file (LoxAPP3.json).

The structure file is not delivered over the websocket; it is a plain HTTP
download protected by basic authentication.
"""

from __future__ import annotations

import json
from typing import cast

import aiohttp
from pydantic import ValidationError

from loxone_client.config import LoxoneConfig
from loxone_client.exceptions import StructureFetchError
from loxone_client.logging_abstraction import get_logger
from loxone_client.registry import StructureFile

logger = get_logger(__name__)


class StructureClient:
    """Downloads and validates LoxAPP3.json.

    The aiohttp session is created lazily and can be shared with the websocket
    transport by passing ``http_session``.
    """

    lp: str = "StructureClient"

    def __init__(self, config: LoxoneConfig, http_session: aiohttp.ClientSession | None = None) -> None:
        self.config: LoxoneConfig = config
        self.http_session: aiohttp.ClientSession | None = http_session
        self._owns_session: bool = http_session is None

    async def _check_session(self) -> aiohttp.ClientSession:
        if self.http_session is None or self.http_session.closed:
            logger.debug("%s:_check_session: Creating new aiohttp ClientSession", self.lp)
            self.http_session = aiohttp.ClientSession()
            self._owns_session = True
        return self.http_session

    async def close(self) -> None:
        """Close the aiohttp session if this client created it."""
        if self._owns_session and self.http_session and not self.http_session.closed:
            logger.debug("%s:close: Closing aiohttp ClientSession", self.lp)
            await self.http_session.close()
        self.http_session = None

    async def fetch_raw(self) -> dict[str, object]:
        """Download the structure file and return the decoded JSON object.

        Raises:
            StructureFetchError: Network failure, non-200 status or invalid JSON

        """
        lp = f"{self.lp}:fetch_raw:"
        session = await self._check_session()
        url = self.config.structure_url
        logger.info("%s Loading server structure from %s", lp, url)
        try:
            async with session.get(
                url,
                auth=aiohttp.BasicAuth(self.config.user, self.config.password),
                timeout=aiohttp.ClientTimeout(total=self.config.http_timeout),
            ) as r:
                if r.status != 200:
                    raise StructureFetchError(r.reason or "unexpected status", status=r.status)
                body = await r.read()
            payload: object = json.loads(body)
        except aiohttp.ClientError as e:
            raise StructureFetchError(str(e) or type(e).__name__) from e
        except TimeoutError as e:
            raise StructureFetchError(f"timed out after {self.config.http_timeout}s") from e
        except ValueError as e:
            # UnicodeDecodeError is a ValueError too
            raise StructureFetchError(f"Failed to parse JSON of the structure file: {e}") from e
        if not isinstance(payload, dict):
            raise StructureFetchError("Structure file is not a JSON object")
        return cast("dict[str, object]", payload)

    async def fetch(self) -> StructureFile:
        """Download and validate the structure file."""
        raw = await self.fetch_raw()
        try:
            structure = StructureFile.model_validate(raw)
        except ValidationError as e:
            raise StructureFetchError(f"Unexpected structure file layout: {e.error_count()} errors") from e
        logger.debug(
            "%s:fetch: Structure loaded",
            self.lp,
            extra={"last_modified": structure.last_modified, "controls": len(structure.controls)},
        )
        return structure
