"""Shared fixtures for Loxone client unit tests."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from loxone_client.config import LoxoneConfig
from loxone_client.registry import StructureFile
from tests.helpers import sample_data
from tests.helpers.sample_data import TEST_PASSWORD, TEST_USER
from tests.helpers.websocket import FakeWebSocket, miniserver

JSONDict = dict[str, object]


@pytest.fixture
def sample_structure() -> JSONDict:
    return sample_data.sample_structure()


@pytest.fixture
def structure_file(sample_structure: JSONDict) -> StructureFile:
    return StructureFile.model_validate(sample_structure)


@pytest.fixture
def config() -> LoxoneConfig:
    """Config with short timers so session tests run fast."""
    return LoxoneConfig(
        host="192.168.1.77",
        user=TEST_USER,
        password=TEST_PASSWORD,
        keepalive_interval=0.05,
        reopen_interval=0.05,
        response_timeout=0.5,
        http_timeout=1.0,
    )


@pytest.fixture
def fake_ws() -> FakeWebSocket:
    return FakeWebSocket(miniserver())


@pytest.fixture
def mock_http_session(fake_ws: FakeWebSocket) -> MagicMock:
    """aiohttp.ClientSession double whose ws_connect returns ``fake_ws``."""
    session: MagicMock = MagicMock()
    session.closed = False
    session.ws_connect = AsyncMock(return_value=fake_ws)
    session.close = AsyncMock()
    return session


@pytest.fixture
def mock_structure_client(structure_file: StructureFile) -> MagicMock:
    client: MagicMock = MagicMock()
    client.fetch = AsyncMock(return_value=structure_file)
    client.close = AsyncMock()
    return client
