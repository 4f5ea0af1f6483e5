"""Shared fixtures."""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio

from tests.utils import ControlServer, RecordingSleep, find_free_port


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    """Sleep replacement; delays are recorded, never actually waited."""
    return RecordingSleep()


@pytest_asyncio.fixture
async def control_server() -> AsyncGenerator[ControlServer, None]:
    """A control process listening on a free local port.

    Yields:
        Started ControlServer; bridges connect to ``bridge_config``.
    """
    server = ControlServer(find_free_port())
    await server.start()
    yield server
    await server.stop()
