"""Integration tests for BridgeConnection against a real aiohttp server."""

import asyncio
from typing import Any

import pytest

from scrollback.bridge import BridgeConnection, ConnectionState, Dispatcher
from scrollback.config import BridgeConfig
from tests.utils import ControlServer, find_free_port


async def echo(params: dict[str, Any]) -> Any:
    return params


async def slow(params: dict[str, Any]) -> Any:
    await asyncio.sleep(0.2)
    return "slow done"


def make_connection(config: BridgeConfig) -> BridgeConnection:
    dispatcher = Dispatcher(
        {
            "echo": echo,
            "slow": slow,
            "status": lambda params: _status(),
        }
    )
    return BridgeConnection(dispatcher, config)


async def _status() -> dict[str, Any]:
    return {"connected": True, "contextOpen": False}


class TestBridgeConnection:
    @pytest.mark.asyncio
    async def test_round_trip(self, control_server: ControlServer) -> None:
        connection = make_connection(control_server.bridge_config)
        task = asyncio.create_task(connection.run())
        try:
            await control_server.wait_for_connection()
            await connection.wait_connected(timeout=5)

            response = await control_server.request(
                {"id": "1", "method": "echo", "params": {"a": 1}}
            )

            assert response == {"id": "1", "result": {"a": 1}}
            assert connection.state is ConnectionState.CONNECTED
        finally:
            await connection.stop()
            await asyncio.wait_for(task, 5)

        assert connection.state is ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_malformed_message_keeps_connection(
        self, control_server: ControlServer
    ) -> None:
        connection = make_connection(control_server.bridge_config)
        task = asyncio.create_task(connection.run())
        try:
            await control_server.wait_for_connection()

            await control_server.send("{{{ not json")
            response = await control_server.request(
                {"id": "2", "method": "status", "params": {}}
            )

            assert response == {
                "id": "2",
                "result": {"connected": True, "contextOpen": False},
            }
            assert control_server.responses.empty()
            assert control_server.connections == 1
        finally:
            await connection.stop()
            await asyncio.wait_for(task, 5)

    @pytest.mark.asyncio
    async def test_status_answered_during_long_call(
        self, control_server: ControlServer
    ) -> None:
        connection = make_connection(control_server.bridge_config)
        task = asyncio.create_task(connection.run())
        try:
            await control_server.wait_for_connection()

            await control_server.send({"id": "long", "method": "slow"})
            await control_server.send({"id": "quick", "method": "status"})
            first = await asyncio.wait_for(control_server.responses.get(), 5)
            second = await asyncio.wait_for(control_server.responses.get(), 5)

            assert first["id"] == "quick"
            assert second == {"id": "long", "result": "slow done"}
        finally:
            await connection.stop()
            await asyncio.wait_for(task, 5)

    @pytest.mark.asyncio
    async def test_reconnects_after_close(
        self, control_server: ControlServer
    ) -> None:
        connection = make_connection(control_server.bridge_config)
        task = asyncio.create_task(connection.run())
        try:
            await control_server.wait_for_connection(1)
            await control_server.drop_client()

            await control_server.wait_for_connection(2)
            response = await control_server.request(
                {"id": "3", "method": "echo", "params": {"again": True}}
            )

            assert response == {"id": "3", "result": {"again": True}}
            assert connection.connect_count == 2
        finally:
            await connection.stop()
            await asyncio.wait_for(task, 5)

    @pytest.mark.asyncio
    async def test_retries_until_server_appears(self) -> None:
        port = find_free_port()
        config = BridgeConfig(port=port, reconnect_interval=0.05)
        connection = make_connection(config)
        task = asyncio.create_task(connection.run())
        server = ControlServer(port)
        try:
            await asyncio.sleep(0.2)
            assert connection.state is not ConnectionState.CONNECTED
            assert connection.connect_count == 0

            await server.start()
            await server.wait_for_connection()
            await connection.wait_connected(timeout=5)

            assert connection.connect_count == 1
        finally:
            await connection.stop()
            await asyncio.wait_for(task, 5)
            await server.stop()
