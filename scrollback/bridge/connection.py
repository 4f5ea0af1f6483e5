"""WebSocket client connection to the control process.

The connection is a supervised loop: connect, serve messages until the
socket closes or errors, wait a fixed interval, and connect again. Each
inbound message is dispatched in its own task so a long ``scrape`` does not
block ``status``. Replies are correlated by id only and may complete out of
order.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

import aiohttp

from scrollback.bridge.dispatch import Dispatcher
from scrollback.config import BridgeConfig

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class BridgeConnection:
    """Persistent connection serving RPC requests from the control process.

    Args:
        dispatcher: Turns inbound messages into response envelopes.
        config: Transport settings (URL, reconnect interval).
        session_factory: Builds the aiohttp client session; tests override it.

    Example:
        connection = BridgeConnection(Dispatcher(methods.table()))
        task = asyncio.create_task(connection.run())
        ...
        await connection.stop()
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        config: BridgeConfig | None = None,
        session_factory: Callable[[], aiohttp.ClientSession] = aiohttp.ClientSession,
    ) -> None:
        self.dispatcher = dispatcher
        self.config = config or BridgeConfig()
        self.session_factory = session_factory
        self.state = ConnectionState.DISCONNECTED
        self.connect_count = 0
        self._stop_event = asyncio.Event()
        self._connected = asyncio.Event()
        self._tasks: set[asyncio.Task[None]] = set()

    def _set_state(self, state: ConnectionState) -> None:
        if state is not self.state:
            logger.debug(f"Bridge {self.state.value} -> {state.value}")
        self.state = state
        if state is ConnectionState.CONNECTED:
            self._connected.set()
        else:
            self._connected.clear()

    async def wait_connected(self, timeout: float | None = None) -> None:
        """Block until the connection is (re)established."""
        await asyncio.wait_for(self._connected.wait(), timeout)

    async def run(self) -> None:
        """Serve until ``stop()`` is called."""
        url = self.config.url
        async with self.session_factory() as http:
            while not self._stop_event.is_set():
                self._set_state(ConnectionState.CONNECTING)
                try:
                    async with http.ws_connect(url, heartbeat=30.0) as ws:
                        self.connect_count += 1
                        self._set_state(ConnectionState.CONNECTED)
                        logger.info(f"Bridge connected to {url}")
                        await self._serve(ws)
                    logger.info("Bridge connection closed")
                except (aiohttp.ClientError, OSError) as e:
                    logger.debug(f"Bridge connection to {url} failed: {e}")
                self._set_state(ConnectionState.DISCONNECTED)

                if self._stop_event.is_set():
                    break
                try:
                    await asyncio.wait_for(
                        self._stop_event.wait(),
                        self.config.reconnect_interval,
                    )
                except asyncio.TimeoutError:
                    pass

        await self._drain()

    async def _serve(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        stop_wait = asyncio.ensure_future(self._stop_event.wait())
        try:
            while True:
                receive = asyncio.ensure_future(ws.receive())
                done, _ = await asyncio.wait(
                    {receive, stop_wait}, return_when=asyncio.FIRST_COMPLETED
                )
                if receive not in done:
                    receive.cancel()
                    await ws.close()
                    return
                message = receive.result()
                if message.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                    self._spawn(ws, message.data)
                elif message.type is aiohttp.WSMsgType.ERROR:
                    logger.warning(f"Bridge socket error: {ws.exception()}")
                    return
                else:
                    # CLOSE, CLOSING, CLOSED
                    return
        finally:
            stop_wait.cancel()

    def _spawn(self, ws: aiohttp.ClientWebSocketResponse, data: Any) -> None:
        task = asyncio.create_task(self._handle(ws, data))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _handle(self, ws: aiohttp.ClientWebSocketResponse, data: Any) -> None:
        response = await self.dispatcher.dispatch(data)
        if response is None:
            return
        if ws.closed:
            logger.warning(
                f"Dropping response for id={response['id']}: connection closed"
            )
            return
        try:
            await ws.send_json(response)
        except (aiohttp.ClientError, ConnectionError) as e:
            logger.warning(f"Could not send response for id={response['id']}: {e}")

    async def _drain(self) -> None:
        if not self._tasks:
            return
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)

    async def stop(self) -> None:
        """Ask the loop to close the socket and exit."""
        self._stop_event.set()
