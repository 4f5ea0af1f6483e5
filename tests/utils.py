"""Test utilities.

Builders for chat-client markup and an in-memory HostPage that replays a
sequence of snapshots, so the engine and the bridge can be exercised
without a browser.
"""

from __future__ import annotations

import asyncio
import html
import json
import logging
import socket
from collections.abc import Sequence
from contextlib import closing
from dataclasses import dataclass
from typing import Any

from aiohttp import WSMsgType, web

from scrollback.common.exceptions import HostPageError
from scrollback.common.lxml_page_element import LxmlPageElement
from scrollback.config import BridgeConfig, PageSelectors
from scrollback.data_types import ScrollMetrics
from scrollback.host.page import ScrollDirection

logger = logging.getLogger(__name__)


# =============================================================================
# Markup builders
# =============================================================================


@dataclass
class Msg:
    """A message to render into a snapshot."""

    id: str
    text: str = ""
    outgoing: bool = True
    timestamp: str | None = None
    author: str | None = None
    media_alt: str | None = None
    truncated: bool = False


def message_row(msg: Msg) -> str:
    """Render one message row the way the chat client does."""
    direction = "message-out" if msg.outgoing else "message-in"
    meta = ""
    if msg.timestamp is not None:
        pre = f"[{msg.timestamp}] {msg.author + ': ' if msg.author else ''}"
        meta = f' data-pre-plain-text="{html.escape(pre)}"'
    media = (
        f'<img src="blob:x" alt="{html.escape(msg.media_alt)}">'
        if msg.media_alt is not None
        else ""
    )
    text = (
        f'<span data-testid="selectable-text"><span>{html.escape(msg.text)}</span></span>'
        if msg.text
        else ""
    )
    more = (
        '<div role="button" class="read-more-button">Read more</div>'
        if msg.truncated
        else ""
    )
    return (
        f'<div data-id="{msg.id}" class="row">'
        f'<div class="{direction}">'
        f'<div class="copyable-text"{meta}>{media}{text}{more}</div>'
        f"</div></div>"
    )


def chat_item(name: str, last_message: str = "", time: str = "", unread: int = 0) -> str:
    """Render one row of the sidebar chat list."""
    badge = (
        f'<span data-testid="icon-unread-count">{unread}</span>' if unread else ""
    )
    return (
        '<div role="listitem">'
        f'<span title="{html.escape(name)}">{html.escape(name)}</span>'
        f'<div data-testid="cell-frame-primary-detail">{time}</div>'
        f'<span data-testid="last-msg-status"><span title="{html.escape(last_message)}">'
        f"{html.escape(last_message)}</span></span>"
        f"{badge}</div>"
    )


def chat_page(
    messages: Sequence[Msg],
    chat_name: str | None = "Family",
    chats: Sequence[str] = (),
) -> str:
    """Render a whole page: sidebar chat list plus the open conversation."""
    header = (
        f'<header><span dir="auto" title="{html.escape(chat_name)}">'
        f"{html.escape(chat_name)}</span></header>"
        if chat_name
        else ""
    )
    rows = "".join(message_row(m) for m in messages)
    sidebar = "".join(chat_item(name) for name in chats)
    return (
        "<html><body>"
        f'<div id="side"><div id="pane-side">{sidebar}</div></div>'
        f'<div id="main">{header}'
        f'<div data-testid="conversation-panel-messages">{rows}</div>'
        "</div></body></html>"
    )


# =============================================================================
# Fakes
# =============================================================================


class RecordingSleep:
    """Awaitable sleep replacement that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


class FakeHostPage:
    """HostPage over a list of HTML frames.

    Each ``scroll_to_top`` advances to the next frame, as if the client had
    rendered older history; once the frames run out the last one repeats.
    The list height is derived from the number of rendered rows.

    Args:
        frames: HTML snapshots in the order the client would render them.
        has_container: Whether a scrollable message list exists.
        scroll_position: Viewports available above the current position for
            manual scrolling.
        failing: Action names that raise HostPageError.
    """

    def __init__(
        self,
        frames: Sequence[str],
        has_container: bool = True,
        scroll_position: int = 0,
        max_scroll: int = 0,
        failing: Sequence[str] = (),
    ) -> None:
        self.frames = list(frames)
        self.index = 0
        self.has_container = has_container
        self.scroll_position = scroll_position
        self.max_scroll = max_scroll
        self.failing = set(failing)
        self.selectors = PageSelectors()
        self.top_resets = 0
        self.load_more_clicks = 0
        self.load_more_available = 0
        self.expand_calls = 0
        self.searches: list[str] = []
        self.cleared = 0
        self.opened: list[str] = []

    def _check(self, action: str) -> None:
        if action in self.failing:
            raise HostPageError(action, "simulated failure")

    @property
    def container_selectors(self) -> list[str]:
        return list(self.selectors.scroll_containers)

    @property
    def current(self) -> str:
        return self.frames[self.index]

    async def snapshot(self) -> LxmlPageElement:
        self._check("snapshot")
        return LxmlPageElement.from_html(self.current)

    async def scroll_metrics(self) -> ScrollMetrics | None:
        self._check("scroll_metrics")
        if not self.has_container:
            return None
        root = LxmlPageElement.from_html(self.current)
        count = len(
            root.query_css(self.selectors.message_row, "rows", min_count=0)
        )
        return ScrollMetrics(scroll_height=count * 100, item_count=count)

    async def activate_load_more(self) -> bool:
        self._check("activate_load_more")
        if self.load_more_available > 0:
            self.load_more_available -= 1
            self.load_more_clicks += 1
            return True
        return False

    async def scroll_to_top(self) -> None:
        self._check("scroll_to_top")
        self.top_resets += 1
        if self.index < len(self.frames) - 1:
            self.index += 1

    async def scroll_page(self, direction: ScrollDirection) -> bool:
        self._check("scroll_page")
        if direction is ScrollDirection.UP:
            if self.scroll_position <= 0:
                return False
            self.scroll_position -= 1
            return True
        if self.scroll_position >= self.max_scroll:
            return False
        self.scroll_position += 1
        return True

    async def expand_truncated(self) -> int:
        self.expand_calls += 1
        self._check("expand_truncated")
        return 0

    async def search(self, query: str) -> None:
        self._check("search")
        self.searches.append(query)

    async def clear_search(self) -> None:
        self._check("clear_search")
        self.cleared += 1

    async def open_item(self, name: str) -> None:
        self._check("open_item")
        self.opened.append(name)


# =============================================================================
# Control process
# =============================================================================


def find_free_port() -> int:
    """Find a free port on localhost.

    Returns:
        An available port number.
    """
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(("", 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


class ControlServer:
    """Minimal control process: accepts bridge connections and sends requests.

    Runs on the test's own event loop. Responses from the bridge are queued
    in arrival order.
    """

    def __init__(self, port: int) -> None:
        self.host = "127.0.0.1"
        self.port = port
        self.connections = 0
        self.sockets: list[web.WebSocketResponse] = []
        self.responses: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._runner: web.AppRunner | None = None

    @property
    def bridge_config(self) -> BridgeConfig:
        return BridgeConfig(
            host=self.host, port=self.port, reconnect_interval=0.1
        )

    async def _handler(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        self.connections += 1
        self.sockets.append(ws)
        async for message in ws:
            if message.type is WSMsgType.TEXT:
                await self.responses.put(json.loads(message.data))
        return ws

    async def start(self) -> None:
        app = web.Application()
        app.router.add_get("/", self._handler)
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()

    async def wait_for_connection(self, count: int = 1, timeout: float = 5.0) -> None:
        async def _wait() -> None:
            while self.connections < count:
                await asyncio.sleep(0.01)

        await asyncio.wait_for(_wait(), timeout)

    async def send(self, payload: Any) -> None:
        text = payload if isinstance(payload, str) else json.dumps(payload)
        await self.sockets[-1].send_str(text)

    async def request(
        self, payload: dict[str, Any], timeout: float = 5.0
    ) -> dict[str, Any]:
        await self.send(payload)
        return await asyncio.wait_for(self.responses.get(), timeout)

    async def drop_client(self) -> None:
        await self.sockets[-1].close()

