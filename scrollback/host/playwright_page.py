"""Playwright-backed HostPage.

Drives a chat web client in a real browser. Reads go through DOM snapshots:

1. Serialize the rendered DOM with ``page.content()``
2. Parse it with LXML into a PageElement
3. Never hand live browser handles to the extractor

Actions (load-more clicks, scrolling, typing) run as small scripts or
locator calls against the live page. Browser errors are converted to
HostPageError at this boundary.
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

from playwright.async_api import (
    BrowserContext,
    Page,
    async_playwright,
)
from playwright.async_api import (
    Error as PlaywrightError,
)

from scrollback.common.exceptions import HostPageError
from scrollback.common.lxml_page_element import LxmlPageElement
from scrollback.config import PageSelectors
from scrollback.data_types import ScrollMetrics
from scrollback.host.page import ScrollDirection

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)

CONTAINER_MARKER = "data-scrollback-container"

# Locates the scrollable message list: the first candidate selector that
# matches, then its first descendant (or itself) that actually scrolls.
# The winner is tagged so later calls find it directly.
_FIND_CONTAINER_JS = """
([candidates, marker]) => {
  const scrollable = (el) => el.scrollHeight > el.clientHeight + 50;
  const marked = document.querySelector(`[${marker}]`);
  if (marked && marked.isConnected && scrollable(marked)) return marked;
  if (marked) marked.removeAttribute(marker);
  const findScrollable = (el) => {
    if (scrollable(el)) return el;
    for (const child of el.children) {
      const found = findScrollable(child);
      if (found) return found;
    }
    return null;
  };
  for (const sel of candidates) {
    const el = document.querySelector(sel);
    if (!el) continue;
    const found = findScrollable(el);
    if (found) {
      found.setAttribute(marker, "1");
      return found;
    }
  }
  return null;
}
"""

_METRICS_JS = (
    "([candidates, marker, rowSelector]) => {"
    f" const find = {_FIND_CONTAINER_JS};"
    " const container = find([candidates, marker]);"
    " if (!container) return null;"
    " return {scrollHeight: container.scrollHeight,"
    " itemCount: document.querySelectorAll(rowSelector).length};"
    "}"
)

_SCROLL_TOP_JS = (
    "([candidates, marker]) => {"
    f" const find = {_FIND_CONTAINER_JS};"
    " const container = find([candidates, marker]);"
    " if (!container) return false;"
    " container.scrollTop = 0;"
    " return true;"
    "}"
)

_SCROLL_PAGE_JS = (
    "([candidates, marker, up]) => {"
    f" const find = {_FIND_CONTAINER_JS};"
    " const container = find([candidates, marker]);"
    " if (!container) return false;"
    " const before = container.scrollTop;"
    " const delta = container.clientHeight * (up ? -1 : 1);"
    " container.scrollTop = before + delta;"
    " return container.scrollTop !== before;"
    "}"
)

_LOAD_MORE_JS = """
(texts) => {
  for (const btn of document.querySelectorAll("button")) {
    const text = (btn.innerText || "").toLowerCase();
    if (texts.some((t) => text.includes(t))) {
      btn.click();
      return true;
    }
  }
  return false;
}
"""

_CLICK_ALL_JS = """
(selector) => {
  const buttons = Array.from(document.querySelectorAll(selector));
  buttons.forEach((b) => b.click());
  return buttons.length;
}
"""


class PlaywrightHostPage:
    """HostPage implementation over a Playwright ``Page``.

    Args:
        page: The live page showing the chat client.
        selectors: Markup selectors.
        action_timeout: Timeout for locator actions, in milliseconds.

    Example:
        async with PlaywrightHostPage.open(
            url="https://web.whatsapp.com",
            user_data_dir=Path("~/.scrollback/profile").expanduser(),
        ) as host:
            root = await host.snapshot()
    """

    def __init__(
        self,
        page: Page,
        selectors: PageSelectors | None = None,
        action_timeout: float = 5000,
    ) -> None:
        self.page = page
        self.selectors = selectors or PageSelectors()
        self.action_timeout = action_timeout

    @classmethod
    @asynccontextmanager
    async def open(
        cls,
        url: str = "https://web.whatsapp.com",
        user_data_dir: Path | None = None,
        cdp_url: str | None = None,
        browser_type: str = "chromium",
        headless: bool = False,
        viewport: dict[str, int] | None = None,
        locale: str = "en-US",
        selectors: PageSelectors | None = None,
    ) -> AsyncIterator[PlaywrightHostPage]:
        """Open a browser on the chat client as an async context manager.

        Either attaches to an already running browser over CDP (reusing the
        first page whose URL starts with ``url``), or launches a persistent
        context so the login survives restarts.

        Args:
            url: Chat client URL.
            user_data_dir: Profile directory for the persistent context.
            cdp_url: CDP endpoint of a running Chromium (e.g.
                "http://127.0.0.1:9222"). Takes precedence over launching.
            browser_type: "chromium", "firefox", or "webkit" (launch only).
            headless: Run the launched browser headless (default: False, the
                chat client needs a visible login at least once).
            viewport: Viewport size (default: 1280x900).
            locale: Browser locale.
            selectors: Markup selectors.

        Yields:
            PlaywrightHostPage bound to the chat page.
        """
        if viewport is None:
            viewport = {"width": 1280, "height": 900}

        playwright = await async_playwright().start()
        try:
            if cdp_url:
                browser = await playwright.chromium.connect_over_cdp(cdp_url)
                try:
                    page = await cls._find_or_open_page(
                        browser.contexts[0]
                        if browser.contexts
                        else await browser.new_context(),
                        url,
                    )
                    yield cls(page, selectors=selectors)
                finally:
                    await browser.close()
            else:
                if user_data_dir is None:
                    user_data_dir = Path.home() / ".scrollback" / "profile"
                user_data_dir.mkdir(parents=True, exist_ok=True)
                launcher = getattr(playwright, browser_type)
                context: BrowserContext = (
                    await launcher.launch_persistent_context(
                        str(user_data_dir),
                        headless=headless,
                        viewport=viewport,
                        locale=locale,
                    )
                )
                try:
                    page = await cls._find_or_open_page(context, url)
                    yield cls(page, selectors=selectors)
                finally:
                    await context.close()
        finally:
            await playwright.stop()

    @staticmethod
    async def _find_or_open_page(context: BrowserContext, url: str) -> Page:
        for page in context.pages:
            if page.url.startswith(url):
                logger.info(f"Attached to existing page {page.url}")
                return page
        page = await context.new_page()
        await page.goto(url, wait_until="domcontentloaded")
        logger.info(f"Opened {url}")
        return page

    @property
    def container_selectors(self) -> list[str]:
        return list(self.selectors.scroll_containers)

    async def _evaluate(self, action: str, script: str, arg: Any = None) -> Any:
        try:
            return await self.page.evaluate(script, arg)
        except PlaywrightError as e:
            raise HostPageError(action, str(e)) from e

    async def snapshot(self) -> LxmlPageElement:
        try:
            content = await self.page.content()
        except PlaywrightError as e:
            raise HostPageError("snapshot", str(e)) from e
        return LxmlPageElement.from_html(content)

    async def scroll_metrics(self) -> ScrollMetrics | None:
        result = await self._evaluate(
            "scroll_metrics",
            _METRICS_JS,
            [
                self.container_selectors,
                CONTAINER_MARKER,
                self.selectors.message_row,
            ],
        )
        if result is None:
            return None
        return ScrollMetrics(
            scroll_height=int(result["scrollHeight"]),
            item_count=int(result["itemCount"]),
        )

    async def activate_load_more(self) -> bool:
        clicked = bool(
            await self._evaluate(
                "activate_load_more",
                _LOAD_MORE_JS,
                list(self.selectors.load_more_texts),
            )
        )
        if clicked:
            logger.debug("Clicked 'load older messages' notice")
        return clicked

    async def scroll_to_top(self) -> None:
        await self._evaluate(
            "scroll_to_top",
            _SCROLL_TOP_JS,
            [self.container_selectors, CONTAINER_MARKER],
        )

    async def scroll_page(self, direction: ScrollDirection) -> bool:
        return bool(
            await self._evaluate(
                "scroll_page",
                _SCROLL_PAGE_JS,
                [
                    self.container_selectors,
                    CONTAINER_MARKER,
                    direction is ScrollDirection.UP,
                ],
            )
        )

    async def expand_truncated(self) -> int:
        return int(
            await self._evaluate(
                "expand_truncated", _CLICK_ALL_JS, self.selectors.read_more
            )
        )

    async def search(self, query: str) -> None:
        box = self.page.locator(self.selectors.search_box).first
        try:
            await box.click(timeout=self.action_timeout)
            await box.fill(query, timeout=self.action_timeout)
        except PlaywrightError as e:
            raise HostPageError("search", str(e)) from e

    async def clear_search(self) -> None:
        clear = self.page.locator(self.selectors.search_clear).first
        try:
            if await clear.count() and await clear.is_visible():
                await clear.click(timeout=self.action_timeout)
                return
            box = self.page.locator(self.selectors.search_box).first
            await box.fill("", timeout=self.action_timeout)
            await box.press("Escape", timeout=self.action_timeout)
        except PlaywrightError as e:
            raise HostPageError("clear_search", str(e)) from e

    async def open_item(self, name: str) -> None:
        selector = (
            f"{self.selectors.chat_list_row} "
            f"{self.selectors.chat_list_name}[title={json.dumps(name)}]"
        )
        try:
            await self.page.locator(selector).first.click(
                timeout=self.action_timeout
            )
        except PlaywrightError as e:
            raise HostPageError("open_item", str(e)) from e
