"""The bridge's method table.

Each handler validates its params with a pydantic model, drives the engine or
the page, and returns a JSON-ready dict. Errors propagate to the dispatcher,
which turns them into error envelopes.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from scrollback.bridge.dispatch import Handler
from scrollback.common.exceptions import ItemNotFoundError
from scrollback.config import PageSelectors
from scrollback.data_types import ReadOptions, ScrapeOptions
from scrollback.engine import ScrapeEngine
from scrollback.extraction.chat_list import (
    current_item_name,
    match_item,
    read_item_previews,
)
from scrollback.session import SessionSlot

logger = logging.getLogger(__name__)

UNKNOWN_ITEM_NAME = "unknown-chat"

# Names used by existing control processes.
METHOD_ALIASES: dict[str, str] = {
    "listChats": "listItems",
    "searchChats": "searchItems",
    "openChat": "openItem",
    "getCurrentChat": "getCurrentItem",
    "readMessages": "readRecords",
}


class ListParams(BaseModel):
    model_config = ConfigDict(extra="ignore")

    limit: int = Field(default=20, ge=1)


class SearchParams(BaseModel):
    model_config = ConfigDict(extra="ignore")

    query: str


class OpenParams(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)


class ScrollParams(BaseModel):
    model_config = ConfigDict(extra="ignore")

    count: int = Field(default=5, ge=0)


class BridgeMethods:
    """Handlers for every method the bridge answers.

    Args:
        engine: Engine bound to the live page.
        slot: Shared session slot; full scrapes run isolated in it.
        selectors: Markup selectors for the item list and header.
    """

    def __init__(
        self,
        engine: ScrapeEngine,
        slot: SessionSlot,
        selectors: PageSelectors | None = None,
    ) -> None:
        self.engine = engine
        self.slot = slot
        self.page = engine.page
        self.selectors = selectors or engine.extractor.selectors

    def table(self) -> dict[str, Handler]:
        """Method name to handler, including the legacy aliases."""
        methods: dict[str, Handler] = {
            "status": self.status,
            "listItems": self.list_items,
            "searchItems": self.search_items,
            "clearSearch": self.clear_search,
            "openItem": self.open_item,
            "getCurrentItem": self.get_current_item,
            "readRecords": self.read_records,
            "scrollUp": self.scroll_up,
            "scrollDown": self.scroll_down,
            "scrape": self.scrape,
            "stopScrape": self.stop_scrape,
            "getScrapeStatus": self.get_scrape_status,
        }
        for alias, target in METHOD_ALIASES.items():
            methods[alias] = methods[target]
        return methods

    async def _current_name(self) -> str:
        root = await self.page.snapshot()
        return current_item_name(root, self.selectors) or UNKNOWN_ITEM_NAME

    async def status(self, params: dict[str, Any]) -> dict[str, Any]:
        return {
            "connected": True,
            "contextOpen": await self.engine.has_container(),
        }

    async def list_items(self, params: dict[str, Any]) -> dict[str, Any]:
        args = ListParams.model_validate(params)
        root = await self.page.snapshot()
        previews = read_item_previews(root, self.selectors, limit=args.limit)
        return {
            "chats": [preview.to_json() for preview in previews],
            "total": len(previews),
        }

    async def search_items(self, params: dict[str, Any]) -> dict[str, Any]:
        args = SearchParams.model_validate(params)
        await self.page.search(args.query)
        return {"success": True}

    async def clear_search(self, params: dict[str, Any]) -> dict[str, Any]:
        await self.page.clear_search()
        return {"success": True}

    async def open_item(self, params: dict[str, Any]) -> dict[str, Any]:
        args = OpenParams.model_validate(params)
        root = await self.page.snapshot()
        previews = read_item_previews(root, self.selectors)
        match = match_item(previews, args.name)
        if match is None:
            raise ItemNotFoundError(args.name, [p.name for p in previews])
        await self.page.open_item(match.name)
        logger.info(f"Opened chat {match.name!r}")
        return {"success": True, "openedChat": match.name}

    async def get_current_item(self, params: dict[str, Any]) -> dict[str, Any]:
        return {"name": await self._current_name()}

    async def read_records(self, params: dict[str, Any]) -> dict[str, Any]:
        args = ReadOptions.model_validate(params)
        records = [
            record
            for record in await self.engine.visible_records()
            if args.filter.accepts(record.direction)
        ]
        return {
            "messages": [record.to_json() for record in records],
            "total": len(records),
            "chatName": await self._current_name(),
        }

    async def scroll_up(self, params: dict[str, Any]) -> dict[str, Any]:
        args = ScrollParams.model_validate(params)
        scrolled, reached_top = await self.engine.page_back(args.count)
        return {"scrolled": scrolled, "reachedTop": reached_top}

    async def scroll_down(self, params: dict[str, Any]) -> dict[str, Any]:
        args = ScrollParams.model_validate(params)
        return {"scrolled": await self.engine.page_forward(args.count)}

    async def scrape(self, params: dict[str, Any]) -> dict[str, Any]:
        options = ScrapeOptions.model_validate(params)
        records, session = await self.slot.run_isolated(options)
        return {
            "messages": [record.to_json() for record in records],
            "total": len(records),
            "scrollsPerformed": session.scroll_count,
        }

    async def stop_scrape(self, params: dict[str, Any]) -> dict[str, Any]:
        return {"success": self.slot.stop()}

    async def get_scrape_status(self, params: dict[str, Any]) -> dict[str, Any]:
        return self.slot.status()
