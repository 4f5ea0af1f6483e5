"""HostPage protocol: what the core needs from the live page.

The core reads the page only through snapshots (static lxml PageElements)
and changes it only through the click/scroll/type affordances below. It
never navigates or reloads.
"""

from __future__ import annotations

from enum import Enum
from typing import Protocol

from scrollback.common.page_element import PageElement
from scrollback.data_types import ScrollMetrics


class ScrollDirection(str, Enum):
    UP = "up"
    DOWN = "down"


class HostPage(Protocol):
    """Protocol for the page the scraper operates on.

    Implementations raise HostPageError for action failures; the engine
    treats those as a lost iteration, not a failed session.
    """

    @property
    def container_selectors(self) -> list[str]:
        """Candidate selectors tried when locating the message list."""
        ...

    async def snapshot(self) -> PageElement:
        """Serialize the rendered DOM and parse it into a PageElement."""
        ...

    async def scroll_metrics(self) -> ScrollMetrics | None:
        """Measure the message list.

        Returns:
            Current metrics, or None if no scrollable message list exists.
        """
        ...

    async def activate_load_more(self) -> bool:
        """Click the "load older messages" affordance if it is shown.

        Returns:
            True if an affordance was found and activated.
        """
        ...

    async def scroll_to_top(self) -> None:
        """Reset the list's scroll position to the history-ward edge."""
        ...

    async def scroll_page(self, direction: ScrollDirection) -> bool:
        """Scroll the list by one viewport.

        Returns:
            True if the scroll position changed.
        """
        ...

    async def expand_truncated(self) -> int:
        """Activate every visible "read more" affordance.

        Returns:
            Number of affordances activated.
        """
        ...

    async def search(self, query: str) -> None:
        """Type a query into the item list's search box."""
        ...

    async def clear_search(self) -> None:
        """Clear the search box and restore the full item list."""
        ...

    async def open_item(self, name: str) -> None:
        """Click the item-list row whose display name is exactly ``name``."""
        ...
