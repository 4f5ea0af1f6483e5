"""PageElement protocol for data extraction from DOM snapshots.

This module provides the interface the extractor and the list readers use for
querying elements, extracting text and attributes. A PageElement is always
backed by static parsed HTML (LXML); the host page is responsible for
serializing its rendered DOM before anything is read. Live actions (clicks,
scrolling) never go through a PageElement.
"""

from __future__ import annotations

from typing import Protocol


class PageElement(Protocol):
    """Protocol for extraction from a snapshot of one DOM element.

    All query methods support count validation and raise
    HTMLStructuralAssumptionException if the actual count doesn't match
    expectations.
    """

    def query_xpath(
        self,
        selector: str,
        description: str,
        min_count: int = 1,
        max_count: int | None = None,
    ) -> list[PageElement]:
        """Query elements by XPath selector.

        Args:
            selector: XPath expression to execute.
            description: Human-readable description of what's being selected.
            min_count: Minimum number of elements expected (default: 1).
            max_count: Maximum number of elements expected (None = unlimited).

        Returns:
            List of matching PageElement instances.

        Raises:
            HTMLStructuralAssumptionException: If count doesn't match expectations.
        """
        ...

    def query_xpath_strings(
        self,
        selector: str,
        description: str,
        min_count: int = 1,
        max_count: int | None = None,
    ) -> list[str]:
        """Query string values (text nodes, attributes) by XPath selector."""
        ...

    def query_css(
        self,
        selector: str,
        description: str,
        min_count: int = 1,
        max_count: int | None = None,
    ) -> list[PageElement]:
        """Query elements by CSS selector.

        Args:
            selector: CSS selector expression.
            description: Human-readable description of what's being selected.
            min_count: Minimum number of elements expected (default: 1).
            max_count: Maximum number of elements expected (None = unlimited).

        Returns:
            List of matching PageElement instances.

        Raises:
            HTMLStructuralAssumptionException: If count doesn't match expectations.
        """
        ...

    def text_content(self) -> str:
        """Extract the text content of the element and its descendants."""
        ...

    def inner_text(self) -> str:
        """Rendered-style text: like text_content, with line breaks kept."""
        ...

    def get_attribute(self, name: str) -> str | None:
        """Extract an attribute value, or None if it doesn't exist."""
        ...

    def has_class(self, name: str) -> bool:
        """Return True if the element's class list contains ``name``."""
        ...

    def tag_name(self) -> str:
        """Get the element's tag name as a lowercase string."""
        ...
