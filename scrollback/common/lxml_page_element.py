"""LxmlPageElement implementation wrapping CheckedHtmlElement.

This module provides the implementation of the PageElement protocol used for
every DOM snapshot taken from the host page.
"""

from __future__ import annotations

from lxml import html

from scrollback.common.checked_html import CheckedHtmlElement


class LxmlPageElement:
    """Implementation of PageElement protocol wrapping CheckedHtmlElement.

    Attributes:
        _element: The underlying CheckedHtmlElement.
    """

    def __init__(self, element: CheckedHtmlElement) -> None:
        self._element = element

    @classmethod
    def from_html(cls, content: str) -> LxmlPageElement:
        """Parse a serialized DOM into a root PageElement.

        Args:
            content: Full HTML document or fragment.

        Returns:
            LxmlPageElement wrapping the document root.
        """
        return cls(CheckedHtmlElement(html.fromstring(content)))

    def query_xpath(
        self,
        selector: str,
        description: str,
        min_count: int = 1,
        max_count: int | None = None,
    ) -> list[LxmlPageElement]:
        """Query elements by XPath selector.

        Raises:
            HTMLStructuralAssumptionException: If count doesn't match expectations.
        """
        checked_elements = self._element.checked_xpath(
            selector, description, min_count, max_count
        )
        return [LxmlPageElement(elem) for elem in checked_elements]

    def query_xpath_strings(
        self,
        selector: str,
        description: str,
        min_count: int = 1,
        max_count: int | None = None,
    ) -> list[str]:
        """Query string values by XPath selector.

        Raises:
            HTMLStructuralAssumptionException: If count doesn't match expectations.
        """
        return self._element.checked_xpath(
            selector, description, min_count, max_count, type=str
        )

    def query_css(
        self,
        selector: str,
        description: str,
        min_count: int = 1,
        max_count: int | None = None,
    ) -> list[LxmlPageElement]:
        """Query elements by CSS selector.

        Raises:
            HTMLStructuralAssumptionException: If count doesn't match expectations.
        """
        checked_elements = self._element.checked_css(
            selector, description, min_count, max_count
        )
        return [LxmlPageElement(elem) for elem in checked_elements]

    def text_content(self) -> str:
        return self._element.text_content()

    def inner_text(self) -> str:
        """Text content with ``<br>`` rendered as newlines."""
        parts: list[str] = []
        for node in self._element.xpath(".//text() | .//br"):
            if isinstance(node, str):
                parts.append(node)
            else:
                parts.append("\n")
        return "".join(parts)

    def get_attribute(self, name: str) -> str | None:
        return self._element.get(name)

    def has_class(self, name: str) -> bool:
        classes = self._element.get("class") or ""
        return name in classes.split()

    def tag_name(self) -> str:
        return self._element.tag.lower()
