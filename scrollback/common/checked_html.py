"""Checked HTML element wrapper for safe XPath/CSS querying.

This module provides CheckedHtmlElement, a wrapper around lxml.html.HtmlElement
that validates selector results against expected counts. Snapshot queries
that are expected to find something use min_count=1 and fail loudly; optional
lookups pass min_count=0.
"""

from __future__ import annotations

from typing import overload

from lxml.html import HtmlElement

from scrollback.common.exceptions import (
    HTMLStructuralAssumptionException,
)


class CheckedHtmlElement:
    """Wrapper around HtmlElement with validated selectors.

    This class wraps an lxml HtmlElement and provides checked_xpath() and
    checked_css() methods that validate the number of results against expected
    min/max counts. If the actual count doesn't match expectations, it raises
    HTMLStructuralAssumptionException with clear error context.
    """

    def __init__(self, element: HtmlElement) -> None:
        """Initialize the checked element wrapper.

        Args:
            element: The lxml HtmlElement to wrap.
        """
        self._element = element

    @overload
    def checked_xpath(
        self,
        xpath: str,
        description: str,
        min_count: int = 1,
        max_count: int | None = None,
        *,
        type: type[str],
    ) -> list[str]: ...

    @overload
    def checked_xpath(
        self,
        xpath: str,
        description: str,
        min_count: int = 1,
        max_count: int | None = None,
    ) -> list[CheckedHtmlElement]: ...

    def checked_xpath(
        self,
        xpath: str,
        description: str,
        min_count: int = 1,
        max_count: int | None = None,
        *,
        type: type[str] | None = None,
    ) -> list[CheckedHtmlElement] | list[str]:
        """Execute XPath query with count validation.

        Args:
            xpath: XPath expression to execute.
            description: Human-readable description of what's being selected.
            min_count: Minimum number of elements expected (default: 1).
            max_count: Maximum number of elements expected (None = unlimited).
            type: Pass `str` to return only string results (text/attributes).
                If omitted, returns only CheckedHtmlElements.

        Returns:
            List of matching results filtered by type.

        Raises:
            HTMLStructuralAssumptionException: If count doesn't match expectations.

        Example::

            tree = CheckedHtmlElement(lxml.html.fromstring(html))
            rows = tree.checked_xpath("//div[@data-id]", "message rows")
            ids = tree.checked_xpath("//div/@data-id", "row ids", type=str)
        """
        results = self._element.xpath(xpath)

        if type is str:
            filtered: list[str] = [str(r) for r in results if isinstance(r, str)]
            actual_count = len(filtered)
            if actual_count < min_count or (
                max_count is not None and actual_count > max_count
            ):
                raise HTMLStructuralAssumptionException(
                    selector=xpath,
                    selector_type="xpath",
                    description=description,
                    expected_min=min_count,
                    expected_max=max_count,
                    actual_count=actual_count,
                    is_element_query=False,
                )
            return filtered

        wrapped: list[CheckedHtmlElement] = [
            CheckedHtmlElement(r) for r in results if isinstance(r, HtmlElement)
        ]
        actual_count = len(wrapped)
        if actual_count < min_count or (
            max_count is not None and actual_count > max_count
        ):
            raise HTMLStructuralAssumptionException(
                selector=xpath,
                selector_type="xpath",
                description=description,
                expected_min=min_count,
                expected_max=max_count,
                actual_count=actual_count,
            )
        return wrapped

    def checked_css(
        self,
        selector: str,
        description: str,
        min_count: int = 1,
        max_count: int | None = None,
    ) -> list[CheckedHtmlElement]:
        """Execute CSS selector query with count validation.

        Args:
            selector: CSS selector expression.
            description: Human-readable description of what's being selected.
            min_count: Minimum number of elements expected (default: 1).
            max_count: Maximum number of elements expected (None = unlimited).

        Returns:
            List of matching CheckedHtmlElements, each supporting nested
            checked queries.

        Raises:
            HTMLStructuralAssumptionException: If count doesn't match expectations
                or the selector cannot be compiled.
        """
        try:
            results = self._element.cssselect(selector)
        except Exception as e:
            raise HTMLStructuralAssumptionException(
                selector=selector,
                selector_type="css",
                description=description,
                expected_min=min_count,
                expected_max=max_count,
                actual_count=0,
            ) from e

        actual_count = len(results)
        if actual_count < min_count or (
            max_count is not None and actual_count > max_count
        ):
            raise HTMLStructuralAssumptionException(
                selector=selector,
                selector_type="css",
                description=description,
                expected_min=min_count,
                expected_max=max_count,
                actual_count=actual_count,
            )

        return [CheckedHtmlElement(result) for result in results]

    def __getattr__(self, name: str):
        """Delegate all other attributes to the wrapped element.

        This allows CheckedHtmlElement to be used as a drop-in replacement for
        HtmlElement, while adding the checked methods.
        """
        return getattr(self._element, name)
