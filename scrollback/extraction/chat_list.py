"""Readers for the top-level item list and the open item's header."""

from __future__ import annotations

import logging
import re

from scrollback.common.page_element import PageElement
from scrollback.config import PageSelectors
from scrollback.data_types import ItemPreview

logger = logging.getLogger(__name__)

_MAX_NAME_LENGTH = 100


def _first_text(
    element: PageElement, selector: str, description: str
) -> str | None:
    found = element.query_css(selector, description, min_count=0)
    if not found:
        return None
    node = found[0]
    value = node.get_attribute("title") or node.text_content()
    value = value.strip()
    return value or None


def _parse_unread(value: str | None) -> int | None:
    if not value:
        return None
    match = re.search(r"\d+", value)
    return int(match.group(0)) if match else None


def read_item_previews(
    root: PageElement,
    selectors: PageSelectors | None = None,
    limit: int | None = None,
) -> list[ItemPreview]:
    """Read the visible rows of the chat list.

    Args:
        root: Snapshot of the whole page.
        selectors: Markup selectors.
        limit: Maximum number of previews to return (None = all visible).

    Returns:
        Previews in on-screen order. Rows without a name are skipped.
    """
    selectors = selectors or PageSelectors()
    previews: list[ItemPreview] = []
    for row in root.query_css(selectors.chat_list_row, "chat list rows", min_count=0):
        name = _first_text(row, selectors.chat_list_name, "chat name")
        if not name:
            continue
        unread_nodes = row.query_css(
            selectors.chat_list_unread, "unread badge", min_count=0
        )
        unread = (
            _parse_unread(
                unread_nodes[0].text_content()
                or unread_nodes[0].get_attribute("aria-label")
            )
            if unread_nodes
            else None
        )
        previews.append(
            ItemPreview(
                name=name,
                last_message=_first_text(
                    row, selectors.chat_list_last_message, "last message"
                ),
                time=_first_text(row, selectors.chat_list_time, "last time"),
                unread=unread,
            )
        )
        if limit is not None and len(previews) >= limit:
            break
    return previews


def current_item_name(
    root: PageElement, selectors: PageSelectors | None = None
) -> str | None:
    """Name of the open chat, from the first header candidate that has one.

    Returns:
        The name, or None when no chat is open.
    """
    selectors = selectors or PageSelectors()
    for selector in selectors.chat_header_names:
        found = root.query_css(selector, "chat header name", min_count=0)
        if not found:
            continue
        node = found[0]
        name = (node.get_attribute("title") or node.text_content()).strip()
        if name and len(name) < _MAX_NAME_LENGTH:
            return name
    return None


def match_item(previews: list[ItemPreview], name: str) -> ItemPreview | None:
    """First preview whose name contains ``name``, case-insensitively."""
    needle = name.lower()
    for preview in previews:
        if needle in preview.name.lower():
            return preview
    return None
