"""Record extraction from message-row snapshots.

The extractor turns one ``div[data-id]`` row of a DOM snapshot into a Record.
Markup varies between message kinds (plain text, captioned media, forwarded
or quoted messages), so text is located by an ordered list of selector
strategies; the first one that yields non-empty text wins.

Extraction never raises for a single bad row: anything that can't be
classified or has no text comes back as None and the caller skips it.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence

from scrollback.common.exceptions import ScrollbackException
from scrollback.common.page_element import PageElement
from scrollback.config import PageSelectors
from scrollback.data_types import Direction, Record

logger = logging.getLogger(__name__)

TextStrategy = Callable[[PageElement], str | None]

# "[14:05, 16/10/2026] Alice: "
_PRE_PLAIN_TEXT_RE = re.compile(r"^\s*\[([^\]]+)\]\s*(?:(.*?):)?\s*$", re.DOTALL)

_MIN_CAPTION_LENGTH = 10


def normalize_whitespace(text: str) -> str:
    """Collapse whitespace the same way on every extraction pass.

    Three or more consecutive newlines become two, runs of spaces and tabs
    become one space, and the result is trimmed. Applying it twice gives the
    same string as applying it once.
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"\n{3,}", "\n\n", text)
    text = re.sub(r"[ \t]+", " ", text)
    return text.strip()


def parse_pre_plain_text(value: str | None) -> tuple[str, str | None]:
    """Split the combined metadata attribute into timestamp and author.

    Args:
        value: Contents of ``data-pre-plain-text``.

    Returns:
        (timestamp, author). Unparseable input yields ("", None).
    """
    if not value:
        return "", None
    match = _PRE_PLAIN_TEXT_RE.match(value)
    if match is None:
        return "", None
    timestamp = match.group(1).strip()
    author = (match.group(2) or "").strip() or None
    return timestamp, author


class RecordExtractor:
    """Extracts Records from message-row PageElements.

    Args:
        selectors: Markup selectors; defaults match the current host page.

    Example::

        extractor = RecordExtractor()
        root = LxmlPageElement.from_html(snapshot_html)
        records = extractor.extract_all(root)
    """

    def __init__(self, selectors: PageSelectors | None = None) -> None:
        self.selectors = selectors or PageSelectors()
        self.text_strategies: list[tuple[str, TextStrategy]] = [
            ("selectable-text", self._selectable_text),
            ("image-alt", self._image_alt_text),
            ("copyable-text", self._copyable_text),
        ]

    # ------------------------------------------------------------------
    # Text strategies
    # ------------------------------------------------------------------

    def _selectable_text(self, element: PageElement) -> str | None:
        spans = element.query_css(
            self.selectors.selectable_text,
            "selectable text",
            min_count=0,
        )
        if not spans:
            return None
        span = spans[0]
        parts = span.query_xpath(
            self.selectors.selectable_text_parts,
            "selectable text runs",
            min_count=0,
        )
        if parts:
            return "".join(part.inner_text() for part in parts)
        return span.inner_text()

    def _image_alt_text(self, element: PageElement) -> str | None:
        images = element.query_css(
            self.selectors.image_with_alt, "captioned image", min_count=0
        )
        for image in images[:1]:
            alt = image.get_attribute("alt") or ""
            if len(alt) > _MIN_CAPTION_LENGTH:
                return alt
        return None

    def _copyable_text(self, element: PageElement) -> str | None:
        containers = element.query_css(
            self.selectors.copyable_text, "copyable text", min_count=0
        )
        if not containers:
            return None
        inner = containers[0].query_xpath(
            ".//span", "copyable text span", min_count=0
        )
        if not inner:
            return None
        return inner[0].inner_text()

    def extract_text(self, element: PageElement) -> str | None:
        """Run the text strategies in order and return the first hit.

        Returns:
            Normalized text, or None when every strategy came up empty.
        """
        for name, strategy in self.text_strategies:
            raw = strategy(element)
            if not raw:
                continue
            text = normalize_whitespace(raw)
            if text:
                logger.debug(f"Text found via {name} strategy")
                return text
        return None

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def classify_direction(
        self, element: PageElement, item_id: str
    ) -> Direction | None:
        """Decide the direction from class, nested marker, or id prefix.

        Returns:
            The direction, or None if no signal matched.
        """
        out_class = self.selectors.outgoing_class
        in_class = self.selectors.incoming_class

        if (
            element.has_class(out_class)
            or element.query_css(f".{out_class}", "outgoing marker", min_count=0)
            or item_id.startswith("true_")
        ):
            return Direction.OUTGOING
        if (
            element.has_class(in_class)
            or element.query_css(f".{in_class}", "incoming marker", min_count=0)
            or item_id.startswith("false_")
        ):
            return Direction.INCOMING
        return None

    def has_media(self, element: PageElement) -> bool:
        return bool(
            element.query_css(self.selectors.media, "media", min_count=0)
        )

    def is_truncated(self, element: PageElement) -> bool:
        """True if the row still shows a "read more" affordance."""
        return bool(
            element.query_css(self.selectors.read_more, "read more", min_count=0)
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def extract(self, element: PageElement) -> Record | None:
        """Build a Record from one message row.

        Args:
            element: Snapshot of a row believed to be one message.

        Returns:
            The Record, or None if the row has no id, no determinable
            direction, or no text.
        """
        item_id = element.get_attribute("data-id")
        if not item_id:
            return None

        try:
            direction = self.classify_direction(element, item_id)
            if direction is None:
                return None

            if self.is_truncated(element):
                logger.debug(
                    f"Row {item_id} still truncated after expansion",
                    extra={"item_id": item_id},
                )

            text = self.extract_text(element)
            if text is None:
                return None

            copyable = element.query_css(
                self.selectors.copyable_text, "copyable text", min_count=0
            )
            timestamp, author = parse_pre_plain_text(
                copyable[0].get_attribute("data-pre-plain-text")
                if copyable
                else None
            )

            return Record(
                id=item_id,
                text=text,
                direction=direction,
                timestamp=timestamp,
                author=author,
                has_media=self.has_media(element),
            )
        except ScrollbackException as e:
            logger.debug(
                f"Skipping row {item_id}: {e.message}",
                extra={"item_id": item_id},
            )
            return None

    def rows(self, root: PageElement) -> Sequence[PageElement]:
        return root.query_css(
            self.selectors.message_row, "message rows", min_count=0
        )

    def extract_all(self, root: PageElement) -> list[Record]:
        """Extract every visible row of a snapshot, skipping failures.

        Returns:
            Records in document order (oldest rendered row first).
        """
        records: list[Record] = []
        for row in self.rows(root):
            record = self.extract(row)
            if record is not None:
                records.append(record)
        return records
