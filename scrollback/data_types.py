"""Data types shared by the extractor, the scrape engine and the bridge.

These types are designed to be:

1. Immutable - Records are frozen once extracted; a session only adds
2. Serializable - Everything that crosses the RPC wire dumps to camelCase JSON
3. Validated - Options arriving from a remote caller go through pydantic
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
)
from pydantic.alias_generators import to_camel

# "14:05, 16/10/2026" and "2:05 PM, 16/10/2026"; the date part is DD/MM/YYYY.
_TIMESTAMP_RE = re.compile(
    r"(\d{1,2}):(\d{2})(?:\s*([AaPp])\.?\s*[Mm]\.?)?,?\s*"
    r"(\d{1,2})/(\d{1,2})/(\d{4})"
)


def parse_timestamp(raw: str) -> datetime | None:
    """Parse a display timestamp into a comparable datetime.

    Args:
        raw: Timestamp as shown in the item metadata, e.g. "14:05, 16/10/2026".

    Returns:
        The parsed datetime, or None when the string doesn't match the
        display format or names an impossible date.
    """
    if not raw:
        return None
    match = _TIMESTAMP_RE.search(raw)
    if match is None:
        return None
    hour_s, minute_s, meridiem, day_s, month_s, year_s = match.groups()
    hour = int(hour_s)
    if meridiem is not None:
        if hour > 12:
            return None
        hour = hour % 12 + (12 if meridiem.lower() == "p" else 0)
    try:
        return datetime(
            int(year_s), int(month_s), int(day_s), hour, int(minute_s)
        )
    except ValueError:
        return None


class Direction(str, Enum):
    """Which side of the conversation produced a record."""

    OUTGOING = "outgoing"
    INCOMING = "incoming"


class DirectionFilter(str, Enum):
    """Direction filter accepted by scrape and read operations.

    Values:
        ALL: Keep both directions.
        ME: Keep only outgoing records.
        THEM: Keep only incoming records.
    """

    ALL = "all"
    ME = "me"
    THEM = "them"

    def accepts(self, direction: Direction) -> bool:
        if self is DirectionFilter.ME:
            return direction is Direction.OUTGOING
        if self is DirectionFilter.THEM:
            return direction is Direction.INCOMING
        return True


def _coerce_filter(value: Any) -> Any:
    # The side panel historically sent "others" for incoming-only.
    if isinstance(value, str) and value.lower() == "others":
        return DirectionFilter.THEM
    if isinstance(value, str):
        return value.lower()
    return value


class Record(BaseModel):
    """One scraped list item.

    Attributes:
        id: Native item identifier; the sole deduplication key.
        text: Normalized text content.
        direction: Outgoing or incoming; never defaulted.
        timestamp: Raw display timestamp, empty when the metadata was absent.
        author: Author from the combined metadata attribute, if any.
        has_media: Whether the item carries an image or video.
    """

    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True
    )

    id: str
    text: str
    direction: Direction
    timestamp: str = ""
    author: str | None = None
    has_media: bool = False

    @computed_field(alias="isOutgoing")  # type: ignore[prop-decorator]
    @property
    def is_outgoing(self) -> bool:
        return self.direction is Direction.OUTGOING

    @property
    def parsed_timestamp(self) -> datetime | None:
        """Comparable time value; None is the "unknown" ordering key."""
        return parse_timestamp(self.timestamp)

    def to_json(self) -> dict[str, Any]:
        """Dump to the camelCase shape used in RPC results."""
        return self.model_dump(mode="json", by_alias=True)


class ScrapeOptions(BaseModel):
    """Filter and limit parameters for one scrape session.

    Accepts both snake_case and the camelCase keys remote callers send.

    Attributes:
        filter: Direction filter.
        include_text: Keep records without media.
        include_media: Keep records with media.
        min_length: Minimum text length in characters.
        scroll_limit: Maximum pagination steps.
    """

    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True
    )

    filter: DirectionFilter = DirectionFilter.ALL
    include_text: bool = True
    include_media: bool = True
    min_length: int = Field(default=0, ge=0)
    scroll_limit: int = Field(default=50, ge=0)

    @field_validator("filter", mode="before")
    @classmethod
    def _normalize_filter(cls, value: Any) -> Any:
        return _coerce_filter(value)


class ReadOptions(BaseModel):
    """Parameters for reading the currently visible records."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    filter: DirectionFilter = DirectionFilter.ALL

    @field_validator("filter", mode="before")
    @classmethod
    def _normalize_filter(cls, value: Any) -> Any:
        return _coerce_filter(value)


class ItemPreview(BaseModel):
    """One entry of the top-level item list (the chat sidebar).

    Attributes:
        name: Display name of the item.
        last_message: Preview of the latest message, if shown.
        time: Display time of the latest message, if shown.
        unread: Unread badge count, if shown.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str
    last_message: str | None = None
    time: str | None = None
    unread: int | None = None

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


@dataclass(frozen=True)
class ScrollMetrics:
    """Measurements of the message list used to detect pagination progress.

    Attributes:
        scroll_height: Scrollable extent of the list container.
        item_count: Number of item rows currently rendered.
    """

    scroll_height: int
    item_count: int

    def grew_since(self, before: ScrollMetrics) -> bool:
        """True if the extent or the rendered item count increased."""
        return (
            self.scroll_height > before.scroll_height
            or self.item_count > before.item_count
        )
