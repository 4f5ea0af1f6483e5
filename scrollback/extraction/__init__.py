"""Snapshot readers: message records and the chat list."""

from scrollback.extraction.chat_list import (
    current_item_name,
    match_item,
    read_item_previews,
)
from scrollback.extraction.extractor import (
    RecordExtractor,
    normalize_whitespace,
    parse_pre_plain_text,
)

__all__ = [
    "RecordExtractor",
    "current_item_name",
    "match_item",
    "normalize_whitespace",
    "parse_pre_plain_text",
    "read_item_previews",
]
