"""Plain-text export in the chat client's own export format.

Each record becomes one line::

    [DD/MM/YYYY, HH:MM:SS] Author: text

with newlines inside the text flattened to spaces.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from datetime import date
from pathlib import Path

from scrollback.data_types import DirectionFilter, Record, parse_timestamp

logger = logging.getLogger(__name__)


def format_timestamp(raw: str) -> str:
    """Convert a display timestamp ("HH:MM, DD/MM/YYYY") to export form.

    Unparseable values are returned unchanged.
    """
    if not raw:
        return ""
    parsed = parse_timestamp(raw)
    if parsed is None:
        return raw
    return parsed.strftime("%d/%m/%Y, %H:%M:%S")


def format_record(record: Record, include_author: bool = True) -> str:
    """One export line, or "" for a record without text."""
    text = re.sub(r"\n+", " ", record.text.strip())
    if not text:
        return ""
    stamp = f"[{format_timestamp(record.timestamp)}] " if record.timestamp else ""
    author = f"{record.author}: " if include_author and record.author else ""
    return f"{stamp}{author}{text}"


def format_records(
    records: Iterable[Record],
    direction_filter: DirectionFilter = DirectionFilter.ALL,
) -> str:
    """Join records into export text.

    The author is left out when only the user's own messages were kept.
    """
    include_author = direction_filter is not DirectionFilter.ME
    lines = (format_record(record, include_author) for record in records)
    return "\n".join(line for line in lines if line)


def default_filename(item_name: str = "chat", today: date | None = None) -> str:
    """``whatsapp-<safe-name>-<YYYY-MM-DD>.txt``."""
    today = today or date.today()
    safe = re.sub(r"[^a-zA-Z0-9\s-]", "", item_name)
    safe = re.sub(r"\s+", "-", safe)[:30].lower()
    return f"whatsapp-{safe}-{today.isoformat()}.txt"


def write_export(path: Path, text: str) -> Path:
    """Write export text to ``path``, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    logger.info(f"Wrote {len(text)} characters to {path}")
    return path
