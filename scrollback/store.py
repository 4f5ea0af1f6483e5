"""Deduplicating, filtering record store.

One store belongs to one session and is the only thing that ever adds to
that session's collected records.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from scrollback.data_types import Record, ScrapeOptions

_UNKNOWN = datetime.min


def passes_filter(record: Record, options: ScrapeOptions) -> bool:
    """Apply the session's filter predicate to one record.

    A record passes when it has text of at least ``min_length`` characters,
    its direction matches the direction filter, and the text/media inclusion
    flags allow its kind (``include_text`` covers records without media,
    ``include_media`` covers records with media).
    """
    if not record.text:
        return False
    if not options.filter.accepts(record.direction):
        return False
    if record.has_media and not options.include_media:
        return False
    if not record.has_media and not options.include_text:
        return False
    return len(record.text) >= options.min_length


class DedupFilterStore:
    """Collected records for one session, keyed by id, in insertion order.

    Merging is idempotent: a record whose id is already present is dropped
    silently and not counted, so merging the same batch twice yields the
    same set as merging it once.

    Args:
        options: Filter parameters applied to every candidate.
    """

    def __init__(self, options: ScrapeOptions | None = None) -> None:
        self.options = options or ScrapeOptions()
        self._records: dict[str, Record] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records

    def merge(self, candidates: Iterable[Record]) -> int:
        """Add every unseen candidate that passes the filter.

        Args:
            candidates: Freshly extracted records, possibly repeating ids.

        Returns:
            Number of records actually added.
        """
        added = 0
        for record in candidates:
            if record.id in self._records:
                continue
            if not passes_filter(record, self.options):
                continue
            self._records[record.id] = record
            added += 1
        return added

    def records(self) -> list[Record]:
        """Collected records in insertion order (a copy)."""
        return list(self._records.values())

    def sort_by_timestamp(self) -> list[Record]:
        """Stable-sort the collected records by parsed timestamp, ascending.

        Records whose timestamp can't be parsed compare equal to each other
        and are placed after all dated records, keeping their insertion
        order. The store's own order is updated to the sorted order.

        Returns:
            The sorted records.
        """
        ordered = sorted(
            self._records.values(),
            key=lambda r: (
                r.parsed_timestamp is None,
                r.parsed_timestamp or _UNKNOWN,
            ),
        )
        self._records = {record.id: record for record in ordered}
        return list(ordered)

