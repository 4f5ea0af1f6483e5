"""Pagination controller.

The engine walks a virtualized message list backward through history. Each
step activates the "load older" notice, resets the list to its top edge,
waits for the client to render, and measures whether anything new appeared.
Steps that produce nothing back off exponentially; six of them in a row mean
the start of history was reached.

Reads go through snapshots handed to the RecordExtractor. Page actions that
fail cost one iteration's yield and are logged; only a missing message list
at session start ends a session with an error.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from scrollback.common.exceptions import HostPageError, NoScrollContainerError
from scrollback.config import EngineConfig
from scrollback.data_types import Record, ScrollMetrics
from scrollback.extraction.extractor import RecordExtractor
from scrollback.host.page import HostPage, ScrollDirection
from scrollback.session import Session, SessionState

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class ScrapeEngine:
    """Drives a HostPage to collect records into sessions.

    Args:
        page: The live page.
        extractor: Record extractor (default: one using the page's selectors).
        config: Timing and backoff settings.
        sleep: Awaitable delay function; tests pass a recorder.

    Example:
        engine = ScrapeEngine(host)
        session = Session.create(ScrapeOptions(scroll_limit=20))
        records = await engine.run(session)
    """

    def __init__(
        self,
        page: HostPage,
        extractor: RecordExtractor | None = None,
        config: EngineConfig | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.page = page
        self.extractor = extractor or RecordExtractor(
            getattr(page, "selectors", None)
        )
        self.config = config or EngineConfig()
        self.sleep = sleep
        # Page-driving steps of concurrent sessions interleave, never overlap.
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Page reads
    # ------------------------------------------------------------------

    async def _extract_pass(self) -> list[Record]:
        try:
            expanded = await self.page.expand_truncated()
            if expanded:
                logger.debug(f"Expanded {expanded} truncated messages")
        except HostPageError as e:
            logger.debug(f"Could not expand truncated messages: {e.reason}")

        try:
            root = await self.page.snapshot()
        except HostPageError as e:
            logger.warning(f"Snapshot failed, skipping extraction: {e.reason}")
            return []
        return self.extractor.extract_all(root)

    async def visible_records(self) -> list[Record]:
        """Extract the records currently rendered, without paginating."""
        async with self._lock:
            return await self._extract_pass()

    async def _measure(self) -> ScrollMetrics | None:
        try:
            return await self.page.scroll_metrics()
        except HostPageError as e:
            logger.warning(f"Could not measure message list: {e.reason}")
            return None

    async def has_container(self) -> bool:
        """True if a scrollable message list is present (a chat is open)."""
        return await self._measure() is not None

    async def _activate_load_more(self) -> bool:
        try:
            return await self.page.activate_load_more()
        except HostPageError as e:
            logger.debug(f"Load-more activation failed: {e.reason}")
            return False

    # ------------------------------------------------------------------
    # Pagination
    # ------------------------------------------------------------------

    async def _paginate_once(self) -> bool:
        """One step backward; True if the list grew in extent or rendered rows."""
        before = await self._measure()
        await self._activate_load_more()
        try:
            await self.page.scroll_to_top()
        except HostPageError as e:
            logger.warning(f"Scroll to top failed: {e.reason}")

        await self.sleep(self.config.settle_delay)

        # The notice often appears only once the list is at its top edge.
        await self._activate_load_more()
        after = await self._measure()

        if before is None or after is None:
            return False
        return after.grew_since(before)

    async def run(self, session: Session) -> list[Record]:
        """Run a session to completion.

        Args:
            session: An IDLE session; it is mutated in place.

        Returns:
            The session's records, sorted by timestamp ascending.

        Raises:
            NoScrollContainerError: If no scrollable message list exists.
                The session is left in the ERROR state.
        """
        options = session.options
        backoff = self.config.backoff

        if await self._measure() is None:
            error = NoScrollContainerError(self.page.container_selectors)
            session.fail(error.message)
            logger.error(
                f"Session {session.id}: {error.message}",
                extra={"session_id": session.id},
            )
            raise error

        session.start()
        logger.info(
            f"Session {session.id} started (limit {options.scroll_limit},"
            f" filter {options.filter.value})",
            extra={"session_id": session.id},
        )

        async with self._lock:
            added = session.store.merge(await self._extract_pass())
        logger.debug(f"Initial pass added {added}, total {len(session.store)}")

        reached_boundary = False
        while (
            session.state is SessionState.RUNNING
            and not session.stop_requested
            and session.scroll_count < options.scroll_limit
        ):
            session.status = (
                f"scrolling {session.scroll_count + 1}/{options.scroll_limit}..."
            )

            async with self._lock:
                progress = await self._paginate_once()
                added = session.store.merge(await self._extract_pass())

            if not progress and added == 0:
                session.no_progress_count += 1
                if session.no_progress_count >= backoff.boundary_threshold:
                    reached_boundary = True
                    logger.info(
                        f"Session {session.id}: no new content after"
                        f" {session.no_progress_count} attempts, at start of history",
                        extra={"session_id": session.id},
                    )
                    break
                delay = backoff.delay_for(session.no_progress_count)
                logger.debug(
                    f"No progress ({session.no_progress_count}), backing off {delay:.2f}s"
                )
                await self.sleep(delay)
            else:
                session.no_progress_count = 0

            session.scroll_count += 1
            if session.scroll_count % self.config.progress_log_every == 0:
                logger.info(
                    f"Progress: scroll {session.scroll_count},"
                    f" records: {len(session.store)}",
                    extra={"session_id": session.id},
                )

        async with self._lock:
            session.store.merge(await self._extract_pass())
        records = session.store.sort_by_timestamp()

        if session.stop_requested:
            status = "stopped"
        elif reached_boundary:
            status = "reached top of chat"
        else:
            status = "done"
        session.finish(records, status)
        logger.info(
            f"Session {session.id} finished ({status}): {len(records)} records"
            f" in {session.scroll_count} scrolls",
            extra={"session_id": session.id},
        )
        return records

    # ------------------------------------------------------------------
    # Manual navigation
    # ------------------------------------------------------------------

    async def page_back(self, count: int) -> tuple[int, bool]:
        """Scroll the list up by ``count`` viewports.

        When the list can't move, the "load older" notice is tried once
        before concluding the top was reached.

        Returns:
            (number of successful scrolls, whether the top was reached)
        """
        scrolled = 0
        reached_top = False
        async with self._lock:
            for _ in range(count):
                try:
                    moved = await self.page.scroll_page(ScrollDirection.UP)
                except HostPageError as e:
                    logger.warning(f"Scroll up failed: {e.reason}")
                    break
                if not moved and not await self._activate_load_more():
                    reached_top = True
                    break
                scrolled += 1
                await self.sleep(self.config.settle_delay)
        return scrolled, reached_top

    async def page_forward(self, count: int) -> int:
        """Scroll the list down by ``count`` viewports.

        Returns:
            Number of successful scrolls.
        """
        scrolled = 0
        async with self._lock:
            for _ in range(count):
                try:
                    moved = await self.page.scroll_page(ScrollDirection.DOWN)
                except HostPageError as e:
                    logger.warning(f"Scroll down failed: {e.reason}")
                    break
                if not moved:
                    break
                scrolled += 1
                await self.sleep(self.config.settle_delay)
        return scrolled
