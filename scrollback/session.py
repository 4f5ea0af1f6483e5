"""Scrape sessions and the shared session slot.

A Session is one bounded run of the scrape engine. It owns its options, its
record store and its progress counters, and it is passed around by handle:
the engine only ever mutates the session it was given.

Interactive callers (the CLI) and the RPC bridge share a single "current
session" through SessionSlot. An RPC full scrape installs a fresh session in
the slot, runs it, and swaps the previous one back, so neither caller can
see or disturb the other's options or records.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from enum import Enum
from typing import TYPE_CHECKING, Any

from scrollback.common.exceptions import (
    SessionAlreadyRunningError,
    SessionError,
)
from scrollback.data_types import Record, ScrapeOptions
from scrollback.store import DedupFilterStore

if TYPE_CHECKING:
    from scrollback.engine import ScrapeEngine

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    """Lifecycle states of a session.

    Values:
        IDLE: Created, not started.
        RUNNING: The engine is paginating.
        STOPPING: Stop requested; honored at the next loop check.
        DONE: Finished (boundary, step limit, or stop).
        ERROR: Failed a precondition or crashed.
    """

    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"
    DONE = "done"
    ERROR = "error"


_TRANSITIONS: dict[SessionState, set[SessionState]] = {
    SessionState.IDLE: {SessionState.RUNNING, SessionState.ERROR},
    SessionState.RUNNING: {
        SessionState.STOPPING,
        SessionState.DONE,
        SessionState.ERROR,
    },
    SessionState.STOPPING: {SessionState.DONE, SessionState.ERROR},
    SessionState.DONE: set(),
    SessionState.ERROR: set(),
}


class Session:
    """One run of the scrape engine.

    Attributes:
        id: Unique id, used in log lines.
        options: Filter and limit parameters.
        store: The collected records.
        state: Current lifecycle state.
        status: Human-readable progress line.
        error: Error message when state is ERROR.
        scroll_count: Pagination steps performed.
        no_progress_count: Consecutive steps that produced nothing.
    """

    def __init__(self, options: ScrapeOptions | None = None) -> None:
        self.id = uuid.uuid4().hex[:8]
        self.options = options or ScrapeOptions()
        self.store = DedupFilterStore(self.options)
        self.state = SessionState.IDLE
        self.status = "idle"
        self.error: str | None = None
        self.scroll_count = 0
        self.no_progress_count = 0
        self._stop_requested = False
        self._result: list[Record] | None = None

    @classmethod
    def create(cls, options: ScrapeOptions | None = None) -> Session:
        return cls(options)

    def __repr__(self) -> str:
        return (
            f"Session(id={self.id!r}, state={self.state.value!r}, "
            f"records={len(self.store)})"
        )

    def _transition(self, new_state: SessionState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise SessionError(
                f"Invalid session transition {self.state.value} -> {new_state.value}",
                {"session": self.id},
            )
        logger.debug(
            f"Session {self.id}: {self.state.value} -> {new_state.value}"
        )
        self.state = new_state

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    @property
    def is_running(self) -> bool:
        return self.state in (SessionState.RUNNING, SessionState.STOPPING)

    @property
    def is_finished(self) -> bool:
        return self.state in (SessionState.DONE, SessionState.ERROR)

    def start(self) -> None:
        """Enter RUNNING. A stop requested beforehand moves on to STOPPING."""
        self._transition(SessionState.RUNNING)
        self.status = "starting..."
        if self._stop_requested:
            self._transition(SessionState.STOPPING)

    def stop(self) -> None:
        """Request a stop; the engine honors it at its next loop check."""
        self._stop_requested = True
        if self.state is SessionState.RUNNING:
            self._transition(SessionState.STOPPING)

    def finish(self, result: list[Record], status: str) -> None:
        self._result = result
        self.status = status
        self._transition(SessionState.DONE)

    def fail(self, error: str) -> None:
        self.error = error
        self.status = error
        self._transition(SessionState.ERROR)

    def result(self) -> list[Record]:
        """Sorted records of a finished session, else the records so far."""
        if self._result is not None:
            return list(self._result)
        return self.store.records()

    def dispose(self) -> None:
        """Drop collected records once the caller has consumed the result."""
        self.store = DedupFilterStore(self.options)
        self._result = None

    def progress(self) -> dict[str, Any]:
        """Status payload for pollers."""
        return {
            "records": [record.to_json() for record in self.result()],
            "status": self.status,
            "state": self.state.value,
            "done": not self.is_running,
            "scrollCount": self.scroll_count,
            "error": self.error,
        }


class SessionSlot:
    """Holder of the single "current session" shared by all callers.

    Args:
        engine: Engine used to run sessions started through this slot.

    Example:
        slot = SessionSlot(engine)
        slot.start(ScrapeOptions(scroll_limit=100))   # interactive, background
        records, session = await slot.run_isolated(ScrapeOptions(filter="me"))
    """

    def __init__(self, engine: ScrapeEngine) -> None:
        self.engine = engine
        self.current: Session | None = None
        self._task: asyncio.Task[list[Record]] | None = None
        self._isolated_lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        """True while the current session is running or about to start."""
        if self.current is None or self.current.is_finished:
            return False
        if self.current.is_running:
            return True
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Interactive operations
    # ------------------------------------------------------------------

    def start(self, options: ScrapeOptions | None = None) -> Session:
        """Start a background session and install it as current.

        Raises:
            SessionAlreadyRunningError: If the current session hasn't finished.
        """
        if self.busy:
            raise SessionAlreadyRunningError()
        session = Session.create(options)
        self.current = session
        self._task = asyncio.create_task(self._run_background(session))
        return session

    async def _run_background(self, session: Session) -> list[Record]:
        try:
            return await self.engine.run(session)
        except SessionError as e:
            logger.warning(f"Session {session.id} failed: {e.message}")
            return []

    async def wait(self) -> list[Record]:
        """Wait for the background session to finish."""
        if self._task is None:
            return []
        return await self._task

    def stop(self) -> bool:
        """Request a stop of the current session.

        Returns:
            True if there was a running session to stop.
        """
        if self.current is None or self.current.is_finished:
            return False
        self.current.stop()
        return True

    def status(self) -> dict[str, Any]:
        if self.current is None:
            return {
                "records": [],
                "status": "idle",
                "state": SessionState.IDLE.value,
                "done": True,
                "scrollCount": 0,
                "error": None,
            }
        return self.current.progress()

    def recover(self) -> dict[str, Any]:
        """Records of the current session plus whether it is still running."""
        if self.current is None:
            return {"records": [], "isRunning": False}
        return {
            "records": [r.to_json() for r in self.current.result()],
            "isRunning": self.busy,
        }

    def clear(self) -> None:
        """Dispose of a finished current session."""
        if self.current is None:
            return
        if self.busy:
            raise SessionAlreadyRunningError()
        self.current.dispose()
        self.current = None

    # ------------------------------------------------------------------
    # Isolated (RPC) runs
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def isolated(
        self, options: ScrapeOptions | None = None
    ) -> AsyncIterator[Session]:
        """Install a fresh session for the duration of the block.

        The previous current session (running or not) is kept by reference
        and put back on exit, including when the block raises. Isolated
        blocks run one at a time so each restores the session it saved.
        """
        async with self._isolated_lock:
            previous = self.current
            session = Session.create(options)
            self.current = session
            logger.debug(
                f"Installed isolated session {session.id}"
                f" (saved {previous.id if previous else 'none'})"
            )
            try:
                yield session
            finally:
                self.current = previous
                logger.debug(
                    f"Restored session {previous.id if previous else 'none'}"
                )

    async def run_isolated(
        self, options: ScrapeOptions | None = None
    ) -> tuple[list[Record], Session]:
        """Run a full scrape in a fresh session and restore the previous one.

        Returns:
            (sorted records, the finished session).
        """
        async with self.isolated(options) as session:
            records = await self.engine.run(session)
        return records, session
