"""PollLoop — history load followed by a recurring, cancellable fetch job."""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from chatsync.config import settings

if TYPE_CHECKING:
    from collections.abc import Callable

    from chatsync.cursor import CursorStore
    from chatsync.models import Message, Page
    from chatsync.timeline import Timeline
    from chatsync.transport import TransportClient

logger = logging.getLogger(__name__)

POLL_JOB_ID = "chatsync-poll"


class PollState(StrEnum):
    IDLE = "idle"
    POLLING = "polling"


class PollLoop:
    """Feeds ``fetch_page`` results into the timeline on a fixed period.

    ``start()`` performs the one-time history load and then schedules
    ``tick()`` every *interval* seconds. A failed history load still starts
    polling. ``stop()`` removes the job and invalidates any fetch that is
    still in flight, so a late response cannot touch the timeline.

    Args:
        transport: Client used for ``fetch_page``.
        timeline: Store that receives merged messages.
        cursor: Cursor advanced by each successful page.
        user_id: Backend id of the logged-in user.
        interval: Seconds between ticks (default from settings).
        on_messages: Called with each non-empty list of appended messages.
    """

    def __init__(
        self,
        transport: TransportClient,
        timeline: Timeline,
        cursor: CursorStore,
        user_id: str,
        interval: float | None = None,
        on_messages: Callable[[list[Message]], None] | None = None,
    ) -> None:
        self._transport = transport
        self._timeline = timeline
        self._cursor = cursor
        self._user_id = user_id
        self._interval = interval if interval is not None else settings.poll_interval_seconds
        self._on_messages = on_messages
        self._scheduler: AsyncIOScheduler | None = None
        self._state = PollState.IDLE
        # Bumped on every start/stop; a fetch applies only if it still matches.
        self._generation = 0

    @property
    def state(self) -> PollState:
        return self._state

    @property
    def interval(self) -> float:
        return self._interval

    # -- Lifecycle -------------------------------------------------------------

    async def start(self) -> None:
        """Load history, then begin polling."""
        if self._state is PollState.POLLING:
            return
        self._generation += 1
        generation = self._generation

        try:
            page = await self._transport.fetch_page(self._user_id, "")
            self._apply(page, generation)
        except Exception:
            logger.exception("Failed to load message history")

        if generation != self._generation:
            # stop() was called while the history request was in flight.
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.tick,
            trigger=IntervalTrigger(seconds=self._interval),
            id=POLL_JOB_ID,
            name="poll messages",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        self._state = PollState.POLLING
        logger.info(
            "Polling started for user %s (interval=%ss, cursor=%r)",
            self._user_id,
            self._interval,
            self._cursor.value,
        )

    async def stop(self) -> None:
        """Cancel polling. In-flight results are discarded."""
        self._generation += 1
        if self._scheduler is not None:
            if self._scheduler.running:
                self._scheduler.shutdown(wait=False)
            self._scheduler = None
        if self._state is PollState.POLLING:
            logger.info("Polling stopped for user %s", self._user_id)
        self._state = PollState.IDLE

    # -- Polling ---------------------------------------------------------------

    async def tick(self) -> list[Message]:
        """Run one fetch and merge its result. Returns the appended messages."""
        if self._state is not PollState.POLLING:
            return []
        generation = self._generation
        try:
            page = await self._transport.fetch_page(self._user_id, self._cursor.value)
        except Exception:
            # fetch_page should absorb everything; never let the job die.
            logger.exception("Polling error")
            return []
        return self._apply(page, generation)

    def _apply(self, page: Page, generation: int) -> list[Message]:
        if generation != self._generation:
            logger.debug("Discarding fetch result from a cancelled poll loop")
            return []
        self._cursor.advance(page.next_cursor)
        appended = self._timeline.merge(page.items)
        if appended and self._on_messages is not None:
            self._on_messages(appended)
        return appended
