"""Timeline — the ordered, de-duplicated message list and its reconciliation.

No send operation returns the persisted record, so the only way to learn a
send succeeded is to see it arrive through a fetch. ``merge`` replaces the
matching provisional placeholder with the confirmed record so the view never
shows both.

All mutating methods are synchronous and hold ``_lock`` for their whole
body. Nothing in here awaits, so edits coming from the poll task and from a
user action task are applied one after the other, never interleaved.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from chatsync.config import settings
from chatsync.models import Message, now_ms

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

logger = logging.getLogger(__name__)


class Timeline:
    """Ordered message store shared by the poll loop, dispatcher and view.

    Args:
        provisional_ttl_seconds: How long a provisional entry counts as
            outstanding for the one-per-(text, sender) rule.
        clock: Returns epoch millis (injectable for tests).
    """

    def __init__(
        self,
        provisional_ttl_seconds: float | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        ttl = provisional_ttl_seconds
        if ttl is None:
            ttl = settings.provisional_ttl_seconds
        self._ttl_ms = int(ttl * 1000)
        self._clock = clock
        self._entries: list[Message] = []
        self._lock = threading.Lock()

    # -- Read side -------------------------------------------------------------

    def entries(self) -> tuple[Message, ...]:
        """Snapshot of the current timeline, top to bottom."""
        with self._lock:
            return tuple(self._entries)

    def provisional(self) -> list[Message]:
        with self._lock:
            return [m for m in self._entries if m.is_provisional]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __iter__(self) -> Iterator[Message]:
        return iter(self.entries())

    # -- Mutations -------------------------------------------------------------

    def merge(self, batch: Iterable[Message]) -> list[Message]:
        """Reconcile a batch of confirmed messages into the timeline.

        Returns the messages that were actually appended. Merging the same
        batch twice appends nothing the second time.
        """
        incoming = []
        for message in batch:
            if message is None or not message.is_valid:
                logger.warning("Skipping invalid message in batch: %r", message)
                continue
            incoming.append(message)
        if not incoming:
            return []

        with self._lock:
            known_ids = {m.id for m in self._entries}
            appended: list[Message] = []
            for message in incoming:
                # Every confirmed record absorbs a placeholder, known id or not.
                self._consume_provisional(message)
                if message.id in known_ids:
                    continue
                known_ids.add(message.id)
                appended.append(message)
            self._entries.extend(appended)

        if appended:
            logger.info("Merged %d new message(s)", len(appended))
        return appended

    def append_local(self, message: Message) -> bool:
        """Append a provisional or system entry without reconciliation.

        Returns False if the message is invalid, or if it is provisional and
        an outstanding provisional entry with the same text and sender exists.
        """
        if not message.is_valid:
            logger.warning("Refusing invalid local message: %r", message)
            return False
        with self._lock:
            if message.is_provisional and self._has_outstanding(message):
                logger.debug("Provisional entry already outstanding: %r", message.text)
                return False
            self._entries.append(message)
        return True

    def clear(self) -> int:
        """Remove every entry. Returns the count of cleared entries."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        return count

    # -- Internal --------------------------------------------------------------

    def _consume_provisional(self, confirmed: Message) -> None:
        """Drop the first provisional entry matching *confirmed* by text and sender."""
        for index, existing in enumerate(self._entries):
            if (
                existing.is_provisional
                and existing.text == confirmed.text
                and existing.sender == confirmed.sender
            ):
                del self._entries[index]
                logger.debug("Provisional %s confirmed as %s", existing.id, confirmed.id)
                return

    def _has_outstanding(self, message: Message) -> bool:
        cutoff = self._clock() - self._ttl_ms
        return any(
            existing.is_provisional
            and existing.text == message.text
            and existing.sender == message.sender
            and existing.timestamp >= cutoff
            for existing in self._entries
        )
