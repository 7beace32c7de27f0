"""CursorStore: the single opaque position marker for incremental fetches."""

import logging

logger = logging.getLogger(__name__)


class CursorStore:
    """Holds the backend-issued ``after_ts`` token.

    Empty means "from the beginning of history". Only non-empty tokens ever
    replace the stored value, so an empty or missing ``next_after_ts`` in a
    response leaves the position where it was.
    """

    def __init__(self, initial: str = "") -> None:
        self._value = initial

    @property
    def value(self) -> str:
        return self._value

    def advance(self, next_cursor: str | None) -> bool:
        """Store *next_cursor* if it is a non-empty string. Returns True if it changed."""
        if not isinstance(next_cursor, str) or not next_cursor:
            return False
        if next_cursor == self._value:
            return False
        logger.debug("Cursor advanced: %r -> %r", self._value, next_cursor)
        self._value = next_cursor
        return True

    def reset(self) -> None:
        self._value = ""
