"""Plain-text rendering of timeline entries."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from chatsync.config import settings
from chatsync.models import Sender

if TYPE_CHECKING:
    from collections.abc import Iterable

    from chatsync.models import Message

logger = logging.getLogger(__name__)

NO_TIME = "--:--"


def format_time(timestamp: int | None) -> str:
    """Local ``HH:MM`` for an epoch-millis timestamp."""
    if not timestamp:
        return NO_TIME
    try:
        return datetime.fromtimestamp(timestamp / 1000).strftime("%H:%M")
    except (OverflowError, OSError, ValueError):
        return NO_TIME


def format_entry(message: Message | None, user_name: str) -> str | None:
    """Render one entry, or None if it lacks an id, text or sender."""
    if message is None or not message.is_valid:
        logger.warning("Skipping invalid message: %r", message)
        return None

    if message.sender == Sender.SYSTEM:
        return f"  * {message.text}"

    name = settings.assistant_name if message.sender == Sender.BOT else user_name
    pending = " (enviando…)" if message.is_provisional else ""
    return f"[{format_time(message.timestamp)}] {name}: {message.text}{pending}"


def render_lines(messages: Iterable[Message], user_name: str) -> list[str]:
    lines = []
    for message in messages:
        line = format_entry(message, user_name)
        if line is not None:
            lines.append(line)
    return lines


def typing_line() -> str:
    return f"{settings.assistant_name} está digitando…"
