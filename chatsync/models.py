"""Timeline data model and backend wire parsing."""

from __future__ import annotations

import math
import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from chatsync.errors import MalformedDataError

# Locally generated ids. Confirmed ids from the backend never carry these.
PROVISIONAL_PREFIX = "temp-"
SYSTEM_PREFIX = "sys-"


def now_ms() -> int:
    """Current time as integer epoch milliseconds."""
    return int(time.time() * 1000)


class Sender(StrEnum):
    USER = "user"
    BOT = "bot"
    SYSTEM = "system"


@dataclass(frozen=True)
class Message:
    """A single timeline entry.

    Attributes:
        id: Backend-assigned id for confirmed messages, ``temp-…`` for
            provisional placeholders, ``sys-…`` for local status notices.
        text: Message body.
        sender: Who produced the message.
        timestamp: Epoch milliseconds, used for display only.
    """

    id: str
    text: str
    sender: Sender
    timestamp: int = field(default_factory=now_ms)

    @property
    def is_provisional(self) -> bool:
        return bool(self.id) and self.id.startswith(PROVISIONAL_PREFIX)

    @property
    def is_valid(self) -> bool:
        """True when id, text and sender are all present."""
        return bool(self.id) and bool(self.text) and bool(self.sender)

    @classmethod
    def provisional(cls, text: str, sender: Sender = Sender.USER) -> Message:
        """Create an optimistic placeholder awaiting backend confirmation."""
        return cls(id=f"{PROVISIONAL_PREFIX}{uuid.uuid4().hex}", text=text, sender=sender)

    @classmethod
    def system(cls, text: str) -> Message:
        """Create a locally synthesized status notice."""
        return cls(id=f"{SYSTEM_PREFIX}{uuid.uuid4().hex}", text=text, sender=Sender.SYSTEM)

    @classmethod
    def from_wire(cls, raw: Any) -> Message:
        """Build a confirmed message from a fetch-endpoint record.

        Raises ``MalformedDataError`` when ``id`` or ``content`` is missing.
        """
        if not isinstance(raw, dict):
            msg = f"Expected a message object, got {type(raw).__name__}"
            raise MalformedDataError(msg)
        try:
            wire = WireMessage.model_validate(raw)
        except ValidationError as exc:
            msg = f"Invalid message record: {exc.error_count()} error(s)"
            raise MalformedDataError(msg) from exc
        return cls(
            id=wire.id,
            text=wire.content,
            sender=Sender.USER if wire.direction == "user" else Sender.BOT,
            timestamp=parse_timestamp(wire.created_at),
        )


class WireMessage(BaseModel):
    """Raw message record as returned by ``/webhook/get-messages``."""

    model_config = ConfigDict(coerce_numbers_to_str=True, extra="ignore")

    id: str = Field(min_length=1)
    content: str = Field(min_length=1)
    direction: Any = None
    created_at: Any = None


def parse_timestamp(value: Any) -> int:
    """Parse ``created_at`` into epoch millis, falling back to now.

    Accepts ISO-8601 strings (naive values are taken as UTC) and numeric
    epoch milliseconds.
    """
    if isinstance(value, bool) or value is None:
        return now_ms()
    if isinstance(value, int | float):
        # JSON decoding lets NaN and Infinity through.
        if not math.isfinite(value):
            return now_ms()
        return int(value)
    if isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return now_ms()
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return int(parsed.timestamp() * 1000)
    return now_ms()


@dataclass(frozen=True)
class User:
    """Identity established at login."""

    id: str
    name: str
    email: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> User:
        """Raises ``MalformedDataError`` if any field is missing or empty."""
        values = {key: data.get(key) for key in ("id", "name", "email")}
        missing = [key for key, value in values.items() if not isinstance(value, str) or not value]
        if missing:
            msg = f"User record missing fields: {', '.join(missing)}"
            raise MalformedDataError(msg)
        return cls(**values)


@dataclass(frozen=True)
class Page:
    """One fetch result: newly available messages plus the cursor to echo back."""

    items: list[Message] = field(default_factory=list)
    next_cursor: str = ""


@dataclass(frozen=True)
class SubmitAck:
    """What the chat webhook returned for a submit, if anything useful."""

    reply: str | None = None
    user_id: str | None = None

    @classmethod
    def from_body(cls, body: Any) -> SubmitAck:
        """Accept either ``[{reply, user_id}]`` or ``{reply, user_id}``."""
        if isinstance(body, list):
            body = body[0] if body else {}
        if not isinstance(body, dict):
            return cls()
        reply = body.get("reply")
        user_id = body.get("user_id")
        return cls(
            reply=reply if isinstance(reply, str) else None,
            user_id=str(user_id) if user_id not in (None, "") else None,
        )
