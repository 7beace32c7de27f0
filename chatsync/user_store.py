"""Persists the logged-in user between runs."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from chatsync.config import settings
from chatsync.errors import MalformedDataError
from chatsync.models import User

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)


class UserStore:
    """JSON file holding ``{id, name, email}``.

    A missing or unreadable file means nobody is logged in.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or settings.user_file

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> User | None:
        if not self._path.exists():
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                msg = "stored user is not an object"
                raise MalformedDataError(msg)
            return User.from_dict(data)
        except (OSError, ValueError, MalformedDataError) as exc:
            logger.warning("Ignoring unreadable user file %s: %s", self._path, exc)
            return None

    def save(self, user: User) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(user.to_dict()), encoding="utf-8")
        logger.info("Saved user %s to %s", user.email, self._path)

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)
