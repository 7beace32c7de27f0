"""Privileged access commands (block/unblock the assistant)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from chatsync.errors import NetworkError, ServerError
from chatsync.models import Message
from chatsync.transport import AccessState

if TYPE_CHECKING:
    from chatsync.models import User
    from chatsync.timeline import Timeline
    from chatsync.transport import TransportClient

logger = logging.getLogger(__name__)

BLOCKED_NOTICE = "🔒 Você bloqueou a Aiko. (Ação via Painel)"
UNBLOCKED_NOTICE = "🔓 Você desbloqueou a Aiko."
FAILURE_NOTICE = "Erro ao executar comando: {command}. Tente novamente."


class Command(StrEnum):
    """Recognized commands, resolved once from raw user input."""

    BLOCK = "bloquear"
    UNBLOCK = "desbloquear"
    UNRECOGNIZED = ""

    @classmethod
    def parse(cls, raw: str) -> Command:
        normalized = raw.strip().lower()
        if not normalized:
            return cls.UNRECOGNIZED
        try:
            return cls(normalized)
        except ValueError:
            return cls.UNRECOGNIZED


_TARGET_STATE: dict[Command, AccessState] = {
    Command.BLOCK: AccessState.BLOCKED,
    Command.UNBLOCK: AccessState.UNBLOCKED,
}

_SUCCESS_NOTICE: dict[Command, str] = {
    Command.BLOCK: BLOCKED_NOTICE,
    Command.UNBLOCK: UNBLOCKED_NOTICE,
}


@dataclass(frozen=True)
class CommandOutcome:
    """Result of a dispatch.

    Attributes:
        command: The resolved command.
        ok: False only when a recognized command's backend call failed.
        notice: The system message appended, if any.
    """

    command: Command
    ok: bool
    notice: Message | None = None

    @property
    def handled(self) -> bool:
        return self.command is not Command.UNRECOGNIZED


class CommandDispatcher:
    """Routes access commands to the transport and reports back in the timeline.

    Writes to the timeline only through ``append_local``; it never touches the
    cursor or provisional entries.
    """

    def __init__(self, transport: TransportClient, timeline: Timeline, user: User) -> None:
        self._transport = transport
        self._timeline = timeline
        self._user = user

    async def dispatch(self, raw: str) -> CommandOutcome:
        command = Command.parse(raw)
        if command is Command.UNRECOGNIZED:
            logger.debug("Ignoring unrecognized command: %r", raw)
            return CommandOutcome(command=command, ok=True)

        try:
            await self._transport.set_access_state(self._user.email, _TARGET_STATE[command])
        except (NetworkError, ServerError):
            logger.exception("Command failed: %s", command.value)
            notice = Message.system(FAILURE_NOTICE.format(command=command.value))
            self._timeline.append_local(notice)
            return CommandOutcome(command=command, ok=False, notice=notice)

        notice = Message.system(_SUCCESS_NOTICE[command])
        self._timeline.append_local(notice)
        logger.info("Command executed: %s", command.value)
        return CommandOutcome(command=command, ok=True, notice=notice)
