"""ChatSession — owns one user's timeline, cursor, poll loop and dispatcher."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from chatsync.commands import Command, CommandDispatcher, CommandOutcome
from chatsync.config import settings
from chatsync.cursor import CursorStore
from chatsync.errors import NetworkError, ServerError
from chatsync.models import Message, Sender
from chatsync.poller import PollLoop
from chatsync.timeline import Timeline
from chatsync.transport import TransportClient

if TYPE_CHECKING:
    from collections.abc import Callable

    from chatsync.models import User

logger = logging.getLogger(__name__)

BLOCK_REQUEST_NOTICE = "🔒 Solicitação de bloqueio enviada."
SEND_FAILURE_NOTICE = "Erro ao enviar mensagem. Tente novamente."
SEND_FAILURE_BANNER = "Falha na comunicação com o servidor."
COMMAND_FAILURE_BANNER = "Não foi possível executar o comando."


@dataclass(frozen=True)
class TimelineView:
    """Everything the presentation layer needs for one render."""

    entries: tuple[Message, ...]
    bot_typing: bool
    error: str | None
    busy: bool


class ChatSession:
    """The sync engine for one logged-in user.

    The timeline is owned here and handed only to the poll loop and the
    command dispatcher; the presentation layer reads it through ``view()``
    and acts through ``send``, ``run_command``, ``clear`` and ``logout``.

    Args:
        user: The logged-in user.
        transport: Backend client. One is created (and closed on logout) if
            omitted.
        poll_interval: Seconds between polls (default from settings).
        optimistic_echo: Echo the user's text as a provisional entry.
        reply_timeout: Seconds the typing indicator may stay on.
        clock: Monotonic seconds (injectable for tests).
    """

    def __init__(
        self,
        user: User,
        transport: TransportClient | None = None,
        poll_interval: float | None = None,
        optimistic_echo: bool | None = None,
        reply_timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.user = user
        self._owns_transport = transport is None
        self.transport = transport or TransportClient()
        self.timeline = Timeline()
        self.cursor = CursorStore()
        self.poller = PollLoop(
            transport=self.transport,
            timeline=self.timeline,
            cursor=self.cursor,
            user_id=user.id,
            interval=poll_interval,
            on_messages=self._on_messages,
        )
        self.dispatcher = CommandDispatcher(self.transport, self.timeline, user)
        self._optimistic_echo = (
            settings.optimistic_echo if optimistic_echo is None else optimistic_echo
        )
        self._reply_timeout = (
            settings.reply_timeout_seconds if reply_timeout is None else reply_timeout
        )
        self._clock = clock
        self._awaiting_reply_since: float | None = None
        self._in_flight = 0
        self.error: str | None = None

    # -- Lifecycle -------------------------------------------------------------

    async def start(self) -> None:
        await self.poller.start()

    async def logout(self) -> None:
        """End the session: stop polling and release the transport."""
        await self.poller.stop()
        self.cursor.reset()
        self._awaiting_reply_since = None
        if self._owns_transport:
            await self.transport.close()
        logger.info("Session ended for %s", self.user.email)

    async def __aenter__(self) -> ChatSession:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.logout()

    # -- Presentation ----------------------------------------------------------

    @property
    def busy(self) -> bool:
        return self._in_flight > 0

    @property
    def bot_typing(self) -> bool:
        """True between a successful send and the next bot reply (or timeout)."""
        if self._awaiting_reply_since is None:
            return False
        if self._clock() - self._awaiting_reply_since >= self._reply_timeout:
            self._awaiting_reply_since = None
            return False
        return True

    def view(self) -> TimelineView:
        return TimelineView(
            entries=self.timeline.entries(),
            bot_typing=self.bot_typing,
            error=self.error,
            busy=self.busy,
        )

    def dismiss_error(self) -> None:
        self.error = None

    def clear(self) -> int:
        """Clear the visible timeline and the error banner."""
        self.error = None
        return self.timeline.clear()

    # -- User intents ----------------------------------------------------------

    async def send(self, text: str) -> bool:
        """Submit a chat message. Returns True if the backend accepted it.

        The confirmed record (and the reply) arrive later through polling.
        """
        if not text.strip():
            return False

        # Typed command: local feedback only, the text still goes to the chat.
        if Command.parse(text) is Command.BLOCK:
            self.timeline.append_local(Message.provisional(BLOCK_REQUEST_NOTICE, Sender.BOT))
        if self._optimistic_echo:
            self.timeline.append_local(Message.provisional(text, Sender.USER))

        self._in_flight += 1
        self.error = None
        try:
            await self.transport.submit(self.user, text)
        except (NetworkError, ServerError):
            self.timeline.append_local(Message.system(SEND_FAILURE_NOTICE))
            self.error = SEND_FAILURE_BANNER
            return False
        finally:
            self._in_flight -= 1

        self._awaiting_reply_since = self._clock()
        logger.debug("Message sent, waiting for polling to fetch the reply")
        return True

    async def run_command(self, raw: str) -> CommandOutcome:
        """Execute an access command (e.g. from the admin controls)."""
        self._in_flight += 1
        try:
            outcome = await self.dispatcher.dispatch(raw)
        finally:
            self._in_flight -= 1
        if not outcome.ok:
            self.error = COMMAND_FAILURE_BANNER
        return outcome

    # -- Internal --------------------------------------------------------------

    def _on_messages(self, appended: list[Message]) -> None:
        if any(m.sender is Sender.BOT for m in appended):
            self._awaiting_reply_since = None
