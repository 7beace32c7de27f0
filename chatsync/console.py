"""Terminal front-end: prints the timeline and forwards typed input."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from chatsync.render import format_entry, typing_line

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from chatsync.session import ChatSession

logger = logging.getLogger(__name__)

REFRESH_INTERVAL_SECONDS = 0.5

LOGOUT_COMMANDS = {"sair", "logout"}
CLEAR_COMMANDS = {"limpar", "clear"}

HELP_TEXT = (
    "Digite sua mensagem e pressione Enter. "
    "Comandos: /bloquear, /desbloquear, /limpar, /sair"
)


async def _stdin_line() -> str | None:
    try:
        return await asyncio.to_thread(input)
    except EOFError:
        return None


class ConsoleApp:
    """Presentation collaborator for a ``ChatSession``.

    Args:
        session: The session to drive.
        read_line: Async callable returning the next input line, or None on EOF.
        write: Sink for output lines.
    """

    def __init__(
        self,
        session: ChatSession,
        read_line: Callable[[], Awaitable[str | None]] = _stdin_line,
        write: Callable[[str], None] = print,
    ) -> None:
        self._session = session
        self._read_line = read_line
        self._write = write
        self._printed: set[str] = set()
        self._last_error: str | None = None
        self._typing_shown = False
        self.logged_out = False

    async def run(self) -> None:
        """Start the session and process input until /sair or EOF."""
        await self._session.start()
        self._write(HELP_TEXT)
        self.refresh()
        refresher = asyncio.create_task(self._refresh_loop())
        try:
            while True:
                line = await self._read_line()
                if line is None or not await self.handle(line):
                    break
                self.refresh()
        finally:
            refresher.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await refresher
            await self._session.logout()

    async def handle(self, line: str) -> bool:
        """Act on one input line. Returns False when the user logs out."""
        text = line.strip()
        if not text:
            return True

        if text.startswith("/"):
            name = text[1:].strip().lower()
            if name in LOGOUT_COMMANDS:
                self.logged_out = True
                return False
            if name in CLEAR_COMMANDS:
                count = self._session.clear()
                logger.info("Cleared %d timeline entries", count)
                return True
            outcome = await self._session.run_command(name)
            if not outcome.handled:
                self._write(f"Comando desconhecido: /{name}")
            return True

        await self._session.send(text)
        return True

    def refresh(self) -> None:
        """Print entries not shown yet, plus banner and typing changes."""
        view = self._session.view()
        for message in view.entries:
            if message.id in self._printed:
                continue
            self._printed.add(message.id)
            line = format_entry(message, self._session.user.name)
            if line is not None:
                self._write(line)

        if view.error and view.error != self._last_error:
            self._write(f"! {view.error}")
        self._last_error = view.error

        if view.bot_typing and not self._typing_shown:
            self._write(typing_line())
        self._typing_shown = view.bot_typing

    async def _refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(REFRESH_INTERVAL_SECONDS)
            self.refresh()
