"""chatsync entry point."""

import asyncio
import logging

from chatsync.config import settings
from chatsync.console import ConsoleApp
from chatsync.errors import ChatSyncError
from chatsync.models import User
from chatsync.session import ChatSession
from chatsync.transport import TransportClient
from chatsync.user_store import UserStore

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)
logger = logging.getLogger(__name__)


async def _prompt(label: str) -> str:
    return (await asyncio.to_thread(input, label)).strip()


async def login(store: UserStore, transport: TransportClient) -> User | None:
    """Restore the saved user, or register a new one interactively."""
    user = store.load()
    if user is not None:
        logger.info("Restored session for %s", user.email)
        return user

    while True:
        try:
            name = await _prompt("Nome: ")
            email = await _prompt("Email: ")
        except EOFError:
            return None
        if not name or not email:
            continue
        try:
            user = await transport.register(name, email)
        except ChatSyncError:
            logger.exception("Login failed")
            print("Erro ao conectar. Tente novamente.")
            continue
        store.save(user)
        return user


async def run() -> None:
    store = UserStore()
    async with TransportClient() as transport:
        user = await login(store, transport)
        if user is None:
            return
        logger.info("Starting chatsync for %s against %s", user.email, settings.base_url)
        app = ConsoleApp(ChatSession(user, transport=transport))
        await app.run()
        if app.logged_out:
            store.clear()


def main() -> None:
    """Run the console chat client."""
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
