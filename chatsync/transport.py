"""TransportClient — the n8n webhook endpoints, over a shared httpx client."""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import httpx

from chatsync.config import settings
from chatsync.errors import MalformedDataError, NetworkError, ServerError
from chatsync.models import Message, Page, SubmitAck, User

if TYPE_CHECKING:
    from types import TracebackType

logger = logging.getLogger(__name__)

CHAT_PATH = "/webhook/chat"
MESSAGES_PATH = "/webhook/get-messages"
BLOCK_PATH = "/webhook/api/v1/bloqueio"
UNBLOCK_PATH = "/webhook/api/v1/desbloqueio"

# Sent on login; the chat workflow creates the user and answers with its id.
REGISTRATION_GREETING = "Olá"


class AccessState(StrEnum):
    BLOCKED = "blocked"
    UNBLOCKED = "unblocked"


_ACCESS_PATHS: dict[AccessState, str] = {
    AccessState.BLOCKED: BLOCK_PATH,
    AccessState.UNBLOCKED: UNBLOCK_PATH,
}


class TransportClient:
    """Stateless wrapper around the backend's request/response endpoints.

    ``fetch_page`` never raises: polling must not hard-fail the session.
    ``submit``, ``set_access_state`` and ``register`` raise ``NetworkError``
    or ``ServerError`` so the caller can surface the failure.

    Args:
        base_url: Backend root (default from settings).
        timeout: Per-request timeout in seconds (default from settings).
        client: Pre-built ``httpx.AsyncClient`` (tests pass one backed by
            ``httpx.MockTransport``). Created lazily otherwise.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = (base_url or settings.base_url).rstrip("/")
        self._timeout = timeout if timeout is not None else settings.request_timeout_seconds
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        """Return (and lazily create) the shared httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    def _url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> TransportClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    # -- Requests --------------------------------------------------------------

    async def _post(self, path: str, payload: Any) -> httpx.Response:
        """POST JSON and return the response. Raises NetworkError / ServerError."""
        url = self._url(path)
        try:
            resp = await self._get_client().post(url, json=payload)
        except httpx.TimeoutException as exc:
            msg = f"Request to {path} timed out"
            raise NetworkError(msg) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            msg = f"Request to {path} failed: {exc}"
            raise NetworkError(msg) from exc

        if not resp.is_success:
            raise ServerError(resp.status_code, resp.text[:200])
        return resp

    async def submit(self, user: User, text: str) -> SubmitAck:
        """Send an outgoing chat message attributed to *user*.

        The stored message is not returned; it shows up in a later fetch.
        """
        payload = {"name": user.name, "email": user.email, "message": text}
        try:
            # The chat workflow expects an array of payloads.
            resp = await self._post(CHAT_PATH, [payload])
        except (NetworkError, ServerError):
            logger.exception("Submit failed for %s (%d chars)", user.email, len(text))
            raise

        logger.info("Message submitted for %s (%d chars)", user.email, len(text))
        return SubmitAck.from_body(_json_or_none(resp))

    async def register(self, name: str, email: str) -> User:
        """Create or look up the backend user and return it with its id.

        Raises ``MalformedDataError`` if the backend does not return a user_id.
        """
        payload = {"name": name, "email": email, "message": REGISTRATION_GREETING}
        resp = await self._post(CHAT_PATH, [payload])
        ack = SubmitAck.from_body(_json_or_none(resp))
        if not ack.user_id:
            msg = "Backend did not return user_id"
            raise MalformedDataError(msg)
        logger.info("Registered %s as user %s", email, ack.user_id)
        return User(id=ack.user_id, name=name, email=email)

    async def set_access_state(self, email: str, desired: AccessState) -> None:
        """Block or unblock the automated responder for *email*."""
        await self._post(_ACCESS_PATHS[desired], {"email": email})
        logger.info("Access state for %s set to %s", email, desired.value)

    async def fetch_page(self, user_id: str, cursor: str = "") -> Page:
        """Return messages strictly after *cursor* plus the next cursor.

        Any failure yields an empty page that keeps *cursor* unchanged.
        """
        params = {"user_id": user_id}
        if cursor:
            params["after_ts"] = cursor
        empty = Page(items=[], next_cursor=cursor)

        try:
            resp = await self._get_client().get(self._url(MESSAGES_PATH), params=params)
        except httpx.TimeoutException:
            logger.warning("Polling timed out (cursor=%r)", cursor)
            return empty
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("Polling error: %s", exc)
            return empty

        if not resp.is_success:
            # Usually the n8n workflow is inactive or the path is wrong.
            logger.warning("Polling failed: status=%d", resp.status_code)
            return empty

        try:
            return _parse_page(_json_or_none(resp), cursor)
        except MalformedDataError as exc:
            logger.warning("Polling returned malformed data: %s", exc)
            return empty


def _json_or_none(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return None


def _parse_page(body: Any, cursor: str) -> Page:
    """Parse a fetch response, skipping malformed message records."""
    if not isinstance(body, dict):
        msg = "Response body is not an object"
        raise MalformedDataError(msg)
    raw_messages = body.get("messages")
    if raw_messages is None:
        raw_messages = []
    if not isinstance(raw_messages, list):
        msg = "'messages' is not a list"
        raise MalformedDataError(msg)

    items: list[Message] = []
    for raw in raw_messages:
        try:
            items.append(Message.from_wire(raw))
        except MalformedDataError as exc:
            logger.warning("Skipping malformed message: %s", exc)

    next_cursor = body.get("next_after_ts")
    if not isinstance(next_cursor, str) or not next_cursor:
        next_cursor = cursor
    return Page(items=items, next_cursor=next_cursor)
