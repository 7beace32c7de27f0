"""Tests for ChatSession: send path, typing flag, banner and lifecycle."""

from unittest.mock import AsyncMock

import httpx
import pytest

from chatsync.errors import NetworkError, ServerError
from chatsync.models import Message, Page, Sender, SubmitAck
from chatsync.poller import PollState
from chatsync.session import (
    BLOCK_REQUEST_NOTICE,
    COMMAND_FAILURE_BANNER,
    SEND_FAILURE_BANNER,
    SEND_FAILURE_NOTICE,
    ChatSession,
)
from chatsync.transport import TransportClient


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def transport() -> AsyncMock:
    t = AsyncMock(spec=TransportClient)
    t.fetch_page.return_value = Page(items=[], next_cursor="")
    t.submit.return_value = SubmitAck()
    return t


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def session(user, transport, clock):
    s = ChatSession(
        user,
        transport=transport,
        poll_interval=60,
        optimistic_echo=False,
        reply_timeout=30,
        clock=clock,
    )
    yield s
    await s.logout()


# -- send ----------------------------------------------------------------------


async def test_send_submits_without_local_echo(session, transport, user) -> None:
    assert await session.send("olá") is True
    transport.submit.assert_awaited_once_with(user, "olá")
    assert len(session.timeline) == 0


async def test_send_blank_is_ignored(session, transport) -> None:
    assert await session.send("   ") is False
    transport.submit.assert_not_awaited()


async def test_send_block_text_reconciles_to_one_entry(session, transport) -> None:
    await session.send("Bloquear")

    provisional = session.timeline.provisional()
    assert len(session.timeline) == 1
    assert len(provisional) == 1
    assert provisional[0].text == BLOCK_REQUEST_NOTICE
    transport.submit.assert_awaited_once()

    session.timeline.merge(
        [Message(id="m9", text=BLOCK_REQUEST_NOTICE, sender=Sender.BOT)]
    )
    entries = session.timeline.entries()
    assert len(entries) == 1
    assert entries[0].id == "m9"


async def test_optimistic_echo_is_replaced_by_confirmed(user, transport, clock) -> None:
    session = ChatSession(user, transport=transport, optimistic_echo=True, clock=clock)
    await session.send("bom dia")
    assert [m.is_provisional for m in session.timeline.entries()] == [True]

    session.timeline.merge([Message(id="m1", text="bom dia", sender=Sender.USER)])
    assert [m.id for m in session.timeline.entries()] == ["m1"]


@pytest.mark.parametrize("error", [NetworkError("down"), ServerError(502)])
async def test_send_failure_appends_system_notice_and_banner(session, transport, error) -> None:
    transport.submit.side_effect = error

    assert await session.send("olá") is False

    entries = session.timeline.entries()
    assert [(m.sender, m.text) for m in entries] == [(Sender.SYSTEM, SEND_FAILURE_NOTICE)]
    assert session.error == SEND_FAILURE_BANNER
    assert not session.busy
    assert not session.bot_typing


async def test_successful_send_clears_banner(session, transport) -> None:
    transport.submit.side_effect = [NetworkError("down"), SubmitAck()]
    await session.send("um")
    assert session.error == SEND_FAILURE_BANNER
    await session.send("dois")
    assert session.error is None


async def test_send_still_works_after_failure(session, transport) -> None:
    transport.submit.side_effect = [NetworkError("down"), SubmitAck()]
    assert await session.send("um") is False
    assert await session.send("dois") is True


# -- typing indicator ----------------------------------------------------------


async def test_bot_typing_until_reply_arrives(session, transport) -> None:
    await session.start()
    assert session.bot_typing is False

    await session.send("olá")
    assert session.bot_typing is True

    transport.fetch_page.return_value = Page(
        items=[Message(id="m1", text="olá", sender=Sender.USER)], next_cursor="c1"
    )
    await session.poller.tick()
    assert session.bot_typing is True

    transport.fetch_page.return_value = Page(
        items=[Message(id="m2", text="Oi! Como posso ajudar?", sender=Sender.BOT)],
        next_cursor="c2",
    )
    await session.poller.tick()
    assert session.bot_typing is False


async def test_bot_typing_times_out(session, clock) -> None:
    await session.send("olá")
    clock.now += 29
    assert session.bot_typing is True
    clock.now += 2
    assert session.bot_typing is False


# -- commands ------------------------------------------------------------------


async def test_run_command_success(session, transport) -> None:
    outcome = await session.run_command("Bloquear")
    assert outcome.ok
    assert session.error is None
    assert [m.sender for m in session.timeline.entries()] == [Sender.SYSTEM]


async def test_run_command_failure_sets_banner(session, transport) -> None:
    session.cursor.advance("c1")
    transport.set_access_state.side_effect = ServerError(500)

    outcome = await session.run_command("bloquear")

    assert not outcome.ok
    assert session.error == COMMAND_FAILURE_BANNER
    assert session.cursor.value == "c1"
    assert not session.busy


# -- view / lifecycle ----------------------------------------------------------


async def test_view_snapshot(session) -> None:
    session.timeline.append_local(Message.system("aviso"))
    session.error = "falhou"
    view = session.view()
    assert [m.text for m in view.entries] == ["aviso"]
    assert view.error == "falhou"
    assert view.bot_typing is False
    assert view.busy is False


async def test_clear_empties_timeline_and_banner(session) -> None:
    session.timeline.append_local(Message.system("aviso"))
    session.error = "falhou"
    assert session.clear() == 1
    assert session.view().entries == ()
    assert session.error is None


async def test_start_and_logout(session, transport) -> None:
    transport.fetch_page.return_value = Page(
        items=[Message(id="h1", text="antigo", sender=Sender.BOT)], next_cursor="c1"
    )
    await session.start()
    assert session.poller.state is PollState.POLLING
    assert [m.id for m in session.timeline.entries()] == ["h1"]
    assert session.cursor.value == "c1"

    await session.logout()
    assert session.poller.state is PollState.IDLE
    assert session.cursor.value == ""
    transport.close.assert_not_awaited()


async def test_logout_closes_owned_transport(user) -> None:
    session = ChatSession(user, poll_interval=60)
    client = session.transport._get_client()
    await session.logout()
    assert client.is_closed


async def test_end_to_end_over_http(user, make_transport) -> None:
    """A send followed by a poll yields the confirmed user message and the reply."""
    polls = iter(
        [
            {"messages": [], "next_after_ts": ""},
            {
                "messages": [
                    {"id": "m1", "content": "hi", "direction": "user"},
                    {"id": "m2", "content": "Oi!", "direction": "bot"},
                ],
                "next_after_ts": "c1",
            },
        ]
    )

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/webhook/get-messages":
            return httpx.Response(200, json=next(polls))
        return httpx.Response(200, json=[{"reply": "Oi!", "user_id": user.id}])

    transport = make_transport(handler)
    session = ChatSession(user, transport=transport, poll_interval=60, optimistic_echo=True)
    async with session:
        await session.send("hi")
        await session.poller.tick()
        entries = session.timeline.entries()

    assert [(m.id, m.text, m.sender) for m in entries] == [
        ("m1", "hi", Sender.USER),
        ("m2", "Oi!", Sender.BOT),
    ]
    assert session.cursor.value == ""  # reset on logout
