"""Polling chat client with optimistic message reconciliation."""

from chatsync.commands import Command, CommandDispatcher, CommandOutcome
from chatsync.cursor import CursorStore
from chatsync.errors import ChatSyncError, MalformedDataError, NetworkError, ServerError
from chatsync.models import Message, Page, Sender, User
from chatsync.poller import PollLoop, PollState
from chatsync.session import ChatSession, TimelineView
from chatsync.timeline import Timeline
from chatsync.transport import AccessState, TransportClient

__all__ = [
    "AccessState",
    "ChatSession",
    "ChatSyncError",
    "Command",
    "CommandDispatcher",
    "CommandOutcome",
    "CursorStore",
    "MalformedDataError",
    "Message",
    "NetworkError",
    "Page",
    "PollLoop",
    "PollState",
    "Sender",
    "ServerError",
    "Timeline",
    "TimelineView",
    "TransportClient",
    "User",
]
