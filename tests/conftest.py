"""Shared test fixtures."""

from collections.abc import Callable

import httpx
import pytest

from chatsync.models import User
from chatsync.transport import TransportClient

BASE_URL = "http://backend.test"


@pytest.fixture
def user() -> User:
    return User(id="u-123", name="Maria", email="maria@example.com")


@pytest.fixture
def make_transport():
    """Build a TransportClient whose HTTP calls are answered by *handler*."""

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> TransportClient:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return TransportClient(base_url=BASE_URL, timeout=1.0, client=client)

    return _make
