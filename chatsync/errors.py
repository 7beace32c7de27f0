"""Exception taxonomy for backend communication."""


class ChatSyncError(Exception):
    """Base class for all chatsync errors."""


class NetworkError(ChatSyncError):
    """The request could not be made or timed out."""


class ServerError(ChatSyncError):
    """The backend answered with a non-success status."""

    def __init__(self, status_code: int, detail: str = "") -> None:
        self.status_code = status_code
        self.detail = detail
        msg = f"Backend returned HTTP {status_code}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class MalformedDataError(ChatSyncError):
    """A response body is missing required fields or has the wrong shape."""
