"""Errors raised by the ChatGuru client and webhook decoder."""

from typing import Optional

CHAT_NOT_FOUND_MARKERS = ("Chat não encontrado", "Chat não existe", "Chat n")


class ChatGuruError(Exception):
    """Base ChatGuru error."""


class NetworkError(ChatGuruError):
    """No response was obtained from the ChatGuru API (DNS, connect or read failure)."""


class ApiError(ChatGuruError):
    """The ChatGuru API answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str, body: str = ""):
        super().__init__(f"ChatGuru API error (HTTP {status_code}): {message}")
        self.status_code = status_code
        self.message = message
        self.body = body

    @property
    def is_chat_not_found(self) -> bool:
        """True when the API rejected the call because the chat does not exist."""
        return any(marker in self.body for marker in CHAT_NOT_FOUND_MARKERS)


class SerializationError(ChatGuruError):
    """A webhook or response body could not be decoded."""


class ValidationError(ChatGuruError):
    """Locally detected bad input."""


class InternalError(ChatGuruError):
    """An invariant of the library was violated."""


def api_error_message(body: Optional[dict], fallback: str) -> str:
    """Pick the human readable message out of an API error body."""
    if body:
        for key in ("description", "message", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return fallback
