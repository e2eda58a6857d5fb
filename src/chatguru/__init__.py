"""ChatGuru client library - API client and webhook models for the ChatGuru messaging platform."""

from chatguru.client import ChatGuruClient
from chatguru.errors import (
    ApiError,
    ChatGuruError,
    InternalError,
    NetworkError,
    SerializationError,
    ValidationError,
)
from chatguru.models import (
    BotContext,
    ChatGuruPayload,
    ChatGuruResponse,
    EventData,
    EventTypePayload,
    GenericPayload,
    MediaKind,
    MediaReference,
    WebhookPayload,
)
from chatguru.settings import ChatGuruSettings
from chatguru.webhook import (
    CanonicalChatEvent,
    WebhookShape,
    decode_webhook,
    extract_media,
    normalize,
    shape_of,
)

__all__ = [
    "ChatGuruClient",
    "ChatGuruSettings",
    "ChatGuruError",
    "NetworkError",
    "ApiError",
    "SerializationError",
    "ValidationError",
    "InternalError",
    "ChatGuruPayload",
    "BotContext",
    "EventTypePayload",
    "EventData",
    "GenericPayload",
    "WebhookPayload",
    "ChatGuruResponse",
    "MediaKind",
    "MediaReference",
    "CanonicalChatEvent",
    "WebhookShape",
    "decode_webhook",
    "normalize",
    "extract_media",
    "shape_of",
]
