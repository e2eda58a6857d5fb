"""Decoding and normalization of inbound ChatGuru webhooks.

ChatGuru posts webhooks in several shapes and none of them carries a version
or type field, so a document is matched structurally against WEBHOOK_SHAPES,
most specific shape first. The Generic shape is a subset of the others and
would swallow richer payloads if it were tried earlier.
"""

import json
import logging
from enum import Enum
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from chatguru.errors import InternalError, SerializationError
from chatguru.models import (
    ChatGuruPayload,
    EventTypePayload,
    GenericPayload,
    MediaKind,
    MediaReference,
    WebhookPayload,
    media_type_for,
)

logger = logging.getLogger(__name__)

DEFAULT_CONTACT_NAME = "Contato"


class WebhookShape(str, Enum):
    """The webhook shapes ChatGuru is known to send."""

    CHATGURU = "chatguru"
    EVENT_TYPE = "event_type"
    GENERIC = "generic"


# (shape, model, keys of which at least one must be non-null), in precedence order.
# A GenericPayload holding only extra keys is therefore not decodable.
WEBHOOK_SHAPES: tuple[tuple[WebhookShape, type[BaseModel], tuple[str, ...]], ...] = (
    (
        WebhookShape.CHATGURU,
        ChatGuruPayload,
        ("campanha_id", "campos_personalizados", "link_chat", "chat_id", "bot_context"),
    ),
    (WebhookShape.EVENT_TYPE, EventTypePayload, ()),
    (WebhookShape.GENERIC, GenericPayload, ("nome", "celular", "email", "mensagem")),
)

# URL-bearing keys recognised in custom fields and extra keys
MEDIA_URL_KEYS = (
    ("image_url", MediaKind.IMAGE),
    ("imagem_url", MediaKind.IMAGE),
    ("url_imagem", MediaKind.IMAGE),
    ("audio_url", MediaKind.AUDIO),
    ("url_audio", MediaKind.AUDIO),
    ("video_url", MediaKind.VIDEO),
    ("url_video", MediaKind.VIDEO),
)


class CanonicalChatEvent(BaseModel):
    """Shape-independent view of a webhook."""

    shape: WebhookShape
    chat_id: str = ""
    phone_number: str = ""
    contact_name: str = ""
    email: str = ""
    message_text: str = ""
    custom_fields: dict[str, Any] = Field(default_factory=dict)
    media: Optional[MediaReference] = None

    @property
    def display_name(self) -> str:
        return self.contact_name or DEFAULT_CONTACT_NAME

    @property
    def has_media(self) -> bool:
        """True when an image, audio or video attachment was found.

        Documents and other unclassified attachments do not count; check
        ChatGuruPayload.resolved_media_url on the payload for those.
        """
        return self.media is not None


def decode_webhook(raw: Union[str, bytes, Mapping[str, Any]]) -> WebhookPayload:
    """
    Decode a webhook body into the first shape it satisfies.

    Args:
        raw: JSON text, or an already parsed JSON object

    Returns:
        WebhookPayload: a ChatGuruPayload, EventTypePayload or GenericPayload

    Raises:
        SerializationError: If the body is not a JSON object or matches no shape
    """
    if isinstance(raw, (str, bytes, bytearray)):
        try:
            document = json.loads(raw)
        except ValueError as e:
            raise SerializationError(f"Webhook body is not valid JSON: {e}") from e
    else:
        document = raw

    if not isinstance(document, Mapping):
        raise SerializationError(
            f"Webhook body must be a JSON object, got {type(document).__name__}"
        )

    rejections = []
    for shape, model, required_any in WEBHOOK_SHAPES:
        if required_any and not any(document.get(key) is not None for key in required_any):
            rejections.append(f"{shape.value}: none of {', '.join(required_any)}")
            continue
        try:
            payload = model.model_validate(dict(document))
        except PydanticValidationError as e:
            rejections.append(f"{shape.value}: {e.error_count()} invalid field(s)")
            logger.debug(f"Webhook rejected as {shape.value} payload: {e}")
            continue
        logger.debug(f"Decoded webhook as {shape.value} payload")
        return payload

    raise SerializationError(f"Webhook matches no known shape ({'; '.join(rejections)})")


def shape_of(payload: WebhookPayload) -> WebhookShape:
    """Return the shape a decoded payload was matched as."""
    if isinstance(payload, ChatGuruPayload):
        return WebhookShape.CHATGURU
    if isinstance(payload, EventTypePayload):
        return WebhookShape.EVENT_TYPE
    if isinstance(payload, GenericPayload):
        return WebhookShape.GENERIC
    raise InternalError(f"Not a webhook payload: {type(payload).__name__}")


def normalize(payload: WebhookPayload) -> CanonicalChatEvent:
    """Map a decoded payload onto a CanonicalChatEvent, defaulting absent fields."""
    shape = shape_of(payload)
    media = extract_media(payload)

    if isinstance(payload, ChatGuruPayload):
        return CanonicalChatEvent(
            shape=shape,
            chat_id=payload.chat_id or "",
            phone_number=payload.celular,
            contact_name=payload.nome,
            email=payload.email,
            message_text=payload.texto_mensagem,
            custom_fields=dict(payload.campos_personalizados),
            media=media,
        )

    if isinstance(payload, EventTypePayload):
        data = payload.data
        return CanonicalChatEvent(
            shape=shape,
            chat_id=payload.id,
            phone_number=data.phone or "",
            contact_name=data.lead_name or "",
            email=data.email or "",
            message_text=data.annotation or "",
            media=media,
        )

    return CanonicalChatEvent(
        shape=shape,
        phone_number=payload.celular or "",
        contact_name=payload.nome or "",
        email=payload.email or "",
        message_text=payload.mensagem or "",
        media=media,
    )


def extract_media(payload: WebhookPayload) -> Optional[MediaReference]:
    """
    Find the first image, audio or video attachment referenced by a payload.

    Unknown keys, empty values and non-media attachments (documents) are ignored.
    """
    shape = shape_of(payload)

    if shape is WebhookShape.CHATGURU:
        return _media_from_pair(
            payload.resolved_media_url, payload.resolved_media_type
        ) or _media_from_fields(payload.campos_personalizados)

    if shape is WebhookShape.EVENT_TYPE:
        return _media_from_fields(payload.data.extra) or _media_from_fields(
            payload.data.custom_data
        )

    return _media_from_fields(payload.extra)


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _media_from_pair(url: Any, media_type: Any) -> Optional[MediaReference]:
    url = _text(url)
    media_type = _text(media_type)
    if url is None or media_type is None:
        return None

    kind = MediaKind.classify(media_type)
    if kind is None:
        return None
    return MediaReference(
        kind=kind, url=url, mime_type=media_type if "/" in media_type else None
    )


def _media_from_fields(fields: Mapping[str, Any]) -> Optional[MediaReference]:
    reference = _media_from_pair(fields.get("media_url"), fields.get("media_type"))
    if reference:
        return reference

    message_type = _text(fields.get("tipo_mensagem"))
    reference = _media_from_pair(
        fields.get("url_arquivo") or fields.get("url_midia"),
        media_type_for(message_type) if message_type else None,
    )
    if reference:
        return reference

    for key, kind in MEDIA_URL_KEYS:
        url = _text(fields.get(key))
        if url:
            return MediaReference(kind=kind, url=url)
    return None
