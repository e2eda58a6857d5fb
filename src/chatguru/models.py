"""Data models for ChatGuru webhooks and API responses."""

from enum import Enum
from typing import Any, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
)

# ChatGuru message type (tipo_mensagem) -> MIME type
MEDIA_TYPE_BY_MESSAGE_TYPE = {
    "image": "image/jpeg",
    "ptt": "audio/ogg",  # push-to-talk voice note
    "audio": "audio/ogg",
    "video": "video/mp4",
    "document": "application/pdf",
}


def media_type_for(message_type: str) -> str:
    """Map a ChatGuru message type to a MIME type."""
    return MEDIA_TYPE_BY_MESSAGE_TYPE.get(message_type, f"application/{message_type}")


class MediaKind(str, Enum):
    """Kinds of media attachment a chat event can reference."""

    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"

    @classmethod
    def classify(cls, value: Optional[str]) -> Optional["MediaKind"]:
        """Classify a MIME type ("audio/ogg") or a message type token ("ptt", "image")."""
        if not value:
            return None
        token = value.strip().lower()
        if token in ("ptt", "voice"):
            return cls.AUDIO
        try:
            return cls(token.split("/", 1)[0])
        except ValueError:
            return None


class MediaReference(BaseModel):
    """A classified pointer to an image, audio or video attachment."""

    model_config = ConfigDict(frozen=True)

    kind: MediaKind
    url: str
    mime_type: Optional[str] = None


class BotContext(BaseModel):
    """ChatGuru bot context."""

    model_config = ConfigDict(populate_by_name=True)

    chat_guru: Optional[bool] = Field(default=None, alias="ChatGuru")


class ChatGuruPayload(BaseModel):
    """Current ChatGuru webhook payload.

    Carries the contact and chat metadata, the custom fields configured on the
    account and, for media messages, either the legacy media_url/media_type pair
    or the newer tipo_mensagem/url_arquivo pair.
    """

    campanha_id: str = ""
    campanha_nome: str = ""
    origem: str = ""
    email: str = ""
    nome: str = ""
    tags: list[str] = Field(default_factory=list)
    texto_mensagem: str = Field(
        default="",
        validation_alias=AliasChoices("texto_mensagem", "mensagem", "message", "text"),
    )

    # Legacy media format
    media_url: Optional[str] = None
    media_type: Optional[str] = None  # "audio", "image", "video" or a MIME type

    # Current media format
    tipo_mensagem: Optional[str] = None  # "image", "ptt", "video", "document", ...
    url_arquivo: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("url_arquivo", "url_midia")
    )

    campos_personalizados: dict[str, Any] = Field(default_factory=dict)
    bot_context: Optional[BotContext] = None
    responsavel_nome: Optional[str] = None
    responsavel_email: Optional[str] = None
    link_chat: str = ""
    celular: str = ""
    phone_id: Optional[str] = None
    chat_id: Optional[str] = None
    chat_created: Optional[str] = None

    @field_validator(
        "campanha_id", "campanha_nome", "origem", "email", "nome",
        "texto_mensagem", "link_chat", "celular",
        mode="before",
    )
    @classmethod
    def coerce_text(cls, value: Any) -> Any:
        """ChatGuru sends null for empty fields and numbers for some ids."""
        if value is None:
            return ""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("tags", "campos_personalizados", mode="before")
    @classmethod
    def empty_if_null(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return [] if info.field_name == "tags" else {}
        return value

    @property
    def resolved_media_url(self) -> Optional[str]:
        """Media URL from whichever media format the payload used."""
        return self.media_url or self.url_arquivo

    @property
    def resolved_media_type(self) -> Optional[str]:
        """Media type, derived from tipo_mensagem when media_type is absent."""
        if self.media_type:
            return self.media_type
        if self.tipo_mensagem:
            return media_type_for(self.tipo_mensagem)
        return None

    def normalize_media_fields(self) -> None:
        """Fill media_url/media_type from url_arquivo/tipo_mensagem, in place."""
        if self.media_url is not None and self.media_type is not None:
            return

        if self.media_url is None and self.url_arquivo is not None:
            self.media_url = self.url_arquivo

        if self.media_type is None and self.tipo_mensagem is not None:
            self.media_type = media_type_for(self.tipo_mensagem)


class EventData(BaseModel):
    """Body of a legacy event webhook."""

    model_config = ConfigDict(extra="allow")

    lead_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    project_name: Optional[str] = None
    task_title: Optional[str] = None
    annotation: Optional[str] = None
    amount: Optional[float] = None
    status: Optional[str] = None
    custom_data: dict[str, Any] = Field(default_factory=dict)

    @property
    def extra(self) -> dict[str, Any]:
        """Keys not declared on the model."""
        return dict(self.model_extra or {})


class EventTypePayload(BaseModel):
    """Legacy webhook payload discriminated by event_type."""

    id: str
    event_type: str
    timestamp: str
    data: EventData


class GenericPayload(BaseModel):
    """Minimal payload, the fallback when no richer shape matches."""

    model_config = ConfigDict(extra="allow")

    nome: Optional[str] = None
    celular: Optional[str] = None
    email: Optional[str] = None
    mensagem: Optional[str] = None

    @property
    def extra(self) -> dict[str, Any]:
        """Keys not declared on the model."""
        return dict(self.model_extra or {})


WebhookPayload = Union[ChatGuruPayload, EventTypePayload, GenericPayload]


class ChatGuruResponse(BaseModel):
    """JSON body returned by the ChatGuru API."""

    model_config = ConfigDict(extra="allow")

    code: Optional[int] = None
    result: Optional[str] = None
    description: Optional[str] = None
