import json

import pytest

from chatguru.errors import InternalError, SerializationError
from chatguru.models import (
    ChatGuruPayload,
    EventTypePayload,
    GenericPayload,
    MediaKind,
    MediaReference,
)
from chatguru.webhook import (
    CanonicalChatEvent,
    WebhookShape,
    decode_webhook,
    extract_media,
    normalize,
    shape_of,
)


@pytest.fixture
def chatguru_webhook():
    return {
        "campanha_id": "64f0c1a2b3",
        "campanha_nome": "Atendimento",
        "origem": "whatsapp",
        "email": "joao@example.com",
        "nome": "João Silva",
        "tags": ["lead"],
        "texto_mensagem": "Quero um orçamento",
        "campos_personalizados": {"Empresa": "ACME"},
        "bot_context": {"ChatGuru": True},
        "link_chat": "https://s15.chatguru.app/chats#abc123",
        "celular": "5511999999999",
        "phone_id": "62558780e2923cc4705beee1",
        "chat_id": "chat_abc123",
    }


@pytest.fixture
def event_type_webhook():
    return {
        "id": "evt_001",
        "event_type": "task_created",
        "timestamp": "2024-05-01T10:00:00Z",
        "data": {
            "lead_name": "Ana Souza",
            "phone": "5511888887777",
            "email": "ana@example.com",
            "annotation": "Nova tarefa criada",
            "amount": 150.5,
            "custom_data": {"origem": "site"},
            "priority": "high",
        },
    }


@pytest.fixture
def generic_webhook():
    return {
        "nome": "Carlos",
        "celular": "5511977776666",
        "mensagem": "Olá",
        "canal": "sms",
    }


def test_decode_chatguru_webhook(chatguru_webhook):
    payload = decode_webhook(json.dumps(chatguru_webhook))
    assert isinstance(payload, ChatGuruPayload)
    assert shape_of(payload) == WebhookShape.CHATGURU
    assert payload.nome == "João Silva"
    assert payload.chat_id == "chat_abc123"


def test_decode_event_type_webhook(event_type_webhook):
    payload = decode_webhook(json.dumps(event_type_webhook))
    assert isinstance(payload, EventTypePayload)
    assert shape_of(payload) == WebhookShape.EVENT_TYPE
    assert payload.event_type == "task_created"
    assert payload.data.amount == 150.5
    assert payload.data.extra == {"priority": "high"}


def test_decode_generic_webhook(generic_webhook):
    payload = decode_webhook(json.dumps(generic_webhook))
    assert isinstance(payload, GenericPayload)
    assert shape_of(payload) == WebhookShape.GENERIC
    assert payload.extra == {"canal": "sms"}


def test_decode_accepts_bytes_and_mappings(generic_webhook):
    assert isinstance(decode_webhook(json.dumps(generic_webhook).encode()), GenericPayload)
    assert isinstance(decode_webhook(generic_webhook), GenericPayload)


@pytest.mark.parametrize("fixture_name", ["chatguru_webhook", "event_type_webhook", "generic_webhook"])
def test_decode_round_trip(request, fixture_name):
    payload = decode_webhook(request.getfixturevalue(fixture_name))
    assert decode_webhook(payload.model_dump_json(by_alias=True)) == payload


def test_chatguru_shape_wins_over_generic():
    # Matches the Generic shape too, but carries ChatGuru fields
    payload = decode_webhook(
        {"campanha_id": "1", "nome": "Bia", "celular": "5511911112222", "mensagem": "oi"}
    )
    assert isinstance(payload, ChatGuruPayload)
    assert payload.texto_mensagem == "oi"


def test_event_type_shape_wins_over_generic(event_type_webhook):
    event_type_webhook["nome"] = "Ana"
    assert isinstance(decode_webhook(event_type_webhook), EventTypePayload)


def test_malformed_event_type_falls_back_to_generic():
    payload = decode_webhook(
        {"id": "evt_1", "event_type": "x", "timestamp": "t", "data": "not-an-object", "nome": "Ana"}
    )
    assert isinstance(payload, GenericPayload)
    assert payload.extra["event_type"] == "x"


def test_decode_invalid_json():
    with pytest.raises(SerializationError, match="not valid JSON"):
        decode_webhook("{not json")


@pytest.mark.parametrize("raw", ["[1, 2]", '"text"', "42", "null"])
def test_decode_non_object(raw):
    with pytest.raises(SerializationError, match="must be a JSON object"):
        decode_webhook(raw)


@pytest.mark.parametrize("raw", [{}, {"foo": "bar"}, {"nome": None, "celular": None}])
def test_decode_matches_no_shape(raw):
    with pytest.raises(SerializationError, match="matches no known shape") as exc_info:
        decode_webhook(raw)
    message = str(exc_info.value)
    assert "chatguru" in message
    assert "event_type" in message
    assert "generic" in message


def test_normalize_chatguru(chatguru_webhook):
    event = normalize(decode_webhook(chatguru_webhook))
    assert event == CanonicalChatEvent(
        shape=WebhookShape.CHATGURU,
        chat_id="chat_abc123",
        phone_number="5511999999999",
        contact_name="João Silva",
        email="joao@example.com",
        message_text="Quero um orçamento",
        custom_fields={"Empresa": "ACME"},
    )
    assert event.display_name == "João Silva"
    assert not event.has_media


def test_normalize_event_type(event_type_webhook):
    event = normalize(decode_webhook(event_type_webhook))
    assert event.shape == WebhookShape.EVENT_TYPE
    assert event.chat_id == "evt_001"
    assert event.phone_number == "5511888887777"
    assert event.contact_name == "Ana Souza"
    assert event.message_text == "Nova tarefa criada"
    assert event.custom_fields == {}


def test_normalize_generic(generic_webhook):
    event = normalize(decode_webhook(generic_webhook))
    assert event.shape == WebhookShape.GENERIC
    assert event.chat_id == ""
    assert event.phone_number == "5511977776666"
    assert event.message_text == "Olá"
    assert event.custom_fields == {}


@pytest.mark.parametrize(
    "raw",
    [
        {"campanha_id": "1"},
        {"id": "e", "event_type": "t", "timestamp": "ts", "data": {}},
        {"email": "x@example.com"},
    ],
)
def test_normalize_defaults_missing_fields(raw):
    event = normalize(decode_webhook(raw))
    for field in ("chat_id", "phone_number", "contact_name", "email", "message_text"):
        assert isinstance(getattr(event, field), str)
    assert event.display_name in ("Contato", event.contact_name)


def test_normalize_rejects_foreign_objects():
    with pytest.raises(InternalError):
        normalize({"nome": "not decoded"})
    with pytest.raises(InternalError):
        shape_of(object())


def test_extract_media_none_without_media_fields(chatguru_webhook, event_type_webhook, generic_webhook):
    assert extract_media(decode_webhook(chatguru_webhook)) is None
    assert extract_media(decode_webhook(event_type_webhook)) is None
    assert extract_media(decode_webhook(generic_webhook)) is None


def test_extract_media_image_from_message_type(chatguru_webhook):
    chatguru_webhook.update(tipo_mensagem="image", url_arquivo="https://cdn.chatguru.app/foto.jpg")
    media = extract_media(decode_webhook(chatguru_webhook))
    assert media == MediaReference(
        kind=MediaKind.IMAGE, url="https://cdn.chatguru.app/foto.jpg", mime_type="image/jpeg"
    )


def test_extract_media_voice_note(chatguru_webhook):
    chatguru_webhook.update(tipo_mensagem="ptt", url_midia="https://cdn.chatguru.app/voz.ogg")
    media = extract_media(decode_webhook(chatguru_webhook))
    assert media.kind == MediaKind.AUDIO
    assert media.url == "https://cdn.chatguru.app/voz.ogg"
    assert media.mime_type == "audio/ogg"


def test_extract_media_legacy_fields(chatguru_webhook):
    chatguru_webhook.update(media_url="https://cdn.chatguru.app/clip.mp4", media_type="video")
    media = extract_media(decode_webhook(chatguru_webhook))
    assert media.kind == MediaKind.VIDEO
    assert media.mime_type is None


def test_extract_media_ignores_documents(chatguru_webhook):
    chatguru_webhook.update(tipo_mensagem="document", url_arquivo="https://cdn.chatguru.app/doc.pdf")
    assert extract_media(decode_webhook(chatguru_webhook)) is None


def test_extract_media_from_custom_fields(chatguru_webhook):
    chatguru_webhook["campos_personalizados"] = {
        "Empresa": "ACME",
        "image_url": "https://cdn.example.com/logo.png",
    }
    media = extract_media(decode_webhook(chatguru_webhook))
    assert media == MediaReference(kind=MediaKind.IMAGE, url="https://cdn.example.com/logo.png")


def test_extract_media_ignores_empty_values(chatguru_webhook):
    chatguru_webhook.update(tipo_mensagem="image", url_arquivo="")
    chatguru_webhook["campos_personalizados"] = {"image_url": "   ", "audio_url": 12}
    assert extract_media(decode_webhook(chatguru_webhook)) is None


def test_extract_media_event_type(event_type_webhook):
    event_type_webhook["data"]["custom_data"]["audio_url"] = "https://cdn.example.com/a.mp3"
    media = extract_media(decode_webhook(event_type_webhook))
    assert media.kind == MediaKind.AUDIO

    event_type_webhook["data"]["image_url"] = "https://cdn.example.com/i.png"
    media = extract_media(decode_webhook(event_type_webhook))
    assert media.kind == MediaKind.IMAGE


def test_extract_media_generic(generic_webhook):
    generic_webhook["video_url"] = "https://cdn.example.com/v.mp4"
    media = extract_media(decode_webhook(generic_webhook))
    assert media == MediaReference(kind=MediaKind.VIDEO, url="https://cdn.example.com/v.mp4")


def test_normalize_carries_media(generic_webhook):
    generic_webhook.update(media_url="https://cdn.example.com/i.jpg", media_type="image/jpeg")
    event = normalize(decode_webhook(generic_webhook))
    assert event.has_media
    assert event.media.kind == MediaKind.IMAGE


def test_document_attachment_is_not_media(chatguru_webhook):
    chatguru_webhook.update(tipo_mensagem="document", url_arquivo="https://cdn.chatguru.app/doc.pdf")
    payload = decode_webhook(chatguru_webhook)
    event = normalize(payload)
    assert not event.has_media
    assert payload.resolved_media_url == "https://cdn.chatguru.app/doc.pdf"
    assert payload.resolved_media_type == "application/pdf"


def test_generic_payload_with_only_extra_keys_is_not_decodable():
    payload = GenericPayload(canal="sms")
    with pytest.raises(SerializationError, match="matches no known shape"):
        decode_webhook(payload.model_dump_json())
