"""HTTP client for the ChatGuru API."""

import json
import logging
import re
from typing import Optional
from urllib.parse import quote, urlencode

import httpx
from pydantic import ValidationError as PydanticValidationError

from chatguru.errors import ApiError, NetworkError, SerializationError, api_error_message
from chatguru.models import ChatGuruResponse
from chatguru.settings import DEFAULT_PHONE_ID, ChatGuruSettings

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 10.0
CONNECT_TIMEOUT_SECONDS = 3.0
API_PATH = "/api/v1"
KEY_PARAM_PATTERN = re.compile(r"([?&]key=)[^&\s\"']+")


class TokenRedactingFilter(logging.Filter):
    """Masks the API key query parameter, which httpx logs as part of every request URL."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = KEY_PARAM_PATTERN.sub(r"\1***", message)
        if redacted != message:
            record.msg = redacted
            record.args = ()
        return True


_token_filter = TokenRedactingFilter()


class ChatGuruClient:
    """
    Client for adding chat annotations and sending WhatsApp messages through ChatGuru.

    One httpx.AsyncClient is shared by all calls, so a single instance can serve
    concurrent requests. Close it with `await client.close()` or use it as an
    async context manager.
    """

    def __init__(
        self,
        api_token: str,
        api_endpoint: str,
        account_id: str,
        phone_id: str = DEFAULT_PHONE_ID,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the ChatGuru client. No request is made.

        Args:
            api_token: ChatGuru API key
            api_endpoint: API base URL, e.g. https://api.chatguru.app/api/v1
            account_id: ChatGuru account id
            phone_id: Default ChatGuru phone id used when a call does not override it
            transport: Optional httpx transport, mainly for tests
        """
        self.api_token = api_token
        self.api_endpoint = api_endpoint
        self.account_id = account_id
        self.phone_id = phone_id
        self.base_url = _api_base_url(api_endpoint)

        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(REQUEST_TIMEOUT_SECONDS, connect=CONNECT_TIMEOUT_SECONDS),
            transport=transport,
        )
        logging.getLogger("httpx").addFilter(_token_filter)
        logger.info(f"ChatGuru client configured with {REQUEST_TIMEOUT_SECONDS:.0f}s timeout")

    @classmethod
    def from_settings(
        cls, settings: Optional[ChatGuruSettings] = None, **kwargs
    ) -> "ChatGuruClient":
        """
        Build a client from ChatGuruSettings.

        Args:
            settings: Optional ChatGuruSettings. If None, settings will be loaded from environment.
            **kwargs: Passed through to the constructor (e.g. transport)
        """
        if settings is None:
            settings = ChatGuruSettings()
        return cls(
            api_token=settings.chatguru_api_token,
            api_endpoint=settings.chatguru_api_endpoint,
            account_id=settings.chatguru_account_id,
            phone_id=settings.chatguru_phone_id,
            **kwargs,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ChatGuruClient":
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        await self.close()

    async def add_annotation(
        self, chat_id: str, phone_number: str, note_text: str
    ) -> Optional[ChatGuruResponse]:
        """
        Add a note to a chat, visible to the operators in ChatGuru.

        Args:
            chat_id: Chat the note belongs to (used for logging only)
            phone_number: Contact phone number with country code
            note_text: Text of the note

        Returns:
            ChatGuruResponse parsed from the response body, or None if the body is empty

        Raises:
            NetworkError: If the API could not be reached
            ApiError: If the API answered with a non-2xx status
            SerializationError: If a 2xx response body is not valid JSON
        """
        logger.info(f"Adding annotation to chat {chat_id}: {note_text}")
        response = await self._post_action(
            "note_add", self.phone_id, phone_number, note_text=note_text
        )
        logger.info(f"Annotation added successfully to chat {chat_id}")
        return response

    async def send_confirmation_message(
        self, phone_number: str, phone_id: Optional[str], message_text: str
    ) -> Optional[ChatGuruResponse]:
        """
        Send a WhatsApp message to a contact. Only works for contacts with an existing chat.

        Args:
            phone_number: Recipient phone number with country code
            phone_id: ChatGuru phone id to send from, or None for the account default
            message_text: Text of the message

        Returns:
            ChatGuruResponse parsed from the response body, or None if the body is empty

        Raises:
            NetworkError: If the API could not be reached
            ApiError: If the API answered with a non-2xx status
            SerializationError: If a 2xx response body is not valid JSON
        """
        logger.info(f"Sending confirmation message to {phone_number}: {message_text}")
        response = await self._post_action(
            "message_send", phone_id or self.phone_id, phone_number, text=message_text
        )
        logger.info(f"Confirmation message sent successfully to {phone_number}")
        return response

    def build_url(self, action: str, phone_id: str, phone_number: str, **fields: str) -> str:
        """Build the request URL; all parameters travel in the query string."""
        params = {
            "key": self.api_token,
            "account_id": self.account_id,
            "phone_id": phone_id,
            "action": action,
            **fields,
            "chat_number": _digits(phone_number),
        }
        return f"{self.base_url}?{urlencode(params, quote_via=quote)}"

    async def _post_action(
        self, action: str, phone_id: str, phone_number: str, **fields: str
    ) -> Optional[ChatGuruResponse]:
        url = self.build_url(action, phone_id, phone_number, **fields)

        try:
            response = await self._client.post(url)
        except httpx.DecodingError as e:
            logger.error(f"Undecodable ChatGuru {action} response: {e!r}")
            raise SerializationError(f"Invalid ChatGuru {action} response: {e!r}") from e
        except httpx.RequestError as e:
            logger.error(f"HTTP error during ChatGuru {action}: {e!r}")
            raise NetworkError(f"ChatGuru {action} failed: {e!r}") from e

        body = response.text
        if not response.is_success:
            message = api_error_message(_json_or_none(body), body or response.reason_phrase)
            error = ApiError(response.status_code, message, body)
            if error.is_chat_not_found:
                logger.warning(
                    f"Chat not found for {action} (phone: {phone_number}). "
                    "This is normal for contacts without an active chat."
                )
            else:
                logger.error(f"ChatGuru {action} failed. Status: {response.status_code}, Response: {body}")
            raise error

        if not body.strip():
            return None
        try:
            return ChatGuruResponse.model_validate_json(body)
        except PydanticValidationError as e:
            logger.error(f"Unexpected ChatGuru {action} response body: {body}")
            raise SerializationError(f"Invalid ChatGuru {action} response: {e}") from e


def _api_base_url(api_endpoint: str) -> str:
    if api_endpoint.endswith(API_PATH):
        return api_endpoint
    return f"{api_endpoint.rstrip('/')}{API_PATH}"


def _digits(phone_number: str) -> str:
    return re.sub(r"\D", "", phone_number)


def _json_or_none(body: str) -> Optional[dict]:
    try:
        parsed = json.loads(body)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None
