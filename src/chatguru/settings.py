"""Settings for the ChatGuru client."""

from pydantic import ConfigDict
from pydantic_settings import BaseSettings

DEFAULT_API_ENDPOINT = "https://api.chatguru.app/api/v1"
DEFAULT_PHONE_ID = "62558780e2923cc4705beee1"


class ChatGuruSettings(BaseSettings):
    """ChatGuru credentials loaded from CHATGURU_* environment variables."""

    model_config = ConfigDict(env_file=".env", extra="ignore")

    chatguru_api_token: str
    chatguru_api_endpoint: str = DEFAULT_API_ENDPOINT
    chatguru_account_id: str
    chatguru_phone_id: str = DEFAULT_PHONE_ID
