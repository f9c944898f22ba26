"""
Environment-backed settings for the server and the client.

Values come from the process environment; a ``.env`` file in the working
directory is loaded first when it exists. The server builds a fresh
``Settings`` per request so the credential is always read at request time.
"""

import os
from pathlib import Path
from typing import Optional

import dotenv
from pydantic import BaseModel

from voicechat.config.constants import (
    CLIENT_REQUEST_TIMEOUT,
    DEFAULT_ICE_SERVER,
    DEFAULT_REALTIME_MODEL,
    DEFAULT_REALTIME_URL,
    DEFAULT_SERVER_URL,
    DEFAULT_SPEECH_MODEL,
    DEFAULT_SPEECH_URL,
    DEFAULT_VOICE,
    MAX_RETRIES,
    RETRY_DELAY,
    UPSTREAM_TIMEOUT,
)

# Load environment variables from .env file if it exists
env_path = Path(".") / ".env"
if env_path.exists():
    dotenv.load_dotenv(env_path)


class Settings(BaseModel):
    """Server-side settings."""

    openai_api_key: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    realtime_url: str = DEFAULT_REALTIME_URL
    speech_url: str = DEFAULT_SPEECH_URL
    realtime_model: str = DEFAULT_REALTIME_MODEL
    voice: str = DEFAULT_VOICE
    speech_model: str = DEFAULT_SPEECH_MODEL
    upstream_timeout: float = UPSTREAM_TIMEOUT

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8000")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            realtime_url=os.getenv("OPENAI_REALTIME_URL", DEFAULT_REALTIME_URL),
            speech_url=os.getenv("OPENAI_SPEECH_URL", DEFAULT_SPEECH_URL),
            realtime_model=os.getenv("OPENAI_REALTIME_MODEL", DEFAULT_REALTIME_MODEL),
            voice=os.getenv("OPENAI_REALTIME_VOICE", DEFAULT_VOICE),
            speech_model=os.getenv("OPENAI_SPEECH_MODEL", DEFAULT_SPEECH_MODEL),
            upstream_timeout=float(os.getenv("UPSTREAM_TIMEOUT", str(UPSTREAM_TIMEOUT))),
        )


class ClientSettings(BaseModel):
    """Settings for the Python voice client."""

    server_url: str = DEFAULT_SERVER_URL
    model: str = DEFAULT_REALTIME_MODEL
    voice: str = DEFAULT_VOICE
    device: Optional[int] = None
    request_timeout: float = CLIENT_REQUEST_TIMEOUT
    auto_reconnect: bool = True
    max_retries: int = MAX_RETRIES
    retry_delay: float = RETRY_DELAY
    ice_server: str = DEFAULT_ICE_SERVER

    @classmethod
    def from_env(cls) -> "ClientSettings":
        return cls(
            server_url=os.getenv("VOICECHAT_SERVER", DEFAULT_SERVER_URL),
            model=os.getenv("OPENAI_REALTIME_MODEL", DEFAULT_REALTIME_MODEL),
            voice=os.getenv("OPENAI_REALTIME_VOICE", DEFAULT_VOICE),
        )
