"""
Speech synthesis proxy.

Forwards text to the remote speech endpoint and relays the resulting audio.
Remote error responses are passed through with their original status and body.
"""

import logging
from typing import NamedTuple, Optional

from voicechat.config.constants import (
    AUDIO_CONTENT_TYPE,
    ERROR_INVALID_REQUEST,
    LOGGER_NAME,
)
from voicechat.exceptions import UpstreamError
from voicechat.services.upstream import UpstreamClient

logger = logging.getLogger(LOGGER_NAME)


class SpeechReply(NamedTuple):
    """Remote reply relayed to the caller unchanged."""

    status_code: int
    body: bytes
    content_type: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class SpeechProxy(UpstreamClient):
    """Forwards text-to-speech requests to the remote speech endpoint."""

    async def synthesize(
        self,
        text: str,
        model: Optional[str] = None,
        voice: Optional[str] = None,
    ) -> SpeechReply:
        """
        Synthesize ``text`` to MP3 audio.

        Raises:
            UpstreamError: On an empty body, credential problems or when the
                remote could not be reached
        """
        model = model or self.settings.speech_model
        voice = voice or self.settings.voice

        if not text:
            raise UpstreamError(
                "Missing request body",
                status_code=400,
                category=ERROR_INVALID_REQUEST,
                code="empty_input",
            )

        logger.info(f"Processing text-to-speech request with model: {model}, voice: {voice}")
        logger.info(f"Input text length: {len(text)} chars")

        response = await self._post(
            self.settings.speech_url,
            json={
                "model": model,
                "input": text,
                "voice": voice,
                "response_format": "mp3",
            },
            headers={"Content-Type": "application/json"},
        )

        if not response.is_success:
            logger.error(f"Remote speech API error {response.status_code}: {response.text[:200]}")
            return SpeechReply(
                status_code=response.status_code,
                body=response.content,
                content_type=response.headers.get("content-type", "text/plain"),
            )

        logger.info(f"Audio response received: {len(response.content)} bytes")
        return SpeechReply(status_code=response.status_code, body=response.content, content_type=AUDIO_CONTENT_TYPE)
