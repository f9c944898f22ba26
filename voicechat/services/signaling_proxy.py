"""
Signaling proxy between the client and the remote realtime endpoint.

The client posts its session-description offer here; the proxy attaches the
credential, forwards the body unmodified and returns the remote's answer
verbatim. Remote failures are normalized into an error envelope with the
remote's status code, so the client can branch on the error category. The
proxy never retries; that is the caller's decision.
"""

import json
import logging
from typing import NamedTuple, Optional

import httpx

from voicechat.config.constants import (
    ERROR_API,
    ERROR_AUTHENTICATION,
    ERROR_INVALID_REQUEST,
    ERROR_MODEL,
    LOGGER_NAME,
    SDP_CONTENT_TYPE,
)
from voicechat.exceptions import SignalingError
from voicechat.services.upstream import UpstreamClient

logger = logging.getLogger(LOGGER_NAME)


class ProxiedAnswer(NamedTuple):
    """Remote answer body and the content type it arrived with."""

    body: bytes
    content_type: str


def normalize_remote_error(response: httpx.Response) -> SignalingError:
    """
    Convert a non-success remote response into a ``SignalingError``.

    401 and 404 get fixed categories; anything else keeps the remote's own
    error type and code when it sent a JSON error object, else ``api_error``.
    """
    status = response.status_code

    if status == 401:
        logger.error(
            "Authentication error with remote API - API key may be invalid or lacks access to this model"
        )
        return SignalingError(
            "Remote API authentication failed. Your API key may be invalid or you may "
            "not have access to this model.",
            status_code=status,
            category=ERROR_AUTHENTICATION,
            code="api_key_invalid",
        )

    if status == 404:
        logger.error("Requested model may not exist or you may not have access to it")
        return SignalingError(
            "The requested model does not exist or you may not have access to it.",
            status_code=status,
            category=ERROR_MODEL,
            code="model_not_found",
        )

    message = response.text[:500] or f"Remote API returned HTTP {status}"
    category = ERROR_API
    code = f"http_{status}"
    try:
        payload = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        payload = None
    if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
        remote_error = payload["error"]
        message = remote_error.get("message") or message
        category = remote_error.get("type") or category
        code = remote_error.get("code") or code

    logger.error(f"Remote API error {status}: {message}")
    return SignalingError(message, status_code=status, category=category, code=code)


class SignalingProxy(UpstreamClient):
    """Forwards offers to the remote realtime endpoint."""

    error_class = SignalingError

    async def forward_offer(
        self,
        offer: bytes,
        model: Optional[str] = None,
        voice: Optional[str] = None,
    ) -> ProxiedAnswer:
        """
        Forward an offer and return the remote answer.

        Args:
            offer: Raw session-description offer, forwarded byte for byte
            model: Remote model identifier, defaults to the configured model
            voice: Optional remote voice identifier

        Returns:
            The remote answer body and its content type

        Raises:
            SignalingError: On an empty offer, credential problems, transport
                failures or a non-success remote response
        """
        model = model or self.settings.realtime_model
        logger.info(f"Proxying SDP request to realtime API for model: {model}")
        logger.info(f"SDP request body length: {len(offer)} bytes")

        if not offer:
            raise SignalingError(
                "Request body must contain an SDP offer",
                status_code=400,
                category=ERROR_INVALID_REQUEST,
                code="empty_offer",
            )

        params = {"model": model}
        if voice:
            params["voice"] = voice

        response = await self._post(
            self.settings.realtime_url,
            params=params,
            content=offer,
            headers={
                "Content-Type": SDP_CONTENT_TYPE,
                "OpenAI-Beta": "realtime=v1",
            },
        )

        if not response.is_success:
            raise normalize_remote_error(response)

        content_type = response.headers.get("content-type", SDP_CONTENT_TYPE)
        logger.info(f"SDP answer received: {len(response.content)} bytes ({content_type})")
        return ProxiedAnswer(body=response.content, content_type=content_type)
