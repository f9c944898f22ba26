"""
HTTP client for the credential relay and the signaling proxy.

All calls are bounded by a timeout. Failures are raised as
``CredentialError`` (relay) or ``SignalingError`` (proxy) with the status code
and category from the server's error envelope, so the controller can decide
whether to retry without inspecting messages.
"""

import json
import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from voicechat.config.constants import (
    CLIENT_REQUEST_TIMEOUT,
    ERROR_API,
    ERROR_API_CONNECTION,
    ERROR_AUTHENTICATION,
    ERROR_MODEL,
    LOGGER_NAME,
    SDP_CONTENT_TYPE,
)
from voicechat.exceptions import CredentialError, SignalingError
from voicechat.models.schemas import CredentialErrorResponse, ErrorEnvelope, SessionResponse

logger = logging.getLogger(LOGGER_NAME)


class SignalingClient:
    """
    Talks to the voice chat server on behalf of the negotiation controller.

    Args:
        server_url: Base URL of the server, e.g. ``http://localhost:8000``
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport, used to stub the server in tests
    """

    def __init__(
        self,
        server_url: str,
        timeout: float = CLIENT_REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.server_url = server_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.server_url, timeout=self.timeout, transport=self.transport)

    async def fetch_credential(self) -> str:
        """
        Request a credential from the relay.

        Raises:
            CredentialError: If the relay is unreachable, reports misconfiguration,
                or answers without the expected secret field
        """
        try:
            async with self._client() as client:
                response = await client.get("/session")
        except httpx.TimeoutException as e:
            raise CredentialError(
                f"Timed out requesting a session credential after {self.timeout}s",
                code="relay_unreachable",
            ) from e
        except httpx.TransportError as e:
            raise CredentialError(f"Could not reach the credential relay: {e}", code="relay_unreachable") from e

        if response.status_code != 200:
            try:
                body = CredentialErrorResponse.model_validate(response.json())
            except (json.JSONDecodeError, ValidationError):
                raise CredentialError(
                    f"Server responded with status: {response.status_code}", code="relay_rejected"
                )
            mode = " (demo mode)" if body.demo_mode else ""
            raise CredentialError(f"{body.error}{mode}", code="relay_rejected", details=body.details)

        try:
            session = SessionResponse.model_validate(response.json())
        except (json.JSONDecodeError, ValidationError) as e:
            raise CredentialError(
                "Invalid API key data received from server. Check server logs.",
                code="invalid_session_response",
            ) from e
        if not session.client_secret.value:
            raise CredentialError(
                "Invalid API key data received from server. Check server logs.",
                code="invalid_session_response",
            )
        return session.client_secret.value

    async def exchange_offer(self, offer_sdp: str, model: str, voice: Optional[str] = None) -> str:
        """
        Submit an offer through the signaling proxy and return the answer SDP.

        Raises:
            SignalingError: On any non-success response or when the proxy
                cannot be reached (``status_code`` is then ``None``)
        """
        params = {"model": model}
        if voice:
            params["voice"] = voice
        logger.info(f"Connecting through server proxy with model: {model}")

        try:
            async with self._client() as client:
                response = await client.post(
                    "/api/realtime/sdp",
                    params=params,
                    content=offer_sdp.encode("utf-8"),
                    headers={"Content-Type": SDP_CONTENT_TYPE},
                )
        except httpx.TimeoutException as e:
            raise SignalingError(
                f"Timed out waiting for the SDP answer after {self.timeout}s",
                category=ERROR_API_CONNECTION,
                code="timeout",
            ) from e
        except httpx.TransportError as e:
            raise SignalingError(
                f"Could not reach the signaling proxy: {e}",
                category=ERROR_API_CONNECTION,
                code="network_error",
            ) from e

        if not response.is_success:
            raise self._signaling_error(response)
        return response.text

    @staticmethod
    def _signaling_error(response: httpx.Response) -> SignalingError:
        status = response.status_code
        try:
            envelope = ErrorEnvelope.model_validate(response.json())
        except (json.JSONDecodeError, ValidationError):
            envelope = None

        if envelope is not None:
            detail = envelope.error
            return SignalingError(detail.message, status_code=status, category=detail.type, code=detail.code)

        category = {401: ERROR_AUTHENTICATION, 404: ERROR_MODEL}.get(status, ERROR_API)
        return SignalingError(
            response.text[:500] or f"SDP response error: HTTP {status}",
            status_code=status,
            category=category,
        )
