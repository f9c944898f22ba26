"""
Shared plumbing for calls to the remote API.

``UpstreamClient`` attaches the bearer credential, enforces a bounded timeout
and converts every transport-level failure into an ``UpstreamError`` carrying
a status code and category, so no proxy route ever fails opaquely.
"""

import logging
import time
from typing import Any, Dict, Optional, Type

import httpx

from voicechat.config.constants import (
    CREDENTIAL_PREFIX,
    ERROR_API_CONNECTION,
    ERROR_AUTHENTICATION,
    LOGGER_NAME,
)
from voicechat.config.settings import Settings
from voicechat.exceptions import CredentialError, UpstreamError
from voicechat.services.credentials import redact_credential, validate_credential

logger = logging.getLogger(LOGGER_NAME)


class UpstreamClient:
    """
    Base class for proxies that forward requests to the remote API.

    Args:
        settings: Server settings (credential, endpoints, timeout)
        transport: Optional httpx transport, used to stub the remote in tests
    """

    error_class: Type[UpstreamError] = UpstreamError

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.transport = transport

    def _credential(self) -> str:
        """Validate the configured credential before any remote call is made."""
        try:
            credential = validate_credential(self.settings.openai_api_key)
        except CredentialError as e:
            logger.error(f"Refusing to call remote API: {e.message}")
            if e.code == "api_key_missing":
                message = "API key is not configured on the server"
            else:
                message = f'API key is malformed, should start with "{CREDENTIAL_PREFIX}"'
            raise self.error_class(
                message,
                status_code=401,
                category=ERROR_AUTHENTICATION,
                code=e.code,
            ) from e
        logger.debug(f"Using API key: {redact_credential(credential)}")
        return credential

    async def _post(
        self,
        url: str,
        *,
        headers: Dict[str, str],
        params: Optional[Dict[str, Any]] = None,
        content: Optional[bytes] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """
        POST to the remote API with the credential attached.

        Returns:
            The remote response, whatever its status

        Raises:
            UpstreamError: On credential problems (401) or when no response
                was received (502)
        """
        credential = self._credential()
        request_headers = {"Authorization": f"Bearer {credential}", **headers}

        start = time.time()
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.upstream_timeout, transport=self.transport
            ) as client:
                response = await client.post(
                    url, params=params, content=content, json=json, headers=request_headers
                )
        except httpx.TimeoutException as e:
            logger.error(f"Timed out waiting for remote API after {self.settings.upstream_timeout}s: {e}")
            raise self.error_class(
                "The remote API did not respond in time.",
                status_code=502,
                category=ERROR_API_CONNECTION,
                code="timeout",
            ) from e
        except httpx.TransportError as e:
            logger.error(f"No response received from remote API: {e}")
            raise self.error_class(
                "No response received from the remote API. The service may be down or unreachable.",
                status_code=502,
                category=ERROR_API_CONNECTION,
                code="network_error",
            ) from e
        except (httpx.RequestError, httpx.InvalidURL) as e:
            logger.error(f"Error setting up remote API request: {e}")
            raise self.error_class(
                f"Error setting up request: {e}",
                status_code=500,
                category="request_setup_error",
                code="setup_failed",
            ) from e

        logger.info(
            f"Remote API responded {response.status_code} in {time.time() - start:.2f}s"
        )
        return response
