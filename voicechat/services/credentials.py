"""
Credential validation and the credential relay.

The relay hands the configured secret to the client as-is. This mirrors the
demo's behavior; a hardened deployment would mint a scoped, short-lived token
instead of returning the secret itself.
"""

import logging
from typing import Optional

from voicechat.config.constants import CREDENTIAL_MIN_LENGTH, CREDENTIAL_PREFIX, LOGGER_NAME
from voicechat.config.settings import Settings
from voicechat.exceptions import CredentialError
from voicechat.models.schemas import ClientSecret, SessionResponse

logger = logging.getLogger(LOGGER_NAME)


def redact_credential(value: Optional[str]) -> str:
    """Return a log-safe form of the credential: prefix, suffix and length only."""
    if not value:
        return "<unset>"
    if len(value) <= 11:
        return f"{'*' * len(value)} ({len(value)} chars)"
    return f"{value[:7]}...{value[-4:]} ({len(value)} chars)"


def validate_credential(value: Optional[str]) -> str:
    """
    Check that a credential is configured and has the expected shape.

    Args:
        value: The configured credential, possibly None

    Returns:
        The credential, unchanged

    Raises:
        CredentialError: ``api_key_missing`` if unset, ``api_key_malformed`` if the
            prefix or length check fails
    """
    if not value:
        raise CredentialError(
            "API key not configured",
            code="api_key_missing",
            details="Please set up a valid OpenAI API key in your .env file",
        )
    if not value.startswith(CREDENTIAL_PREFIX) or len(value) < CREDENTIAL_MIN_LENGTH:
        raise CredentialError(
            "API key appears to be invalid",
            code="api_key_malformed",
            details=(
                f"The API key does not match the expected format "
                f"(should start with '{CREDENTIAL_PREFIX}' and be at least "
                f"{CREDENTIAL_MIN_LENGTH} characters)"
            ),
        )
    return value


def is_credential_valid(value: Optional[str]) -> bool:
    try:
        validate_credential(value)
    except CredentialError:
        return False
    return True


class CredentialRelay:
    """Issues the configured credential to clients."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def issue(self) -> SessionResponse:
        """
        Build the ``GET /session`` payload.

        Raises:
            CredentialError: If no usable credential is configured
        """
        logger.info("Creating session for client")
        try:
            credential = validate_credential(self.settings.openai_api_key)
        except CredentialError as e:
            logger.error(f"Cannot issue credential: {e.message} ({e.code})")
            raise

        logger.info(f"Issuing credential {redact_credential(credential)}")
        return SessionResponse(client_secret=ClientSecret(value=credential))
