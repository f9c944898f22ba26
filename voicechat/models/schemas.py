"""
Pydantic models for the HTTP surface of the server.

These define the payloads returned by the credential relay, the normalized
error envelope used by the proxies, and the health probe.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ClientSecret(BaseModel):
    """Credential wrapper returned by ``GET /session``."""

    value: str = Field(..., description="Bearer credential for the remote API")


class SessionResponse(BaseModel):
    """Successful ``GET /session`` response."""

    client_secret: ClientSecret


class CredentialErrorResponse(BaseModel):
    """``401`` body returned when no usable credential is configured."""

    error: str = Field(..., description="Human-readable error")
    details: Optional[str] = Field(None, description="How to fix the configuration")
    demo_mode: bool = True


class ErrorDetail(BaseModel):
    """Normalized remote error."""

    message: str
    type: str = Field(..., description="Error category")
    code: Optional[str] = None


class ErrorEnvelope(BaseModel):
    """JSON error envelope returned by the signaling and speech proxies."""

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Health probe body."""

    status: str = "healthy"
    credential_configured: bool
    credential_valid: bool
