"""
Error taxonomy shared by the server and the client.

Every failure that crosses a component boundary is one of these types, so
callers can branch on the class (and, for remote calls, on ``category``)
instead of matching message strings.
"""

from typing import Any, Dict, Optional

from voicechat.config.constants import ERROR_API


class VoiceChatError(Exception):
    """Base class for all application errors."""


class CredentialError(VoiceChatError):
    """The credential is missing, malformed, or could not be obtained."""

    def __init__(self, message: str, code: str = "api_key_missing", details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details


class MediaAccessError(VoiceChatError):
    """Microphone permission was denied or no matching input device exists."""


class UpstreamError(VoiceChatError):
    """A call to the remote API failed, normalized into an error envelope.

    ``status_code`` is the HTTP status reported by the remote (or chosen by the
    proxy), ``None`` when the client received no response at all.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        category: str = ERROR_API,
        code: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.category = category
        self.code = code

    def to_envelope(self) -> Dict[str, Any]:
        return {
            "error": {
                "message": self.message,
                "type": self.category,
                "code": self.code,
            }
        }

    def __repr__(self):
        return (
            f"{type(self).__name__}(status_code={self.status_code!r}, "
            f"category={self.category!r}, code={self.code!r}, message={self.message!r})"
        )


class SignalingError(UpstreamError):
    """The offer/answer exchange was rejected or the remote was unreachable."""


class ChannelError(VoiceChatError):
    """The auxiliary event channel failed to open or to transmit."""


class ParseError(VoiceChatError):
    """An inbound auxiliary channel message could not be parsed."""


class NegotiationAborted(VoiceChatError):
    """A negotiation step completed after its session had been torn down."""


class InvalidTransition(VoiceChatError):
    """A session state change that the state machine does not allow."""
