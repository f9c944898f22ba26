"""
Typed models for messages exchanged on the auxiliary event channel.

Inbound messages are JSON objects discriminated by their ``type`` field.
``parse_event`` validates raw channel text into the matching model; unknown
types become ``UnknownEvent`` so new message kinds never break the client.
"""

import json
from typing import Any, Dict, List, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from voicechat.config.constants import (
    EVENT_CONTENT_BLOCK_DELTA,
    EVENT_CONTENT_BLOCK_START,
    EVENT_CONTENT_BLOCK_STOP,
    EVENT_ERROR,
    EVENT_GENERATION_COMPLETE,
    EVENT_GENERATION_STARTED,
    EVENT_METADATA,
    EVENT_RECOGNITION_RESULT,
    EVENT_RECOGNITION_STARTED,
    EVENT_SERVER_MESSAGE,
    EVENT_SESSION_CREATED,
    EVENT_SESSION_UPDATED,
    EVENT_SPEECH_ENDED,
    EVENT_SPEECH_STARTED,
)
from voicechat.exceptions import ParseError

MessageId = Optional[Union[str, int]]


class ChannelEvent(BaseModel):
    """Base model for all auxiliary channel messages."""

    model_config = ConfigDict(extra="allow")

    type: str = Field(..., description="Message type discriminant")


class RecognitionStarted(ChannelEvent):
    """The remote started recognizing user speech."""


class RecognitionResult(ChannelEvent):
    """Interim or final recognition of user speech."""

    text: str = ""
    is_final: bool = False
    duration: Optional[float] = None
    message_id: MessageId = None


class GenerationStarted(ChannelEvent):
    """The assistant started generating a response."""


class GenerationComplete(ChannelEvent):
    """The assistant finished a response."""

    text: Optional[str] = None
    duration: Optional[float] = None
    message_id: MessageId = None


class ContentPart(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str = "text"
    text: Optional[str] = None


class ServerMessageContent(BaseModel):
    model_config = ConfigDict(extra="allow")

    role: str
    content: List[ContentPart] = Field(default_factory=list)


class ServerMessage(ChannelEvent):
    """Conversation content pushed by the remote, e.g. an assistant reply."""

    content: Optional[ServerMessageContent] = None

    @property
    def assistant_text(self) -> Optional[str]:
        """Text of the first content part when this is an assistant message."""
        if self.content is None or self.content.role != "assistant":
            return None
        if not self.content.content:
            return None
        return self.content.content[0].text


class SpeechStarted(ChannelEvent):
    pass


class SpeechEnded(ChannelEvent):
    pass


class ContentBlockEvent(ChannelEvent):
    pass


class MetadataEvent(ChannelEvent):
    data: Any = None


class SessionLifecycleEvent(ChannelEvent):
    """``session.created`` / ``session.updated``."""

    data: Optional[Dict[str, Any]] = None


class ErrorEvent(ChannelEvent):
    """Error reported by the remote over the channel."""

    message: Optional[str] = None
    error: Any = None

    def describe(self) -> str:
        if self.message:
            return self.message
        if isinstance(self.error, (dict, list)):
            return json.dumps(self.error)
        if self.error:
            return str(self.error)
        return "Unknown error"


class UnknownEvent(ChannelEvent):
    """Any message whose type is not recognized."""


EVENT_MODELS: Dict[str, Type[ChannelEvent]] = {
    EVENT_RECOGNITION_STARTED: RecognitionStarted,
    EVENT_RECOGNITION_RESULT: RecognitionResult,
    EVENT_GENERATION_STARTED: GenerationStarted,
    EVENT_GENERATION_COMPLETE: GenerationComplete,
    EVENT_SERVER_MESSAGE: ServerMessage,
    EVENT_SPEECH_STARTED: SpeechStarted,
    EVENT_SPEECH_ENDED: SpeechEnded,
    EVENT_CONTENT_BLOCK_START: ContentBlockEvent,
    EVENT_CONTENT_BLOCK_DELTA: ContentBlockEvent,
    EVENT_CONTENT_BLOCK_STOP: ContentBlockEvent,
    EVENT_METADATA: MetadataEvent,
    EVENT_SESSION_CREATED: SessionLifecycleEvent,
    EVENT_SESSION_UPDATED: SessionLifecycleEvent,
    EVENT_ERROR: ErrorEvent,
}


def parse_event(raw: Union[str, bytes]) -> ChannelEvent:
    """
    Parse raw auxiliary channel data into a typed event.

    Args:
        raw: Message payload as received from the data channel

    Returns:
        The validated event model for the message's ``type``

    Raises:
        ParseError: If the payload is not a JSON object with a string ``type``
            or does not fit the model for its type
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(f"Message is not valid UTF-8: {e}") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ParseError(f"Message is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ParseError(f"Expected a JSON object, got {type(data).__name__}")

    event_type = data.get("type")
    if not isinstance(event_type, str):
        raise ParseError("Message has no 'type' field")

    model = EVENT_MODELS.get(event_type, UnknownEvent)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ParseError(f"Invalid {event_type} message: {e}") from e
