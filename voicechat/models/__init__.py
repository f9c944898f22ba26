"""
Models module for data structures and state management.

Key components:
- schemas: Pydantic models for the HTTP surface (session credential
  responses, error envelopes, health probe).
- events: Typed models for the messages carried on the auxiliary event
  channel, plus ``parse_event`` which turns raw channel text into one of them.
- transcript: Immutable transcript entries and the append-only transcript.
- session: The per-attempt ``RealtimeSession`` value and its explicit
  connection state machine.

Usage examples:
```python
from voicechat.models.events import parse_event, RecognitionResult

event = parse_event('{"type": "recognition_result", "text": "hi", "is_final": true}')
assert isinstance(event, RecognitionResult)

from voicechat.models.transcript import Transcript

transcript = Transcript()
transcript.append("hi", "user", duration=1.2)
```
"""

from voicechat.models.events import (
    ChannelEvent,
    ContentBlockEvent,
    ErrorEvent,
    GenerationComplete,
    GenerationStarted,
    MetadataEvent,
    RecognitionResult,
    RecognitionStarted,
    ServerMessage,
    SessionLifecycleEvent,
    SpeechEnded,
    SpeechStarted,
    UnknownEvent,
    parse_event,
)
from voicechat.models.schemas import (
    ClientSecret,
    CredentialErrorResponse,
    ErrorDetail,
    ErrorEnvelope,
    HealthResponse,
    SessionResponse,
)
from voicechat.models.session import RealtimeSession, SessionState
from voicechat.models.transcript import Transcript, TranscriptEntry
