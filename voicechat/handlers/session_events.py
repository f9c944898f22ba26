"""
Dispatch of auxiliary channel messages onto session state.

Each inbound message is handled on its own, synchronously and to completion.
Status changes are applied only while the media session is up, so events
that arrive during or after teardown never resurrect a closed session.
"""

import json
import logging
from datetime import datetime
from typing import Callable, Dict, Optional, Union

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
    LOGGER_NAME,
)
from voicechat.exceptions import ParseError
from voicechat.models.events import ChannelEvent, parse_event
from voicechat.models.session import RealtimeSession, SessionState
from voicechat.models.transcript import Transcript

logger = logging.getLogger(LOGGER_NAME)

EventHandlerFunc = Callable[[RealtimeSession, ChannelEvent], None]


class SessionEventHandler:
    """
    Interprets inbound channel messages for a voice session.

    Args:
        presentation: Output surface for status, log entries and transcript
        transcript: Append-only transcript shared across reconnects
    """

    def __init__(self, presentation, transcript: Transcript):
        self.presentation = presentation
        self.transcript = transcript

        self.handlers: Dict[str, EventHandlerFunc] = {
            EVENT_RECOGNITION_STARTED: self.handle_recognition_started,
            EVENT_SPEECH_STARTED: self.handle_speech_started,
            EVENT_RECOGNITION_RESULT: self.handle_recognition_result,
            EVENT_GENERATION_STARTED: self.handle_generation_started,
            EVENT_GENERATION_COMPLETE: self.handle_generation_complete,
            EVENT_SERVER_MESSAGE: self.handle_server_message,
            EVENT_SPEECH_ENDED: self.handle_speech_ended,
            EVENT_CONTENT_BLOCK_START: self.handle_content_block,
            EVENT_CONTENT_BLOCK_DELTA: self.handle_content_block,
            EVENT_CONTENT_BLOCK_STOP: self.handle_content_block,
            EVENT_METADATA: self.handle_metadata,
            EVENT_SESSION_CREATED: self.handle_session_lifecycle,
            EVENT_SESSION_UPDATED: self.handle_session_lifecycle,
            EVENT_ERROR: self.handle_error,
        }

    def handle_message(self, session: RealtimeSession, raw: Union[str, bytes]) -> Optional[ChannelEvent]:
        """
        Parse and dispatch one inbound message.

        Args:
            session: Session the message arrived on
            raw: Message payload from the data channel

        Returns:
            The parsed event, or None if the message was malformed
        """
        try:
            event = parse_event(raw)
        except ParseError as e:
            self.presentation.log(f"Error parsing message: {e}", "error")
            logger.debug(f"Original message data: {raw!r}")
            return None

        self.presentation.log(f"Received event: {event.type}")
        handler = self.handlers.get(event.type, self.handle_unknown)
        handler(session, event)
        return event

    def _set_status(self, session: RealtimeSession, state: SessionState) -> None:
        if not session.is_active or not session.can_transition(state):
            logger.debug(f"Ignoring status change to {state.value} while {session.state.value}")
            return
        session.transition(state)
        self.presentation.set_status(state)

    def handle_recognition_started(self, session, event):
        self._set_status(session, SessionState.LISTENING)
        self.presentation.log("Recognition started")

    def handle_speech_started(self, session, event):
        self._set_status(session, SessionState.LISTENING)
        self.presentation.log("Speech started")

    def handle_speech_ended(self, session, event):
        self.presentation.log("Speech ended")

    def handle_recognition_result(self, session, event):
        if not event.is_final:
            logger.debug(f"Interim recognition: {event.text}")
            return

        self._set_status(session, SessionState.PROCESSING)
        entry = self.transcript.append(
            event.text, "user", duration=event.duration, message_id=event.message_id
        )
        self.presentation.show_entry(entry)
        self.presentation.log(f"User message ({event.duration or 0:.2f}s): {event.text}")

    def handle_generation_started(self, session, event):
        self.presentation.log("AI response generation started")

    def handle_generation_complete(self, session, event):
        self._set_status(session, SessionState.ESTABLISHED)
        if not event.text:
            return

        last_user_time = self.transcript.last_user_time
        entry = self.transcript.append(
            event.text, "ai", duration=event.duration, message_id=event.message_id
        )
        self.presentation.show_entry(entry)
        self.presentation.log(f"AI message ({event.duration or 0:.2f}s): {event.text}")

        if last_user_time is not None:
            latency = (entry.timestamp - last_user_time).total_seconds()
            self.presentation.log(f"AI response time: {latency:.2f}s")

    def handle_server_message(self, session, event):
        text = event.assistant_text
        if text is None:
            return

        duration = None
        if session.turn_started_at is not None:
            duration = (datetime.now() - session.turn_started_at).total_seconds()
            session.turn_started_at = None
            self.presentation.log(f"AI response received after {duration:.2f}s", "success")

        entry = self.transcript.append(text, "ai", duration=duration)
        self.presentation.show_entry(entry)

    def handle_content_block(self, session, event):
        if event.type == EVENT_CONTENT_BLOCK_START:
            self.presentation.log("Content block started")
        elif event.type == EVENT_CONTENT_BLOCK_STOP:
            self.presentation.log("Content block stopped")

    def handle_metadata(self, session, event):
        self.presentation.log(f"Metadata: {json.dumps(event.data)}")

    def handle_session_lifecycle(self, session, event):
        verb = "created" if event.type == EVENT_SESSION_CREATED else "updated"
        level = "success" if verb == "created" else "info"
        self.presentation.log(f"Session {verb}: {json.dumps(event.data or {})}", level)

    def handle_error(self, session, event):
        self.presentation.log(f"Error from server: {event.describe()}", "error")

    def handle_unknown(self, session, event):
        self.presentation.log(f"Unknown event type: {event.type}", "warning")
