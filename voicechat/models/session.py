"""
Per-attempt session value and its connection state machine.

A ``RealtimeSession`` owns every resource of one negotiation attempt (peer
connection, auxiliary channel, local tracks, remote track consumers, audio
level meter). The controller creates a fresh session for each attempt and
tears it down as a unit, so callbacks belonging to an old session can be
recognized and ignored.
"""

import logging
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from voicechat.config.constants import LOGGER_NAME
from voicechat.exceptions import InvalidTransition

logger = logging.getLogger(LOGGER_NAME)


class SessionState(str, Enum):
    """Connection states of a negotiation attempt."""

    IDLE = "idle"
    ACQUIRING_CREDENTIAL = "acquiring-credential"
    CAPTURING_MEDIA = "capturing-media"
    OFFERING = "offering"
    AWAITING_ANSWER = "awaiting-answer"
    ESTABLISHED = "established"
    LISTENING = "listening"
    PROCESSING = "processing"
    CLOSING = "closing"
    FAILED = "failed"


# States in which the media session is up and events may change the status
ACTIVE_STATES: Set[SessionState] = {
    SessionState.ESTABLISHED,
    SessionState.LISTENING,
    SessionState.PROCESSING,
}

_TEARDOWN = {SessionState.CLOSING, SessionState.FAILED}

TRANSITIONS: Dict[SessionState, Set[SessionState]] = {
    SessionState.IDLE: {SessionState.ACQUIRING_CREDENTIAL},
    SessionState.ACQUIRING_CREDENTIAL: {SessionState.CAPTURING_MEDIA} | _TEARDOWN,
    SessionState.CAPTURING_MEDIA: {SessionState.OFFERING} | _TEARDOWN,
    SessionState.OFFERING: {SessionState.AWAITING_ANSWER} | _TEARDOWN,
    SessionState.AWAITING_ANSWER: {SessionState.ESTABLISHED} | _TEARDOWN,
    SessionState.ESTABLISHED: {SessionState.LISTENING, SessionState.PROCESSING} | _TEARDOWN,
    SessionState.LISTENING: {SessionState.ESTABLISHED, SessionState.PROCESSING} | _TEARDOWN,
    SessionState.PROCESSING: {SessionState.ESTABLISHED, SessionState.LISTENING} | _TEARDOWN,
    SessionState.CLOSING: {SessionState.IDLE, SessionState.FAILED},
    SessionState.FAILED: set(),
}


class RealtimeSession:
    """
    State and resources of a single negotiation attempt.

    Attributes:
        model: Remote model requested for this attempt
        voice: Remote voice requested for this attempt
        attempt: 1 for a manual start, >1 for automatic reconnects
        credential: Credential obtained from the relay, kept for this session only
        peer_connection: The aiortc peer connection (or a compatible object)
        data_channel: Auxiliary event channel
        local_tracks: Outbound media tracks attached to the connection
        remote_track: Inbound media track, once received
        audio_sink: Consumer draining or playing the inbound track
        level_meter: Audio level tap on the outbound track
        started_at: When the session reached ``established``
        turn_started_at: Start of the user turn the next assistant reply is timed from
        user_turn_at: Start of the open push-to-talk turn, None when no turn is open
        error: The exception that failed this attempt, if any
    """

    def __init__(self, model: str, voice: str, attempt: int = 1):
        self.id = str(uuid.uuid4())
        self.model = model
        self.voice = voice
        self.attempt = attempt
        self.state = SessionState.IDLE
        self.history: List[SessionState] = [SessionState.IDLE]

        self.credential: Optional[str] = None
        self.peer_connection: Any = None
        self.data_channel: Any = None
        self.local_tracks: List[Any] = []
        self.remote_track: Any = None
        self.audio_sink: Any = None
        self.level_meter: Any = None

        self.started_at: Optional[datetime] = None
        self.turn_started_at: Optional[datetime] = None
        self.user_turn_at: Optional[datetime] = None
        self.error: Optional[BaseException] = None
        self.transport_lost = False

    @property
    def is_active(self) -> bool:
        return self.state in ACTIVE_STATES

    @property
    def is_terminal(self) -> bool:
        return self.state in (SessionState.IDLE, SessionState.FAILED) and len(self.history) > 1

    @property
    def holds_resources(self) -> bool:
        return bool(
            self.peer_connection
            or self.data_channel
            or self.local_tracks
            or self.audio_sink
            or self.level_meter
        )

    def can_transition(self, new_state: SessionState) -> bool:
        return new_state in TRANSITIONS[self.state]

    def transition(self, new_state: SessionState) -> None:
        """
        Move to ``new_state``.

        Raises:
            InvalidTransition: If the state machine does not allow the change
        """
        if new_state == self.state:
            return
        if not self.can_transition(new_state):
            raise InvalidTransition(
                f"Session {self.id[:8]}: cannot go from {self.state.value} to {new_state.value}"
            )
        logger.debug(f"Session {self.id[:8]}: {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)
