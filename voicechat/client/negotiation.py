"""
Negotiation controller for the voice client.

Drives a peer connection from idle to an established media session:

    idle -> acquiring-credential -> capturing-media -> offering
         -> awaiting-answer -> established <-> listening/processing
         -> closing -> idle

with ``failed`` reachable from any non-idle state. Each attempt gets a fresh
``RealtimeSession``; the controller owns at most one at a time. Every await
is followed by a check that the session is still current, so completions
arriving after ``stop()`` (or after a newer ``start()``) only release what
they acquired and change nothing else.

When the transport drops while the user has not stopped the session, the
controller re-negotiates after a flat delay, up to ``max_retries``
consecutive attempts, then gives up and reports a terminal failure.
"""

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from aiortc import RTCConfiguration, RTCIceServer, RTCPeerConnection, RTCSessionDescription
from aiortc.contrib.media import MediaBlackhole
from aiortc.exceptions import InvalidStateError

from voicechat.client.levels import AudioLevelTrack
from voicechat.client.presentation import Presentation
from voicechat.client.signaling import SignalingClient
from voicechat.config.constants import (
    DATA_CHANNEL_LABEL,
    DATA_CHANNEL_MAX_RETRANSMITS,
    DEFAULT_ICE_SERVER,
    DEFAULT_REALTIME_MODEL,
    DEFAULT_VOICE,
    ERROR_API_CONNECTION,
    ERROR_INVALID_ANSWER,
    EVENT_CLIENT_MESSAGE,
    EVENT_CLIENT_MESSAGE_END,
    LOGGER_NAME,
    MAX_RETRIES,
    RETRY_DELAY,
)
from voicechat.exceptions import (
    ChannelError,
    CredentialError,
    MediaAccessError,
    NegotiationAborted,
    SignalingError,
    VoiceChatError,
)
from voicechat.handlers.session_events import SessionEventHandler
from voicechat.models.session import RealtimeSession, SessionState
from voicechat.models.transcript import Transcript

logger = logging.getLogger(LOGGER_NAME)

# Transport states that mean the media session is gone
LOST_CONNECTION_STATES = ("disconnected", "failed", "closed")


def default_peer_connection_factory(ice_server: str = DEFAULT_ICE_SERVER) -> RTCPeerConnection:
    return RTCPeerConnection(
        configuration=RTCConfiguration(iceServers=[RTCIceServer(urls=[ice_server])])
    )


def default_media_factory(device: Optional[int]):
    # PyAudio is only needed when a real microphone is opened
    from voicechat.client.media import open_microphone

    return open_microphone(device)


class NegotiationController:
    """
    Owns the peer connection and its full lifecycle.

    Args:
        signaling: Client for the credential relay and signaling proxy
        presentation: Output surface for status, logs, transcript and level
        model: Remote model requested in the offer exchange
        voice: Remote voice requested in the offer exchange
        device: Input device index, ``None`` for the default device
        auto_reconnect: Re-negotiate when the transport drops
        max_retries: Consecutive reconnect attempts before giving up
        retry_delay: Flat delay before each reconnect attempt, in seconds
        peer_connection_factory: Builds a new peer connection per attempt
        media_factory: Opens a local audio track for a device index
        sink_factory: Builds the consumer for the inbound audio track
    """

    def __init__(
        self,
        signaling: SignalingClient,
        presentation: Presentation,
        *,
        model: str = DEFAULT_REALTIME_MODEL,
        voice: str = DEFAULT_VOICE,
        device: Optional[int] = None,
        auto_reconnect: bool = True,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY,
        peer_connection_factory: Optional[Callable[[], Any]] = None,
        media_factory: Optional[Callable[[Optional[int]], Any]] = None,
        sink_factory: Optional[Callable[[], Any]] = None,
    ):
        self.signaling = signaling
        self.presentation = presentation
        self.model = model
        self.voice = voice
        self.device = device
        self.auto_reconnect = auto_reconnect
        self.max_retries = max_retries
        self.retry_delay = retry_delay

        self._peer_connection_factory = peer_connection_factory or default_peer_connection_factory
        self._media_factory = media_factory or default_media_factory
        self._sink_factory = sink_factory or MediaBlackhole

        self.transcript = Transcript()
        self.event_handler = SessionEventHandler(presentation, self.transcript)

        self._session: Optional[RealtimeSession] = None
        self._retry_count = 0
        self._retry_task: Optional[asyncio.Task] = None
        self._user_stopped = False

    @property
    def session(self) -> Optional[RealtimeSession]:
        return self._session

    @property
    def state(self) -> SessionState:
        return self._session.state if self._session is not None else SessionState.IDLE

    @property
    def retry_count(self) -> int:
        return self._retry_count

    @property
    def turn_open(self) -> bool:
        """Whether a push-to-talk turn is in progress."""
        return self._session is not None and self._session.user_turn_at is not None

    @property
    def pending_retry(self) -> Optional[asyncio.Task]:
        """The scheduled reconnect, if one is waiting or running."""
        return self._retry_task

    # Lifecycle

    async def start(self) -> RealtimeSession:
        """
        Negotiate a new media session, tearing down any previous one first.

        Failures are logged, their partial resources released, and the
        returned session is left in ``failed`` with ``session.error`` set.

        Returns:
            The session created for this attempt
        """
        return await self._start(retry=False)

    async def stop(self) -> None:
        """Release everything and return to idle. Safe to call in any state."""
        self._user_stopped = True
        self._cancel_retry()

        session = self._session
        if session is None:
            return

        # Detach first so in-flight steps of this session see it as stale
        self._session = None
        self.presentation.log("Ending conversation...")
        await self._close(session)
        self.presentation.set_status(SessionState.IDLE)

    async def _start(self, retry: bool) -> RealtimeSession:
        if not retry:
            self._retry_count = 0
            self._cancel_retry()
        self._user_stopped = False

        previous = self._session
        if previous is not None:
            await self._close(previous)

        session = RealtimeSession(self.model, self.voice, attempt=self._retry_count + 1)
        self._session = session

        try:
            await self._negotiate(session)
        except NegotiationAborted:
            logger.info(f"Negotiation for session {session.id[:8]} aborted after teardown")
            await self._release(session)
        except (CredentialError, MediaAccessError, SignalingError, ChannelError) as e:
            self.presentation.log(f"Initialization error: {e}", "error")
            await self._fail(session, e)
            if self._is_transient(e):
                self._retry_or_give_up(f"signaling failed: {e.code}")
        except Exception as e:
            logger.exception(f"Unexpected error during negotiation: {e}")
            self.presentation.log(f"Initialization error: {e}", "error")
            await self._fail(session, e)
            raise
        return session

    async def _negotiate(self, session: RealtimeSession) -> None:
        self._advance(session, SessionState.ACQUIRING_CREDENTIAL)
        self.presentation.log("Initializing voice connection...")
        credential = await self.signaling.fetch_credential()
        self._ensure_current(session)
        session.credential = credential
        self.presentation.log("Session token received", "success")

        self._advance(session, SessionState.CAPTURING_MEDIA)
        try:
            track = await asyncio.to_thread(self._media_factory, self.device)
        except OSError as e:
            raise MediaAccessError(f"Microphone access error: {e}") from e
        session.local_tracks.append(track)
        self._ensure_current(session)
        self.presentation.log("Microphone access granted", "success")

        self._advance(session, SessionState.OFFERING)
        pc = self._peer_connection_factory()
        session.peer_connection = pc
        self._watch_peer_connection(session, pc)

        meter = AudioLevelTrack(track, on_level=self.presentation.show_level)
        session.level_meter = meter
        pc.addTrack(meter)
        self.presentation.log("Added local audio track to connection")

        try:
            channel = pc.createDataChannel(
                DATA_CHANNEL_LABEL, ordered=True, maxRetransmits=DATA_CHANNEL_MAX_RETRANSMITS
            )
        except (InvalidStateError, ValueError) as e:
            raise ChannelError(f"Error creating data channel: {e}") from e
        session.data_channel = channel
        self._watch_data_channel(session, channel)

        offer = await pc.createOffer()
        self._ensure_current(session)
        await pc.setLocalDescription(offer)
        self._ensure_current(session)
        self.presentation.log("Created and set local connection description")

        self._advance(session, SessionState.AWAITING_ANSWER)
        answer_sdp = await self.signaling.exchange_offer(
            pc.localDescription.sdp, model=session.model, voice=session.voice
        )
        self._ensure_current(session)
        self.presentation.log("Received SDP answer", "success")

        try:
            await pc.setRemoteDescription(RTCSessionDescription(sdp=answer_sdp, type="answer"))
        except (InvalidStateError, ValueError) as e:
            raise SignalingError(
                f"Invalid SDP answer: {e}", category=ERROR_INVALID_ANSWER, code="invalid_answer"
            ) from e
        self._ensure_current(session)

        self._advance(session, SessionState.ESTABLISHED)
        session.started_at = datetime.now()
        meter.start()
        self.presentation.log("Remote description set, connection established", "success")
        self.presentation.log(f"Conversation started at {session.started_at.strftime('%H:%M:%S')}")

    # Session guards and transitions

    def _is_current(self, session: RealtimeSession) -> bool:
        return session is self._session and session.state not in (
            SessionState.IDLE,
            SessionState.CLOSING,
            SessionState.FAILED,
        )

    def _ensure_current(self, session: RealtimeSession) -> None:
        if not self._is_current(session):
            raise NegotiationAborted(f"Session {session.id[:8]} is no longer active")

    def _advance(self, session: RealtimeSession, state: SessionState) -> None:
        session.transition(state)
        self.presentation.set_status(state)

    async def _close(self, session: RealtimeSession) -> None:
        if session.state not in (SessionState.IDLE, SessionState.CLOSING, SessionState.FAILED):
            session.transition(SessionState.CLOSING)
        await self._release(session)
        if session.state == SessionState.CLOSING:
            session.transition(SessionState.IDLE)

    async def _fail(self, session: RealtimeSession, error: BaseException) -> None:
        session.error = error
        if session.can_transition(SessionState.FAILED):
            session.transition(SessionState.FAILED)
        await self._release(session)
        if session is self._session:
            self.presentation.set_status(SessionState.FAILED)

    async def _release(self, session: RealtimeSession) -> None:
        """Release every resource the session holds. Idempotent."""
        meter, session.level_meter = session.level_meter, None
        if meter is not None:
            meter.stop()

        tracks, session.local_tracks = session.local_tracks, []
        for track in tracks:
            track.stop()
            logger.debug(f"Stopped local track {getattr(track, 'id', track)}")

        sink, session.audio_sink = session.audio_sink, None
        if sink is not None:
            await sink.stop()

        channel, session.data_channel = session.data_channel, None
        if channel is not None:
            channel.close()

        pc, session.peer_connection = session.peer_connection, None
        if pc is not None:
            await pc.close()

        session.remote_track = None
        session.credential = None
        session.turn_started_at = None
        session.user_turn_at = None
        self.presentation.show_level(0.0)

        if session.started_at is not None:
            duration = (datetime.now() - session.started_at).total_seconds()
            session.started_at = None
            self.presentation.log(f"Conversation ended. Duration: {duration:.2f}s")

    # Transport callbacks

    def _watch_peer_connection(self, session: RealtimeSession, pc) -> None:
        @pc.on("connectionstatechange")
        async def on_connectionstatechange():
            if not self._is_current(session):
                return
            state = pc.connectionState
            self.presentation.log(f"Connection state: {state}")
            if state == "connected":
                self._retry_count = 0
            elif state in LOST_CONNECTION_STATES:
                await self._on_transport_lost(session, f"connection {state}")

        @pc.on("track")
        async def on_track(track):
            if not self._is_current(session):
                return
            self.presentation.log(f"Received {track.kind} track from server", "success")
            if track.kind != "audio":
                return
            session.remote_track = track
            sink = self._sink_factory()
            sink.addTrack(track)
            session.audio_sink = sink
            await sink.start()

    def _watch_data_channel(self, session: RealtimeSession, channel) -> None:
        @channel.on("open")
        def on_open():
            if not self._is_current(session):
                return
            self.presentation.log("Data channel opened", "success")
            try:
                self.send_event({"type": EVENT_CLIENT_MESSAGE, "content": {"use_voice": session.voice}})
            except ChannelError as e:
                self.presentation.log(f"Error setting voice: {e}", "error")
            else:
                self.presentation.log(f"Set AI voice to: {session.voice}")

        @channel.on("message")
        def on_message(message):
            if not self._is_current(session):
                return
            self.event_handler.handle_message(session, message)

        @channel.on("close")
        async def on_close():
            if not self._is_current(session) or not session.is_active:
                return
            self.presentation.log("Data channel closed", "warning")
            await self._on_transport_lost(session, "data channel closed")

    async def _on_transport_lost(self, session: RealtimeSession, reason: str) -> None:
        if not self._is_current(session) or self._user_stopped or session.transport_lost:
            return
        session.transport_lost = True

        if self.auto_reconnect and self._retry_count < self.max_retries:
            await self._close(session)
            self.presentation.set_status(SessionState.IDLE)
            self._retry_or_give_up(reason)
            return

        await self._fail(
            session,
            SignalingError(f"Transport lost: {reason}", category=ERROR_API_CONNECTION, code="transport_lost"),
        )
        self._retry_or_give_up(reason)

    # Reconnect

    @staticmethod
    def _is_transient(error: VoiceChatError) -> bool:
        return isinstance(error, SignalingError) and error.category == ERROR_API_CONNECTION

    def _retry_or_give_up(self, reason: str) -> None:
        if not self.auto_reconnect:
            self.presentation.log(f"Connection lost ({reason}). Please reconnect manually.", "error")
            return
        if self._retry_count >= self.max_retries:
            self.presentation.log("Max retry attempts reached. Please reconnect manually.", "error")
            return

        self._retry_count += 1
        self.presentation.log(
            f"Connection lost ({reason}). Attempting to reconnect "
            f"({self._retry_count}/{self.max_retries}) in {self.retry_delay:g}s...",
            "warning",
        )
        self._cancel_retry()
        self._retry_task = asyncio.create_task(self._reconnect_after_delay())

    async def _reconnect_after_delay(self) -> None:
        await asyncio.sleep(self.retry_delay)
        self._retry_task = None
        if self._user_stopped:
            return
        try:
            await self._start(retry=True)
        except Exception as e:
            # _start has already logged this and failed the session
            logger.error(f"Reconnect attempt failed: {e}")

    def _cancel_retry(self) -> None:
        task, self._retry_task = self._retry_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    # Outbound events

    def send_event(self, payload: Dict[str, Any]) -> None:
        """
        Send a JSON event on the auxiliary channel.

        Raises:
            ChannelError: If there is no open channel or the send fails
        """
        session = self._session
        channel = session.data_channel if session is not None else None
        if channel is None or channel.readyState != "open":
            raise ChannelError("Data channel is not open")
        try:
            channel.send(json.dumps(payload))
        except (InvalidStateError, ValueError) as e:
            raise ChannelError(f"Error sending {payload.get('type')}: {e}") from e

    def begin_user_turn(self) -> bool:
        """Start a push-to-talk turn. Returns False when not connected or a turn is already open."""
        session = self._session
        if session is None or not session.is_active or session.user_turn_at is not None:
            return False

        if session.state != SessionState.LISTENING:
            self._advance(session, SessionState.LISTENING)
        session.user_turn_at = session.turn_started_at = datetime.now()
        self.presentation.log(f"Recording started at {session.user_turn_at.strftime('%H:%M:%S')}")
        try:
            self.send_event({
                "type": EVENT_CLIENT_MESSAGE,
                "content": {"role": "user", "content": [{"type": "voice"}]},
            })
        except ChannelError as e:
            self.presentation.log(f"Error starting recording: {e}", "error")
        return True

    def end_user_turn(self) -> bool:
        """Finish the open push-to-talk turn. Returns False when none is open."""
        session = self._session
        if session is None or session.user_turn_at is None:
            return False

        started, session.user_turn_at = session.user_turn_at, None
        # A final recognition may already have moved the session on to processing
        if session.state == SessionState.LISTENING:
            self._advance(session, SessionState.ESTABLISHED)
        duration = (datetime.now() - started).total_seconds()
        self.presentation.log(f"Recording ended after {duration:.2f}s")

        entry = self.transcript.append("Voice message", "user", duration=duration)
        self.presentation.show_entry(entry)
        try:
            self.send_event({"type": EVENT_CLIENT_MESSAGE_END})
        except ChannelError as e:
            self.presentation.log(f"Error ending recording: {e}", "error")
        return True
