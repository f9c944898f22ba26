import json
from datetime import datetime, timedelta

import pytest

from voicechat.client.presentation import Presentation
from voicechat.handlers.session_events import SessionEventHandler
from voicechat.models.session import RealtimeSession, SessionState
from voicechat.models.transcript import Transcript


def established_session():
    session = RealtimeSession("gpt-test", "alloy")
    for state in (
        SessionState.ACQUIRING_CREDENTIAL,
        SessionState.CAPTURING_MEDIA,
        SessionState.OFFERING,
        SessionState.AWAITING_ANSWER,
        SessionState.ESTABLISHED,
    ):
        session.transition(state)
    return session


@pytest.fixture
def presentation():
    return Presentation()


@pytest.fixture
def transcript():
    return Transcript()


@pytest.fixture
def handler(presentation, transcript):
    return SessionEventHandler(presentation, transcript)


def send(handler, session, **payload):
    return handler.handle_message(session, json.dumps(payload))


def test_final_recognition_result_adds_user_entry(handler, transcript, presentation):
    session = established_session()
    send(handler, session, type="recognition_result", text="Hello", is_final=True, duration=2.5)

    assert len(transcript) == 1
    entry = transcript.entries[0]
    assert entry.text == "Hello"
    assert entry.sender == "user"
    assert entry.duration == 2.5
    assert session.state == SessionState.PROCESSING
    assert presentation.status == SessionState.PROCESSING
    assert presentation.entries == [entry]


def test_interim_recognition_result_is_ignored(handler, transcript):
    session = established_session()
    send(handler, session, type="recognition_result", text="Hel", is_final=False)
    assert len(transcript) == 0
    assert session.state == SessionState.ESTABLISHED


def test_malformed_message_changes_nothing(handler, transcript, presentation):
    session = established_session()
    status_before = presentation.status

    assert handler.handle_message(session, "{not json") is None

    assert len(transcript) == 0
    assert session.state == SessionState.ESTABLISHED
    assert presentation.status == status_before
    assert len(presentation.logs) == 1
    assert presentation.logs[0].level == "error"
    assert presentation.logs[0].message.startswith("Error parsing message:")


def test_unknown_event_is_logged_as_warning(handler, presentation):
    session = established_session()
    send(handler, session, type="something.new")

    assert session.state == SessionState.ESTABLISHED
    warnings = [entry for entry in presentation.logs if entry.level == "warning"]
    assert [entry.message for entry in warnings] == ["Unknown event type: something.new"]


def test_recognition_started_sets_listening(handler, presentation):
    session = established_session()
    send(handler, session, type="recognition_started")
    assert session.state == SessionState.LISTENING
    assert presentation.status == SessionState.LISTENING


def test_speech_started_sets_listening(handler):
    session = established_session()
    send(handler, session, type="speech_started")
    assert session.state == SessionState.LISTENING


def test_generation_complete_adds_ai_entry_and_latency(handler, transcript, presentation):
    session = established_session()
    transcript.append("Hello", "user", timestamp=datetime.now() - timedelta(seconds=1.5))
    session.transition(SessionState.PROCESSING)

    send(handler, session, type="generation_complete", text="Hi!", duration=1.2, message_id="m2")

    assert session.state == SessionState.ESTABLISHED
    entry = transcript.entries[-1]
    assert (entry.sender, entry.text, entry.duration, entry.id) == ("ai", "Hi!", 1.2, "m2")
    latency_logs = [e.message for e in presentation.logs if e.message.startswith("AI response time:")]
    assert len(latency_logs) == 1


def test_generation_complete_without_text(handler, transcript):
    session = established_session()
    session.transition(SessionState.PROCESSING)
    send(handler, session, type="generation_complete")
    assert len(transcript) == 0
    assert session.state == SessionState.ESTABLISHED


def test_server_message_measures_turn(handler, transcript):
    session = established_session()
    session.turn_started_at = datetime.now() - timedelta(seconds=2)

    send(
        handler,
        session,
        type="server_message",
        content={"role": "assistant", "content": [{"type": "text", "text": "Reply"}]},
    )

    entry = transcript.entries[-1]
    assert entry.sender == "ai"
    assert entry.text == "Reply"
    assert entry.duration >= 2
    assert session.turn_started_at is None


def test_error_event_is_logged(handler, presentation):
    session = established_session()
    send(handler, session, type="error", message="quota exceeded")
    assert presentation.logs[-1].message == "Error from server: quota exceeded"
    assert presentation.logs[-1].level == "error"
    assert session.state == SessionState.ESTABLISHED


def test_status_changes_ignored_when_not_active(handler, transcript, presentation):
    session = RealtimeSession("gpt-test", "alloy")
    session.transition(SessionState.ACQUIRING_CREDENTIAL)
    session.transition(SessionState.FAILED)

    send(handler, session, type="recognition_started")
    send(handler, session, type="recognition_result", text="late", is_final=True)

    assert session.state == SessionState.FAILED
    assert presentation.status == SessionState.IDLE
    assert len(transcript) == 1


def test_every_known_type_has_a_handler(handler):
    for event_type in (
        "recognition_started",
        "recognition_result",
        "generation_started",
        "generation_complete",
        "server_message",
        "speech_started",
        "speech_ended",
        "content_block_start",
        "content_block_delta",
        "content_block_stop",
        "metadata",
        "session.created",
        "session.updated",
        "error",
    ):
        assert event_type in handler.handlers
