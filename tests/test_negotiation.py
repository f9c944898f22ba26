import asyncio
import json

import pytest

from conftest import FakeTrack, wait_for_state
from voicechat.exceptions import ChannelError, CredentialError, MediaAccessError, SignalingError
from voicechat.models.session import SessionState


async def disconnect(pc, state="disconnected"):
    pc.connectionState = state
    await pc.emit("connectionstatechange")


@pytest.mark.asyncio
async def test_start_reaches_established(controller_factory, fake_signaling, peer_connections, media_factory):
    controller = controller_factory()
    session = await controller.start()

    assert session.state == SessionState.ESTABLISHED
    assert controller.presentation.status == SessionState.ESTABLISHED
    assert session.credential == fake_signaling.credential
    assert session.started_at is not None
    assert session.history == [
        SessionState.IDLE,
        SessionState.ACQUIRING_CREDENTIAL,
        SessionState.CAPTURING_MEDIA,
        SessionState.OFFERING,
        SessionState.AWAITING_ANSWER,
        SessionState.ESTABLISHED,
    ]

    pc = peer_connections[0]
    assert len(pc.tracks) == 1
    assert pc.tracks[0].source is media_factory.tracks[0]
    assert pc.channels[0].label == "oai-events"
    assert pc.channels[0].options == {"ordered": True, "maxRetransmits": 3}
    assert pc.remoteDescription.type == "answer"
    assert pc.remoteDescription.sdp == fake_signaling.answer
    assert fake_signaling.offers == [(pc.localDescription.sdp, "gpt-test-realtime", "verse")]


@pytest.mark.asyncio
async def test_stop_during_negotiation_releases_everything(controller_factory, fake_signaling, peer_connections, media_factory):
    """Stopping while the answer is pending leaves no resources and stays idle"""
    fake_signaling.offer_gate = asyncio.Event()
    controller = controller_factory()

    start_task = asyncio.create_task(controller.start())
    await wait_for_state(controller, SessionState.AWAITING_ANSWER)
    session = controller.session

    await controller.stop()
    assert controller.session is None
    assert controller.state == SessionState.IDLE

    # The answer arrives after teardown and must not revive the session
    fake_signaling.offer_gate.set()
    returned = await start_task

    assert returned is session
    assert session.state == SessionState.IDLE
    assert not session.holds_resources
    assert session.credential is None
    assert peer_connections[0].closed
    assert peer_connections[0].remoteDescription is None
    assert all(track.stopped for track in media_factory.tracks)
    assert controller.presentation.status == SessionState.IDLE


@pytest.mark.asyncio
async def test_stop_is_idempotent(controller_factory, peer_connections):
    controller = controller_factory()
    await controller.stop()

    await controller.start()
    await controller.stop()
    await controller.stop()

    assert controller.state == SessionState.IDLE
    assert peer_connections[0].closed


@pytest.mark.asyncio
async def test_stop_releases_established_session(controller_factory, peer_connections, media_factory, sinks):
    controller = controller_factory()
    session = await controller.start()
    pc = peer_connections[0]
    await pc.emit("track", FakeTrack("audio"))

    await controller.stop()

    assert session.state == SessionState.IDLE
    assert SessionState.CLOSING in session.history
    assert not session.holds_resources
    assert pc.closed
    assert pc.channels[0].closed
    assert media_factory.tracks[0].stopped
    assert sinks[0].started and sinks[0].stopped
    assert controller.presentation.level == 0.0
    assert any(entry.message.startswith("Conversation ended.") for entry in controller.presentation.logs)


@pytest.mark.asyncio
async def test_restart_tears_down_previous_session(controller_factory, peer_connections):
    controller = controller_factory()
    first = await controller.start()
    second = await controller.start()

    assert first is not second
    assert first.state == SessionState.IDLE
    assert peer_connections[0].closed
    assert second.state == SessionState.ESTABLISHED
    assert not peer_connections[1].closed


@pytest.mark.asyncio
async def test_credential_failure(controller_factory, fake_signaling, media_factory, peer_connections):
    fake_signaling.credential_error = CredentialError("API key not configured (demo mode)", code="relay_rejected")
    controller = controller_factory()

    session = await controller.start()

    assert session.state == SessionState.FAILED
    assert isinstance(session.error, CredentialError)
    assert controller.presentation.status == SessionState.FAILED
    assert media_factory.tracks == []
    assert peer_connections == []
    assert controller.pending_retry is None
    assert any("Initialization error" in entry.message for entry in controller.presentation.logs)


@pytest.mark.asyncio
async def test_media_failure(controller_factory, media_factory, peer_connections):
    media_factory.error = MediaAccessError("No microphone found")
    controller = controller_factory()

    session = await controller.start()

    assert session.state == SessionState.FAILED
    assert isinstance(session.error, MediaAccessError)
    assert session.credential is None
    assert peer_connections == []


@pytest.mark.asyncio
async def test_media_os_error_becomes_media_access_error(controller_factory, media_factory):
    media_factory.error = OSError("device busy")
    session = await controller_factory().start()
    assert isinstance(session.error, MediaAccessError)


@pytest.mark.asyncio
async def test_signaling_failure_releases_resources(controller_factory, fake_signaling, peer_connections, media_factory):
    fake_signaling.offer_error = SignalingError(
        "no such model", status_code=404, category="model_error", code="model_not_found"
    )
    controller = controller_factory()

    session = await controller.start()

    assert session.state == SessionState.FAILED
    assert session.error.category == "model_error"
    assert not session.holds_resources
    assert peer_connections[0].closed
    assert media_factory.tracks[0].stopped
    # Model errors are not transient
    assert controller.pending_retry is None


@pytest.mark.asyncio
async def test_transient_signaling_failure_is_retried(controller_factory, fake_signaling, peer_connections):
    fake_signaling.offer_error = SignalingError(
        "proxy unreachable", category="api_connection_error", code="network_error"
    )
    controller = controller_factory()

    session = await controller.start()
    assert session.state == SessionState.FAILED
    assert controller.retry_count == 1

    retry = controller.pending_retry
    assert retry is not None
    fake_signaling.offer_error = None
    await retry

    assert controller.state == SessionState.ESTABLISHED
    assert controller.session.attempt == 2
    assert len(peer_connections) == 2


@pytest.mark.asyncio
async def test_bounded_reconnect(controller_factory, peer_connections):
    """Three drops are retried; the fourth leaves the controller failed"""
    controller = controller_factory()
    await controller.start()

    for attempt in range(1, 4):
        await disconnect(peer_connections[-1])
        assert controller.retry_count == attempt
        retry = controller.pending_retry
        assert retry is not None
        await retry
        assert controller.state == SessionState.ESTABLISHED

    await disconnect(peer_connections[-1])

    assert controller.state == SessionState.FAILED
    assert controller.pending_retry is None
    assert len(peer_connections) == 4
    assert all(pc.closed for pc in peer_connections)
    messages = [entry.message for entry in controller.presentation.logs]
    assert "Max retry attempts reached. Please reconnect manually." in messages


@pytest.mark.asyncio
async def test_connected_resets_retry_count(controller_factory, peer_connections):
    controller = controller_factory()
    await controller.start()

    await disconnect(peer_connections[0], "failed")
    await controller.pending_retry
    assert controller.retry_count == 1

    await disconnect(peer_connections[1], "connected")
    assert controller.retry_count == 0


@pytest.mark.asyncio
async def test_manual_start_resets_retry_count(controller_factory, peer_connections):
    controller = controller_factory()
    await controller.start()
    await disconnect(peer_connections[0])
    await controller.pending_retry
    assert controller.retry_count == 1

    await controller.start()
    assert controller.retry_count == 0


@pytest.mark.asyncio
async def test_no_reconnect_when_disabled(controller_factory, peer_connections):
    controller = controller_factory(auto_reconnect=False)
    session = await controller.start()

    await disconnect(peer_connections[0])

    assert session.state == SessionState.FAILED
    assert session.error.code == "transport_lost"
    assert controller.pending_retry is None
    assert len(peer_connections) == 1


@pytest.mark.asyncio
async def test_stop_cancels_pending_retry(controller_factory, peer_connections):
    controller = controller_factory(retry_delay=60)
    await controller.start()
    await disconnect(peer_connections[0])

    retry = controller.pending_retry
    assert retry is not None
    await controller.stop()
    await asyncio.gather(retry, return_exceptions=True)

    assert retry.cancelled()
    assert controller.pending_retry is None
    assert len(peer_connections) == 1


@pytest.mark.asyncio
async def test_stale_callbacks_are_ignored(controller_factory, peer_connections):
    controller = controller_factory()
    await controller.start()
    old_pc = peer_connections[0]
    await controller.stop()

    await disconnect(old_pc, "failed")
    await old_pc.channels[0].emit("message", '{"type": "recognition_started"}')

    assert controller.state == SessionState.IDLE
    assert controller.pending_retry is None
    assert len(peer_connections) == 1


@pytest.mark.asyncio
async def test_channel_close_counts_as_disconnect(controller_factory, peer_connections):
    controller = controller_factory()
    await controller.start()

    await peer_connections[0].channels[0].emit("close")

    assert controller.retry_count == 1
    await controller.pending_retry
    assert len(peer_connections) == 2


@pytest.mark.asyncio
async def test_channel_open_sends_voice(controller_factory, peer_connections):
    controller = controller_factory(voice="coral")
    await controller.start()
    channel = peer_connections[0].channels[0]

    channel.readyState = "open"
    await channel.emit("open")

    assert [json.loads(data) for data in channel.sent] == [
        {"type": "client_message", "content": {"use_voice": "coral"}}
    ]


@pytest.mark.asyncio
async def test_channel_messages_update_transcript(controller_factory, peer_connections):
    controller = controller_factory()
    await controller.start()
    channel = peer_connections[0].channels[0]

    await channel.emit("message", '{"type": "recognition_result", "text": "Hi", "is_final": true, "duration": 1.0}')
    await channel.emit("message", '{"type": "generation_complete", "text": "Hello!"}')

    assert [(entry.sender, entry.text) for entry in controller.transcript] == [("user", "Hi"), ("ai", "Hello!")]
    assert controller.state == SessionState.ESTABLISHED


@pytest.mark.asyncio
async def test_transcript_survives_reconnect(controller_factory, peer_connections):
    controller = controller_factory()
    await controller.start()
    await peer_connections[0].channels[0].emit(
        "message", '{"type": "recognition_result", "text": "Before", "is_final": true}'
    )

    await disconnect(peer_connections[0])
    await controller.pending_retry

    assert [entry.text for entry in controller.transcript] == ["Before"]


@pytest.mark.asyncio
async def test_push_to_talk_turn(controller_factory, peer_connections):
    controller = controller_factory()
    await controller.start()
    channel = peer_connections[0].channels[0]
    channel.readyState = "open"

    assert controller.begin_user_turn()
    assert controller.state == SessionState.LISTENING
    assert not controller.begin_user_turn()

    assert controller.end_user_turn()
    assert controller.state == SessionState.ESTABLISHED

    sent = [json.loads(data)["type"] for data in channel.sent]
    assert sent == ["client_message", "client_message_end"]
    entry = controller.transcript.entries[-1]
    assert (entry.sender, entry.text) == ("user", "Voice message")
    assert entry.duration is not None


@pytest.mark.asyncio
async def test_push_to_talk_requires_connection(controller_factory):
    controller = controller_factory()
    assert not controller.begin_user_turn()
    assert not controller.end_user_turn()


@pytest.mark.asyncio
async def test_send_event_requires_open_channel(controller_factory):
    controller = controller_factory()
    await controller.start()

    with pytest.raises(ChannelError):
        controller.send_event({"type": "client_message"})


@pytest.mark.asyncio
async def test_push_to_talk_turn_ends_after_final_recognition(controller_factory, peer_connections):
    """A turn stays open while the remote moves the session on to processing"""
    controller = controller_factory()
    await controller.start()
    channel = peer_connections[0].channels[0]
    channel.readyState = "open"

    assert controller.begin_user_turn()
    await channel.emit("message", '{"type": "recognition_result", "text": "Hi", "is_final": true}')
    assert controller.state == SessionState.PROCESSING
    assert controller.turn_open

    assert controller.end_user_turn()
    assert not controller.turn_open
    assert controller.state == SessionState.PROCESSING

    sent = [json.loads(data)["type"] for data in channel.sent]
    assert sent == ["client_message", "client_message_end"]
    assert [entry.text for entry in controller.transcript] == ["Hi", "Voice message"]

    await channel.emit("message", '{"type": "generation_complete", "text": "Hello!"}')
    assert controller.state == SessionState.ESTABLISHED
    assert not controller.end_user_turn()


@pytest.mark.asyncio
async def test_turn_is_closed_on_teardown(controller_factory, peer_connections):
    controller = controller_factory()
    session = await controller.start()
    peer_connections[0].channels[0].readyState = "open"
    controller.begin_user_turn()

    await controller.stop()

    assert session.user_turn_at is None
    assert not controller.turn_open
    assert not controller.end_user_turn()


@pytest.mark.asyncio
async def test_unexpected_error_during_reconnect_is_contained(controller_factory, fake_signaling, media_factory):
    fake_signaling.offer_error = SignalingError(
        "proxy unreachable", category="api_connection_error", code="network_error"
    )
    controller = controller_factory()
    await controller.start()
    retry = controller.pending_retry
    assert retry is not None

    media_factory.error = RuntimeError("audio driver crashed")
    await retry

    assert retry.exception() is None
    assert controller.state == SessionState.FAILED
    assert isinstance(controller.session.error, RuntimeError)
