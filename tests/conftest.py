import asyncio
import inspect
import logging
from itertools import count

import pytest
from aiortc import RTCSessionDescription

VALID_KEY = "sk-test-" + "a" * 40


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test"""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    logging.basicConfig(level=logging.NOTSET)
    yield


@pytest.fixture
def valid_key(monkeypatch):
    """Configure a well-formed API key in the environment."""
    monkeypatch.setenv("OPENAI_API_KEY", VALID_KEY)
    return VALID_KEY


@pytest.fixture
def no_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)


class FakeEmitter:
    """Minimal stand-in for the aiortc event emitter decorators."""

    def __init__(self):
        self.listeners = {}

    def on(self, event):
        def decorator(func):
            self.listeners.setdefault(event, []).append(func)
            return func

        return decorator

    async def emit(self, event, *args):
        for func in self.listeners.get(event, []):
            result = func(*args)
            if inspect.isawaitable(result):
                await result


class FakeTrack:
    _ids = count(1)

    def __init__(self, kind="audio"):
        self.kind = kind
        self.id = f"track-{next(self._ids)}"
        self.stopped = False

    def stop(self):
        self.stopped = True


class FakeDataChannel(FakeEmitter):
    def __init__(self, label, **options):
        super().__init__()
        self.label = label
        self.options = options
        self.readyState = "connecting"
        self.sent = []
        self.closed = False

    def send(self, data):
        self.sent.append(data)

    def close(self):
        self.closed = True
        self.readyState = "closed"


class FakePeerConnection(FakeEmitter):
    def __init__(self):
        super().__init__()
        self.connectionState = "new"
        self.tracks = []
        self.channels = []
        self.localDescription = None
        self.remoteDescription = None
        self.closed = False

    def addTrack(self, track):
        self.tracks.append(track)

    def createDataChannel(self, label, **options):
        channel = FakeDataChannel(label, **options)
        self.channels.append(channel)
        return channel

    async def createOffer(self):
        return RTCSessionDescription(sdp="v=0\r\no=- offer\r\n", type="offer")

    async def setLocalDescription(self, description):
        self.localDescription = description

    async def setRemoteDescription(self, description):
        self.remoteDescription = description

    async def close(self):
        self.closed = True
        self.connectionState = "closed"


class FakeSink:
    def __init__(self):
        self.tracks = []
        self.started = False
        self.stopped = False

    def addTrack(self, track):
        self.tracks.append(track)

    async def start(self):
        self.started = True

    async def stop(self):
        self.stopped = True


class FakeSignaling:
    """Signaling client double; gates let a test pause negotiation mid-step."""

    def __init__(self, credential=VALID_KEY, answer="v=0\r\no=- answer\r\n"):
        self.credential = credential
        self.answer = answer
        self.credential_error = None
        self.offer_error = None
        self.offer_gate = None
        self.offers = []

    async def fetch_credential(self):
        if self.credential_error is not None:
            raise self.credential_error
        return self.credential

    async def exchange_offer(self, offer_sdp, model, voice=None):
        self.offers.append((offer_sdp, model, voice))
        if self.offer_gate is not None:
            await self.offer_gate.wait()
        if self.offer_error is not None:
            raise self.offer_error
        return self.answer


class MediaFactory:
    def __init__(self):
        self.tracks = []
        self.error = None

    def __call__(self, device):
        if self.error is not None:
            raise self.error
        track = FakeTrack()
        self.tracks.append(track)
        return track


@pytest.fixture
def fake_signaling():
    return FakeSignaling()


@pytest.fixture
def media_factory():
    return MediaFactory()


@pytest.fixture
def peer_connections():
    """Every fake peer connection created by the controller, in order."""
    return []


@pytest.fixture
def sinks():
    return []


@pytest.fixture
def controller_factory(fake_signaling, media_factory, peer_connections, sinks):
    from voicechat.client.negotiation import NegotiationController
    from voicechat.client.presentation import Presentation

    def pc_factory():
        pc = FakePeerConnection()
        peer_connections.append(pc)
        return pc

    def sink_factory():
        sink = FakeSink()
        sinks.append(sink)
        return sink

    def build(**kwargs):
        options = dict(
            model="gpt-test-realtime",
            voice="verse",
            retry_delay=0,
            peer_connection_factory=pc_factory,
            media_factory=media_factory,
            sink_factory=sink_factory,
        )
        options.update(kwargs)
        return NegotiationController(fake_signaling, Presentation(), **options)

    return build


async def wait_for_state(controller, state, timeout=1.0):
    """Poll until the controller reaches ``state``."""
    async def _wait():
        while controller.state != state:
            await asyncio.sleep(0)

    await asyncio.wait_for(_wait(), timeout)
