"""
Microphone capture and speaker playback through PyAudio.

``MicrophoneStreamTrack`` feeds 20 ms mono frames from an input device into
the peer connection; ``SpeakerSink`` plays an inbound track on the default
output device. ``open_microphone`` maps device problems onto
``MediaAccessError``.
"""

import asyncio
import logging
from typing import List, Optional, Tuple

import av
import numpy as np
import pyaudio
from aiortc import MediaStreamTrack
from aiortc.mediastreams import MediaStreamError

from voicechat.config.constants import LOGGER_NAME
from voicechat.exceptions import MediaAccessError

logger = logging.getLogger(LOGGER_NAME)

# Audio parameters
SAMPLE_RATE = 48000
CHANNELS = 1
FORMAT = pyaudio.paInt16
CHUNK = 960  # 20ms at 48kHz


def list_input_devices() -> List[Tuple[int, str]]:
    """Return ``(index, name)`` for every device with at least one input channel."""
    audio = pyaudio.PyAudio()
    try:
        devices = []
        for index in range(audio.get_device_count()):
            info = audio.get_device_info_by_index(index)
            if info.get("maxInputChannels", 0) > 0:
                devices.append((index, info.get("name") or f"Microphone {len(devices) + 1}"))
        return devices
    finally:
        audio.terminate()


class MicrophoneStreamTrack(MediaStreamTrack):
    """MediaStreamTrack that captures audio from a microphone."""

    kind = "audio"

    def __init__(self, device_index: Optional[int] = None):
        super().__init__()
        self.device_index = device_index
        self.p = pyaudio.PyAudio()
        try:
            self.stream = self.p.open(
                format=FORMAT,
                channels=CHANNELS,
                rate=SAMPLE_RATE,
                input=True,
                input_device_index=device_index,
                frames_per_buffer=CHUNK,
            )
        except Exception:
            self.p.terminate()
            raise
        self.timestamp = 0
        logger.info(f"Microphone initialized: {SAMPLE_RATE}Hz, {CHANNELS} channel(s)")

    async def recv(self):
        """Get the next frame from the microphone."""
        if self.readyState != "live" or self.stream is None:
            raise MediaStreamError

        data = await asyncio.to_thread(self.stream.read, CHUNK, exception_on_overflow=False)

        frame = av.AudioFrame.from_ndarray(
            np.frombuffer(data, np.int16).reshape(1, -1),
            format="s16",
            layout="mono",
        )
        frame.sample_rate = SAMPLE_RATE
        frame.pts = self.timestamp
        self.timestamp += CHUNK
        return frame

    def stop(self):
        """Stop the microphone stream."""
        super().stop()
        if self.stream is not None:
            self.stream.stop_stream()
            self.stream.close()
            self.stream = None
        if self.p is not None:
            self.p.terminate()
            self.p = None
            logger.info("Microphone stopped")


def open_microphone(device_index: Optional[int] = None) -> MicrophoneStreamTrack:
    """
    Open a microphone track on the given input device.

    Raises:
        MediaAccessError: If no input device matches or the device cannot be opened
    """
    inputs = list_input_devices()
    if not inputs:
        raise MediaAccessError("No audio input devices found")
    if device_index is not None and device_index not in dict(inputs):
        raise MediaAccessError(f"No audio input device matches index {device_index}")
    try:
        return MicrophoneStreamTrack(device_index)
    except OSError as e:
        raise MediaAccessError(f"Microphone access error: {e}") from e


class SpeakerSink:
    """
    Plays an inbound audio track on the default output device.

    Same interface as aiortc's ``MediaBlackhole``: ``addTrack``, ``start``, ``stop``.
    """

    def __init__(self):
        self._track: Optional[MediaStreamTrack] = None
        self._task: Optional[asyncio.Task] = None
        self._resampler = av.AudioResampler(format="s16", layout="mono", rate=SAMPLE_RATE)
        self.p = None
        self.stream = None

    def addTrack(self, track: MediaStreamTrack) -> None:
        self._track = track

    async def start(self) -> None:
        if self._track is None or self._task is not None:
            return
        self.p = pyaudio.PyAudio()
        self.stream = self.p.open(format=FORMAT, channels=CHANNELS, rate=SAMPLE_RATE, output=True)
        self._task = asyncio.create_task(self._play())
        logger.info("Speaker playback started")

    async def _play(self) -> None:
        while True:
            try:
                frame = await self._track.recv()
            except MediaStreamError:
                logger.info("Remote audio track ended")
                return
            for out in self._resampler.resample(frame):
                await asyncio.to_thread(self.stream.write, out.to_ndarray().tobytes())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self.stream is not None:
            self.stream.stop_stream()
            self.stream.close()
            self.stream = None
        if self.p is not None:
            self.p.terminate()
            self.p = None
            logger.info("Speaker playback stopped")
