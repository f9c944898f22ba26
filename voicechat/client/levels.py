"""
Audio level tap for the outbound microphone track.

``AudioLevelTrack`` wraps a source track: every frame passes through
unchanged, and while the tap is active its RMS level is reported to a
callback (at most once per ``interval``) to drive the level display.
"""

import time
from typing import Callable

import numpy as np
from aiortc import MediaStreamTrack
from aiortc.mediastreams import MediaStreamError


def compute_level(samples: np.ndarray) -> float:
    """
    RMS level of a block of samples, normalized to 0.0-1.0.

    Integer samples are scaled by their dtype's maximum; float samples are
    assumed to already be in -1.0..1.0.
    """
    if samples.size == 0:
        return 0.0
    data = samples.astype(np.float64)
    if np.issubdtype(samples.dtype, np.integer):
        data /= float(np.iinfo(samples.dtype).max)
    rms = float(np.sqrt(np.mean(np.square(data))))
    return min(1.0, rms)


class AudioLevelTrack(MediaStreamTrack):
    """Pass-through audio track that reports the level of each frame."""

    kind = "audio"

    def __init__(self, source: MediaStreamTrack, on_level: Callable[[float], None], interval: float = 0.1):
        super().__init__()
        self.source = source
        self.on_level = on_level
        self.interval = interval
        self.active = False
        self._last_report = 0.0

    def start(self) -> None:
        """Begin reporting levels."""
        self.active = True

    async def recv(self):
        if self.readyState != "live":
            raise MediaStreamError
        frame = await self.source.recv()
        if self.active:
            now = time.monotonic()
            if now - self._last_report >= self.interval:
                self._last_report = now
                self.on_level(compute_level(frame.to_ndarray()))
        return frame

    def stop(self) -> None:
        self.active = False
        super().stop()
