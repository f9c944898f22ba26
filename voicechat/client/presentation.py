"""
Presentation layer for the voice client.

Pure output: it records and renders what the controller and the event handler
report (status, transcript entries, log pane, audio level) and never makes
control-flow decisions. ``Presentation`` keeps everything in memory;
``ConsolePresentation`` also renders to the terminal.
"""

import logging
import sys
from collections import deque
from datetime import datetime
from typing import Deque, List, NamedTuple

from voicechat.config.constants import LOGGER_NAME
from voicechat.models.session import SessionState
from voicechat.models.transcript import TranscriptEntry

logger = logging.getLogger(LOGGER_NAME)

LOG_LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

STATUS_LABELS = {
    SessionState.IDLE: "Disconnected",
    SessionState.ACQUIRING_CREDENTIAL: "Connecting...",
    SessionState.CAPTURING_MEDIA: "Connecting...",
    SessionState.OFFERING: "Connecting...",
    SessionState.AWAITING_ANSWER: "Connecting...",
    SessionState.ESTABLISHED: "Connected",
    SessionState.LISTENING: "Listening...",
    SessionState.PROCESSING: "Processing...",
    SessionState.CLOSING: "Disconnecting...",
    SessionState.FAILED: "Error",
}


class LogEntry(NamedTuple):
    timestamp: datetime
    level: str
    message: str

    def format(self) -> str:
        return f"[{self.timestamp.strftime('%H:%M:%S')}] {self.message}"


class Presentation:
    """
    In-memory output surface.

    Attributes:
        status: Last status shown
        logs: Log pane entries, oldest first (bounded)
        entries: Transcript entries shown, oldest first
        level: Last audio level shown, 0.0-1.0
    """

    def __init__(self, max_log_entries: int = 500):
        self.status = SessionState.IDLE
        self.logs: Deque[LogEntry] = deque(maxlen=max_log_entries)
        self.entries: List[TranscriptEntry] = []
        self.level = 0.0

    def set_status(self, state: SessionState) -> None:
        self.status = state
        self.render_status(state)

    def log(self, message: str, level: str = "info") -> LogEntry:
        """Append to the log pane and mirror the message to the application logger."""
        entry = LogEntry(datetime.now(), level, message)
        self.logs.append(entry)
        logger.log(LOG_LEVELS.get(level, logging.INFO), message)
        self.render_log(entry)
        return entry

    def show_entry(self, entry: TranscriptEntry) -> None:
        self.entries.append(entry)
        self.render_entry(entry)

    def show_level(self, level: float) -> None:
        self.level = level
        self.render_level(level)

    # Rendering hooks, no-ops here

    def render_status(self, state: SessionState) -> None:
        pass

    def render_log(self, entry: LogEntry) -> None:
        pass

    def render_entry(self, entry: TranscriptEntry) -> None:
        pass

    def render_level(self, level: float) -> None:
        pass


class ConsolePresentation(Presentation):
    """Renders status changes, transcript entries and a level bar to a terminal."""

    BAR_WIDTH = 30

    def __init__(self, stream=None, show_level_bar: bool = True, **kwargs):
        super().__init__(**kwargs)
        self.stream = stream or sys.stdout
        self.show_level_bar = show_level_bar

    def render_status(self, state: SessionState) -> None:
        self._write(f"* Status: {STATUS_LABELS.get(state, state.value)}")

    def render_entry(self, entry: TranscriptEntry) -> None:
        self._write(entry.format())

    def render_level(self, level: float) -> None:
        if not self.show_level_bar:
            return
        filled = int(round(level * self.BAR_WIDTH))
        bar = "#" * filled + "-" * (self.BAR_WIDTH - filled)
        self.stream.write(f"\r[{bar}] ")
        self.stream.flush()

    def _write(self, line: str) -> None:
        self.stream.write(f"\r{line}\n")
        self.stream.flush()
