"""
Transcript state for a voice conversation.

A ``Transcript`` is an ordered, append-only sequence of immutable
``TranscriptEntry`` records. Entries are never edited or removed.
"""

from datetime import datetime
from typing import Iterator, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Sender = Literal["user", "ai"]


class TranscriptEntry(BaseModel):
    """A single utterance shown in the conversation view."""

    model_config = ConfigDict(frozen=True)

    text: str
    sender: Sender
    timestamp: datetime = Field(default_factory=datetime.now)
    duration: Optional[float] = None
    id: Optional[str] = None

    def format(self) -> str:
        """Render the entry the way the conversation view shows it."""
        meta = self.timestamp.strftime("%H:%M:%S")
        if self.duration is not None:
            meta += f" ({self.duration:.2f}s)"
        if self.id:
            meta += f" | ID: {self.id}"
        return f"[{self.sender}] {self.text} - {meta}"


class Transcript:
    """
    Append-only list of transcript entries.

    Tracks when the last user and assistant entries were added so response
    latency can be reported.
    """

    def __init__(self):
        self._entries: List[TranscriptEntry] = []
        self.last_user_time: Optional[datetime] = None
        self.last_ai_time: Optional[datetime] = None

    def append(
        self,
        text: str,
        sender: Sender,
        duration: Optional[float] = None,
        message_id=None,
        timestamp: Optional[datetime] = None,
    ) -> TranscriptEntry:
        """
        Create and append a new entry.

        Args:
            text: Utterance text
            sender: "user" or "ai"
            duration: Optional utterance duration in seconds
            message_id: Optional remote message identifier
            timestamp: Entry time, defaults to now

        Returns:
            The appended entry
        """
        entry = TranscriptEntry(
            text=text,
            sender=sender,
            timestamp=timestamp or datetime.now(),
            duration=duration,
            id=str(message_id) if message_id is not None else None,
        )
        self._entries.append(entry)
        if sender == "user":
            self.last_user_time = entry.timestamp
        else:
            self.last_ai_time = entry.timestamp
        return entry

    @property
    def entries(self) -> List[TranscriptEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TranscriptEntry]:
        return iter(list(self._entries))
