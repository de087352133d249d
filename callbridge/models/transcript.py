"""
Transcript assembly for a single call.

The assembler is an append-only log with one record per completed utterance.
Records keep the order in which the speech service reported completion; nothing
is merged, edited or deduplicated.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List


class Speaker(str, Enum):
    """Party that produced an utterance."""
    CALLER = "caller"
    AGENT = "agent"


SPEAKER_LABELS = {
    Speaker.CALLER: "Caller",
    Speaker.AGENT: "Agent",
}


@dataclass(frozen=True)
class Utterance:
    speaker: Speaker
    text: str
    order: int

    def to_line(self) -> str:
        return f"{SPEAKER_LABELS[self.speaker]}: {self.text}"


class TranscriptAssembler:
    """Accumulates the utterances of one call in completion order."""

    def __init__(self):
        self._records: List[Utterance] = []

    def append(self, speaker: Speaker, text: str) -> Utterance:
        """
        Record one completed utterance.

        Args:
            speaker: Who spoke
            text: The transcribed text

        Returns:
            Utterance: The stored record, numbered one past the previous record
        """
        record = Utterance(speaker=speaker, text=text, order=len(self._records) + 1)
        self._records.append(record)
        return record

    @property
    def records(self) -> List[Utterance]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def snapshot(self) -> str:
        """Return the full transcript as text, one ``Speaker: text`` line per utterance."""
        return "\n".join(record.to_line() for record in self._records)
