"""
State of one phone call as seen by the bridge.

``SessionState`` is the data half of a call session: identifiers, lifecycle
phase, transcript and the activity bookkeeping the watchdog relies on. The
behavior lives in ``callbridge.bot.call_session.CallSession``, which owns
exactly one ``SessionState``.
"""

import time
from enum import Enum
from typing import Optional

from callbridge.models.transcript import TranscriptAssembler


class SessionPhase(str, Enum):
    """Lifecycle phases of a call session."""
    CONNECTING = "CONNECTING"
    AWAITING_READY = "AWAITING_READY"
    GREETING = "GREETING"
    ACTIVE = "ACTIVE"
    CLOSING = "CLOSING"
    CLOSED = "CLOSED"


# Phases in which audio is relayed and the watchdog is armed
CONVERSATION_PHASES = (SessionPhase.GREETING, SessionPhase.ACTIVE)

# Phases in which no further events are processed
TERMINAL_PHASES = (SessionPhase.CLOSING, SessionPhase.CLOSED)


class SessionState:
    """Per-call state owned by a single CallSession."""

    def __init__(self, session_id: str):
        self._id = session_id
        self.stream_sid: Optional[str] = None
        self.phase = SessionPhase.CONNECTING
        self.transcript = TranscriptAssembler()
        self.last_activity = time.monotonic()
        self.greeted = False
        self.speech_ready = False
        self.close_reason: Optional[str] = None

    @property
    def id(self) -> str:
        return self._id

    def bind_stream(self, stream_sid: str) -> bool:
        """
        Record the telephony stream handle.

        Returns:
            bool: False if a handle was already bound (the new one is ignored)
        """
        if self.stream_sid is not None:
            return False
        self.stream_sid = stream_sid
        return True

    def touch(self) -> None:
        self.last_activity = time.monotonic()

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES

    @property
    def in_conversation(self) -> bool:
        return self.phase in CONVERSATION_PHASES
