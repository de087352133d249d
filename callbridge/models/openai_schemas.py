"""
Pydantic models for OpenAI message structures.

This module provides type-safe models for the events exchanged with the OpenAI
Realtime API, both the client events the bridge sends and the server events it
acts on, plus the structured result of the post-call extraction.

Client events are always serialized with ``exclude_unset`` so that only the
fields a caller set explicitly reach the wire; an explicit ``None`` is sent as
``null`` (used to switch server-side turn detection off).
"""

import logging
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from callbridge.config.constants import (
    EVENT_AUDIO_DELTA,
    EVENT_ERROR,
    EVENT_RESPONSE_DONE,
    EVENT_SESSION_CREATED,
    EVENT_SESSION_UPDATED,
    EVENT_SPEECH_STARTED,
    EVENT_SPEECH_STOPPED,
    EVENT_TRANSCRIPTION_COMPLETED,
    LOGGER_NAME,
)

logger = logging.getLogger(LOGGER_NAME)


# Client events
class TurnDetection(BaseModel):
    """Server-side voice activity detection settings."""

    type: Literal["server_vad"]


class InputAudioTranscription(BaseModel):
    """Model used to transcribe caller audio."""

    model: str


class SessionConfig(BaseModel):
    """The ``session`` block of a ``session.update`` event."""

    turn_detection: Optional[TurnDetection] = None
    input_audio_format: Optional[str] = None
    output_audio_format: Optional[str] = None
    voice: Optional[str] = None
    instructions: Optional[str] = None
    modalities: Optional[List[str]] = None
    temperature: Optional[float] = None
    input_audio_transcription: Optional[InputAudioTranscription] = None


class SessionUpdateEvent(BaseModel):
    """Configuration event sent right after the socket opens."""

    type: Literal["session.update"]
    session: SessionConfig


class InputAudioAppendEvent(BaseModel):
    """Appends one caller audio frame to the input buffer."""

    type: Literal["input_audio_buffer.append"]
    audio: str = Field(..., description="Base64-encoded audio frame")


class InputAudioCommitEvent(BaseModel):
    """Commits the input buffer as a caller turn (manual turn detection)."""

    type: Literal["input_audio_buffer.commit"]


class ResponseOptions(BaseModel):
    """Per-response overrides for ``response.create``."""

    instructions: Optional[str] = None
    modalities: Optional[List[str]] = None
    voice: Optional[str] = None


class ResponseCreateEvent(BaseModel):
    """Asks the service to produce an agent response."""

    type: Literal["response.create"]
    response: Optional[ResponseOptions] = None


# Server events
class SessionReadyEvent(BaseModel):
    """Session created or configuration accepted; the agent may speak."""

    type: Literal["session.created", "session.updated"]


class SpeechStartedEvent(BaseModel):
    """Caller voice activity began."""

    type: Literal["input_audio_buffer.speech_started"]


class SpeechStoppedEvent(BaseModel):
    """Caller voice activity ended."""

    type: Literal["input_audio_buffer.speech_stopped"]


class TranscriptionCompletedEvent(BaseModel):
    """Finalized transcription of one caller turn."""

    type: Literal["conversation.item.input_audio_transcription.completed"]
    transcript: str = ""


class AudioDeltaEvent(BaseModel):
    """Incremental synthesized agent audio."""

    type: Literal["response.audio.delta"]
    delta: str


class ContentPart(BaseModel):
    transcript: Optional[str] = None


class OutputItem(BaseModel):
    content: List[ContentPart] = Field(default_factory=list)


class ResponseBody(BaseModel):
    output: List[OutputItem] = Field(default_factory=list)


class ResponseDoneEvent(BaseModel):
    """An agent turn finished."""

    type: Literal["response.done"]
    response: ResponseBody = Field(default_factory=ResponseBody)

    def transcript_text(self) -> str:
        """Return the transcript of the first content block carrying one, stripped."""
        for item in self.response.output:
            for part in item.content:
                if part.transcript:
                    return part.transcript.strip()
        return ""


class RealtimeErrorEvent(BaseModel):
    """Error reported by the Realtime API."""

    type: Literal["error"]
    error: Dict[str, Any] = Field(default_factory=dict)


ServerEvent = Union[
    SessionReadyEvent,
    SpeechStartedEvent,
    SpeechStoppedEvent,
    TranscriptionCompletedEvent,
    AudioDeltaEvent,
    ResponseDoneEvent,
    RealtimeErrorEvent,
]

_SERVER_MODELS = {
    EVENT_SESSION_CREATED: SessionReadyEvent,
    EVENT_SESSION_UPDATED: SessionReadyEvent,
    EVENT_SPEECH_STARTED: SpeechStartedEvent,
    EVENT_SPEECH_STOPPED: SpeechStoppedEvent,
    EVENT_TRANSCRIPTION_COMPLETED: TranscriptionCompletedEvent,
    EVENT_AUDIO_DELTA: AudioDeltaEvent,
    EVENT_RESPONSE_DONE: ResponseDoneEvent,
    EVENT_ERROR: RealtimeErrorEvent,
}


def parse_server_event(data: Dict[str, Any]) -> Optional[ServerEvent]:
    """
    Turn a decoded Realtime API message into a typed event.

    Args:
        data: The decoded JSON object

    Returns:
        The typed event, or None for event types the bridge ignores and for
        payloads that fail validation (logged)
    """
    event_type = data.get("type")
    model = _SERVER_MODELS.get(event_type)
    if model is None:
        logger.debug(f"Ignoring Realtime event of type: {event_type}")
        return None
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.error(f"Invalid Realtime {event_type} event: {e}")
        return None


# Post-call extraction
class ExtractionResult(BaseModel):
    """Structured customer details extracted from a finished call."""

    customerName: str
    customerAvailability: str
    specialNotes: str


EXTRACTION_JSON_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "customerName": {"type": "string"},
        "customerAvailability": {"type": "string"},
        "specialNotes": {"type": "string"},
    },
    "required": ["customerName", "customerAvailability", "specialNotes"],
    "additionalProperties": False,
}
