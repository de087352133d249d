"""
Pydantic models for the Twilio Media Streams WebSocket protocol.

This module defines structured data models for the incoming and outgoing messages
exchanged with the telephony gateway, providing type validation and documentation.
Only the events the bridge acts on are modelled; every other event kind is
reported as unknown by ``parse_telephony_message``.
"""

import base64
import binascii
import json
import logging
from typing import Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from callbridge.config.constants import (
    LOGGER_NAME,
    TELEPHONY_EVENT_MEDIA,
    TELEPHONY_EVENT_START,
    TELEPHONY_EVENT_STOP,
)

logger = logging.getLogger(LOGGER_NAME)


def _validate_base64(v: str) -> str:
    if not v:
        raise ValueError("Audio payload cannot be empty")
    try:
        base64.b64decode(v, validate=True)
    except (binascii.Error, ValueError):
        raise ValueError("Invalid base64 encoded audio data")
    return v


# Inbound Messages
class StreamStartPayload(BaseModel):
    """The ``start`` block describing the media stream."""

    streamSid: str = Field(..., min_length=1, description="Stream identifier")
    callSid: Optional[str] = Field(None, description="Call identifier")
    customParameters: Dict[str, str] = Field(default_factory=dict)


class StreamStartMessage(BaseModel):
    """Model for the ``start`` event sent once the stream is attached."""

    event: Literal["start"]
    start: StreamStartPayload

    @property
    def stream_sid(self) -> str:
        return self.start.streamSid


class MediaPayload(BaseModel):
    """Audio frame carried by a ``media`` event."""

    payload: str = Field(..., description="Base64-encoded audio frame")

    @field_validator("payload")
    def validate_payload(cls, v):
        """Validate that the payload is valid base64."""
        return _validate_base64(v)


class MediaMessage(BaseModel):
    """Model for an inbound ``media`` event carrying caller audio."""

    event: Literal["media"]
    media: MediaPayload

    @property
    def payload(self) -> str:
        return self.media.payload


class StreamStopMessage(BaseModel):
    """Model for the ``stop`` event sent when the caller hangs up."""

    event: Literal["stop"]


# Outbound Messages
class OutboundMediaMessage(BaseModel):
    """Model for a ``media`` event carrying agent audio back to the caller."""

    event: Literal["media"]
    streamSid: str = Field(..., description="Stream the audio belongs to")
    media: MediaPayload


class HangupMessage(BaseModel):
    """Model for the ``stop`` event ending the stream from the bridge side."""

    event: Literal["stop"]


# Union type for all inbound events the bridge handles
TelephonyEvent = Union[StreamStartMessage, MediaMessage, StreamStopMessage]

_INBOUND_MODELS = {
    TELEPHONY_EVENT_START: StreamStartMessage,
    TELEPHONY_EVENT_MEDIA: MediaMessage,
    TELEPHONY_EVENT_STOP: StreamStopMessage,
}


def parse_telephony_message(raw: str) -> Optional[TelephonyEvent]:
    """
    Parse a raw text frame from the telephony gateway.

    Args:
        raw: The JSON text received on the media-stream socket

    Returns:
        The typed event, or None when the frame is malformed or of a kind the
        bridge does not handle (both cases are logged)
    """
    try:
        message = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Received invalid JSON from telephony: {raw[:100]}")
        return None

    if not isinstance(message, dict):
        logger.warning(f"Ignoring non-object telephony frame: {raw[:100]}")
        return None

    event_name = message.get("event")
    model = _INBOUND_MODELS.get(event_name)
    if model is None:
        logger.info(f"Ignoring telephony event: {event_name}")
        return None

    try:
        return model.model_validate(message)
    except ValidationError as e:
        logger.error(f"Invalid telephony {event_name} event: {e}")
        return None
