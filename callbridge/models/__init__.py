"""
Models module for data structures and state management in the call bridge.

Key components:
- twilio_schemas: Pydantic models for the Twilio Media Streams messages.
- openai_schemas: Pydantic models for the OpenAI Realtime API events and the
  post-call extraction result.
- session: Lifecycle phases and per-call state.
- transcript: Ordered caller/agent utterances of a call.
- registry: Process-wide map of live call sessions.
"""

from callbridge.models.openai_schemas import ExtractionResult, parse_server_event
from callbridge.models.registry import SessionRegistry
from callbridge.models.session import SessionPhase, SessionState
from callbridge.models.transcript import Speaker, TranscriptAssembler, Utterance
from callbridge.models.twilio_schemas import parse_telephony_message
