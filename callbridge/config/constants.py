"""
Constants and configuration values used throughout the application.

This module defines constants that are used across different parts of the application,
providing a centralized location for wire-level names and defaults so the telephony
and speech-service protocols are spelled out in exactly one place.
"""

# Logger name used throughout the application
LOGGER_NAME = "call_bridge"

# Default OpenAI models
DEFAULT_REALTIME_MODEL = "gpt-4o-realtime-preview-2024-10-01"
DEFAULT_EXTRACTION_MODEL = "gpt-4o-2024-08-06"
DEFAULT_TRANSCRIPTION_MODEL = "whisper-1"

# OpenAI endpoints
DEFAULT_REALTIME_URL = "wss://api.openai.com/v1/realtime"
DEFAULT_OPENAI_API_URL = "https://api.openai.com/v1"

# Audio format constants (Realtime API names)
AUDIO_FORMAT_G711_ULAW = "g711_ulaw"
AUDIO_FORMAT_G711_ALAW = "g711_alaw"
AUDIO_FORMAT_PCM16 = "pcm16"
SUPPORTED_AUDIO_FORMATS = [AUDIO_FORMAT_G711_ULAW, AUDIO_FORMAT_G711_ALAW, AUDIO_FORMAT_PCM16]

# Turn detection modes
TURN_DETECTION_SERVER_VAD = "server_vad"
TURN_DETECTION_MANUAL = "manual"

# Telephony (Twilio Media Streams) event names
TELEPHONY_EVENT_START = "start"
TELEPHONY_EVENT_MEDIA = "media"
TELEPHONY_EVENT_STOP = "stop"

# Realtime API server event types
EVENT_SESSION_CREATED = "session.created"
EVENT_SESSION_UPDATED = "session.updated"
EVENT_SPEECH_STARTED = "input_audio_buffer.speech_started"
EVENT_SPEECH_STOPPED = "input_audio_buffer.speech_stopped"
EVENT_TRANSCRIPTION_COMPLETED = "conversation.item.input_audio_transcription.completed"
EVENT_AUDIO_DELTA = "response.audio.delta"
EVENT_RESPONSE_DONE = "response.done"
EVENT_ERROR = "error"

# Header carrying the telephony call identifier on the media-stream socket
CALL_SID_HEADER = "x-twilio-call-sid"
