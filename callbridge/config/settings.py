"""
Runtime settings for the call bridge.

Settings are read from environment variables (optionally populated from a
``.env`` file by ``python-dotenv``) and validated with pydantic, so a bad
numeric or boolean value fails at startup instead of in the middle of a call.
Greeting order, farewell phrases and every timeout are configuration rather
than fixed behavior.
"""

import os
from typing import List, Mapping, Optional

from pydantic import BaseModel, Field, field_validator

from callbridge.config.constants import (
    AUDIO_FORMAT_G711_ULAW,
    DEFAULT_EXTRACTION_MODEL,
    DEFAULT_OPENAI_API_URL,
    DEFAULT_REALTIME_MODEL,
    DEFAULT_REALTIME_URL,
    DEFAULT_TRANSCRIPTION_MODEL,
    SUPPORTED_AUDIO_FORMATS,
    TURN_DETECTION_MANUAL,
    TURN_DETECTION_SERVER_VAD,
)

DEFAULT_INSTRUCTIONS = (
    "Du er en dansk receptionist. Tal venligt, professionelt og grammatisk korrekt dansk. "
    "Forstå danske navne og stednavne. Afslut samtalen høfligt, når det er naturligt."
)
DEFAULT_GREETING_INSTRUCTION = (
    'Sig venligt på dansk: "Hej, du taler med Ava fra Dirty Ranch Steakhouse. '
    'Hvordan kan jeg hjælpe dig i dag?"'
)
DEFAULT_FAREWELL_INSTRUCTION = (
    'Sig venligt på dansk: "Det var en fornøjelse at hjælpe dig. '
    "Tak fordi du ringede, og ha' en rigtig god dag!\""
)
DEFAULT_INACTIVITY_INSTRUCTION = (
    'Sig venligt: "Det ser ud til, at forbindelsen er blevet stille. '
    "Jeg afslutter samtalen nu. Ha' en god dag!\""
)
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

DEFAULT_FAREWELL_PHRASES = [
    "farvel",
    "hej hej",
    "tak for i dag",
    "det var det hele",
    "tak skal du have",
]

# Maps environment variable names to settings fields
ENV_FIELDS = {
    "LOG_LEVEL": "log_level",
    "OPENAI_API_KEY": "openai_api_key",
    "OPENAI_REALTIME_MODEL": "realtime_model",
    "OPENAI_REALTIME_URL": "realtime_url",
    "OPENAI_API_URL": "openai_api_url",
    "VOICE": "voice",
    "SYSTEM_MESSAGE": "instructions",
    "AUDIO_FORMAT": "audio_format",
    "TURN_DETECTION": "turn_detection",
    "TRANSCRIPTION_MODEL": "transcription_model",
    "TEMPERATURE": "temperature",
    "GREETING_ENABLED": "greeting_enabled",
    "GREETING_INSTRUCTION": "greeting_instruction",
    "FAREWELL_INSTRUCTION": "farewell_instruction",
    "INACTIVITY_INSTRUCTION": "inactivity_instruction",
    "FAREWELL_PHRASES": "farewell_phrases",
    "INACTIVITY_TIMEOUT": "inactivity_timeout",
    "HANGUP_GRACE_PERIOD": "hangup_grace_period",
    "READY_TIMEOUT": "ready_timeout",
    "EXTRACTION_MODEL": "extraction_model",
    "EXTRACTION_TIMEOUT": "extraction_timeout",
    "WEBHOOK_URL": "webhook_url",
    "WEBHOOK_TIMEOUT": "webhook_timeout",
}


class BridgeSettings(BaseModel):
    """Validated settings shared by every call session in the process."""

    openai_api_key: Optional[str] = None
    log_level: str = "INFO"

    # Realtime speech session
    realtime_model: str = DEFAULT_REALTIME_MODEL
    realtime_url: str = DEFAULT_REALTIME_URL
    voice: str = "alloy"
    instructions: str = DEFAULT_INSTRUCTIONS
    audio_format: str = AUDIO_FORMAT_G711_ULAW
    turn_detection: str = TURN_DETECTION_SERVER_VAD
    transcription_model: str = DEFAULT_TRANSCRIPTION_MODEL
    temperature: float = 0.8

    # Turn-taking and termination
    greeting_enabled: bool = True
    greeting_instruction: str = DEFAULT_GREETING_INSTRUCTION
    farewell_instruction: str = DEFAULT_FAREWELL_INSTRUCTION
    inactivity_instruction: str = DEFAULT_INACTIVITY_INSTRUCTION
    farewell_phrases: List[str] = Field(default_factory=lambda: list(DEFAULT_FAREWELL_PHRASES))
    inactivity_timeout: float = Field(20.0, gt=0)
    hangup_grace_period: float = Field(3.5, ge=0)
    ready_timeout: float = Field(10.0, gt=0)

    # Post-call pipeline
    openai_api_url: str = DEFAULT_OPENAI_API_URL
    extraction_model: str = DEFAULT_EXTRACTION_MODEL
    extraction_timeout: float = Field(30.0, gt=0)
    webhook_url: Optional[str] = None
    webhook_timeout: float = Field(10.0, gt=0)

    @field_validator("audio_format")
    def validate_audio_format(cls, v):
        """Only formats both Twilio and the Realtime API can agree on are allowed."""
        if v not in SUPPORTED_AUDIO_FORMATS:
            raise ValueError(f"Unsupported audio format: {v}")
        return v

    @field_validator("log_level")
    def validate_log_level(cls, v):
        v = v.strip().upper()
        if v not in LOG_LEVELS:
            raise ValueError(f"Log level must be one of {', '.join(LOG_LEVELS)}")
        return v

    @field_validator("turn_detection")
    def validate_turn_detection(cls, v):
        v = v.strip().lower()
        if v not in (TURN_DETECTION_SERVER_VAD, TURN_DETECTION_MANUAL):
            raise ValueError(
                f"Turn detection must be '{TURN_DETECTION_SERVER_VAD}' or '{TURN_DETECTION_MANUAL}'"
            )
        return v

    @field_validator("farewell_phrases", mode="before")
    def split_farewell_phrases(cls, v):
        """Accept a comma separated string as well as a list."""
        if isinstance(v, str):
            v = v.split(",")
        phrases = [phrase.strip() for phrase in v if phrase and phrase.strip()]
        if not phrases:
            raise ValueError("At least one farewell phrase is required")
        return phrases

    @property
    def manual_turns(self) -> bool:
        return self.turn_detection == TURN_DETECTION_MANUAL

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "BridgeSettings":
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read from instead of ``os.environ``

        Returns:
            BridgeSettings: The validated settings

        Raises:
            pydantic.ValidationError: If a variable holds an invalid value
        """
        environ = os.environ if environ is None else environ
        values = {
            field: environ[name]
            for name, field in ENV_FIELDS.items()
            if environ.get(name) not in (None, "")
        }
        return cls(**values)
