"""
Call session: the bridge between one phone call and one realtime speech session.

This module provides the CallSession class, which owns the telephony transport
and the speech transport of a single call and relays between them:

- Caller audio from Twilio is appended to the Realtime API input buffer
- Agent audio from the Realtime API is streamed back to Twilio unmodified
- Caller and agent utterances are collected into the transcript
- The greeting, the inactivity watchdog and farewell detection decide when
  the call starts talking and when it hangs up

Each transport has its own consumer task, so a slow send on one side never
holds up events from the other side, while events from one side are always
handled in arrival order. When the session closes the transcript is handed,
as text, to the post-call pipeline and the session removes itself from the
registry.
"""

import asyncio
import functools
import logging
import re
from typing import Iterable, List

from callbridge.bot.timers import DelayedAction, InactivityWatchdog
from callbridge.config.constants import AUDIO_FORMAT_G711_ULAW, LOGGER_NAME
from callbridge.config.settings import BridgeSettings
from callbridge.models.openai_schemas import (
    AudioDeltaEvent,
    InputAudioTranscription,
    RealtimeErrorEvent,
    ResponseDoneEvent,
    SessionConfig,
    SessionReadyEvent,
    SpeechStartedEvent,
    SpeechStoppedEvent,
    TranscriptionCompletedEvent,
    TurnDetection,
)
from callbridge.models.registry import SessionRegistry
from callbridge.models.session import SessionPhase, SessionState
from callbridge.models.transcript import Speaker
from callbridge.models.twilio_schemas import MediaMessage, StreamStartMessage, StreamStopMessage

logger = logging.getLogger(LOGGER_NAME)

# Reasons recorded when a session enters CLOSING
CLOSE_CALLER_HANGUP = "caller_hangup"
CLOSE_TELEPHONY_CLOSED = "telephony_closed"
CLOSE_SPEECH_CLOSED = "speech_closed"
CLOSE_SPEECH_CONNECT_FAILED = "speech_connect_failed"
CLOSE_HANDSHAKE_TIMEOUT = "handshake_timeout"
CLOSE_INACTIVITY = "inactivity"
CLOSE_FAREWELL = "farewell"
CLOSE_CANCELLED = "cancelled"


def compile_farewell_pattern(phrases: Iterable[str]) -> re.Pattern:
    """Build a case-insensitive matcher for the closing phrases as whole words."""
    alternatives = "|".join(re.escape(phrase) for phrase in phrases)
    return re.compile(rf"(?<!\w)(?:{alternatives})(?!\w)", re.IGNORECASE)


def build_session_config(settings: BridgeSettings) -> SessionConfig:
    """Translate bridge settings into the Realtime ``session.update`` block."""
    turn_detection = None if settings.manual_turns else TurnDetection(type="server_vad")
    return SessionConfig(
        turn_detection=turn_detection,
        input_audio_format=settings.audio_format,
        output_audio_format=settings.audio_format,
        voice=settings.voice,
        instructions=settings.instructions,
        modalities=["text", "audio"],
        temperature=settings.temperature,
        input_audio_transcription=InputAudioTranscription(model=settings.transcription_model),
    )


class CallSession:
    """
    Bridge instance for one phone call.

    The session is driven by ``run()``, which returns once the call is over and
    everything it owned (sockets, consumer tasks, timers) has been released.
    """

    def __init__(self, session_id: str, telephony, speech, settings: BridgeSettings,
                 registry: SessionRegistry, post_call):
        self.state = SessionState(session_id)
        self.telephony = telephony
        self.speech = speech
        self.settings = settings
        self.registry = registry
        self.post_call = post_call

        self._farewell_pattern = compile_farewell_pattern(settings.farewell_phrases)
        self.watchdog = InactivityWatchdog(settings.inactivity_timeout, self._on_inactivity)
        self._handshake_timer = DelayedAction("handshake")
        self._hangup_action = DelayedAction("hangup")
        self._close_requested = asyncio.Event()
        self._consumers: List[asyncio.Task] = []

        if settings.audio_format != AUDIO_FORMAT_G711_ULAW:
            logger.warning(
                f"Audio format {settings.audio_format} must match the telephony stream codec"
            )

    @property
    def id(self) -> str:
        return self.state.id

    @property
    def phase(self) -> SessionPhase:
        return self.state.phase

    @property
    def hangup_pending(self) -> bool:
        return self._hangup_action.pending

    def _set_phase(self, phase: SessionPhase) -> None:
        if self.state.phase is phase:
            return
        logger.info(f"Session {self.id}: {self.state.phase.value} -> {phase.value}")
        self.state.phase = phase

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Drive the call from connection to teardown."""
        try:
            self.telephony.start()
            self._consumers.append(asyncio.create_task(self._consume_telephony()))

            connected = await self.speech.connect()
            if self.state.is_terminal:
                logger.info(f"Session {self.id} closed while connecting to the speech service")
            elif not connected:
                self.request_close(CLOSE_SPEECH_CONNECT_FAILED)
            else:
                self._consumers.append(asyncio.create_task(self._consume_speech()))
                await self.speech.update_session(build_session_config(self.settings))
                if not self.state.is_terminal:
                    self._set_phase(SessionPhase.AWAITING_READY)
                    self._handshake_timer.schedule(self.settings.ready_timeout, self._on_handshake_timeout)
                    # The stream may have started while the speech socket was opening
                    await self._maybe_greet()

            await self._close_requested.wait()
        finally:
            if not self.state.is_terminal:
                self.request_close(CLOSE_CANCELLED)
            await self._teardown()

    def request_close(self, reason: str) -> None:
        """
        Move the session to CLOSING. Only the first reason is kept; the actual
        teardown happens in ``run()``.
        """
        if self.state.is_terminal:
            return
        self.state.close_reason = reason
        logger.info(f"Closing session {self.id}: {reason}")
        self._set_phase(SessionPhase.CLOSING)
        self._cancel_timers()
        self._close_requested.set()

    def _cancel_timers(self) -> None:
        self.watchdog.cancel()
        self._handshake_timer.cancel()
        self._hangup_action.cancel()

    async def _teardown(self) -> None:
        self._cancel_timers()

        try:
            await self.speech.close()
        except Exception as e:
            logger.error(f"Error closing speech transport for session {self.id}: {e}", exc_info=True)
        try:
            await self.telephony.hang_up()
        except Exception as e:
            logger.error(f"Error closing telephony transport for session {self.id}: {e}", exc_info=True)

        current = asyncio.current_task()
        pending = [task for task in self._consumers if task is not current and not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._consumers.clear()

        self._set_phase(SessionPhase.CLOSED)

        transcript = self.state.transcript.snapshot()
        logger.info(
            f"Session {self.id} closed ({self.state.close_reason}) with "
            f"{len(self.state.transcript)} utterances"
        )
        try:
            self.post_call.submit(self.id, transcript)
        except Exception as e:
            logger.error(f"Could not hand off transcript for session {self.id}: {e}", exc_info=True)
        self.registry.remove(self.id)

    # ------------------------------------------------------------------
    # Ingress consumers
    # ------------------------------------------------------------------

    async def _consume_telephony(self) -> None:
        while True:
            event = await self.telephony.receive_event()
            if event is None:
                self.request_close(CLOSE_TELEPHONY_CLOSED)
                return
            if self.state.is_terminal:
                continue
            try:
                await self._handle_telephony_event(event)
            except Exception as e:
                logger.error(f"Error handling telephony event for session {self.id}: {e}", exc_info=True)

    async def _consume_speech(self) -> None:
        while True:
            event = await self.speech.receive_event()
            if event is None:
                self.request_close(CLOSE_SPEECH_CLOSED)
                return
            if self.state.is_terminal:
                continue
            try:
                await self._handle_speech_event(event)
            except Exception as e:
                logger.error(f"Error handling speech event for session {self.id}: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Telephony events
    # ------------------------------------------------------------------

    async def _handle_telephony_event(self, event) -> None:
        if isinstance(event, MediaMessage):
            self._note_caller_activity()
            if self.state.phase in (SessionPhase.AWAITING_READY, SessionPhase.GREETING, SessionPhase.ACTIVE):
                await self.speech.append_audio(event.payload)

        elif isinstance(event, StreamStartMessage):
            if not self.state.bind_stream(event.stream_sid):
                logger.warning(f"Ignoring repeated stream start for session {self.id}: {event.stream_sid}")
                return
            self.telephony.bind_stream(event.stream_sid)
            logger.info(f"Telephony stream started for session {self.id}: {event.stream_sid}")
            self._note_caller_activity()
            await self._maybe_greet()

        elif isinstance(event, StreamStopMessage):
            logger.info(f"Telephony stream stopped for session: {self.id}")
            self.request_close(CLOSE_CALLER_HANGUP)

    # ------------------------------------------------------------------
    # Speech events
    # ------------------------------------------------------------------

    async def _handle_speech_event(self, event) -> None:
        if isinstance(event, AudioDeltaEvent):
            if not self.state.in_conversation:
                logger.debug(f"Dropping agent audio in phase {self.state.phase.value} for session {self.id}")
                return
            if self.state.phase is SessionPhase.GREETING:
                self._set_phase(SessionPhase.ACTIVE)
            await self.telephony.send_audio(event.delta)

        elif isinstance(event, SessionReadyEvent):
            if not self.state.speech_ready:
                self.state.speech_ready = True
                logger.info(f"Speech session ready for session: {self.id}")
            await self._maybe_greet()

        elif isinstance(event, SpeechStartedEvent):
            logger.debug(f"Caller started speaking in session: {self.id}")
            self._note_caller_activity()

        elif isinstance(event, SpeechStoppedEvent):
            logger.debug(f"Caller stopped speaking in session: {self.id}")
            if self.settings.manual_turns and self.state.in_conversation:
                await self.speech.request_response()

        elif isinstance(event, TranscriptionCompletedEvent):
            text = event.transcript.strip()
            if text:
                self.state.transcript.append(Speaker.CALLER, text)
                logger.info(f"Caller ({self.id}): {text}")
            self._note_caller_activity()

        elif isinstance(event, ResponseDoneEvent):
            text = event.transcript_text()
            if not text:
                return
            self.state.transcript.append(Speaker.AGENT, text)
            logger.info(f"Agent ({self.id}): {text}")
            if self._farewell_pattern.search(text):
                logger.info(f"Agent said goodbye in session: {self.id}")
                await self._begin_hangup(self.settings.farewell_instruction, CLOSE_FAREWELL)

        elif isinstance(event, RealtimeErrorEvent):
            logger.error(f"Realtime API error in session {self.id}: {event.error}")

    # ------------------------------------------------------------------
    # Turn-taking and termination
    # ------------------------------------------------------------------

    async def _maybe_greet(self) -> None:
        """Start the conversation once both sides are ready, exactly once."""
        if self.state.greeted or not self.state.speech_ready or self.state.stream_sid is None:
            return
        if self.state.phase is not SessionPhase.AWAITING_READY:
            return

        self.state.greeted = True
        self._handshake_timer.cancel()
        self.watchdog.arm()
        if self.settings.greeting_enabled:
            self._set_phase(SessionPhase.GREETING)
            logger.info(f"Sending greeting for session: {self.id}")
            await self.speech.create_response(self.settings.greeting_instruction)
        else:
            self._set_phase(SessionPhase.ACTIVE)

    def _note_caller_activity(self) -> None:
        self.state.touch()
        if self.state.in_conversation and not self.hangup_pending:
            self.watchdog.arm()

    async def _on_inactivity(self) -> None:
        if not self.state.in_conversation or self.hangup_pending:
            return
        logger.info(f"No caller activity for {self.settings.inactivity_timeout}s in session: {self.id}")
        await self._begin_hangup(self.settings.inactivity_instruction, CLOSE_INACTIVITY)

    async def _on_handshake_timeout(self) -> None:
        if self.state.phase is SessionPhase.AWAITING_READY:
            logger.error(
                f"Speech session not ready after {self.settings.ready_timeout}s for session: {self.id}"
            )
            self.request_close(CLOSE_HANDSHAKE_TIMEOUT)

    async def _begin_hangup(self, instruction: str, reason: str) -> None:
        """Speak a closing line, then close once the grace period has passed."""
        if self.hangup_pending or not self.state.in_conversation:
            return
        self.watchdog.cancel()
        self._hangup_action.schedule(
            self.settings.hangup_grace_period,
            functools.partial(self._finish_hangup, reason),
        )
        await self.speech.create_response(instruction)

    async def _finish_hangup(self, reason: str) -> None:
        logger.info(f"Hanging up session {self.id} ({reason})")
        self.request_close(reason)
