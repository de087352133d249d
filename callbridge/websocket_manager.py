"""
WebSocket connection manager for Twilio Media Streams.

This module implements the server side of the ``/media-stream`` endpoint:
- Accept the telephony WebSocket and tune its socket for low latency
- Resolve the call identifier and register the call session
- Open the matching OpenAI Realtime session and run the bridge until either
  side hangs up

The MediaStreamManager owns nothing per call itself; every call gets its own
CallSession, which removes itself from the registry when it closes.
"""

import logging
import socket
import uuid
from typing import Callable, Optional

from fastapi import WebSocket

from callbridge.bot.call_session import CallSession
from callbridge.bot.realtime_api import RealtimeSpeechClient
from callbridge.bot.telephony import TelephonyTransport
from callbridge.config.constants import CALL_SID_HEADER, LOGGER_NAME
from callbridge.config.settings import BridgeSettings
from callbridge.models.registry import SessionRegistry
from callbridge.services.post_call import PostCallPipeline

logger = logging.getLogger(LOGGER_NAME)

SpeechFactory = Callable[[BridgeSettings, str], RealtimeSpeechClient]


def default_speech_factory(settings: BridgeSettings, session_id: str) -> RealtimeSpeechClient:
    return RealtimeSpeechClient(
        api_key=settings.openai_api_key or "",
        model=settings.realtime_model,
        url=settings.realtime_url,
        voice=settings.voice,
        session_id=session_id,
    )


def generate_session_id() -> str:
    return f"session_{uuid.uuid4().hex}"


class MediaStreamManager:
    """Accepts media-stream connections and runs one CallSession per call."""

    def __init__(
        self,
        settings: BridgeSettings,
        registry: Optional[SessionRegistry] = None,
        post_call: Optional[PostCallPipeline] = None,
        speech_factory: Optional[SpeechFactory] = None,
    ):
        self.settings = settings
        self.registry = registry if registry is not None else SessionRegistry()
        self.post_call = post_call if post_call is not None else PostCallPipeline.from_settings(settings)
        self.speech_factory = speech_factory or default_speech_factory

    async def _optimize_socket(self, websocket: WebSocket) -> None:
        """
        Optimize the WebSocket's underlying TCP socket for low-latency transmission.

        Args:
            websocket: The FastAPI WebSocket connection
        """
        try:
            client = websocket.client
            if hasattr(client, "sock") and client.sock is not None:
                # Disable Nagle's algorithm to send audio frames immediately
                client.sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
                logger.info("Optimized socket: TCP_NODELAY enabled for low latency")
        except Exception as e:
            logger.warning(f"Could not optimize socket: {e}")

    def resolve_session_id(self, websocket: WebSocket) -> str:
        """
        Use the call SID header when present and not already taken, otherwise
        generate a fresh identifier.
        """
        call_sid = websocket.headers.get(CALL_SID_HEADER)
        if call_sid and call_sid not in self.registry:
            return call_sid
        if call_sid:
            logger.warning(f"Call SID already has a live session, generating a new id: {call_sid}")
        return generate_session_id()

    def create_session(self, websocket: WebSocket, session_id: str) -> CallSession:
        telephony = TelephonyTransport(websocket, session_id=session_id)
        speech = self.speech_factory(self.settings, session_id)
        return CallSession(
            session_id,
            telephony=telephony,
            speech=speech,
            settings=self.settings,
            registry=self.registry,
            post_call=self.post_call,
        )

    async def handle_websocket(self, websocket: WebSocket) -> None:
        """Handle a media-stream connection throughout its lifecycle.

        Args:
            websocket (WebSocket): The FastAPI WebSocket connection object

        This method:
        1. Accepts the WebSocket connection
        2. Registers a new call session under the resolved identifier
        3. Runs the session until the call ends
        4. Makes sure the registry entry is gone afterwards

        Errors inside a session are logged here and never propagate to the
        server.
        """
        await websocket.accept()
        await self._optimize_socket(websocket)

        session_id = self.resolve_session_id(websocket)
        session = self.create_session(websocket, session_id)
        if not self.registry.add(session_id, session):
            session_id = generate_session_id()
            session = self.create_session(websocket, session_id)
            self.registry.add(session_id, session)
        logger.info(f"Media stream connected for session: {session_id}")

        try:
            await session.run()
        except Exception as e:
            logger.error(f"Error in call session {session_id}: {e}", exc_info=True)
        finally:
            self.registry.remove(session_id)
            logger.info(f"Media stream finished for session: {session_id}")
