import asyncio
import json
import logging
import time
import traceback
from typing import Optional

import websockets
from pydantic import BaseModel
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, ConnectionClosedOK

from callbridge.config.constants import DEFAULT_REALTIME_URL, LOGGER_NAME
from callbridge.models.openai_schemas import (
    InputAudioAppendEvent,
    InputAudioCommitEvent,
    ResponseCreateEvent,
    ResponseOptions,
    ServerEvent,
    SessionConfig,
    SessionUpdateEvent,
    parse_server_event,
)

logger = logging.getLogger(LOGGER_NAME)

CONNECTION_TIMEOUT = 30  # seconds
SEND_TIMEOUT = 5.0  # seconds

# WebSocket configuration for low latency
WS_MAX_SIZE = 16 * 1024 * 1024  # 16MB - large enough for audio chunks
WS_MAX_QUEUE = 32  # Small queue to prevent buffering
WS_PING_INTERVAL = 5  # 5 seconds between pings


class RealtimeSpeechClient:
    """
    Client for one OpenAI Realtime API session, carrying a single phone call.

    Server events are parsed into typed models and pushed onto ``events`` in
    arrival order; ``None`` on that queue means the socket is gone. There is no
    reconnection: a realtime session cannot be resumed, so losing the socket
    ends the call.
    """
    def __init__(self, api_key: str, model: str, url: str = DEFAULT_REALTIME_URL,
                 voice: str = "alloy", session_id: str = ""):
        self.api_key = api_key
        self.model = model
        self.url = url
        self.voice = voice
        self.session_id = session_id
        self.ws = None
        self.events: asyncio.Queue = asyncio.Queue()
        self._recv_task = None
        self._connection_active = False
        self._is_closing = False
        self._closed_signalled = False
        logger.info(f"RealtimeSpeechClient initialized with model: {model}")

    @property
    def connected(self) -> bool:
        return self._connection_active

    async def connect(self) -> bool:
        """
        Connect to the OpenAI Realtime WebSocket endpoint.

        Returns:
            bool: True if connection was successful, False otherwise
        """
        if self._is_closing:
            logger.warning("Cannot connect - client is closing")
            return False
        if not self.api_key:
            logger.error("Cannot connect to OpenAI Realtime API - no API key configured")
            return False

        url = f"{self.url}?model={self.model}"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "OpenAI-Beta": "realtime=v1",
        }

        try:
            logger.info(f"Connecting to OpenAI Realtime API with model: {self.model}")
            logger.debug("Using headers: Authorization: Bearer [API_KEY_HIDDEN], OpenAI-Beta: realtime=v1")

            connection_start = time.time()
            self.ws = await asyncio.wait_for(
                websockets.connect(
                    url,
                    max_size=WS_MAX_SIZE,
                    max_queue=WS_MAX_QUEUE,
                    ping_interval=WS_PING_INTERVAL,
                    ping_timeout=10,
                    compression=None,  # Disable compression for lower latency
                    additional_headers=headers
                ),
                timeout=CONNECTION_TIMEOUT
            )
            connection_time = time.time() - connection_start
            logger.debug(f"WebSocket connection established in {connection_time:.2f} seconds")

            self._connection_active = True
            self._recv_task = asyncio.create_task(self._recv_loop())

            logger.info(f"Connected to OpenAI Realtime API for session: {self.session_id}")
            return True
        except asyncio.TimeoutError:
            logger.error(f"Timeout while connecting to OpenAI Realtime API (after {CONNECTION_TIMEOUT}s)")
            self._connection_active = False
            return False
        except Exception as e:
            logger.error(f"Failed to connect to OpenAI Realtime API: {e}")
            logger.debug(f"Connection error details: {traceback.format_exc()}")
            self._connection_active = False
            return False

    async def send_event(self, event: BaseModel) -> bool:
        """
        Send one client event to the Realtime API.

        Args:
            event: The event model; only explicitly set fields are serialized

        Returns:
            bool: True if the event was sent successfully, False otherwise
        """
        if not self._connection_active or self.ws is None:
            logger.debug(f"Cannot send {getattr(event, 'type', 'event')} - connection not active")
            return False

        try:
            await asyncio.wait_for(
                self.ws.send(event.model_dump_json(exclude_unset=True)), timeout=SEND_TIMEOUT
            )
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Timeout while sending {event.type} to OpenAI")
            return False
        except ConnectionClosed as e:
            logger.warning(f"Connection closed while sending {event.type}: {e}")
            self._connection_active = False
            return False
        except Exception as e:
            logger.error(f"Error sending {event.type}: {e}")
            logger.debug(f"Send error details: {traceback.format_exc()}")
            return False

    async def update_session(self, config: SessionConfig) -> bool:
        """Send the session configuration (codec, voice, instructions, turn detection)."""
        return await self.send_event(SessionUpdateEvent(type="session.update", session=config))

    async def append_audio(self, payload: str) -> bool:
        """Append one base64 caller audio frame to the input buffer."""
        return await self.send_event(InputAudioAppendEvent(type="input_audio_buffer.append", audio=payload))

    async def create_response(self, instructions: str) -> bool:
        """Ask the agent to speak according to ``instructions``."""
        return await self.send_event(
            ResponseCreateEvent(
                type="response.create",
                response=ResponseOptions(instructions=instructions, modalities=["audio"], voice=self.voice),
            )
        )

    async def request_response(self) -> bool:
        """End the caller turn explicitly (manual turn detection)."""
        if not await self.send_event(InputAudioCommitEvent(type="input_audio_buffer.commit")):
            return False
        return await self.send_event(ResponseCreateEvent(type="response.create"))

    async def _recv_loop(self) -> None:
        """
        Internal loop to receive messages from OpenAI and queue the typed
        events the bridge acts on.
        """
        try:
            logger.debug("Receive loop started")
            async for message in self.ws:
                if isinstance(message, bytes):
                    logger.debug(f"Ignoring binary frame of size {len(message)} bytes")
                    continue
                try:
                    data = json.loads(message)
                except json.JSONDecodeError:
                    logger.warning(f"Received invalid JSON: {message[:100]}...")
                    continue
                if not isinstance(data, dict):
                    logger.warning(f"Ignoring non-object message: {message[:100]}...")
                    continue
                event = parse_server_event(data)
                if event is not None:
                    await self.events.put(event)
            logger.info("WebSocket connection closed normally")
        except ConnectionClosedOK:
            logger.info("WebSocket connection closed normally")
        except ConnectionClosedError as e:
            logger.warning(f"WebSocket connection closed unexpectedly: {e}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error in receive loop: {e}")
            logger.debug(f"Receive loop error details: {traceback.format_exc()}")
        finally:
            self._connection_active = False
            self._signal_closed()
            logger.info("Receive loop exited, connection marked as inactive")

    def _signal_closed(self) -> None:
        if self._closed_signalled:
            return
        self._closed_signalled = True
        self.events.put_nowait(None)

    async def receive_event(self) -> Optional[ServerEvent]:
        """
        Await the next server event.

        Returns:
            The next typed event, or None once the connection has closed
        """
        return await self.events.get()

    async def close(self) -> None:
        """
        Close the WebSocket connection and cancel the receive task.
        """
        if self._is_closing:
            return
        logger.info(f"Closing OpenAI Realtime client for session: {self.session_id}")
        self._is_closing = True
        self._connection_active = False

        if self._recv_task and not self._recv_task.done():
            self._recv_task.cancel()
            try:
                await self._recv_task
            except asyncio.CancelledError:
                pass

        if self.ws:
            try:
                await self.ws.close()
            except Exception as e:
                logger.warning(f"Error closing OpenAI WebSocket: {e}")
        self._signal_closed()
