"""
Telephony side of the bridge: the Twilio Media Streams WebSocket.

The transport wraps the FastAPI WebSocket accepted for one call. A receive task
turns incoming frames into typed events and pushes them onto a single ingress
queue; ``None`` on that queue is the closed signal, delivered exactly once.
Agent audio goes back out through ``send_audio``.
"""

import asyncio
import logging
from typing import Optional

from fastapi import WebSocket, WebSocketDisconnect

from callbridge.config.constants import LOGGER_NAME
from callbridge.models.twilio_schemas import (
    HangupMessage,
    MediaPayload,
    OutboundMediaMessage,
    TelephonyEvent,
    parse_telephony_message,
)

logger = logging.getLogger(LOGGER_NAME)

# Timeout for a single send to the telephony gateway (seconds)
SEND_TIMEOUT = 5.0


class TelephonyTransport:
    """
    Inbound media-stream connection for a single call.
    """

    def __init__(self, websocket: WebSocket, session_id: str = ""):
        self.websocket = websocket
        self.session_id = session_id
        self.stream_sid: Optional[str] = None
        self.events: asyncio.Queue = asyncio.Queue()
        self._recv_task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def is_open(self) -> bool:
        return not self._closed

    def start(self) -> None:
        """Start pulling frames from the socket onto the ingress queue."""
        if self._recv_task is None:
            self._recv_task = asyncio.create_task(self._recv_loop())

    async def _recv_loop(self) -> None:
        try:
            while True:
                raw = await self.websocket.receive_text()
                event = parse_telephony_message(raw)
                if event is not None:
                    await self.events.put(event)
        except WebSocketDisconnect as e:
            logger.info(f"Telephony socket disconnected (code {e.code}) for session: {self.session_id}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error receiving from telephony for session {self.session_id}: {e}", exc_info=True)
        finally:
            self._signal_closed()

    def _signal_closed(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.events.put_nowait(None)

    async def receive_event(self) -> Optional[TelephonyEvent]:
        """
        Await the next event from the caller side.

        Returns:
            The next typed event, or None once the socket has closed
        """
        return await self.events.get()

    def bind_stream(self, stream_sid: str) -> None:
        self.stream_sid = stream_sid

    async def send_audio(self, payload: str) -> bool:
        """
        Send one agent audio frame to the caller.

        Args:
            payload: Base64-encoded audio frame, forwarded unmodified

        Returns:
            bool: True if the frame was written, False if it was dropped
        """
        if self.stream_sid is None:
            logger.debug(f"Dropping agent audio before stream start for session: {self.session_id}")
            return False
        if self._closed:
            return False

        message = OutboundMediaMessage(
            event="media",
            streamSid=self.stream_sid,
            media=MediaPayload(payload=payload),
        )
        try:
            await asyncio.wait_for(
                self.websocket.send_text(message.model_dump_json()), timeout=SEND_TIMEOUT
            )
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Timeout while sending audio to telephony for session: {self.session_id}")
            return False
        except Exception as e:
            logger.warning(f"Failed to send audio to telephony for session {self.session_id}: {e}")
            self._signal_closed()
            return False

    async def hang_up(self) -> None:
        """Send the end-of-stream event if the socket is still open, then close it."""
        if not self._closed:
            try:
                await asyncio.wait_for(
                    self.websocket.send_text(HangupMessage(event="stop").model_dump_json()),
                    timeout=SEND_TIMEOUT,
                )
                logger.info(f"Sent hangup to telephony for session: {self.session_id}")
            except Exception as e:
                logger.warning(f"Error sending hangup for session {self.session_id}: {e}")
        await self.close()

    async def close(self) -> None:
        """Stop the receive task and close the socket."""
        was_open = not self._closed
        if self._recv_task is not None and self._recv_task is not asyncio.current_task():
            self._recv_task.cancel()
            try:
                await self._recv_task
            except asyncio.CancelledError:
                pass
        self._signal_closed()
        if was_open:
            try:
                await self.websocket.close()
            except Exception as e:
                logger.debug(f"Telephony socket already closed for session {self.session_id}: {e}")
