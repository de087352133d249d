"""
Unit tests for the OpenAI Realtime API client.

These tests verify the functionality of the RealtimeSpeechClient class,
which connects to the OpenAI Realtime API, sends client events and turns
server messages into typed events.
"""

import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest
from websockets.exceptions import ConnectionClosedError

from callbridge.bot.realtime_api import RealtimeSpeechClient
from callbridge.models.openai_schemas import (
    AudioDeltaEvent,
    SessionConfig,
    SessionReadyEvent,
    TranscriptionCompletedEvent,
    TurnDetection,
)


@pytest.fixture
def mock_api_key():
    """Provide a mock API key for testing."""
    return "test-api-key"


@pytest.fixture
def mock_model():
    """Provide a mock model name for testing."""
    return "gpt-4o-realtime-preview-test"


@pytest.fixture
def realtime_client(mock_api_key, mock_model):
    """Create a RealtimeSpeechClient instance for testing."""
    return RealtimeSpeechClient(mock_api_key, mock_model, session_id="CA1")


class DroppedStream:
    """Server stream that fails on the first read"""

    def __aiter__(self):
        return self

    async def __anext__(self):
        raise ConnectionClosedError(None, None)


def connected(client):
    client.ws = AsyncMock()
    client._connection_active = True
    return client.ws


def sent_messages(ws):
    return [json.loads(call.args[0]) for call in ws.send.call_args_list]


async def drain(client):
    events = []
    while True:
        event = await asyncio.wait_for(client.receive_event(), timeout=1)
        events.append(event)
        if event is None:
            return events


@pytest.mark.asyncio
async def test_connect_success(realtime_client, mock_model):
    """Test successful connection to the OpenAI Realtime API."""
    mock_ws = AsyncMock()
    mock_ws.__aiter__.return_value = [json.dumps({"type": "session.created", "session": {}})]

    with patch("callbridge.bot.realtime_api.websockets.connect", new=AsyncMock(return_value=mock_ws)) as mock_connect:
        result = await realtime_client.connect()

    assert result is True
    assert realtime_client.ws is mock_ws
    url = mock_connect.call_args.args[0]
    assert url.endswith(f"?model={mock_model}")
    headers = mock_connect.call_args.kwargs["additional_headers"]
    assert headers["Authorization"] == "Bearer test-api-key"
    assert headers["OpenAI-Beta"] == "realtime=v1"

    events = await drain(realtime_client)
    assert isinstance(events[0], SessionReadyEvent)
    assert events[-1] is None
    assert realtime_client.connected is False


@pytest.mark.asyncio
async def test_connect_failure(realtime_client):
    """Test connection failure to the OpenAI Realtime API."""
    with patch("callbridge.bot.realtime_api.websockets.connect", new=AsyncMock(side_effect=OSError("refused"))):
        result = await realtime_client.connect()

    assert result is False
    assert realtime_client.connected is False


@pytest.mark.asyncio
async def test_connect_without_api_key(mock_model):
    client = RealtimeSpeechClient("", mock_model)
    with patch("callbridge.bot.realtime_api.websockets.connect") as mock_connect:
        assert await client.connect() is False
    mock_connect.assert_not_called()


@pytest.mark.asyncio
async def test_receive_loop_skips_invalid_and_unknown_messages(realtime_client):
    ws = connected(realtime_client)
    ws.__aiter__.return_value = [
        "not json",
        json.dumps({"type": "rate_limits.updated"}),
        json.dumps({"type": "response.audio.delta", "delta": "AAEC"}),
        json.dumps({"type": "conversation.item.input_audio_transcription.completed", "transcript": "Hej"}),
        b"\x00\x01",
    ]

    await realtime_client._recv_loop()
    events = await drain(realtime_client)

    assert isinstance(events[0], AudioDeltaEvent)
    assert isinstance(events[1], TranscriptionCompletedEvent)
    assert events[2:] == [None]


@pytest.mark.asyncio
async def test_receive_loop_connection_error_signals_closed(realtime_client):
    realtime_client.ws = DroppedStream()
    realtime_client._connection_active = True

    await realtime_client._recv_loop()

    assert await drain(realtime_client) == [None]
    assert realtime_client.connected is False


@pytest.mark.asyncio
async def test_update_session(realtime_client):
    ws = connected(realtime_client)
    config = SessionConfig(turn_detection=TurnDetection(type="server_vad"), input_audio_format="g711_ulaw")

    assert await realtime_client.update_session(config) is True
    assert sent_messages(ws) == [{
        "type": "session.update",
        "session": {"turn_detection": {"type": "server_vad"}, "input_audio_format": "g711_ulaw"},
    }]


@pytest.mark.asyncio
async def test_append_audio(realtime_client):
    ws = connected(realtime_client)
    assert await realtime_client.append_audio("AAEC") is True
    assert sent_messages(ws) == [{"type": "input_audio_buffer.append", "audio": "AAEC"}]


@pytest.mark.asyncio
async def test_create_response(realtime_client):
    ws = connected(realtime_client)
    assert await realtime_client.create_response("Sig hej") is True
    assert sent_messages(ws) == [{
        "type": "response.create",
        "response": {"instructions": "Sig hej", "modalities": ["audio"], "voice": "alloy"},
    }]


@pytest.mark.asyncio
async def test_request_response_commits_then_creates(realtime_client):
    ws = connected(realtime_client)
    assert await realtime_client.request_response() is True
    assert sent_messages(ws) == [
        {"type": "input_audio_buffer.commit"},
        {"type": "response.create"},
    ]


@pytest.mark.asyncio
async def test_send_when_not_connected(realtime_client):
    assert await realtime_client.append_audio("AAEC") is False


@pytest.mark.asyncio
async def test_send_connection_closed(realtime_client):
    ws = connected(realtime_client)
    ws.send.side_effect = ConnectionClosedError(None, None)

    assert await realtime_client.append_audio("AAEC") is False
    assert realtime_client.connected is False


@pytest.mark.asyncio
async def test_close_is_idempotent(realtime_client):
    ws = connected(realtime_client)

    await realtime_client.close()
    await realtime_client.close()

    ws.close.assert_awaited_once()
    assert await drain(realtime_client) == [None]
    assert await realtime_client.connect() is False
