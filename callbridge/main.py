"""
FastAPI server bridging Twilio phone calls to the OpenAI Realtime API.

This module initializes and configures the FastAPI application that Twilio
talks to during a call:

- ``/voice`` answers the incoming call webhook with TwiML that connects the
  call audio to the media-stream WebSocket
- ``/media-stream`` carries the call audio; each connection becomes one call
  session bridged to its own Realtime session
- ``/`` and ``/health`` report the server status

After each call the transcript is processed in the background and the
extracted customer details are posted to the configured webhook.
"""

import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

import dotenv
from fastapi import FastAPI, Request, Response, WebSocket

from callbridge.config.logging_config import configure_logging
from callbridge.config.settings import BridgeSettings
from callbridge.models.registry import SessionRegistry
from callbridge.services.post_call import PostCallPipeline
from callbridge.websocket_manager import MediaStreamManager

# Load environment variables from .env file if it exists
env_path = Path(".") / ".env"
if env_path.exists():
    dotenv.load_dotenv(env_path)

PORT = int(os.getenv("PORT", "5050"))
HOST = os.getenv("HOST", "0.0.0.0")

settings = BridgeSettings.from_env()
logger = configure_logging(settings.log_level)
registry = SessionRegistry()
post_call = PostCallPipeline.from_settings(settings)
media_stream_manager = MediaStreamManager(settings, registry=registry, post_call=post_call)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    if post_call.pending:
        logger.info(f"Waiting for {post_call.pending} post-call task(s) to finish")
    await post_call.wait_idle()


app = FastAPI(
    title="Call Bridge",
    description="Bridge between Twilio Media Streams and the OpenAI Realtime API",
    version="1.0.0",
    lifespan=lifespan,
)


def build_twiml(host: str) -> str:
    """Return the TwiML that connects a call to the media-stream endpoint on ``host``."""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        "<Response>\n"
        "  <Connect>\n"
        f'    <Stream url="wss://{host}/media-stream" />\n'
        "  </Connect>\n"
        "</Response>"
    )


@app.get("/")
async def root():
    """Root endpoint to display basic information about the API.

    Returns:
        dict: Server status and the available endpoints.
    """
    return {
        "status": "ok",
        "message": "Twilio + OpenAI voice server is running",
        "time": datetime.now(timezone.utc).isoformat(),
        "endpoints": {
            "/voice": "Twilio incoming call webhook (TwiML)",
            "/media-stream": "WebSocket endpoint for Twilio Media Streams",
            "/health": "Health check endpoint",
        },
    }


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring system status.

    Returns:
        dict: Status information indicating the server is operational.
    """
    return {
        "ok": True,
        "status": "healthy",
        "openai_api_key_configured": bool(settings.openai_api_key),
        "active_sessions": len(registry),
    }


@app.api_route("/voice", methods=["GET", "POST"])
async def voice(request: Request):
    """Incoming call webhook: tell Twilio to stream the call to ``/media-stream``."""
    host = request.headers.get("host", request.url.netloc)
    logger.info(f"Incoming call, streaming to wss://{host}/media-stream")
    return Response(content=build_twiml(host), media_type="text/xml")


@app.websocket("/media-stream")
async def media_stream(websocket: WebSocket):
    """WebSocket endpoint for Twilio Media Streams.

    Each connection is one phone call, bridged to its own OpenAI Realtime
    session until either side hangs up.
    """
    await media_stream_manager.handle_websocket(websocket)


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting server on http://{HOST}:{PORT}")
    uvicorn.run(
        app,
        host=HOST,
        port=PORT,
        websocket_ping_interval=5,  # More frequent pings to keep connections alive
        websocket_max_size=16777216,  # 16MB - large enough for audio chunks
        websocket_ping_timeout=20,
        http="h11",
    )
