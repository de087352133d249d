"""
Call Bridge - Twilio Media Streams to OpenAI Realtime API

This application answers phone calls with a speech-to-speech voice agent. Each
call's audio is relayed between Twilio Media Streams and an OpenAI Realtime
session, and once the call ends the transcript is turned into structured
customer details that are posted to a webhook.

Architecture Overview:
- FastAPI server exposing the TwiML webhook and the media-stream WebSocket
- One call session per phone call, bridging the two WebSockets
- Greeting, inactivity and farewell handling decide when the agent speaks
  first and when the call is hung up
- Post-call extraction and webhook delivery in the background

Key Components:
- bot: The call session state machine, its two transports and its timers
- config: Constants, logging setup and environment-based settings
- models: Wire schemas, session state, transcript and the session registry
- services: Post-call extraction and webhook delivery
- websocket_manager: Accepts media-stream connections and runs call sessions

Getting Started:
1. Set up environment variables:
   - OPENAI_API_KEY: Your OpenAI API key
   - WEBHOOK_URL: Where extracted customer details are posted
   - PORT: Port to run the server on (default 5050)
   - LOG_LEVEL: Logging level (default INFO)

2. Start the server:
   ```bash
   python run.py
   ```

3. Point the Twilio phone number's voice webhook at ``https://your-server/voice``.
"""
