"""
Bot module bridging phone calls to the OpenAI Realtime API.

Key components:
- CallSession: Per-call state machine relaying audio between the two sides,
  collecting the transcript and deciding when to greet and when to hang up.
- TelephonyTransport: The Twilio Media Streams WebSocket of one call.
- RealtimeSpeechClient: The OpenAI Realtime WebSocket of one call.
- DelayedAction / InactivityWatchdog: Cancellable timers owned by a session.

Usage example:
```python
from callbridge.bot import CallSession, RealtimeSpeechClient, TelephonyTransport

session = CallSession(
    session_id,
    telephony=TelephonyTransport(websocket, session_id=session_id),
    speech=RealtimeSpeechClient(api_key, model, session_id=session_id),
    settings=settings,
    registry=registry,
    post_call=post_call,
)
await session.run()
```
"""

from callbridge.bot.call_session import CallSession, build_session_config
from callbridge.bot.realtime_api import RealtimeSpeechClient
from callbridge.bot.telephony import TelephonyTransport
from callbridge.bot.timers import DelayedAction, InactivityWatchdog

__all__ = [
    "CallSession",
    "build_session_config",
    "RealtimeSpeechClient",
    "TelephonyTransport",
    "DelayedAction",
    "InactivityWatchdog",
]
