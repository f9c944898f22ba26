"""
Handlers module for messages arriving on the auxiliary event channel.

Key components:
- session_events: ``SessionEventHandler`` parses each inbound message,
  dispatches on its ``type`` and projects it onto the session status and the
  transcript. Malformed messages are logged and dropped; unknown types are
  logged as warnings.

Usage examples:
```python
from voicechat.client.presentation import Presentation
from voicechat.handlers.session_events import SessionEventHandler
from voicechat.models.transcript import Transcript

handler = SessionEventHandler(Presentation(), Transcript())

@channel.on("message")
def on_message(message):
    handler.handle_message(session, message)
```
"""

# Handlers module initialization
