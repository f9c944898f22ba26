"""
Client module: the Python peer that holds a live voice conversation.

Key components:
- negotiation: ``NegotiationController``, which drives a peer connection from
  idle to an established media session and owns its whole lifecycle
  (teardown, stale-callback guarding, bounded automatic reconnect).
- signaling: HTTP client for the credential relay and the signaling proxy.
- presentation: Status, transcript, log pane and audio level output.
- levels: Audio level tap placed on the outbound microphone track.
- media: Microphone capture and speaker playback through PyAudio.

Usage examples:
```python
from voicechat.client.negotiation import NegotiationController
from voicechat.client.presentation import ConsolePresentation
from voicechat.client.signaling import SignalingClient

controller = NegotiationController(
    SignalingClient("http://localhost:8000"),
    ConsolePresentation(),
    voice="alloy",
)
session = await controller.start()
...
await controller.stop()
```
"""

# Client module initialization
