"""
Services module for the server side of the voice chat application.

Key components:
- credentials: Credential shape validation, redaction for logs, and the
  credential relay behind ``GET /session``.
- upstream: Shared httpx plumbing for calls to the remote API, including the
  mapping of transport failures onto error envelopes.
- signaling_proxy: Forwards session-description offers to the remote realtime
  endpoint and returns its answers.
- speech_proxy: Forwards text to the remote speech endpoint and returns audio.

Usage examples:
```python
from voicechat.config.settings import Settings
from voicechat.services.signaling_proxy import SignalingProxy

proxy = SignalingProxy(Settings.from_env())
answer = await proxy.forward_offer(offer_sdp, model="gpt-4o-mini-realtime-preview-2024-12-17")
print(answer.content_type, len(answer.body))
```
"""

# Services module initialization
