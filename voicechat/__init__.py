"""
Realtime Voice Chat - browser and Python clients for a speech-to-speech model

This application lets a user hold a spoken conversation with a realtime AI
model. Media flows directly between the client and the remote service over a
WebRTC peer connection; the server only relays the credential and proxies the
one-shot SDP offer/answer exchange so the client never needs direct access to
the remote signaling endpoint.

Architecture Overview:
- FastAPI server exposing the credential relay, the signaling proxy, a
  text-to-speech proxy and the browser client
- aiortc-based Python client driving the peer connection through its
  negotiation lifecycle, with bounded automatic reconnection
- Auxiliary "oai-events" data channel carrying JSON events that update the
  conversation transcript and status

Key Components:
- client: Negotiation controller, signaling client, media capture and presentation
- config: Application-wide constants, settings and logging setup
- handlers: Interpretation of inbound auxiliary channel events
- models: Session state machine, transcript and message schemas
- services: Credential relay and the remote API proxies

Getting Started:
1. Set up environment variables:
   - OPENAI_API_KEY: Your OpenAI API key
   - PORT: Port to run the server on (default 8000)
   - HOST: Host to bind the server to (default 0.0.0.0)
   - LOG_LEVEL: Logging level (default INFO)

2. Start the server:
   ```bash
   python run.py
   ```

3. Open http://localhost:8000 in a browser, or run the Python client:
   ```bash
   python -m voicechat.client --voice alloy
   ```
"""

__version__ = "1.0.0"
