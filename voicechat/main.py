"""
FastAPI server for the realtime voice chat demo.

This module exposes the thin backend the voice client talks to:
- ``GET /session``: credential relay
- ``POST /api/realtime/sdp``: signaling proxy for the offer/answer exchange
- ``POST /api/speech``: text-to-speech proxy
- ``GET /health``: health probe
- ``GET /`` and ``/static``: the entry page and its assets

A missing credential is a degraded mode, not a startup failure: the server
starts and answers credential requests with a ``demo_mode`` hint.
"""

from pathlib import Path
from typing import Optional

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, Response
from fastapi.staticfiles import StaticFiles

from voicechat.config.logging_config import configure_logging
from voicechat.config.settings import Settings
from voicechat.exceptions import CredentialError, UpstreamError
from voicechat.models.schemas import CredentialErrorResponse, HealthResponse, SessionResponse
from voicechat.services.credentials import CredentialRelay, is_credential_valid
from voicechat.services.signaling_proxy import SignalingProxy
from voicechat.services.speech_proxy import SpeechProxy

# Configure logging
logger = configure_logging()

STATIC_DIR = Path(__file__).parent / "static"

app = FastAPI(
    title="Realtime Voice Chat",
    description="Credential relay and signaling proxy for browser-to-realtime-API voice sessions",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")


def get_settings() -> Settings:
    """Read settings per request so the credential is current."""
    return Settings.from_env()


def get_upstream_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Transport for remote API calls; ``None`` means the real network."""
    return None


def get_signaling_proxy(
    settings: Settings = Depends(get_settings),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_upstream_transport),
) -> SignalingProxy:
    return SignalingProxy(settings, transport=transport)


def get_speech_proxy(
    settings: Settings = Depends(get_settings),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_upstream_transport),
) -> SpeechProxy:
    return SpeechProxy(settings, transport=transport)


@app.exception_handler(CredentialError)
async def credential_error_handler(request: Request, exc: CredentialError):
    body = CredentialErrorResponse(error=exc.message, details=exc.details, demo_mode=True)
    return JSONResponse(status_code=401, content=body.model_dump())


@app.exception_handler(UpstreamError)
async def upstream_error_handler(request: Request, exc: UpstreamError):
    logger.error(f"{request.url.path} failed: {exc!r}")
    return JSONResponse(status_code=exc.status_code or 502, content=exc.to_envelope())


@app.get("/session", response_model=SessionResponse)
async def create_session(settings: Settings = Depends(get_settings)):
    """Return the credential the client uses for this session.

    Responds ``401`` with ``demo_mode: true`` when no credential is configured
    or the configured value fails the shape check.
    """
    return CredentialRelay(settings).issue()


@app.post("/api/realtime/sdp")
async def realtime_sdp(
    request: Request,
    model: Optional[str] = None,
    voice: Optional[str] = None,
    proxy: SignalingProxy = Depends(get_signaling_proxy),
):
    """Forward a raw SDP offer to the realtime API and return its SDP answer."""
    offer = await request.body()
    answer = await proxy.forward_offer(offer, model=model, voice=voice)
    return Response(content=answer.body, media_type=answer.content_type)


@app.post("/api/speech")
async def speech(
    request: Request,
    model: Optional[str] = None,
    voice: Optional[str] = None,
    proxy: SpeechProxy = Depends(get_speech_proxy),
):
    """Synthesize the raw text body to MP3 audio."""
    text = (await request.body()).decode("utf-8", errors="replace")
    reply = await proxy.synthesize(text, model=model, voice=voice)
    if not reply.ok:
        return Response(content=reply.body, status_code=reply.status_code, media_type=reply.content_type)
    return Response(
        content=reply.body,
        media_type=reply.content_type,
        headers={"Content-Disposition": 'attachment; filename="response.mp3"'},
    )


@app.get("/health", response_model=HealthResponse)
async def health_check(settings: Settings = Depends(get_settings)):
    """Health check endpoint for monitoring system status."""
    return HealthResponse(
        status="healthy",
        credential_configured=bool(settings.openai_api_key),
        credential_valid=is_credential_valid(settings.openai_api_key),
    )


@app.get("/")
async def root():
    """Serve the entry page."""
    return FileResponse(STATIC_DIR / "index.html")


if __name__ == "__main__":
    import uvicorn

    settings = Settings.from_env()
    logger.info(f"Starting server on http://{settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port, http="h11")
