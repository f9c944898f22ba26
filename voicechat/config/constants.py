"""
Constants and configuration values used throughout the application.

This module defines constants that are used across the server and the client,
providing a centralized location for configuration values and making it easier
to keep naming consistent throughout the codebase.
"""

# Logger name used throughout the application
LOGGER_NAME = "voicechat"

# Remote realtime speech API
DEFAULT_REALTIME_URL = "https://api.openai.com/v1/realtime"
DEFAULT_SPEECH_URL = "https://api.openai.com/v1/audio/speech"
DEFAULT_REALTIME_MODEL = "gpt-4o-mini-realtime-preview-2024-12-17"
DEFAULT_VOICE = "alloy"
DEFAULT_SPEECH_MODEL = "tts-1"
AVAILABLE_VOICES = ("alloy", "ash", "ballad", "coral", "echo", "sage", "shimmer", "verse")
UPSTREAM_TIMEOUT = 30.0  # seconds

# Credential shape check
CREDENTIAL_PREFIX = "sk-"
CREDENTIAL_MIN_LENGTH = 30

# Content types
SDP_CONTENT_TYPE = "application/sdp"
AUDIO_CONTENT_TYPE = "audio/mpeg"

# Client defaults
DEFAULT_SERVER_URL = "http://localhost:8000"
CLIENT_REQUEST_TIMEOUT = 15.0  # seconds
MAX_RETRIES = 3
RETRY_DELAY = 2.0  # seconds, flat
DEFAULT_ICE_SERVER = "stun:stun.l.google.com:19302"
DATA_CHANNEL_LABEL = "oai-events"
DATA_CHANNEL_MAX_RETRANSMITS = 3

# Error categories
ERROR_AUTHENTICATION = "authentication_error"
ERROR_MODEL = "model_error"
ERROR_API_CONNECTION = "api_connection_error"
ERROR_INVALID_REQUEST = "invalid_request_error"
ERROR_INVALID_ANSWER = "invalid_answer"
ERROR_API = "api_error"

# Auxiliary channel message types (inbound)
EVENT_RECOGNITION_STARTED = "recognition_started"
EVENT_RECOGNITION_RESULT = "recognition_result"
EVENT_GENERATION_STARTED = "generation_started"
EVENT_GENERATION_COMPLETE = "generation_complete"
EVENT_SERVER_MESSAGE = "server_message"
EVENT_SPEECH_STARTED = "speech_started"
EVENT_SPEECH_ENDED = "speech_ended"
EVENT_CONTENT_BLOCK_START = "content_block_start"
EVENT_CONTENT_BLOCK_DELTA = "content_block_delta"
EVENT_CONTENT_BLOCK_STOP = "content_block_stop"
EVENT_METADATA = "metadata"
EVENT_SESSION_CREATED = "session.created"
EVENT_SESSION_UPDATED = "session.updated"
EVENT_ERROR = "error"

# Auxiliary channel message types (outbound)
EVENT_CLIENT_MESSAGE = "client_message"
EVENT_CLIENT_MESSAGE_END = "client_message_end"
