"""
Configuration module for the realtime voice chat application.

Key components:
- constants: Application-wide constants such as the logger name, default
  model and voice, remote endpoints, credential shape rules and the
  auxiliary-channel message types.
- settings: Environment-backed settings (``.env`` aware) for the server and
  the client.
- logging_config: Console and rotating-file logging setup.

Usage examples:
```python
from voicechat.config.constants import LOGGER_NAME, DEFAULT_REALTIME_MODEL
from voicechat.config.logging_config import configure_logging
from voicechat.config.settings import Settings

logger = configure_logging()
settings = Settings.from_env()
logger.info(f"Proxying to {settings.realtime_url} with {settings.realtime_model}")
```
"""

# Config module initialization
