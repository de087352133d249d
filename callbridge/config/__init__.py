"""
Configuration module for the call bridge.

This module provides centralized configuration management for the entire application,
including constants, logging setup, and environment-based settings.

Key components:
- constants: Wire-level names for the telephony and Realtime API protocols, default
  models, endpoints and audio formats.
- logging_config: Provides a consistent logging infrastructure with support for
  console and file-based logging with rotation capabilities.
- settings: The validated ``BridgeSettings`` model built from environment variables,
  holding the greeting, farewell, timeout and post-call options.

Usage examples:
```python
# Set up logging for your module
from callbridge.config.logging_config import configure_logging
logger = configure_logging()
logger.info("Application started")

# Load settings from the environment
from callbridge.config.settings import BridgeSettings
settings = BridgeSettings.from_env()
print(settings.inactivity_timeout)
```
"""

# Config module initialization
