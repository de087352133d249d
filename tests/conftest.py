import pytest
import logging

from callbridge.config.constants import LOGGER_NAME
from callbridge.config.settings import BridgeSettings


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test"""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    logging.basicConfig(level=logging.NOTSET)
    # configure_logging() turns propagation off; caplog listens on the root logger
    bridge_logger = logging.getLogger(LOGGER_NAME)
    bridge_logger.propagate = True
    bridge_logger.setLevel(logging.DEBUG)
    yield


@pytest.fixture
def fast_settings():
    """Settings with timers short enough for tests"""
    return BridgeSettings(
        openai_api_key="test-api-key",
        greeting_instruction="Say hello",
        farewell_instruction="Say goodbye",
        inactivity_instruction="Say the line went quiet",
        farewell_phrases=["farvel", "tak for i dag"],
        inactivity_timeout=0.2,
        hangup_grace_period=0.05,
        ready_timeout=0.3,
        webhook_url="https://hooks.example.com/calls",
    )
