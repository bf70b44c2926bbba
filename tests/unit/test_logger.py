"""
Tests for logging setup
"""
import logging

import pytest
import structlog

from cortex.logger import get_logger, setup_logging


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    structlog.reset_defaults()
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    root.setLevel(logging.WARNING)


class TestSetupLogging:

    @pytest.mark.unit
    def test_level_applied(self):
        setup_logging("debug")
        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("botocore").level == logging.WARNING

    @pytest.mark.unit
    def test_json_renderer(self):
        setup_logging("INFO", json_logs=True)
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    @pytest.mark.unit
    def test_unknown_level_falls_back_to_info(self):
        setup_logging("chatty")
        assert logging.getLogger().level == logging.INFO
        assert get_logger("cortex") is not None
