"""Unit tests for settings and logging setup"""

import logging
import pytest
from unittest.mock import patch

from invoice_tax.config import Settings, settings
from invoice_tax.logging_config import setup_logging


@pytest.mark.unit
class TestSettings:
    """Test Settings defaults and overrides"""
    
    def test_engine_defaults(self):
        defaults = Settings(_env_file=None)
        
        assert defaults.SEARCH_MIN_CHARS == 3
        assert defaults.AMOUNT_EPSILON == "0.01"
        assert defaults.CODE_CACHE_MAX_ENTRIES >= 1
    
    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("SEARCH_DEBOUNCE_MS", "50")
        
        assert Settings(_env_file=None).SEARCH_DEBOUNCE_MS == 50


@pytest.mark.unit
class TestLoggingSetup:
    """Test setup_logging"""
    
    def test_console_handler_added(self):
        root = logging.getLogger()
        before = list(root.handlers)
        level_before = root.level
        try:
            with patch.object(settings, "LOG_LEVEL", "DEBUG"), patch.object(settings, "LOG_FILE", None):
                setup_logging()
            added = [h for h in root.handlers if h not in before]
            assert len(added) == 1
            assert root.level == logging.DEBUG
        finally:
            for handler in root.handlers[:]:
                if handler not in before:
                    root.removeHandler(handler)
            root.setLevel(level_before)
