"""
Unit tests for SDK settings and logging setup.

Tests cover:
- Defaults
- Environment overrides
- Validation of bounds
- Logging formatter selection
"""

import logging

import json_log_formatter
import pydantic
import pytest

from gloss_sdk.config import Settings
from gloss_sdk.observability import setup_logging


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self, monkeypatch):
        for name in ("GLOSS_PAGE_SIZE", "GLOSS_MAX_PAGES", "GLOSS_LOG_FORMAT"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings()

        assert settings.page_size == 200
        assert settings.max_pages == 10
        assert settings.retention_minutes == 43200
        assert settings.storage_url == "https://nanostore.babbage.systems"
        assert settings.log_format == "text"

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("GLOSS_PAGE_SIZE", "50")
        monkeypatch.setenv("GLOSS_MAX_PAGES", "3")

        settings = Settings()

        assert settings.page_size == 50
        assert settings.max_pages == 3

    def test_rejects_non_positive_page_size(self, monkeypatch):
        monkeypatch.setenv("GLOSS_PAGE_SIZE", "0")
        with pytest.raises(pydantic.ValidationError):
            Settings()

    def test_rejects_unknown_log_format(self):
        with pytest.raises(pydantic.ValidationError):
            Settings(log_format="xml")


class TestSetupLogging:
    """Tests for setup_logging."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        root.handlers = handlers
        root.setLevel(level)

    def test_json_format(self):
        setup_logging(Settings(log_format="json", log_level="DEBUG"))

        root = logging.getLogger()

        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)

    def test_text_format(self):
        setup_logging(Settings(log_format="text", log_level="warning"))

        root = logging.getLogger()

        assert root.level == logging.WARNING
        assert not isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING
