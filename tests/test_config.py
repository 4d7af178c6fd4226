"""Tests for settings and logging setup."""

import logging

from receivables.core.config import Settings
from receivables.core.logging import setup_logging


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.PAYMENT_NUMBER_PREFIX == "PMT"
        assert settings.DEFAULT_CURRENCY == "USD"

    def test_cors_origins_split(self):
        settings = Settings(CORS_ORIGINS="http://a.test, ,http://b.test")
        assert settings.cors_origins == ["http://a.test", "http://b.test"]

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("PAYMENT_NUMBER_PREFIX", "RCPT")
        assert Settings().PAYMENT_NUMBER_PREFIX == "RCPT"


class TestSetupLogging:
    def test_level_applied(self):
        root = logging.getLogger()
        previous = root.level
        try:
            setup_logging("debug")
            assert root.level == logging.DEBUG
            assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
        finally:
            root.setLevel(previous)
