"""
Tests for settings
"""
from inquiry_responder.config import get_settings


class TestGetSettings:
    """Environment parsing"""

    def test_defaults(self, monkeypatch):
        for name in ("AUTO_SEND", "TEST_MODE", "HEADLESS", "MAX_RETRIES", "POLL_SCHEDULE", "MAIL_FILTER"):
            monkeypatch.delenv(name, raising=False)

        settings = get_settings()

        assert settings.auto_send is False
        assert settings.test_mode is True
        assert settings.headless is True
        assert settings.max_retries == 3
        assert settings.poll_schedule == "*/1 * * * *"
        assert "from:furnishedfinder.com" in settings.mail_filter

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("AUTO_SEND", "true")
        monkeypatch.setenv("TEST_MODE", "0")
        monkeypatch.setenv("MAX_RETRIES", "5")
        monkeypatch.setenv("TEST_SENDER_NAME", "Test Tenant")

        settings = get_settings()

        assert settings.auto_send is True
        assert settings.test_mode is False
        assert settings.max_retries == 5
        assert settings.test_sender_name == "Test Tenant"

    def test_blank_boolean_uses_default(self, monkeypatch):
        monkeypatch.setenv("HEADLESS", "")
        assert get_settings().headless is True

    def test_blank_numbers_use_defaults(self, monkeypatch):
        for name in ("MAX_RETRIES", "RETRY_BACKOFF_SECONDS", "PORT", "IMAP_PORT"):
            monkeypatch.setenv(name, "")

        settings = get_settings()

        assert settings.max_retries == 3
        assert settings.retry_backoff_seconds == 5.0
        assert settings.port == 8000
        assert settings.imap_port == 993

    def test_padded_numbers(self, monkeypatch):
        monkeypatch.setenv("MAX_RETRIES", " 4 ")
        assert get_settings().max_retries == 4
