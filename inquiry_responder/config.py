"""
Configuration for the inquiry responder

All options come from environment variables. Secrets (mail password, API keys,
bot tokens, portal token) are never given defaults.
"""
import os
from typing import Optional
from pydantic import BaseModel


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return float(value)


class Settings(BaseModel):
    """Runtime settings"""

    # Mail source
    mail_filter: str = 'X-GM-RAW "from:furnishedfinder.com"'
    poll_schedule: str = "*/1 * * * *"
    max_results: int = 10
    imap_server: str = "imap.gmail.com"
    imap_port: int = 993
    email_address: Optional[str] = None
    email_password: Optional[str] = None

    # Queue / pipeline
    max_retries: int = 3
    retry_backoff_seconds: float = 5.0
    extract_timeout: float = 120.0
    generate_timeout: float = 60.0
    deliver_timeout: float = 120.0
    notify_timeout: float = 30.0

    # Safety switches
    auto_send: bool = False
    test_mode: bool = True
    test_sender_name: str = ""
    headless: bool = True

    # Collaborators
    database_url: str = "sqlite:///inquiries.db"
    portal_service_url: str = "http://localhost:8010"
    portal_api_token: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    anthropic_model: str = "claude-3-5-sonnet-20241022"
    property_context_path: Optional[str] = None

    # Notifications
    error_notification_email: Optional[str] = None
    smtp_server: str = "smtp.gmail.com"
    smtp_port: int = 587
    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None

    # Service
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000


def get_settings() -> Settings:
    """
    Build settings from environment variables.

    Returns:
        Settings instance
    """
    return Settings(
        mail_filter=os.getenv("MAIL_FILTER", Settings.model_fields["mail_filter"].default),
        poll_schedule=os.getenv("POLL_SCHEDULE", "*/1 * * * *"),
        max_results=_env_int("MAIL_MAX_RESULTS", 10),
        imap_server=os.getenv("IMAP_SERVER", "imap.gmail.com"),
        imap_port=_env_int("IMAP_PORT", 993),
        email_address=os.getenv("EMAIL_ADDRESS"),
        email_password=os.getenv("EMAIL_PASSWORD"),
        max_retries=_env_int("MAX_RETRIES", 3),
        retry_backoff_seconds=_env_float("RETRY_BACKOFF_SECONDS", 5),
        extract_timeout=_env_float("EXTRACT_TIMEOUT", 120),
        generate_timeout=_env_float("GENERATE_TIMEOUT", 60),
        deliver_timeout=_env_float("DELIVER_TIMEOUT", 120),
        notify_timeout=_env_float("NOTIFY_TIMEOUT", 30),
        auto_send=_env_bool("AUTO_SEND", False),
        test_mode=_env_bool("TEST_MODE", True),
        test_sender_name=os.getenv("TEST_SENDER_NAME", ""),
        headless=_env_bool("HEADLESS", True),
        database_url=os.getenv("DATABASE_URL", "sqlite:///inquiries.db"),
        portal_service_url=os.getenv("PORTAL_SERVICE_URL", "http://localhost:8010"),
        portal_api_token=os.getenv("PORTAL_API_TOKEN"),
        anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
        anthropic_model=os.getenv("ANTHROPIC_MODEL", "claude-3-5-sonnet-20241022"),
        property_context_path=os.getenv("PROPERTY_CONTEXT_PATH"),
        error_notification_email=os.getenv("ERROR_NOTIFICATION_EMAIL"),
        smtp_server=os.getenv("SMTP_SERVER", "smtp.gmail.com"),
        smtp_port=_env_int("SMTP_PORT", 587),
        telegram_bot_token=os.getenv("TELEGRAM_BOT_TOKEN"),
        telegram_chat_id=os.getenv("TELEGRAM_CHAT_ID"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        host=os.getenv("HOST", "0.0.0.0"),
        port=_env_int("PORT", 8000),
    )
