"""
Operator notifications

Errors and success notices go by email to the configured destination and to
Telegram; generated replies awaiting approval go to Telegram. Every method is
fire-and-forget: transport failures are logged, never raised.
"""
import asyncio
import logging
import smtplib
from datetime import datetime
from email.mime.text import MIMEText
from typing import Any, Dict, Optional

import httpx

from inquiry_responder.config import Settings
from inquiry_responder.errors import ErrorKind

logger = logging.getLogger(__name__)

SUBJECT_PREFIX = "[Inquiry Responder]"
PREVIEW_LENGTH = 200
TELEGRAM_MAX_LENGTH = 4096

# Subject line and context for each error kind
ERROR_TITLES = {
    ErrorKind.SYSTEM: ("System Error", "General system error"),
    ErrorKind.EXTRACTION: ("Portal Automation Failed", "Failed to read the inquiry or send the reply on the portal"),
    ErrorKind.GENERATION: ("Reply Generation Failed", "Failed to generate a reply"),
    ErrorKind.AUTH_EXPIRED: ("Portal Auth Expired", "Portal session rejected, log in again to refresh the session"),
    ErrorKind.MISMATCH: ("Inquiry Mismatch Detected", "Mail notification does not match the latest portal inquiry"),
    ErrorKind.RETRY_EXHAUSTED: ("Inquiry Permanently Failed", "Max retries exceeded"),
}


class TelegramClient:
    """Minimal Telegram Bot API client"""

    API_URL = "https://api.telegram.org"

    def __init__(self, bot_token: str, chat_id: str, timeout: int = 30):
        """
        Initialize Telegram client.

        Args:
            bot_token: Bot token from BotFather
            chat_id: Chat that receives notifications
            timeout: Request timeout in seconds
        """
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.timeout = timeout

    async def send_message(self, text: str) -> bool:
        """
        Send a text message to the configured chat.

        Returns:
            True if Telegram accepted the message, False otherwise
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.API_URL}/bot{self.bot_token}/sendMessage",
                    json={
                        "chat_id": self.chat_id,
                        "text": text[:TELEGRAM_MAX_LENGTH],
                        "disable_web_page_preview": True,
                    }
                )
                response.raise_for_status()
                return True
        except httpx.HTTPError as e:
            logger.error(f"HTTP error sending Telegram message: {e}")
            return False


class EmailAlertClient:
    """Sends alert emails over SMTP"""

    def __init__(
        self,
        smtp_server: str,
        smtp_port: int,
        username: str,
        password: str,
        recipient: str
    ):
        self.smtp_server = smtp_server
        self.smtp_port = smtp_port
        self.username = username
        self.password = password
        self.recipient = recipient

    async def send(self, subject: str, body: str) -> bool:
        """Send a plain-text alert email. Returns False on failure."""
        try:
            await asyncio.to_thread(self._send, subject, body)
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send alert email: {e}")
            return False

    def _send(self, subject: str, body: str) -> None:
        message = MIMEText(body, "plain", "utf-8")
        message["Subject"] = f"{SUBJECT_PREFIX} {subject}"
        message["From"] = self.username
        message["To"] = self.recipient

        with smtplib.SMTP(self.smtp_server, self.smtp_port, timeout=30) as smtp:
            smtp.starttls()
            smtp.login(self.username, self.password)
            smtp.send_message(message)


class Notifier:
    """Fire-and-forget operator notification channel"""

    def __init__(
        self,
        telegram: Optional[TelegramClient] = None,
        email: Optional[EmailAlertClient] = None
    ):
        """
        Initialize notifier.

        Args:
            telegram: Telegram transport, or None to log instead
            email: Email transport for alerts, or None to skip email
        """
        self.telegram = telegram
        self.email = email

    async def notify_error(self, kind: ErrorKind, details: Dict[str, Any]) -> None:
        """
        Report a failure to the operator.

        Args:
            kind: Error category, selects the title and default context
            details: Free-form fields (error, context, external_id, tenant_name, ...)
        """
        title, default_context = ERROR_TITLES.get(kind, ERROR_TITLES[ErrorKind.SYSTEM])
        fields = {"context": default_context, **details}

        lines = [f"Time: {datetime.utcnow().isoformat()}Z"]
        for key, value in fields.items():
            if value is not None and value != "":
                lines.append(f"{key.replace('_', ' ').capitalize()}: {value}")
        body = "\n".join(lines)

        logger.warning(f"Notification [{kind.value}] {title}: {fields.get('error', '')}")
        await self._send_email(title, body)
        await self._send_telegram(f"🚨 {title}\n\n{body}")

    async def notify_success(self, tenant_name: str, text_preview: str) -> None:
        """Report a reply delivered to the portal"""
        preview = text_preview[:PREVIEW_LENGTH]
        if len(text_preview) > PREVIEW_LENGTH:
            preview += "..."

        body = (
            f"Tenant: {tenant_name}\n"
            f"Time: {datetime.utcnow().isoformat()}Z\n\n"
            f"Response preview:\n{preview}"
        )
        logger.info(f"Reply sent to {tenant_name}")
        await self._send_email("Response Sent Successfully", body)
        await self._send_telegram(f"✅ Response sent to {tenant_name}\n\n{preview}")

    async def notify_for_approval(
        self,
        tenant_name: str,
        tenant_message: str,
        generated_text: str,
        conversation_reference: Optional[str]
    ) -> None:
        """Forward a generated reply for manual review and sending"""
        text = (
            "🆕 New response ready for approval\n\n"
            f"👤 Tenant: {tenant_name}\n\n"
            f"📥 Their message:\n{tenant_message}\n\n"
            f"📤 Generated response:\n{generated_text}\n\n"
            f"🔗 Conversation: {conversation_reference or 'unknown'}"
        )
        if not await self._send_telegram(text):
            logger.info(f"Approval request (not delivered to Telegram):\n{text}")

    async def _send_telegram(self, text: str) -> bool:
        if self.telegram is None:
            return False
        try:
            return await self.telegram.send_message(text)
        except Exception as e:
            logger.error(f"Error sending Telegram notification: {e}")
            return False

    async def _send_email(self, subject: str, body: str) -> bool:
        if self.email is None:
            return False
        try:
            return await self.email.send(subject, body)
        except Exception as e:
            logger.error(f"Error sending email notification: {e}")
            return False


def get_notifier(settings: Settings) -> Notifier:
    """
    Build the notifier from settings. Unconfigured transports are left out.

    Returns:
        Notifier instance
    """
    telegram = None
    if settings.telegram_bot_token and settings.telegram_chat_id:
        telegram = TelegramClient(settings.telegram_bot_token, settings.telegram_chat_id)
    else:
        logger.warning("Telegram not configured, approval requests will only be logged")

    email = None
    if settings.error_notification_email and settings.email_address and settings.email_password:
        email = EmailAlertClient(
            smtp_server=settings.smtp_server,
            smtp_port=settings.smtp_port,
            username=settings.email_address,
            password=settings.email_password,
            recipient=settings.error_notification_email,
        )
    else:
        logger.warning("Error notification email not configured, alerts will not be emailed")

    return Notifier(telegram=telegram, email=email)
