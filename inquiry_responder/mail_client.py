"""
IMAP client for the notification mailbox
"""
import asyncio
import email
import imaplib
import logging
from email.header import decode_header
from typing import Dict, List, Optional

from inquiry_responder.config import Settings
from inquiry_responder.errors import MailSourceError
from inquiry_responder.models import MailSummary

logger = logging.getLogger(__name__)

SUMMARY_FIELDS = "(BODY.PEEK[HEADER.FIELDS (MESSAGE-ID SUBJECT FROM DATE)])"


class IMAPConnection:
    """Context-managed IMAP session"""

    def __init__(self, imap_server: str, email_address: str, password: str, port: int = 993):
        self.imap_server = imap_server
        self.email_address = email_address
        self.password = password
        self.port = port
        self.connection: Optional[imaplib.IMAP4_SSL] = None

    def connect(self) -> None:
        """Establish connection to IMAP server and select the inbox"""
        try:
            logger.debug(f"Connecting to {self.imap_server}:{self.port}")
            self.connection = imaplib.IMAP4_SSL(self.imap_server, self.port)
            self.connection.login(self.email_address, self.password)
            status, _ = self.connection.select("INBOX", readonly=True)
            if status != "OK":
                raise MailSourceError("Failed to select mailbox INBOX")
        except (imaplib.IMAP4.error, OSError) as e:
            raise MailSourceError(f"Failed to connect to IMAP server: {e}") from e

    def disconnect(self) -> None:
        """Close connection to IMAP server"""
        if self.connection:
            try:
                self.connection.logout()
            except Exception as e:
                logger.warning(f"Error during disconnect: {e}")
            finally:
                self.connection = None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()


class IMAPMailClient:
    """Mail source backed by an IMAP mailbox"""

    def __init__(
        self,
        imap_server: str,
        email_address: str,
        password: str,
        port: int = 993,
        max_results: int = 10
    ):
        """
        Initialize the mail client.

        Args:
            imap_server: IMAP host
            email_address: Mailbox login
            password: Mailbox password or app password
            port: IMAP SSL port
            max_results: Maximum messages returned per listing
        """
        self.imap_server = imap_server
        self.email_address = email_address
        self.password = password
        self.port = port
        self.max_results = max_results

    async def list_messages(self, query: str) -> List[MailSummary]:
        """
        List the newest messages matching an IMAP search query.

        Args:
            query: IMAP SEARCH criteria, passed verbatim

        Returns:
            Message summaries, newest first

        Raises:
            MailSourceError: If the mailbox cannot be queried
        """
        return await asyncio.to_thread(self._list_messages, query)

    async def get_headers(self, message_id: str) -> Dict[str, str]:
        """
        Fetch all headers of a message.

        Args:
            message_id: Message-ID header value

        Returns:
            Header name -> decoded value (empty if the message is gone)

        Raises:
            MailSourceError: If the mailbox cannot be queried
        """
        return await asyncio.to_thread(self._get_headers, message_id)

    def _connect(self) -> IMAPConnection:
        if not self.email_address or not self.password:
            raise MailSourceError("EMAIL_ADDRESS and EMAIL_PASSWORD must be set")
        return IMAPConnection(self.imap_server, self.email_address, self.password, self.port)

    def _list_messages(self, query: str) -> List[MailSummary]:
        with self._connect() as session:
            conn = session.connection
            try:
                status, data = conn.search(None, query)
                if status != "OK":
                    raise MailSourceError(f"IMAP search failed for query {query!r}")

                sequence_numbers = data[0].split()
                newest = list(reversed(sequence_numbers))[:self.max_results]

                summaries = []
                for number in newest:
                    status, msg_data = conn.fetch(number, SUMMARY_FIELDS)
                    if status != "OK" or not msg_data or not isinstance(msg_data[0], tuple):
                        logger.warning(f"Failed to fetch headers for message {number!r}")
                        continue
                    headers = email.message_from_bytes(msg_data[0][1])
                    message_id = headers.get("Message-ID", "").strip()
                    if not message_id:
                        logger.warning(f"Message {number!r} has no Message-ID, skipping")
                        continue
                    summaries.append(MailSummary(
                        id=message_id,
                        subject=self._decode_header(headers.get("Subject", "")),
                        sender=self._decode_header(headers.get("From", "")),
                        date=headers.get("Date"),
                    ))
                return summaries
            except imaplib.IMAP4.error as e:
                raise MailSourceError(f"IMAP error listing messages: {e}") from e

    def _get_headers(self, message_id: str) -> Dict[str, str]:
        with self._connect() as session:
            conn = session.connection
            try:
                status, data = conn.search(None, f'HEADER Message-ID "{message_id}"')
                if status != "OK" or not data[0]:
                    logger.warning(f"Could not find message {message_id}")
                    return {}

                number = data[0].split()[0]
                status, msg_data = conn.fetch(number, "(BODY.PEEK[HEADER])")
                if status != "OK" or not msg_data or not isinstance(msg_data[0], tuple):
                    raise MailSourceError(f"Failed to fetch headers for {message_id}")

                headers = email.message_from_bytes(msg_data[0][1])
                return {name: self._decode_header(value) for name, value in headers.items()}
            except imaplib.IMAP4.error as e:
                raise MailSourceError(f"IMAP error fetching {message_id}: {e}") from e

    @staticmethod
    def _decode_header(header: str) -> str:
        """Decode email header that might be encoded"""
        if not header:
            return ""

        decoded_parts = []
        for part, encoding in decode_header(str(header)):
            if isinstance(part, bytes):
                decoded_parts.append(part.decode(encoding or "utf-8", errors="replace"))
            else:
                decoded_parts.append(part)

        return "".join(decoded_parts)


def get_mail_client(settings: Settings) -> IMAPMailClient:
    """
    Get mail client instance from settings.

    Returns:
        IMAPMailClient instance
    """
    return IMAPMailClient(
        imap_server=settings.imap_server,
        email_address=settings.email_address or "",
        password=settings.email_password or "",
        port=settings.imap_port,
        max_results=settings.max_results,
    )
