"""
Inquiry poller

Scheduled job that finds new inquiry notifications in the mailbox, stores them
and queues them for processing.
"""
import logging
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from inquiry_responder.classifier import classify
from inquiry_responder.database import DatabaseManager
from inquiry_responder.errors import ErrorKind
from inquiry_responder.mail_client import IMAPMailClient
from inquiry_responder.message_queue import InquiryQueue
from inquiry_responder.models import (
    InquiryCreate,
    NotificationType,
    PollerStatus,
    QueuedItem
)
from inquiry_responder.notifier import Notifier

logger = logging.getLogger(__name__)

UNKNOWN_TENANT = "Unknown Tenant"


class InquiryPoller:
    """Polls the mailbox for new inquiries on a cron schedule"""

    def __init__(
        self,
        mail_client: IMAPMailClient,
        store: DatabaseManager,
        queue: InquiryQueue,
        notifier: Notifier,
        mail_filter: str,
        schedule: str = "*/1 * * * *",
        test_mode: bool = False,
        test_sender_name: str = ""
    ):
        """
        Initialize the poller.

        Args:
            mail_client: Mail source to query
            store: Inquiry store used for dedup and insertion
            queue: Processing queue
            notifier: Operator notifications
            mail_filter: Mail search query, opaque to the poller
            schedule: Crontab expression for the polling cadence
            test_mode: Only accept inquiries from test_sender_name
            test_sender_name: Tenant name accepted in test mode
        """
        self.mail = mail_client
        self.store = store
        self.queue = queue
        self.notifier = notifier
        self.mail_filter = mail_filter
        self.schedule = schedule
        self.test_mode = test_mode
        self.test_sender_name = test_sender_name
        self.last_check_at: Optional[datetime] = None
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None

    def start(self) -> None:
        """Run a check now, then on every schedule tick"""
        if self._scheduler is not None:
            logger.warning("Inquiry poller is already running")
            return

        trigger = CronTrigger.from_crontab(self.schedule)

        logger.info(f"Starting inquiry poller (filter: {self.mail_filter}, schedule: {self.schedule})")
        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.check,
            trigger,
            id="inquiry_poller",
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(trigger.timezone),
        )
        self._scheduler.start()

    def stop(self) -> None:
        """Stop the schedule"""
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Inquiry poller stopped")

    def status(self) -> PollerStatus:
        return PollerStatus(
            is_running=self.is_running,
            schedule=self.schedule,
            filter=self.mail_filter,
            last_check_at=self.last_check_at,
        )

    def passes_test_filter(self, tenant_name: Optional[str]) -> bool:
        """
        Apply the test-mode sender filter.

        With test mode on, only tenants whose name contains the configured
        test sender name get through. No test sender configured means nothing
        gets through.
        """
        if not self.test_mode:
            return True
        if not self.test_sender_name:
            return False
        return self.test_sender_name in (tenant_name or "Unknown")

    async def check(self) -> int:
        """
        Query the mailbox once and queue every new inquiry.

        Never raises: failures are logged and reported so the next tick runs
        normally.

        Returns:
            Number of inquiries queued by this check
        """
        self.last_check_at = datetime.utcnow()
        queued = 0

        try:
            logger.info("Checking mailbox for new inquiries...")
            messages = await self.mail.list_messages(self.mail_filter)

            if not messages:
                logger.info("No messages found")
                return 0

            logger.info(f"Found {len(messages)} messages matching filter")

            for message in messages:
                external_id = message.id

                if self.store.exists(external_id):
                    continue
                if self.queue.is_queued(external_id):
                    continue

                headers = await self.mail.get_headers(external_id)
                subject = headers.get("Subject") or message.subject or "(no subject)"
                sender = headers.get("From") or message.sender or "(unknown sender)"

                classification = classify(subject, sender)

                if classification.type != NotificationType.NEW_INQUIRY:
                    logger.info(f"Skipping {classification.type.value}: {subject}")
                    continue

                if not self.passes_test_filter(classification.name):
                    logger.info(
                        f"TEST MODE: ignoring inquiry from {classification.name or 'Unknown'} "
                        f"(only processing '{self.test_sender_name}')"
                    )
                    continue

                tenant_name = classification.name or UNKNOWN_TENANT
                portal_id = f", portal inquiry #{classification.inquiry_id}" if classification.inquiry_id else ""
                logger.info(f"New inquiry detected: {subject} (tenant: {tenant_name}, id: {external_id}{portal_id})")

                inserted = self.store.insert(InquiryCreate(
                    external_id=external_id,
                    tenant_name=tenant_name,
                    tenant_email=classification.email,
                    tenant_message=subject,
                ))
                if not inserted:
                    # Another check stored it while we were fetching headers
                    continue

                self.queue.enqueue(QueuedItem(
                    external_id=external_id,
                    tenant_name=tenant_name,
                    tenant_email=classification.email,
                    tenant_message=subject,
                ))
                queued += 1

            if queued:
                logger.info(f"Added {queued} new inquiries to queue")
            else:
                logger.info("No new inquiries (all already processed)")

        except Exception as e:
            logger.error(f"Error checking mailbox: {e}", exc_info=True)
            await self.notifier.notify_error(ErrorKind.SYSTEM, {
                "context": "inquiry polling failed",
                "error": str(e),
            })

        return queued
