"""
Inquiry orchestrator

Runs one queued inquiry through extract, generate and deliver (or hand off for
approval), keeping the store, the queue and the operator in sync.
"""
import asyncio
import logging
from typing import Any, Awaitable, Dict, Optional, Set

from inquiry_responder.database import DatabaseManager
from inquiry_responder.errors import ErrorKind, StageTimeoutError, classify_error
from inquiry_responder.message_queue import InquiryQueue
from inquiry_responder.models import InquiryStatus, QueuedItem
from inquiry_responder.notifier import Notifier
from inquiry_responder.portal_client import PortalClient
from inquiry_responder.reply_generator import ReplyGenerator

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUTS = {
    "extract": 120.0,
    "generate": 60.0,
    "deliver": 120.0,
    "approval": 30.0,
}


def names_match(expected: Optional[str], extracted: Optional[str]) -> bool:
    """
    Compare the mailed tenant name with the one shown in the portal.

    Case-insensitive substring match in either direction, so "Nancy E" matches
    "Nancy Edwards". Empty names never match.
    """
    if not expected or not extracted:
        return False
    expected = expected.strip().lower()
    extracted = extracted.strip().lower()
    return expected in extracted or extracted in expected


class InquiryOrchestrator:
    """Processes queued inquiries one at a time"""

    def __init__(
        self,
        store: DatabaseManager,
        queue: InquiryQueue,
        portal: PortalClient,
        generator: ReplyGenerator,
        notifier: Notifier,
        auto_send: bool = False,
        timeouts: Optional[Dict[str, float]] = None,
        retry_backoff: float = 0.0
    ):
        """
        Initialize the orchestrator.

        Args:
            store: Inquiry store
            queue: Queue that dispatches items to this orchestrator
            portal: Extraction/delivery collaborator holding the portal session
            generator: Reply generator
            notifier: Operator notifications
            auto_send: Deliver replies directly instead of asking for approval
            timeouts: Per-stage timeouts in seconds (extract, generate, deliver, approval)
            retry_backoff: Seconds to wait per previous failed attempt before retrying
        """
        self.store = store
        self.queue = queue
        self.portal = portal
        self.generator = generator
        self.notifier = notifier
        self.auto_send = auto_send
        self.timeouts = {**DEFAULT_TIMEOUTS, **(timeouts or {})}
        self.retry_backoff = retry_backoff
        self._tasks: Set[asyncio.Task] = set()
        queue.set_exhausted_handler(self.handle_exhausted)

    def dispatch(self, item: QueuedItem) -> None:
        """Queue dispatcher: schedule processing of item on the running loop"""
        self._spawn(self.run(item))

    def handle_exhausted(self, item: QueuedItem, error: str) -> None:
        """
        Queue exhaustion handler: record the terminal failure and tell the operator.

        Called by the queue for every item dropped after max_retries attempts,
        whether the attempts failed in the pipeline or in dispatch.
        """
        external_id = item.external_id
        logger.error(f"Inquiry {external_id} permanently failed after {item.retry_count} attempts")

        inquiry = self.store.get(external_id)
        if inquiry is not None and inquiry.status != InquiryStatus.FAILED.value:
            self._mark_failed(external_id, error)

        self._spawn(self.notifier.notify_error(ErrorKind.RETRY_EXHAUSTED, {
            "external_id": external_id,
            "tenant_name": item.tenant_name,
            "error": error,
            "max_retries": self.queue.max_retries,
        }))

    async def shutdown(self) -> None:
        """Cancel in-flight processing and wait for it to unwind"""
        tasks = list(self._tasks)
        if not tasks:
            return
        logger.info(f"Cancelling {len(tasks)} in-flight task(s)")
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def run(self, item: QueuedItem) -> None:
        """
        Top-level processing entry point. Never raises, except on cancellation.

        Waits retry_backoff * retry_count seconds for retried items, then
        processes the item.
        """
        if item.retry_count > 0 and self.retry_backoff > 0:
            delay = self.retry_backoff * item.retry_count
            logger.info(f"Waiting {delay:g}s before retry {item.retry_count} for {item.tenant_name}")
            await asyncio.sleep(delay)

        try:
            await self.process(item)
        except Exception as e:
            logger.error(f"Inquiry {item.external_id} failed: {e}")

    async def process(self, item: QueuedItem) -> None:
        """
        Run the pipeline for one inquiry.

        The portal session is released on every exit path, cancellation
        included, before the queue is signalled.

        Args:
            item: Queued inquiry handed over by the queue

        Raises:
            Exception: Whatever stopped the pipeline, after the item has been
                marked failed and reported to the queue
            asyncio.CancelledError: If processing was cancelled; the item is
                marked failed and left for the queue owner to clear
        """
        external_id = item.external_id
        logger.info(f"Processing inquiry {external_id} from {item.tenant_name}")
        session_open = True

        try:
            self.store.update_status(external_id, InquiryStatus.PROCESSING)

            extracted = await self._with_timeout("extract", self.portal.extract_latest())

            if not names_match(item.tenant_name, extracted.tenant_name):
                logger.warning(
                    f"Tenant name mismatch: expected '{item.tenant_name}', "
                    f"portal shows '{extracted.tenant_name}'"
                )
                await self.notifier.notify_error(ErrorKind.MISMATCH, {
                    "external_id": external_id,
                    "expected": item.tenant_name,
                    "extracted": extracted.tenant_name,
                })

            self.store.update_response(
                external_id,
                extracted.tenant_message,
                extracted=True,
                conversation_reference=extracted.conversation_reference
            )

            reply = await self._with_timeout("generate", self.generator.generate(
                tenant_name=extracted.tenant_name,
                tenant_message=extracted.tenant_message,
                tenant_email=item.tenant_email
            ))
            self.store.update_response(external_id, reply)

            if self.auto_send:
                await self._with_timeout(
                    "deliver",
                    self.portal.deliver(extracted.conversation_reference, reply)
                )
                session_open = False
                await self.portal.release_session()
                self.store.update_status(external_id, InquiryStatus.SENT)
                await self.notifier.notify_success(extracted.tenant_name, reply)
                logger.info(f"Reply sent to {extracted.tenant_name}")
            else:
                await self._with_timeout("approval", self.notifier.notify_for_approval(
                    tenant_name=extracted.tenant_name,
                    tenant_message=extracted.tenant_message,
                    generated_text=reply,
                    conversation_reference=extracted.conversation_reference
                ))
                session_open = False
                await self.portal.release_session()
                # Awaiting manual send
                self.store.update_status(external_id, InquiryStatus.PENDING)
                logger.info(f"Reply for {extracted.tenant_name} sent for approval")

            self.queue.complete(external_id)

        except asyncio.CancelledError:
            logger.warning(f"Processing of inquiry {external_id} cancelled")
            if session_open:
                session_open = False
                await self.portal.release_session()
            self._mark_failed(external_id, "cancelled at shutdown")
            raise

        except Exception as e:
            if session_open:
                session_open = False
                await self.portal.release_session()
            await self._handle_failure(item, e)
            raise

        finally:
            if session_open:
                await self.portal.release_session()

    async def _handle_failure(self, item: QueuedItem, error: Exception) -> None:
        external_id = item.external_id
        logger.error(f"Error processing inquiry {external_id}: {error}")

        self._mark_failed(external_id, str(error))

        await self.notifier.notify_error(classify_error(error), {
            "external_id": external_id,
            "tenant_name": item.tenant_name,
            "error": str(error),
            "attempt": item.retry_count + 1,
        })

        # Exhaustion is reported through handle_exhausted
        self.queue.fail(external_id, str(error))

    def _mark_failed(self, external_id: str, error: str) -> None:
        """Move an inquiry to failed, through processing if it never started"""
        try:
            inquiry = self.store.get(external_id)
            if inquiry is not None and inquiry.status == InquiryStatus.PENDING.value:
                self.store.update_status(external_id, InquiryStatus.PROCESSING)
            self.store.update_status(external_id, InquiryStatus.FAILED, error=error)
        except Exception as store_error:
            logger.error(f"Could not mark inquiry {external_id} as failed: {store_error}")

    def _spawn(self, coro: Awaitable) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _with_timeout(self, stage: str, awaitable: Awaitable) -> Any:
        timeout = self.timeouts[stage]
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError as e:
            raise StageTimeoutError(stage, timeout) from e
