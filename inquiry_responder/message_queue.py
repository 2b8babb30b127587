"""
Sequential inquiry queue

In-memory FIFO that hands at most one inquiry at a time to its dispatcher.
The dispatched item stays at the head until complete() or fail() is called
for it. Failed items go to the tail until they run out of retries.
"""
import logging
from enum import Enum
from typing import Callable, List, Optional

from inquiry_responder.models import QueuedItem, QueueStatus, QueueItemSummary

logger = logging.getLogger(__name__)

Dispatcher = Callable[[QueuedItem], None]
ExhaustedHandler = Callable[[QueuedItem, str], None]


class FailOutcome(str, Enum):
    """Result of reporting a failed attempt"""
    RETRY = "retry"
    EXHAUSTED = "exhausted"
    NOT_FOUND = "not_found"


class InquiryQueue:
    """At-most-one-in-flight retry queue"""

    def __init__(
        self,
        max_retries: int = 3,
        dispatch: Optional[Dispatcher] = None,
        on_exhausted: Optional[ExhaustedHandler] = None
    ):
        """
        Initialize the queue.

        Args:
            max_retries: Attempts allowed per item before it is dropped
            dispatch: Called with the head item whenever it is ready to process
            on_exhausted: Called with an item and its last error when it is dropped
                after max_retries attempts
        """
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.max_retries = max_retries
        self._dispatch = dispatch
        self._on_exhausted = on_exhausted
        self._items: List[QueuedItem] = []
        self._active_id: Optional[str] = None

    def set_dispatcher(self, dispatch: Dispatcher) -> None:
        """Attach the dispatcher and start draining anything already queued"""
        self._dispatch = dispatch
        self._drain()

    def set_exhausted_handler(self, on_exhausted: ExhaustedHandler) -> None:
        """Attach the handler for items dropped after max_retries attempts"""
        self._on_exhausted = on_exhausted

    def enqueue(self, item: QueuedItem) -> None:
        """
        Append an item to the tail and start draining if idle.

        Args:
            item: Inquiry to process
        """
        self._items.append(item)
        logger.info(f"Inquiry queued: {item.tenant_name} (queue size: {len(self._items)})")
        self._drain()

    def is_queued(self, external_id: str) -> bool:
        """Check if an inquiry is waiting or being processed"""
        return self._index_of(external_id) is not None

    def complete(self, external_id: str) -> bool:
        """
        Remove a successfully processed item and resume draining.

        Args:
            external_id: ID of the finished inquiry

        Returns:
            True if removed, False if the item was not in the queue
        """
        index = self._index_of(external_id)
        if index is None:
            logger.warning(f"Inquiry {external_id} not found in queue, ignoring completion")
            return False

        item = self._items.pop(index)
        if self._active_id == external_id:
            self._active_id = None

        logger.info(f"Inquiry processed successfully: {item.tenant_name}")
        self._drain()
        return True

    def fail(self, external_id: str, error: str) -> FailOutcome:
        """
        Record a failed attempt, then requeue at the tail or drop the item.

        Args:
            external_id: ID of the failed inquiry
            error: Failure reason

        Returns:
            RETRY if requeued, EXHAUSTED if dropped after max_retries,
            NOT_FOUND if the item was not in the queue
        """
        index = self._index_of(external_id)
        if index is None:
            logger.warning(f"Inquiry {external_id} not found in queue, ignoring failure")
            return FailOutcome.NOT_FOUND

        item = self._items.pop(index)
        if self._active_id == external_id:
            self._active_id = None

        item.retry_count += 1
        logger.error(
            f"Inquiry processing failed: {item.tenant_name} "
            f"(attempt {item.retry_count}/{self.max_retries}): {error}"
        )

        if item.retry_count >= self.max_retries:
            logger.error(f"Max retries exceeded for {item.tenant_name}, removing from queue")
            outcome = FailOutcome.EXHAUSTED
            self._report_exhausted(item, error)
        else:
            self._items.append(item)
            logger.info(f"Retrying {item.tenant_name} later, moved to end of queue")
            outcome = FailOutcome.RETRY

        self._drain()
        return outcome

    def status(self) -> QueueStatus:
        """Get a snapshot of the queue"""
        return QueueStatus(
            size=len(self._items),
            is_processing=self._active_id is not None,
            active_id=self._active_id,
            items=[
                QueueItemSummary(
                    external_id=item.external_id,
                    tenant_name=item.tenant_name,
                    retry_count=item.retry_count,
                    enqueued_at=item.enqueued_at,
                )
                for item in self._items
            ],
        )

    def clear(self) -> int:
        """Drop every item. Returns the number removed."""
        cleared = len(self._items)
        self._items = []
        self._active_id = None
        logger.info(f"Queue cleared: {cleared} inquiries removed")
        return cleared

    @property
    def size(self) -> int:
        return len(self._items)

    @property
    def is_processing(self) -> bool:
        return self._active_id is not None

    def _report_exhausted(self, item: QueuedItem, error: str) -> None:
        if self._on_exhausted is None:
            logger.warning(f"No exhaustion handler attached, {item.external_id} dropped")
            return
        try:
            self._on_exhausted(item, error)
        except Exception as e:
            logger.error(f"Exhaustion handler failed for {item.external_id}: {e}")

    def _index_of(self, external_id: str) -> Optional[int]:
        for index, item in enumerate(self._items):
            if item.external_id == external_id:
                return index
        return None

    def _drain(self) -> None:
        """Hand the head item to the dispatcher unless one is already in flight"""
        if self._active_id is not None:
            return
        if not self._items:
            logger.debug("Queue empty, waiting for new inquiries")
            return
        if self._dispatch is None:
            logger.debug("No dispatcher attached, queue is holding items")
            return

        item = self._items[0]
        self._active_id = item.external_id
        logger.info(f"Processing inquiry from {item.tenant_name} ({len(self._items)} in queue)")

        try:
            self._dispatch(item)
        except Exception as e:
            logger.error(f"Dispatcher rejected inquiry {item.external_id}: {e}")
            self.fail(item.external_id, str(e))
