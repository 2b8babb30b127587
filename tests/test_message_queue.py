"""
Tests for the sequential inquiry queue
"""
import pytest

from inquiry_responder.message_queue import FailOutcome, InquiryQueue
from tests.helpers import make_item


class RecordingDispatcher:
    """Records dispatched items without processing them"""

    def __init__(self):
        self.dispatched = []

    def __call__(self, item):
        self.dispatched.append(item.external_id)


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def queue(dispatcher):
    return InquiryQueue(max_retries=3, dispatch=dispatcher)


class TestEnqueue:
    """Enqueue and draining"""

    def test_enqueue_dispatches_when_idle(self, queue, dispatcher):
        queue.enqueue(make_item("m1"))

        assert dispatcher.dispatched == ["m1"]
        assert queue.is_processing is True
        assert queue.status().active_id == "m1"

    def test_head_stays_until_signalled(self, queue):
        queue.enqueue(make_item("m1"))

        assert queue.size == 1
        assert queue.is_queued("m1") is True

    def test_at_most_one_in_flight(self, queue, dispatcher):
        queue.enqueue(make_item("m1"))
        queue.enqueue(make_item("m2"))
        queue.enqueue(make_item("m3"))

        assert dispatcher.dispatched == ["m1"]

    def test_complete_dispatches_next(self, queue, dispatcher):
        queue.enqueue(make_item("m1"))
        queue.enqueue(make_item("m2"))

        assert queue.complete("m1") is True
        assert dispatcher.dispatched == ["m1", "m2"]
        assert queue.is_queued("m1") is False

    def test_fifo_without_failures(self, queue, dispatcher):
        for external_id in ("m1", "m2", "m3"):
            queue.enqueue(make_item(external_id))
        for external_id in ("m1", "m2", "m3"):
            queue.complete(external_id)

        assert dispatcher.dispatched == ["m1", "m2", "m3"]
        assert queue.size == 0
        assert queue.is_processing is False

    def test_holds_items_without_dispatcher(self):
        queue = InquiryQueue()
        queue.enqueue(make_item("m1"))

        assert queue.size == 1
        assert queue.is_processing is False

    def test_set_dispatcher_starts_draining(self, dispatcher):
        queue = InquiryQueue()
        queue.enqueue(make_item("m1"))
        queue.set_dispatcher(dispatcher)

        assert dispatcher.dispatched == ["m1"]

    def test_invalid_max_retries(self):
        with pytest.raises(ValueError):
            InquiryQueue(max_retries=0)


class TestFail:
    """Retry policy"""

    def test_fair_requeue(self, queue, dispatcher):
        """B completes before A's retried attempt begins"""
        queue.enqueue(make_item("A"))
        queue.enqueue(make_item("B"))

        assert queue.fail("A", "boom") == FailOutcome.RETRY
        assert dispatcher.dispatched == ["A", "B"]

        queue.complete("B")
        assert dispatcher.dispatched == ["A", "B", "A"]

    def test_retry_count_increments(self, queue):
        queue.enqueue(make_item("m1"))
        queue.fail("m1", "boom")

        assert queue.status().items[0].retry_count == 1

    def test_single_item_is_redispatched(self, queue, dispatcher):
        queue.enqueue(make_item("m1"))
        queue.fail("m1", "boom")

        assert dispatcher.dispatched == ["m1", "m1"]

    def test_bounded_retry(self, queue):
        item = make_item("m1")
        queue.enqueue(item)

        outcomes = [queue.fail("m1", f"attempt {n}") for n in range(1, 4)]

        assert outcomes == [FailOutcome.RETRY, FailOutcome.RETRY, FailOutcome.EXHAUSTED]
        assert item.retry_count == 3
        assert queue.is_queued("m1") is False

    def test_exhausted_item_removed_exactly_once(self, queue):
        queue.enqueue(make_item("m1"))
        for _ in range(3):
            queue.fail("m1", "boom")

        assert queue.fail("m1", "boom") == FailOutcome.NOT_FOUND
        assert queue.size == 0

    def test_exhaustion_moves_on_to_next(self, dispatcher):
        queue = InquiryQueue(max_retries=1, dispatch=dispatcher)
        queue.enqueue(make_item("m1"))
        queue.enqueue(make_item("m2"))

        assert queue.fail("m1", "boom") == FailOutcome.EXHAUSTED
        assert dispatcher.dispatched == ["m1", "m2"]

    def test_dispatcher_error_counts_as_failure(self):
        def broken(item):
            raise RuntimeError("no event loop")

        exhausted = []
        queue = InquiryQueue(
            max_retries=1,
            dispatch=broken,
            on_exhausted=lambda item, error: exhausted.append((item.external_id, error))
        )
        queue.enqueue(make_item("m1"))

        assert queue.size == 0
        assert queue.is_processing is False
        assert exhausted == [("m1", "no event loop")]

    def test_exhaustion_handler_called_once(self, dispatcher):
        exhausted = []
        queue = InquiryQueue(max_retries=2, dispatch=dispatcher)
        queue.set_exhausted_handler(lambda item, error: exhausted.append((item.external_id, error)))
        queue.enqueue(make_item("m1"))

        assert queue.fail("m1", "first") == FailOutcome.RETRY
        assert exhausted == []
        assert queue.fail("m1", "second") == FailOutcome.EXHAUSTED
        assert exhausted == [("m1", "second")]

    def test_exhaustion_handler_error_does_not_stall_queue(self, dispatcher):
        def explode(item, error):
            raise RuntimeError("store down")

        queue = InquiryQueue(max_retries=1, dispatch=dispatcher, on_exhausted=explode)
        queue.enqueue(make_item("m1"))
        queue.enqueue(make_item("m2"))

        assert queue.fail("m1", "boom") == FailOutcome.EXHAUSTED
        assert queue.status().active_id == "m2"


class TestUnknownIds:
    """Signals for items that are not queued are ignored"""

    def test_complete_unknown(self, queue):
        assert queue.complete("missing") is False

    def test_fail_unknown(self, queue):
        assert queue.fail("missing", "boom") == FailOutcome.NOT_FOUND

    def test_duplicate_complete(self, queue):
        queue.enqueue(make_item("m1"))

        assert queue.complete("m1") is True
        assert queue.complete("m1") is False


class TestStatus:
    """Snapshots and clearing"""

    def test_status_snapshot(self, queue):
        queue.enqueue(make_item("m1", tenant_name="Nancy E"))
        queue.enqueue(make_item("m2", tenant_name="John Smith"))

        status = queue.status()

        assert status.size == 2
        assert status.is_processing is True
        assert [i.external_id for i in status.items] == ["m1", "m2"]
        assert status.items[1].tenant_name == "John Smith"

    def test_clear(self, queue):
        queue.enqueue(make_item("m1"))
        queue.enqueue(make_item("m2"))

        assert queue.clear() == 2
        assert queue.size == 0
        assert queue.is_processing is False
