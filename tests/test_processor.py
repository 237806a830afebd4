import threading

import pytest

from movie_api.errors import QueueStoreError
from movie_api.write_queue.models import IntentStatus, build_intent
from movie_api.write_queue.processor import QueueProcessor
from tests.fakes import InMemoryQueueStore, InMemoryRecordStore


def enqueue(queue_store, operation, payload, max_retries=3):
    return queue_store.insert(build_intent(operation, payload, max_retries=max_retries))


class TestSuccessfulApply:
    def test_insert_creates_record_and_completes(self, queue_store, record_store, processor):
        intent = enqueue(queue_store, "insert", {"title": "X", "rating": 7})

        summary = processor.process_queue()

        assert summary.completed == 1
        assert queue_store.get(intent.id).status is IntentStatus.COMPLETED
        assert [r["title"] for r in record_store.records.values()] == ["X"]

    def test_status_passes_through_processing(self, queue_store, processor):
        intent = enqueue(queue_store, "insert", {"title": "X"})
        seen = []
        original_create = processor.record_store.create

        def observing_create(record):
            seen.append(queue_store.get(intent.id).status)
            return original_create(record)

        processor.record_store.create = observing_create
        processor.process_queue()

        assert seen == [IntentStatus.PROCESSING]
        assert queue_store.get(intent.id).status is IntentStatus.COMPLETED

    def test_update_applies_changes(self, queue_store, record_store, processor):
        record_store.add("m1", {"title": "Old", "rating": 5})
        intent = enqueue(queue_store, "update", {"target_id": "m1", "changes": {"title": "Y"}})

        processor.process_queue()

        assert record_store.records["m1"] == {"title": "Y", "rating": 5}
        assert queue_store.get(intent.id).status is IntentStatus.COMPLETED

    def test_delete_removes_record(self, queue_store, record_store, processor):
        record_store.add("m1", {"title": "Gone"})
        intent = enqueue(queue_store, "delete", {"target_id": "m1"})

        processor.process_queue()

        assert "m1" not in record_store.records
        assert queue_store.get(intent.id).status is IntentStatus.COMPLETED

    def test_completed_intent_is_not_applied_again(self, queue_store, record_store, processor):
        enqueue(queue_store, "insert", {"title": "Once"})

        processor.process_queue()
        second = processor.process_queue()

        assert second.fetched == 0
        assert record_store.calls == ["create"]


class TestRetries:
    def test_failure_returns_intent_to_pending(self, queue_store, record_store, processor):
        intent = enqueue(queue_store, "insert", {"title": "X"})
        record_store.fail_next(1)

        summary = processor.process_queue()

        stored = queue_store.get(intent.id)
        assert summary.retried == 1
        assert stored.status is IntentStatus.PENDING
        assert stored.retry_count == 1
        assert "unavailable" in stored.last_error

    def test_transient_failure_then_success(self, queue_store, record_store, processor):
        intent = enqueue(queue_store, "insert", {"title": "X"})
        record_store.fail_next(2)

        processor.process_queue()
        processor.process_queue()
        processor.process_queue()

        stored = queue_store.get(intent.id)
        assert stored.status is IntentStatus.COMPLETED
        assert stored.retry_count == 2
        assert stored.last_error is None
        assert len(record_store.records) == 1

    def test_exhausted_retries_quarantine_intent(self, queue_store, record_store, processor):
        intent = enqueue(queue_store, "insert", {"title": "X"})
        record_store.fail_next(10)

        for _ in range(5):
            processor.process_queue()

        stored = queue_store.get(intent.id)
        assert stored.status is IntentStatus.FAILED
        assert stored.retry_count == stored.max_retries == 3
        assert record_store.records == {}
        assert record_store.calls == ["create"] * 3

    def test_update_on_missing_target_fails_after_max_retries(self, queue_store, processor):
        intent = enqueue(queue_store, "update", {"target_id": "nonexistent", "changes": {"title": "Y"}})

        for _ in range(3):
            processor.process_queue()

        stored = queue_store.get(intent.id)
        assert stored.status is IntentStatus.FAILED
        assert stored.retry_count == 3
        assert "nonexistent" in stored.last_error

    def test_failed_update_leaves_record_untouched(self, queue_store, record_store, processor):
        record_store.add("m1", {"title": "Keep"})
        enqueue(queue_store, "update", {"target_id": "m1", "changes": {"title": "Lost"}}, max_retries=1)
        record_store.fail_next(1)

        processor.process_queue()

        assert record_store.records["m1"] == {"title": "Keep"}

    def test_retry_count_never_decreases(self, queue_store, record_store, processor):
        intent = enqueue(queue_store, "insert", {"title": "X"}, max_retries=5)
        record_store.fail_next(3)
        counts = []

        for _ in range(4):
            processor.process_queue()
            counts.append(queue_store.get(intent.id).retry_count)

        assert counts == [1, 2, 3, 3]


class TestDeleteIdempotence:
    def test_delete_of_absent_record_completes(self, queue_store, processor):
        intent = enqueue(queue_store, "delete", {"target_id": "missing"})

        summary = processor.process_queue()

        assert summary.failed == 0
        stored = queue_store.get(intent.id)
        assert stored.status is IntentStatus.COMPLETED
        assert stored.retry_count == 0

    def test_two_deletes_for_same_target_both_complete(self, queue_store, record_store, processor):
        record_store.add("m1", {"title": "Twice"})
        first = enqueue(queue_store, "delete", {"target_id": "m1"})
        second = enqueue(queue_store, "delete", {"target_id": "m1"})

        processor.process_queue()

        assert queue_store.get(first.id).status is IntentStatus.COMPLETED
        assert queue_store.get(second.id).status is IntentStatus.COMPLETED
        assert "m1" not in record_store.records


class TestOrderingAndBatching:
    def test_intents_applied_in_creation_order(self, queue_store, record_store, processor):
        for title in ("t1", "t2", "t3"):
            enqueue(queue_store, "insert", {"title": title})

        processor.process_queue()

        assert [r["title"] for r in record_store.records.values()] == ["t1", "t2", "t3"]

    def test_pass_is_bounded_by_batch_size(self, queue_store, record_store):
        for n in range(5):
            enqueue(queue_store, "insert", {"title": f"m{n}"})
        processor = QueueProcessor(queue_store, record_store, batch_size=2)

        summary = processor.process_queue()

        assert summary.fetched == 2
        assert len(record_store.records) == 2

    def test_one_failure_does_not_stop_the_batch(self, queue_store, record_store, processor):
        enqueue(queue_store, "update", {"target_id": "nope", "changes": {"title": "Y"}})
        enqueue(queue_store, "insert", {"title": "after"})

        summary = processor.process_queue()

        assert summary.retried == 1
        assert summary.completed == 1


class TestPassErrors:
    def test_batch_fetch_failure_propagates(self, queue_store, processor):
        queue_store.fail_reads = True

        with pytest.raises(QueueStoreError):
            processor.process_queue()

    def test_save_failure_is_contained(self, queue_store, record_store, processor):
        enqueue(queue_store, "insert", {"title": "a"})
        enqueue(queue_store, "insert", {"title": "b"})
        original_save = queue_store.save
        calls = []

        def flaky_save(intent):
            calls.append(intent.id)
            if len(calls) == 1:
                raise ConnectionError("queue write lost")
            return original_save(intent)

        queue_store.save = flaky_save
        summary = processor.process_queue()

        assert summary.completed == 2
        assert len(record_store.records) == 2

    def test_unclaimable_intent_is_skipped(self, queue_store, record_store, processor):
        intent = enqueue(queue_store, "insert", {"title": "X"})
        queue_store.claim(intent.id)
        queue_store.find_pending = lambda limit: [intent]

        summary = processor.process_queue()

        assert summary.skipped == 1
        assert record_store.calls == []


def test_concurrent_passes_apply_intent_once():
    queue_store = InMemoryQueueStore()
    record_store = InMemoryRecordStore(delay=0.05)
    intent = enqueue(queue_store, "insert", {"title": "Only once"})
    barrier = threading.Barrier(2)

    def run_pass():
        barrier.wait()
        QueueProcessor(queue_store, record_store).process_queue()

    threads = [threading.Thread(target=run_pass) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)

    assert record_store.calls == ["create"]
    assert len(record_store.records) == 1
    assert queue_store.get(intent.id).status is IntentStatus.COMPLETED
