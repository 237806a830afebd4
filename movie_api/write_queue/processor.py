"""Queue processor: drains pending mutation intents into the record store."""
import logging
from dataclasses import dataclass

from movie_api.write_queue.models import (
    DeletePayload,
    InsertPayload,
    IntentStatus,
    MutationIntent,
    UpdatePayload,
)

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10


@dataclass
class ProcessingSummary:
    """Outcome counts of one processing pass."""

    fetched: int = 0
    completed: int = 0
    retried: int = 0
    failed: int = 0
    skipped: int = 0


class QueueProcessor:
    """
    Applies pending intents to the record store, one at a time, oldest first.

    The queue store must provide ``find_pending(limit)``, ``claim(intent_id)``
    and ``save(intent)``; the record store ``create(record)``,
    ``update_by_id(id, changes)`` and ``delete_by_id(id)``.

    The processor keeps no state between passes, so any number of entry
    points (timer, post-enqueue trigger) may call ``process_queue``. The
    conditional claim guarantees a given intent is applied by at most one pass.
    """

    def __init__(self, queue_store, record_store, batch_size: int = DEFAULT_BATCH_SIZE):
        self.queue_store = queue_store
        self.record_store = record_store
        self.batch_size = batch_size

    def process_queue(self) -> ProcessingSummary:
        """
        Run one processing pass over at most ``batch_size`` pending intents.

        Per-intent failures become status transitions and never escape. A
        failure to fetch the batch propagates to the caller.
        """
        intents = self.queue_store.find_pending(self.batch_size)
        summary = ProcessingSummary(fetched=len(intents))

        for intent in intents:
            self._process_intent(intent, summary)

        if intents:
            logger.info(
                f"Queue pass: fetched={summary.fetched} completed={summary.completed} "
                f"retried={summary.retried} failed={summary.failed} skipped={summary.skipped}"
            )
        return summary

    def _process_intent(self, intent: MutationIntent, summary: ProcessingSummary) -> None:
        try:
            claimed = self.queue_store.claim(intent.id)
        except Exception as e:
            logger.error(f"Failed to claim intent {intent.id}: {e}", exc_info=True)
            summary.skipped += 1
            return

        if not claimed:
            logger.debug(f"Intent {intent.id} already claimed by another pass")
            summary.skipped += 1
            return

        intent.mark_processing()
        try:
            self.apply(intent)
        except Exception as e:
            status = intent.mark_failed_attempt(str(e) or e.__class__.__name__)
            if status is IntentStatus.FAILED:
                summary.failed += 1
                logger.warning(
                    f"Intent {intent.id} ({intent.operation.value}) failed permanently after "
                    f"{intent.retry_count} attempts: {intent.last_error}"
                )
            else:
                summary.retried += 1
                logger.warning(
                    f"Intent {intent.id} ({intent.operation.value}) attempt "
                    f"{intent.retry_count}/{intent.max_retries} failed: {intent.last_error}"
                )
        else:
            intent.mark_completed()
            summary.completed += 1
            logger.info(f"Intent {intent.id} ({intent.operation.value}) completed")

        try:
            self.queue_store.save(intent)
        except Exception as e:
            # Left as processing in the store; needs operator attention.
            logger.error(f"Failed to persist intent {intent.id} as {intent.status.value}: {e}", exc_info=True)

    def apply(self, intent: MutationIntent) -> None:
        """Dispatch an intent to the record store according to its payload variant."""
        payload = intent.payload
        if isinstance(payload, InsertPayload):
            self.record_store.create(payload.record)
        elif isinstance(payload, UpdatePayload):
            self.record_store.update_by_id(payload.target_id, payload.changes)
        elif isinstance(payload, DeletePayload):
            self.record_store.delete_by_id(payload.target_id)
        else:
            raise TypeError(f"Unsupported payload type: {type(payload).__name__}")
