"""Enqueue side of the write queue, used by the HTTP layer."""
import logging

from movie_api.write_queue.models import DEFAULT_MAX_RETRIES, build_intent

logger = logging.getLogger(__name__)


class WriteQueue:
    """Accepts mutation intents and hands them to the processor asynchronously."""

    def __init__(self, queue_store, trigger=None, max_retries: int = DEFAULT_MAX_RETRIES):
        self.queue_store = queue_store
        self.trigger = trigger
        self.max_retries = max_retries

    def enqueue(self, operation, payload) -> str:
        """
        Validate, persist as pending and request a processing pass.

        Args:
            operation: ``Operation`` or ``"insert" | "update" | "delete"``.
            payload: Operation-specific payload dict.

        Returns:
            str: Identifier of the stored intent.

        Raises:
            ValidationError: when the payload does not fit the operation.
        """
        intent = build_intent(operation, payload, max_retries=self.max_retries)
        self.queue_store.insert(intent)
        logger.info(f"Enqueued intent {intent.id} ({intent.operation.value})")

        if self.trigger is not None:
            self.trigger()
        return intent.id
