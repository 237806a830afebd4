"""Deferred write queue: mutation intents applied to the record store in the background."""
from movie_api.write_queue.models import (
    DeletePayload,
    InsertPayload,
    IntentStatus,
    MutationIntent,
    Operation,
    UpdatePayload,
    build_intent,
)
from movie_api.write_queue.processor import ProcessingSummary, QueueProcessor
from movie_api.write_queue.scheduler import QueueScheduler
from movie_api.write_queue.service import WriteQueue
from movie_api.write_queue.stores import MongoQueueStore, MongoRecordStore

__all__ = [
    "DeletePayload",
    "InsertPayload",
    "IntentStatus",
    "MongoQueueStore",
    "MongoRecordStore",
    "MutationIntent",
    "Operation",
    "ProcessingSummary",
    "QueueProcessor",
    "QueueScheduler",
    "UpdatePayload",
    "WriteQueue",
    "build_intent",
]
