"""MongoDB-backed queue and record stores used by the write queue."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from movie_api.db import to_object_id
from movie_api.errors import QueueStoreError, TargetNotFoundError, ValidationError
from movie_api.write_queue.models import MAX_ERROR_LENGTH, IntentStatus, MutationIntent

logger = logging.getLogger(__name__)

OLDEST_FIRST = [("created_at", ASCENDING), ("_id", ASCENDING)]
NEWEST_FIRST = [("created_at", DESCENDING), ("_id", DESCENDING)]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MongoQueueStore:
    """Persists mutation intents and their processing status."""

    def __init__(self, collection):
        self.collection = collection

    def insert(self, intent: MutationIntent) -> MutationIntent:
        """Persist a new intent; assigns its id and timestamps."""
        now = utc_now()
        document = intent.to_document()
        document["created_at"] = now
        document["updated_at"] = now
        result = self.collection.insert_one(document)
        intent.id = str(result.inserted_id)
        intent.created_at = now
        intent.updated_at = now
        return intent

    def find(self, filter_query: Dict[str, Any], limit: int, order: Sequence[Tuple[str, int]] = OLDEST_FIRST,
             skip: int = 0) -> List[MutationIntent]:
        """
        Query intents.

        Raises:
            QueueStoreError: when MongoDB cannot be read.
        """
        try:
            cursor = self.collection.find(filter_query).sort(list(order)).skip(skip).limit(limit)
            documents = list(cursor)
        except PyMongoError as e:
            raise QueueStoreError(f"Failed to read queue: {e}") from e
        return list(self._to_intents(documents))

    def find_pending(self, limit: int) -> List[MutationIntent]:
        return self.find({"status": IntentStatus.PENDING.value}, limit, OLDEST_FIRST)

    def claim(self, intent_id: str) -> bool:
        """Set status to processing only if it is still pending. Returns whether it matched."""
        result = self.collection.update_one(
            {"_id": to_object_id(intent_id), "status": IntentStatus.PENDING.value},
            {"$set": {"status": IntentStatus.PROCESSING.value, "updated_at": utc_now()}},
        )
        return result.matched_count == 1

    def save(self, intent: MutationIntent) -> MutationIntent:
        """Insert-or-update by identity."""
        if intent.id is None:
            return self.insert(intent)
        now = utc_now()
        fields = intent.to_document()
        fields["updated_at"] = now
        document = self.collection.find_one_and_update(
            {"_id": to_object_id(intent.id)},
            {"$set": fields, "$setOnInsert": {"created_at": now}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        intent.updated_at = now
        if document and intent.created_at is None:
            intent.created_at = document.get("created_at")
        return intent

    def get(self, intent_id: str) -> Optional[MutationIntent]:
        document = self.collection.find_one({"_id": to_object_id(intent_id)})
        if not document:
            return None
        intents = list(self._to_intents([document]))
        return intents[0] if intents else None

    def count(self, filter_query: Dict[str, Any]) -> int:
        return self.collection.count_documents(filter_query)

    def count_by_status(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in IntentStatus}
        for row in self.collection.aggregate([{"$group": {"_id": "$status", "count": {"$sum": 1}}}]):
            if row.get("_id") in counts:
                counts[row["_id"]] = int(row.get("count", 0))
        return counts

    def _to_intents(self, documents: Iterable[Dict[str, Any]]):
        for document in documents:
            try:
                yield MutationIntent.from_document(document)
            except (ValidationError, ValueError, TypeError, KeyError) as e:
                logger.error(f"Malformed queue document {document.get('_id')}: {e}")
                if document.get("status") == IntentStatus.PENDING.value:
                    self._quarantine(document["_id"], f"Malformed queue document: {e}")

    def _quarantine(self, document_id, error: str) -> None:
        """Move an unreadable pending document to failed so it stops taking batch slots."""
        try:
            result = self.collection.update_one(
                {"_id": document_id, "status": IntentStatus.PENDING.value},
                {"$set": {
                    "status": IntentStatus.FAILED.value,
                    "last_error": error[:MAX_ERROR_LENGTH],
                    "updated_at": utc_now(),
                }},
            )
        except PyMongoError as e:
            logger.error(f"Failed to quarantine queue document {document_id}: {e}")
            return
        if result.modified_count:
            logger.warning(f"Queue document {document_id} marked failed")


class MongoRecordStore:
    """Primary collection the queue applies mutations to."""

    def __init__(self, collection, cache=None, cache_prefixes: Sequence[str] = ()):
        self.collection = collection
        self.cache = cache
        self.cache_prefixes = tuple(cache_prefixes)

    def create(self, record: Dict[str, Any]) -> Dict[str, Any]:
        now = utc_now()
        document = dict(record)
        document.setdefault("created_at", now)
        document["updated_at"] = now
        result = self.collection.insert_one(document)
        document["_id"] = result.inserted_id
        self._invalidate()
        return document

    def update_by_id(self, record_id: str, changes: Dict[str, Any]) -> None:
        """
        Apply a partial update.

        Raises:
            TargetNotFoundError: when no record has this id.
        """
        fields = dict(changes)
        fields["updated_at"] = utc_now()
        result = self.collection.update_one({"_id": to_object_id(record_id)}, {"$set": fields})
        if result.matched_count == 0:
            raise TargetNotFoundError(record_id)
        self._invalidate()

    def delete_by_id(self, record_id: str) -> None:
        """Remove a record. Deleting an absent record is not an error."""
        result = self.collection.delete_one({"_id": to_object_id(record_id)})
        if result.deleted_count:
            self._invalidate()
        else:
            logger.info(f"Delete of {record_id}: record already absent")

    def _invalidate(self) -> None:
        if not self.cache:
            return
        for prefix in self.cache_prefixes:
            self.cache.invalidate(prefix)
