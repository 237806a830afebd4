"""Mutation intent model and its status state machine."""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

from movie_api.errors import InvalidTransitionError, ValidationError

DEFAULT_MAX_RETRIES = 3
MAX_ERROR_LENGTH = 500


class Operation(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class IntentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({IntentStatus.COMPLETED, IntentStatus.FAILED})

ALLOWED_TRANSITIONS = {
    IntentStatus.PENDING: frozenset({IntentStatus.PROCESSING}),
    IntentStatus.PROCESSING: frozenset({IntentStatus.COMPLETED, IntentStatus.PENDING, IntentStatus.FAILED}),
    IntentStatus.COMPLETED: frozenset(),
    IntentStatus.FAILED: frozenset(),
}


@dataclass(frozen=True)
class InsertPayload:
    """Full field set of the record to create."""

    record: Dict[str, Any]

    def to_document(self) -> Dict[str, Any]:
        return dict(self.record)


@dataclass(frozen=True)
class UpdatePayload:
    """Partial field set applied to an existing record."""

    target_id: str
    changes: Dict[str, Any]

    def to_document(self) -> Dict[str, Any]:
        return {"target_id": self.target_id, "changes": dict(self.changes)}


@dataclass(frozen=True)
class DeletePayload:
    target_id: str

    def to_document(self) -> Dict[str, Any]:
        return {"target_id": self.target_id}


IntentPayload = Union[InsertPayload, UpdatePayload, DeletePayload]


def _check_field_names(fields: Dict[str, Any], label: str) -> None:
    for key in fields:
        if not isinstance(key, str) or not key:
            raise ValidationError(f"{label} field names must be non-empty strings")
        if key.startswith("$") or "." in key:
            raise ValidationError(f"{label} field name not allowed: {key}")
    if "_id" in fields:
        raise ValidationError(f"{label} must not set _id")


def _require_target_id(data: Dict[str, Any]) -> str:
    target_id = data.get("target_id")
    if not isinstance(target_id, str) or not target_id.strip():
        raise ValidationError("target_id is required")
    return target_id.strip()


def parse_payload(operation: Operation, data: Any) -> IntentPayload:
    """
    Validate a raw payload against its operation and build the matching variant.

    Raises:
        ValidationError: when the payload does not fit the operation.
    """
    if not isinstance(data, dict):
        raise ValidationError(f"{operation.value} payload must be an object")

    if operation is Operation.INSERT:
        if not data:
            raise ValidationError("insert payload must contain the record fields")
        _check_field_names(data, "insert payload")
        return InsertPayload(record=dict(data))

    if operation is Operation.UPDATE:
        unexpected = set(data) - {"target_id", "changes"}
        if unexpected:
            raise ValidationError(f"unexpected update payload keys: {', '.join(sorted(unexpected))}")
        target_id = _require_target_id(data)
        changes = data.get("changes")
        if not isinstance(changes, dict) or not changes:
            raise ValidationError("update payload requires a non-empty changes object")
        _check_field_names(changes, "update changes")
        return UpdatePayload(target_id=target_id, changes=dict(changes))

    if operation is Operation.DELETE:
        unexpected = set(data) - {"target_id"}
        if unexpected:
            raise ValidationError(f"unexpected delete payload keys: {', '.join(sorted(unexpected))}")
        return DeletePayload(target_id=_require_target_id(data))

    raise ValidationError(f"unsupported operation: {operation}")


def _as_int(value: Any, default: int) -> int:
    """Stored counters may be missing or null in hand-edited documents."""
    if value is None:
        return default
    return int(value)


def parse_operation(value: Any) -> Operation:
    try:
        return Operation(value)
    except ValueError:
        raise ValidationError(f"operation must be one of insert, update, delete: {value!r}") from None


@dataclass
class MutationIntent:
    """A queued create/update/delete waiting to be applied to the record store."""

    operation: Operation
    payload: IntentPayload
    status: IntentStatus = IntentStatus.PENDING
    retry_count: int = 0
    max_retries: int = DEFAULT_MAX_RETRIES
    last_error: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def mark_processing(self) -> None:
        self._transition(IntentStatus.PROCESSING)

    def mark_completed(self) -> None:
        self._transition(IntentStatus.COMPLETED)
        self.last_error = None

    def mark_failed_attempt(self, error: str) -> IntentStatus:
        """
        Record a failed apply: bump the retry count and either requeue or quarantine.

        Returns:
            The new status, ``pending`` or ``failed``.
        """
        if self.status is not IntentStatus.PROCESSING:
            raise InvalidTransitionError(f"cannot record a failed attempt while {self.status.value}")
        self.retry_count += 1
        self.last_error = (error or "unknown error")[:MAX_ERROR_LENGTH]
        if self.retry_count >= self.max_retries:
            self._transition(IntentStatus.FAILED)
        else:
            self._transition(IntentStatus.PENDING)
        return self.status

    def _transition(self, new_status: IntentStatus) -> None:
        if new_status not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"intent {self.id}: {self.status.value} -> {new_status.value} is not allowed"
            )
        self.status = new_status

    def to_document(self) -> Dict[str, Any]:
        """Fields persisted in the queue collection (identity and timestamps excluded)."""
        return {
            "operation": self.operation.value,
            "payload": self.payload.to_document(),
            "status": self.status.value,
            "retry_count": self.retry_count,
            "max_retries": self.max_retries,
            "last_error": self.last_error,
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "MutationIntent":
        operation = parse_operation(doc.get("operation"))
        return cls(
            operation=operation,
            payload=parse_payload(operation, doc.get("payload") or {}),
            status=IntentStatus(doc.get("status", IntentStatus.PENDING.value)),
            retry_count=_as_int(doc.get("retry_count"), 0),
            max_retries=_as_int(doc.get("max_retries"), DEFAULT_MAX_RETRIES),
            last_error=doc.get("last_error"),
            id=str(doc["_id"]) if doc.get("_id") is not None else None,
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
        )

    def to_api(self) -> Dict[str, Any]:
        """JSON-friendly view for the queue admin endpoints."""
        return {
            "_id": self.id,
            "operation": self.operation.value,
            "payload": self.payload.to_document(),
            "status": self.status.value,
            "retryCount": self.retry_count,
            "maxRetries": self.max_retries,
            "lastError": self.last_error,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


def build_intent(operation: Any, payload: Any, max_retries: int = DEFAULT_MAX_RETRIES) -> MutationIntent:
    """
    Validate an operation/payload pair and build a new pending intent.

    Args:
        operation: ``Operation`` or its string value.
        payload: Raw payload dict.
        max_retries: Retry ceiling, at least 1.

    Returns:
        MutationIntent: Unsaved intent with status ``pending``.

    Raises:
        ValidationError: when the operation is unknown or the payload malformed.
    """
    op = operation if isinstance(operation, Operation) else parse_operation(operation)
    if not isinstance(max_retries, int) or max_retries < 1:
        raise ValidationError(f"max_retries must be at least 1: {max_retries!r}")
    return MutationIntent(operation=op, payload=parse_payload(op, payload), max_retries=max_retries)
