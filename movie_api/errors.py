"""Exception types shared by the API and the write queue."""


class MovieApiError(Exception):
    """Base class for application errors."""


class ValidationError(MovieApiError):
    """Raised when a request or mutation payload is malformed."""


class TargetNotFoundError(MovieApiError):
    """Raised when an update targets a record that does not exist."""

    def __init__(self, target_id: str):
        super().__init__(f"Record not found: {target_id}")
        self.target_id = target_id


class InvalidTransitionError(MovieApiError):
    """Raised on an intent status change outside the allowed paths."""


class QueueStoreError(MovieApiError):
    """Raised when the queue store cannot be read."""
