"""Domain error taxonomy for the sentiment platform.

Every error carries a machine-readable ``code``, a human ``message`` and an
optional list of field-level details. The API layer renders them into the
structured error envelope and maps them to HTTP status codes.
"""

from typing import Any, Dict, List, Optional

from core.constants import ErrorCode


class DomainError(Exception):
    """Base domain error."""

    code: str = ErrorCode.INTERNAL_ERROR
    status_code: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[List[Dict[str, Any]]] = None,
        code: Optional[str] = None,
    ):
        self.message = message
        self.details = details or []
        if code is not None:
            self.code = code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": str(self.code),
            "message": self.message,
            "details": self.details,
        }


def field_detail(field: str, message: str, code: str) -> Dict[str, str]:
    """Build one field-level error detail."""
    return {"field": field, "message": message, "code": code}


class ValidationError(DomainError):
    """A field constraint was violated (length, range, required)."""

    code = ErrorCode.VALIDATION_ERROR
    status_code = 422

    def __init__(self, field: str, message: str, detail_code: str = "INVALID"):
        self.field = field
        super().__init__(
            f"Validation failed for '{field}': {message}",
            details=[field_detail(field, message, detail_code)],
        )


class ConflictError(DomainError):
    """Uniqueness violation."""

    code = ErrorCode.CONFLICT
    status_code = 409


class DuplicatePost(ConflictError):
    code = ErrorCode.DUPLICATE_POST


class DuplicateEmail(ConflictError):
    code = ErrorCode.DUPLICATE_EMAIL


class DuplicateApiKey(ConflictError):
    code = ErrorCode.DUPLICATE_API_KEY


class DuplicateAnalysis(ConflictError):
    code = ErrorCode.DUPLICATE_ANALYSIS


class DuplicateActiveEntry(ConflictError):
    """An active (Pending/Processing) queue row already exists for the post."""

    code = ErrorCode.DUPLICATE_ACTIVE_ENTRY

    def __init__(self, post_id: Any, queue_id: Any = None):
        self.post_id = post_id
        self.queue_id = queue_id
        super().__init__(
            f"Post {post_id} already has an active queue entry",
            details=[field_detail("postId", f"active entry {queue_id}", self.code)],
        )


class RateLimited(ConflictError):
    code = ErrorCode.RATE_LIMITED
    status_code = 429


class InvalidTransition(DomainError):
    """Queue state machine operation attempted from a state that forbids it."""

    code = ErrorCode.INVALID_TRANSITION
    status_code = 409

    def __init__(self, entity_id: Any, current: Any, target: Any):
        self.entity_id = entity_id
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot transition {entity_id} from {getattr(current, 'name', current)} "
            f"to {getattr(target, 'name', target)}"
        )


class NotFound(DomainError):
    code = ErrorCode.NOT_FOUND
    status_code = 404

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class EmptyQueue(DomainError):
    code = ErrorCode.EMPTY_QUEUE
    status_code = 404

    def __init__(self):
        super().__init__("No pending queue entries")


class TransientStorageError(DomainError):
    """Connection/timeout failure that survived the bounded retry policy."""

    code = ErrorCode.STORAGE_UNAVAILABLE
    status_code = 503

    def __init__(self, message: str, retry_count: int = 0):
        self.retry_count = retry_count
        super().__init__(message)


class UpstreamError(DomainError):
    """The external scorer or message broker failed."""

    code = ErrorCode.UPSTREAM_ERROR
    status_code = 502
