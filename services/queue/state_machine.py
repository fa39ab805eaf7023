"""Processing queue transition table.

    Pending    -> Processing | Skipped
    Processing -> Completed | Failed | Pending (retry)
    Completed, Failed, Skipped are terminal.
"""

from typing import Any, Dict, FrozenSet

from core.errors import InvalidTransition
from models.enums import PostStatus

ALLOWED_TRANSITIONS: Dict[PostStatus, FrozenSet[PostStatus]] = {
    PostStatus.PENDING: frozenset({PostStatus.PROCESSING, PostStatus.SKIPPED}),
    PostStatus.PROCESSING: frozenset({PostStatus.COMPLETED, PostStatus.FAILED, PostStatus.PENDING}),
    PostStatus.COMPLETED: frozenset(),
    PostStatus.FAILED: frozenset(),
    PostStatus.SKIPPED: frozenset(),
}

TERMINAL_STATES = frozenset(s for s, targets in ALLOWED_TRANSITIONS.items() if not targets)


def can_transition(current: PostStatus, target: PostStatus) -> bool:
    return PostStatus(target) in ALLOWED_TRANSITIONS[PostStatus(current)]


def ensure_transition(entity_id: Any, current: PostStatus, target: PostStatus) -> None:
    if not can_transition(current, target):
        raise InvalidTransition(entity_id, PostStatus(current), PostStatus(target))


def status_after_failure(retry_count: int, max_retries: int) -> PostStatus:
    """Status for a row that has just failed ``retry_count`` times in total."""
    return PostStatus.FAILED if retry_count > max_retries else PostStatus.PENDING
