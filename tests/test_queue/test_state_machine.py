"""Unit tests for the processing queue transition table."""

import pytest

from core.errors import InvalidTransition
from models.enums import PostStatus
from services.queue.state_machine import (
    TERMINAL_STATES,
    can_transition,
    ensure_transition,
    status_after_failure,
)


class TestTransitions:
    @pytest.mark.parametrize(
        "current,target",
        [
            (PostStatus.PENDING, PostStatus.PROCESSING),
            (PostStatus.PENDING, PostStatus.SKIPPED),
            (PostStatus.PROCESSING, PostStatus.COMPLETED),
            (PostStatus.PROCESSING, PostStatus.FAILED),
            (PostStatus.PROCESSING, PostStatus.PENDING),
        ],
    )
    def test_allowed(self, current, target):
        assert can_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (PostStatus.PENDING, PostStatus.COMPLETED),
            (PostStatus.PENDING, PostStatus.FAILED),
            (PostStatus.PROCESSING, PostStatus.SKIPPED),
            (PostStatus.COMPLETED, PostStatus.PROCESSING),
            (PostStatus.FAILED, PostStatus.PENDING),
            (PostStatus.SKIPPED, PostStatus.PENDING),
        ],
    )
    def test_forbidden(self, current, target):
        assert not can_transition(current, target)

    def test_terminal_states(self):
        assert TERMINAL_STATES == {PostStatus.COMPLETED, PostStatus.FAILED, PostStatus.SKIPPED}

    def test_ensure_transition_raises_with_states(self):
        with pytest.raises(InvalidTransition) as exc_info:
            ensure_transition("q-1", PostStatus.COMPLETED, PostStatus.PROCESSING)
        error = exc_info.value
        assert error.current is PostStatus.COMPLETED
        assert error.target is PostStatus.PROCESSING
        assert error.status_code == 409


class TestStatusAfterFailure:
    @pytest.mark.parametrize(
        "retry_count,expected",
        [(1, PostStatus.PENDING), (2, PostStatus.PENDING), (3, PostStatus.FAILED)],
    )
    def test_default_budget_of_two_retries(self, retry_count, expected):
        assert status_after_failure(retry_count, max_retries=2) is expected

    def test_no_retries(self):
        assert status_after_failure(1, max_retries=0) is PostStatus.FAILED
