"""Review workflow: lifecycle state machine and orchestration."""

from pr_reviewer.review.filters import ExclusionFilter
from pr_reviewer.review.models import ReviewItem
from pr_reviewer.review.orchestrator import ReviewOrchestrator
from pr_reviewer.review.state_machine import (
    VALID_TRANSITIONS,
    Advance,
    InvalidTransitionError,
    ReviewState,
    ReviewStateMachine,
    validate_transition,
)

__all__ = [
    "Advance",
    "ExclusionFilter",
    "InvalidTransitionError",
    "ReviewItem",
    "ReviewOrchestrator",
    "ReviewState",
    "ReviewStateMachine",
    "VALID_TRANSITIONS",
    "validate_transition",
]
