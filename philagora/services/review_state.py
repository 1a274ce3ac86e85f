"""
Review state machines for generation log entries and article candidates.

Only the transitions listed here are legal. Terminal states have no outgoing
transitions.
"""

from typing import Dict, Tuple

from philagora.utils.exceptions import InvalidTransitionError

GENERATION_TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    "pending": ("generated", "rejected"),
    "generated": ("approved", "rejected"),
    "approved": ("published",),
    "rejected": (),
    "published": (),
}

CANDIDATE_TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    "new": ("scored",),
    "scored": ("approved", "dismissed"),
    "approved": ("used",),
    "dismissed": (),
    "used": (),
}

# Candidate statuses an editor may set; 'scored' is only reached by scoring
OPERATOR_CANDIDATE_TARGETS = ("approved", "dismissed", "used")


def can_transition(transitions: Dict[str, Tuple[str, ...]], current: str, target: str) -> bool:
    return target in transitions.get(current, ())


def check_generation_transition(current: str, target: str) -> None:
    """
    Raises:
        InvalidTransitionError: If a log entry may not move from current to target.
    """
    if not can_transition(GENERATION_TRANSITIONS, current, target):
        raise InvalidTransitionError("generation log entry", current, target)


def check_candidate_transition(current: str, target: str) -> None:
    """
    Raises:
        InvalidTransitionError: If a candidate may not move from current to target.
    """
    if not can_transition(CANDIDATE_TRANSITIONS, current, target):
        raise InvalidTransitionError("article candidate", current, target)

