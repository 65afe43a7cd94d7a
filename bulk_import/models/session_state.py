from __future__ import annotations

from enum import Enum

"""Import session states and the explicit transition table.

Only the moves listed in TRANSITIONS are legal; everything else raises
InvalidTransition so a session can never be "previewing" and "awaiting a quota
decision" at the same time.
"""

__all__ = [
    "SessionState",
    "TRANSITIONS",
    "InvalidTransition",
    "ensure_transition",
]


class SessionState(str, Enum):
    UPLOADING = "uploading"
    PREVIEWING = "previewing"
    AWAITING_QUOTA_DECISION = "awaiting_quota_decision"
    AWAITING_DUPLICATE_DECISION = "awaiting_duplicate_decision"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"


TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.UPLOADING: frozenset({SessionState.PREVIEWING, SessionState.FAILED}),
    SessionState.PREVIEWING: frozenset({
        SessionState.AWAITING_DUPLICATE_DECISION,
        SessionState.AWAITING_QUOTA_DECISION,
        SessionState.COMMITTING,
        SessionState.UPLOADING,
        SessionState.FAILED,
    }),
    SessionState.AWAITING_DUPLICATE_DECISION: frozenset({
        SessionState.AWAITING_QUOTA_DECISION,
        SessionState.COMMITTING,
        SessionState.PREVIEWING,
        SessionState.UPLOADING,
        SessionState.FAILED,
    }),
    SessionState.AWAITING_QUOTA_DECISION: frozenset({
        SessionState.COMMITTING,
        SessionState.PREVIEWING,
        SessionState.UPLOADING,
        SessionState.FAILED,
    }),
    # commit 開始後はキャンセル不可
    SessionState.COMMITTING: frozenset({SessionState.DONE, SessionState.FAILED}),
    SessionState.DONE: frozenset({SessionState.UPLOADING}),
    SessionState.FAILED: frozenset({SessionState.UPLOADING}),
}


class InvalidTransition(Exception):
    def __init__(self, current: SessionState, target: SessionState) -> None:
        super().__init__(f"cannot move from {current.value} to {target.value}")
        self.current = current
        self.target = target


def ensure_transition(current: SessionState, target: SessionState) -> None:
    if target not in TRANSITIONS[current]:
        raise InvalidTransition(current, target)
