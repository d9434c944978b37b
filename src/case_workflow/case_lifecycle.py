"""Case status lifecycle: valid transitions, outcome rules and the pure transition engine."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import StrEnum

from case_workflow.errors import (
    InvalidOutcome,
    InvalidTransition,
    MissingOutcome,
    OutcomeNotApplicable,
    SelfTransition,
    UnknownStatus,
)


class CaseStatus(StrEnum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    ON_HOLD = "ON_HOLD"
    CLOSED = "CLOSED"
    DISMISSED = "DISMISSED"


CASE_STATUS_VALUES = frozenset(s.value for s in CaseStatus)
TERMINAL_STATUSES = frozenset({CaseStatus.CLOSED, CaseStatus.DISMISSED})

# Outcome codes offered to users. The set is open: unknown codes are accepted.
KNOWN_OUTCOMES = frozenset(
    {
        "SETTLED",
        "JUDGMENT_FOR_PLAINTIFF",
        "JUDGMENT_FOR_DEFENDANT",
        "DISMISSED_WITH_PREJUDICE",
        "DISMISSED_WITHOUT_PREJUDICE",
        "WITHDRAWN",
        "PLEA_AGREEMENT",
        "OTHER",
    }
)

# Width of the stored outcome column
MAX_OUTCOME_LENGTH = 64

# Valid (from_status -> to_status). CLOSED and DISMISSED cannot transition.
VALID_CASE_TRANSITIONS: dict[CaseStatus, frozenset[CaseStatus]] = {
    CaseStatus.OPEN: frozenset({CaseStatus.IN_PROGRESS, CaseStatus.ON_HOLD, CaseStatus.DISMISSED}),
    CaseStatus.IN_PROGRESS: frozenset(
        {CaseStatus.OPEN, CaseStatus.ON_HOLD, CaseStatus.CLOSED, CaseStatus.DISMISSED}
    ),
    CaseStatus.ON_HOLD: frozenset(
        {CaseStatus.OPEN, CaseStatus.IN_PROGRESS, CaseStatus.CLOSED, CaseStatus.DISMISSED}
    ),
    CaseStatus.CLOSED: frozenset(),
    CaseStatus.DISMISSED: frozenset(),
}


@dataclass(frozen=True)
class CaseWorkflowState:
    """The subset of a case that the lifecycle engine reads and produces."""

    status: CaseStatus
    outcome: str | None = None
    version: int = 0


@dataclass(frozen=True)
class TransitionRequest:
    target_status: CaseStatus
    actor_id: str
    expected_version: int
    outcome: str | None = None
    note: str | None = None


def parse_status(value: str | CaseStatus) -> CaseStatus:
    """Return CaseStatus for value (case-insensitive); raise UnknownStatus otherwise."""
    if isinstance(value, CaseStatus):
        return value
    try:
        return CaseStatus(str(value).strip().upper())
    except ValueError as e:
        raise UnknownStatus(
            f"Status must be one of {sorted(CASE_STATUS_VALUES)}, got {value!r}"
        ) from e


def normalize_outcome(outcome: str | None) -> str | None:
    """Canonical outcome code: trimmed, upper-case, spaces as underscores. Blank -> None."""
    if outcome is None:
        return None
    code = "_".join(str(outcome).strip().upper().split())
    return code or None


def is_terminal(status: CaseStatus) -> bool:
    return status in TERMINAL_STATUSES


def allowed_transitions(status: CaseStatus) -> frozenset[CaseStatus]:
    return VALID_CASE_TRANSITIONS.get(status, frozenset())


def validate_case_status_transition(current: CaseStatus, new: CaseStatus) -> None:
    """Raise SelfTransition or InvalidTransition if current -> new is not in the table."""
    allowed = allowed_transitions(current)
    if new == current and not is_terminal(current):
        raise SelfTransition(f"Case is already {current.value}; no-op transitions are rejected")
    if new not in allowed:
        allowed_str = sorted(s.value for s in allowed) or "none"
        raise InvalidTransition(
            f"Invalid transition: {current.value} -> {new.value}. "
            f"Allowed from {current.value}: {allowed_str}"
        )


def transition(state: CaseWorkflowState, request: TransitionRequest) -> CaseWorkflowState:
    """Decide whether request is legal for state and return the next state.

    Pure: the same (state, request) always gives the same result. Raises a
    TransitionError subclass when the request is rejected.
    """
    target = request.target_status
    validate_case_status_transition(state.status, target)
    outcome = normalize_outcome(request.outcome)
    if is_terminal(target) and outcome is None:
        raise MissingOutcome(f"An outcome is required to move a case to {target.value}")
    if not is_terminal(target) and outcome is not None:
        raise OutcomeNotApplicable(
            f"Outcome {outcome!r} is only allowed when moving to "
            f"{sorted(s.value for s in TERMINAL_STATUSES)}"
        )
    if outcome is not None and len(outcome) > MAX_OUTCOME_LENGTH:
        raise InvalidOutcome(
            f"Outcome code must be at most {MAX_OUTCOME_LENGTH} characters, got {len(outcome)}"
        )
    return replace(state, status=target, outcome=outcome, version=state.version + 1)
