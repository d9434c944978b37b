"""Typed workflow errors. Each carries a stable `kind` used by API/CLI callers."""

from __future__ import annotations


class CaseWorkflowError(Exception):
    """Base class for every per-request failure of a status change."""

    kind: str = "CaseWorkflowError"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class TransitionError(CaseWorkflowError):
    """The requested state change is not legal for the case's current state."""


class InvalidTransition(TransitionError):
    kind = "InvalidTransition"


class SelfTransition(TransitionError):
    kind = "SelfTransition"


class MissingOutcome(TransitionError):
    kind = "MissingOutcome"


class OutcomeNotApplicable(TransitionError):
    kind = "OutcomeNotApplicable"


class InvalidOutcome(TransitionError):
    kind = "InvalidOutcome"


class UnknownStatus(TransitionError):
    kind = "UnknownStatus"


class AuthorizationError(CaseWorkflowError):
    """The actor may not change this case. Never conflated with TransitionError."""


class Forbidden(AuthorizationError):
    kind = "Forbidden"


class Unauthenticated(AuthorizationError):
    kind = "Unauthenticated"


class CaseNotFound(CaseWorkflowError):
    kind = "CaseNotFound"


class ConcurrentModification(CaseWorkflowError):
    """Stored version no longer equals the caller's expected_version."""

    kind = "ConcurrentModification"


class PersistenceError(CaseWorkflowError):
    """The commit failed after validation passed; nothing was written."""

    kind = "PersistenceError"
