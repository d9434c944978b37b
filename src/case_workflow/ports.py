"""Collaborator interfaces used by the status-change service."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Protocol

from case_workflow.case_lifecycle import CaseWorkflowState

if TYPE_CHECKING:
    from case_workflow.authorization import Actor
    from case_workflow.recorder import TransitionRecord


@dataclass(frozen=True)
class CaseSnapshot:
    """Case as loaded for one status change: workflow state plus ownership fields."""

    case_id: int
    state: CaseWorkflowState
    created_by_id: str | None = None
    assigned_to_id: str | None = None
    department_id: str | None = None


class CaseStore(Protocol):
    def load_case(self, case_id: int) -> CaseSnapshot: ...

    def commit_transition(
        self,
        case_id: int,
        new_state: CaseWorkflowState,
        record: TransitionRecord,
        expected_version: int,
    ) -> int: ...


class CaseAuthorizer(Protocol):
    def can_mutate_case(self, actor: Actor, case: CaseSnapshot) -> bool: ...


class ActorDirectory(Protocol):
    def get_actor(self, actor_id: str) -> Actor | None: ...


class Clock(Protocol):
    def now(self) -> datetime: ...
