"""Actors, the role-based case permission policy, and the transition authorizer."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from logging import getLogger
from typing import Any

from case_workflow import case_lifecycle
from case_workflow.case_lifecycle import CaseWorkflowState, TransitionRequest
from case_workflow.errors import Forbidden
from case_workflow.ports import CaseAuthorizer, CaseSnapshot

logger = getLogger(__name__)


class UserRole(StrEnum):
    ADMIN = "ADMIN"
    ATTORNEY = "ATTORNEY"
    PARALEGAL = "PARALEGAL"
    CLIENT_DEPT = "CLIENT_DEPT"
    USER = "USER"


ROLE_VALUES = frozenset(r.value for r in UserRole)


@dataclass(frozen=True)
class Actor:
    id: str
    role: UserRole
    department_id: str | None = None


class RoleBasedCaseAuthorizer:
    """Who may change a case.

    ADMIN: any case. Everyone else is confined to their own department.
    ATTORNEY: any case in the department. PARALEGAL: cases they created or
    are assigned to. Other roles: never.
    """

    def can_mutate_case(self, actor: Actor, case: CaseSnapshot) -> bool:
        if actor.role == UserRole.ADMIN:
            return True
        if (
            actor.department_id
            and case.department_id
            and actor.department_id != case.department_id
        ):
            return False
        if actor.role == UserRole.ATTORNEY:
            return actor.department_id == case.department_id
        if actor.role == UserRole.PARALEGAL:
            return actor.id in (case.created_by_id, case.assigned_to_id)
        return False


class StaticActorDirectory:
    """Actor lookup backed by a fixed mapping (built from config and API keys)."""

    def __init__(self, actors: Iterable[Actor] = ()) -> None:
        self._actors = {a.id: a for a in actors}

    def get_actor(self, actor_id: str) -> Actor | None:
        return self._actors.get(actor_id)

    def add(self, actor: Actor) -> None:
        self._actors[actor.id] = actor

    def __len__(self) -> int:
        return len(self._actors)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> StaticActorDirectory:
        """Build from `actors:` entries: {id: {role: ATTORNEY, department: civil}}."""
        entries = config.get("actors") or {}
        actors = []
        for actor_id, spec in entries.items():
            spec = spec or {}
            role = str(spec.get("role", UserRole.USER)).upper()
            if role not in ROLE_VALUES:
                raise ValueError(
                    f"actors.{actor_id}.role must be one of {sorted(ROLE_VALUES)}, got {role!r}"
                )
            actors.append(
                Actor(id=str(actor_id), role=UserRole(role), department_id=spec.get("department"))
            )
        return cls(actors)


class TransitionAuthorizer:
    """Permission gate in front of the lifecycle engine. Performs no I/O."""

    def __init__(self, authorizer: CaseAuthorizer | None = None) -> None:
        self._authorizer = authorizer or RoleBasedCaseAuthorizer()

    def attempt(
        self, case: CaseSnapshot, request: TransitionRequest, actor: Actor
    ) -> CaseWorkflowState:
        """Raise Forbidden if actor may not change case; otherwise run the engine."""
        if not self._authorizer.can_mutate_case(actor, case):
            logger.warning(
                "Status change denied: case_id=%s actor_id=%s role=%s",
                case.case_id,
                actor.id,
                actor.role.value,
            )
            raise Forbidden(f"Actor {actor.id!r} is not allowed to change case {case.case_id}")
        return case_lifecycle.transition(case.state, request)
