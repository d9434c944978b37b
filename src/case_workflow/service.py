"""change_case_status: the one operation the application uses to move a case between statuses."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from logging import getLogger
from typing import Any, Literal

from case_workflow.audit_context import get_correlation_id
from case_workflow.authorization import StaticActorDirectory, TransitionAuthorizer
from case_workflow.case_lifecycle import CaseStatus, TransitionRequest, parse_status
from case_workflow.errors import CaseWorkflowError, Unauthenticated
from case_workflow.ports import ActorDirectory, CaseAuthorizer, CaseStore, Clock
from case_workflow.recorder import DEFAULT_NOTE_MAX_LENGTH, TransitionRecorder

logger = getLogger(__name__)


@dataclass(frozen=True)
class StatusChangeSuccess:
    new_status: CaseStatus
    new_outcome: str | None
    new_version: int
    record_id: int
    ok: Literal[True] = True


@dataclass(frozen=True)
class StatusChangeFailure:
    kind: str
    message: str
    ok: Literal[False] = False


StatusChangeResult = StatusChangeSuccess | StatusChangeFailure


class CaseStatusService:
    """Wires actor lookup, authorization, the lifecycle engine and the recorder."""

    def __init__(
        self,
        store: CaseStore,
        actors: ActorDirectory,
        authorizer: CaseAuthorizer | None = None,
        clock: Clock | None = None,
        note_max_length: int = DEFAULT_NOTE_MAX_LENGTH,
    ) -> None:
        self.store = store
        self.actors = actors
        self.authorizer = TransitionAuthorizer(authorizer)
        self.recorder = TransitionRecorder(store, clock, note_max_length=note_max_length)

    def change_case_status(
        self,
        case_id: int,
        target_status: str | CaseStatus,
        actor_id: str,
        expected_version: int,
        outcome: str | None = None,
        note: str | None = None,
    ) -> StatusChangeResult:
        """Apply one status change. Every per-request failure is returned, not raised."""
        cid = get_correlation_id()
        try:
            target = parse_status(target_status)
            actor = self.actors.get_actor(actor_id)
            if actor is None:
                raise Unauthenticated(f"Unknown actor {actor_id!r}")
            case = self.store.load_case(case_id)
            request = TransitionRequest(
                target_status=target,
                actor_id=actor.id,
                expected_version=expected_version,
                outcome=outcome,
                note=note,
            )
            new_state = self.authorizer.attempt(case, request, actor)
            _, record_id = self.recorder.record(
                case_id, case.state.status, request, new_state, actor, correlation_id=cid
            )
        except CaseWorkflowError as e:
            logger.warning(
                "Status change rejected: case_id=%s kind=%s correlation_id=%s",
                case_id,
                e.kind,
                cid,
            )
            return StatusChangeFailure(kind=e.kind, message=e.message)
        logger.info(
            "Status change committed: case_id=%s %s -> %s version=%d record_id=%d correlation_id=%s",
            case_id,
            case.state.status.value,
            new_state.status.value,
            new_state.version,
            record_id,
            cid,
        )
        return StatusChangeSuccess(
            new_status=new_state.status,
            new_outcome=new_state.outcome,
            new_version=new_state.version,
            record_id=record_id,
        )


def build_service(
    config: Mapping[str, Any],
    store: CaseStore | None = None,
    clock: Clock | None = None,
) -> CaseStatusService:
    """Service over SqlCaseStore with actors from config and CASEFLOW_API_KEYS."""
    from case_workflow.auth import api_key_actors
    from case_workflow.repository import SqlCaseStore

    directory = StaticActorDirectory.from_config(config)
    for actor in api_key_actors():
        directory.add(actor)
    workflow_cfg = config.get("workflow") or {}
    return CaseStatusService(
        store=store or SqlCaseStore(),
        actors=directory,
        clock=clock,
        note_max_length=int(workflow_cfg.get("note_max_length", DEFAULT_NOTE_MAX_LENGTH)),
    )
