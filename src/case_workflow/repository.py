"""SQL-backed case store: loads workflow state and commits transitions atomically."""

from __future__ import annotations

from datetime import UTC, datetime
from logging import getLogger
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from case_workflow import ENGINE_VERSION
from case_workflow.case_lifecycle import CaseStatus, CaseWorkflowState, is_terminal
from case_workflow.db import session_scope
from case_workflow.errors import CaseNotFound, ConcurrentModification, PersistenceError
from case_workflow.models import AuditLog, Case, CaseNote, CaseStatusTransition
from case_workflow.ports import CaseSnapshot
from case_workflow.recorder import TransitionRecord

logger = getLogger(__name__)


def _naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(UTC).replace(tzinfo=None)


def case_to_snapshot(case: Case) -> CaseSnapshot:
    return CaseSnapshot(
        case_id=case.id,
        state=CaseWorkflowState(
            status=CaseStatus(case.status), outcome=case.outcome, version=case.version
        ),
        created_by_id=case.created_by_id,
        assigned_to_id=case.assigned_to_id,
        department_id=case.department_id,
    )


class SqlCaseStore:
    """CaseStore over the module-level session factory (see db.init_db)."""

    def load_case(self, case_id: int) -> CaseSnapshot:
        try:
            with session_scope() as session:
                case = session.execute(
                    select(Case).where(Case.id == case_id)
                ).scalar_one_or_none()
                if case is None:
                    raise CaseNotFound(f"Case {case_id} not found")
                return case_to_snapshot(case)
        except SQLAlchemyError as e:
            logger.error("Case load failed for case_id=%s: %s", case_id, type(e).__name__)
            raise PersistenceError(f"Could not load case {case_id}") from e

    def commit_transition(
        self,
        case_id: int,
        new_state: CaseWorkflowState,
        record: TransitionRecord,
        expected_version: int,
    ) -> int:
        """Conditional write of new_state plus record; returns the transition row id.

        Succeeds only if the stored version still equals expected_version. The case
        update, transition row, optional status-change note and audit log entry are
        one database transaction.
        """
        if new_state.version != expected_version + 1:
            raise ConcurrentModification(
                f"Case {case_id} was read at version {new_state.version - 1} "
                f"but expected_version is {expected_version}; re-read and resubmit"
            )
        ts = _naive_utc(record.timestamp)
        values: dict[str, Any] = {
            "status": new_state.status.value,
            "outcome": new_state.outcome,
            "version": new_state.version,
            "updated_at": ts,
            "correlation_id": record.correlation_id,
        }
        if is_terminal(new_state.status):
            values["closed_at"] = ts
        try:
            with session_scope() as session:
                result = session.execute(
                    update(Case)
                    .where(Case.id == case_id, Case.version == expected_version)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    raise ConcurrentModification(
                        f"Case {case_id} changed since version {expected_version}; "
                        "re-read and resubmit"
                    )
                row = CaseStatusTransition(
                    case_id=case_id,
                    from_status=record.from_status.value,
                    to_status=record.to_status.value,
                    outcome=record.outcome,
                    note=record.note,
                    actor_id=record.actor_id,
                    ts=ts,
                    resulting_version=record.resulting_version,
                    correlation_id=record.correlation_id,
                )
                session.add(row)
                session.flush()
                if record.note:
                    session.add(
                        CaseNote(
                            case_id=case_id,
                            note=record.note,
                            note_type="STATUS_CHANGE",
                            transition_id=row.id,
                            actor=record.actor_id,
                            created_at=ts,
                            correlation_id=record.correlation_id,
                        )
                    )
                session.add(
                    AuditLog(
                        correlation_id=record.correlation_id,
                        action="status_changed",
                        entity_type="case",
                        entity_id=str(case_id),
                        actor=record.actor_id,
                        ts=ts,
                        details_json={
                            "transition_id": row.id,
                            "previous_status": record.from_status.value,
                            "new_status": record.to_status.value,
                            "outcome": record.outcome,
                            "note": record.note,
                            "version": record.resulting_version,
                            "engine_version": ENGINE_VERSION,
                        },
                    )
                )
                session.flush()
                return row.id
        except (ConcurrentModification, CaseNotFound):
            raise
        except SQLAlchemyError as e:
            logger.error("Transition commit failed for case_id=%s: %s", case_id, type(e).__name__)
            raise PersistenceError(f"Could not save status change for case {case_id}") from e

    def create_case(
        self,
        case_number: str,
        title: str,
        created_by_id: str | None = None,
        assigned_to_id: str | None = None,
        department_id: str | None = None,
        correlation_id: str | None = None,
    ) -> int:
        """Insert a new OPEN case at version 0 (audited). Returns its id."""
        with session_scope() as session:
            case = Case(
                case_number=case_number,
                title=title,
                status=CaseStatus.OPEN.value,
                outcome=None,
                version=0,
                created_by_id=created_by_id,
                assigned_to_id=assigned_to_id,
                department_id=department_id,
                correlation_id=correlation_id,
            )
            session.add(case)
            session.flush()
            session.add(
                AuditLog(
                    correlation_id=correlation_id,
                    action="case_create",
                    entity_type="case",
                    entity_id=str(case.id),
                    actor=created_by_id or "system",
                    details_json={
                        "case_number": case_number,
                        "department_id": department_id,
                        "assigned_to_id": assigned_to_id,
                    },
                )
            )
            return case.id

    def list_transitions(self, case_id: int) -> list[CaseStatusTransition]:
        """Transition rows for case, oldest first (detached, read-only)."""
        with session_scope() as session:
            if session.get(Case, case_id) is None:
                raise CaseNotFound(f"Case {case_id} not found")
            rows = list(
                session.execute(
                    select(CaseStatusTransition)
                    .where(CaseStatusTransition.case_id == case_id)
                    .order_by(CaseStatusTransition.resulting_version)
                )
                .scalars()
                .all()
            )
            session.expunge_all()
            return rows
