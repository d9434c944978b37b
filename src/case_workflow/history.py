"""Case history export: status transitions, notes and audit logs of one case as a JSON bundle.

Read-only with respect to transition records; the export itself is audited.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from case_workflow import ENGINE_VERSION
from case_workflow.audit_context import get_actor, get_correlation_id
from case_workflow.config import get_config_hash
from case_workflow.db import session_scope
from case_workflow.errors import CaseNotFound
from case_workflow.models import AuditLog, Case, CaseNote, CaseStatusTransition


def _serialize_dt(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return dt.isoformat() if dt.tzinfo else dt.replace(tzinfo=UTC).isoformat()


def _transition_to_dict(t: CaseStatusTransition) -> dict[str, Any]:
    return {
        "id": t.id,
        "from_status": t.from_status,
        "to_status": t.to_status,
        "outcome": t.outcome,
        "note": t.note,
        "actor_id": t.actor_id,
        "ts": _serialize_dt(t.ts),
        "resulting_version": t.resulting_version,
        "correlation_id": t.correlation_id,
    }


def _note_to_dict(n: CaseNote) -> dict[str, Any]:
    return {
        "id": n.id,
        "note": n.note,
        "note_type": n.note_type,
        "transition_id": n.transition_id,
        "created_at": _serialize_dt(n.created_at),
        "actor": n.actor,
        "correlation_id": n.correlation_id,
    }


def _audit_log_row_to_dict(row: AuditLog) -> dict[str, Any]:
    return {
        "id": row.id,
        "correlation_id": row.correlation_id,
        "action": row.action,
        "entity_type": row.entity_type,
        "entity_id": row.entity_id,
        "ts": _serialize_dt(row.ts),
        "actor": row.actor,
        "details_json": row.details_json,
        "row_hash": row.row_hash,
    }


def build_case_history(case_id: int, config: dict[str, Any] | None = None) -> dict[str, Any]:
    """Bundle for case_id. Raises CaseNotFound. With config, metadata carries its hash."""
    with session_scope() as session:
        case = session.execute(
            select(Case)
            .where(Case.id == case_id)
            .options(selectinload(Case.transitions), selectinload(Case.notes))
        ).scalar_one_or_none()
        if case is None:
            raise CaseNotFound(f"Case {case_id} not found")
        audit_rows = list(
            session.execute(
                select(AuditLog)
                .where(AuditLog.entity_type == "case", AuditLog.entity_id == str(case_id))
                .order_by(AuditLog.id)
            )
            .scalars()
            .all()
        )
        return {
            "metadata": {
                "exported_at": datetime.now(UTC).isoformat(),
                "engine_version": ENGINE_VERSION,
                "config_hash": get_config_hash(config) if config is not None else None,
            },
            "case": {
                "id": case.id,
                "case_number": case.case_number,
                "status": case.status,
                "outcome": case.outcome,
                "version": case.version,
                "closed_at": _serialize_dt(case.closed_at),
                "department_id": case.department_id,
                "created_by_id": case.created_by_id,
                "assigned_to_id": case.assigned_to_id,
                "created_at": _serialize_dt(case.created_at),
                "updated_at": _serialize_dt(case.updated_at),
            },
            "transitions": [_transition_to_dict(t) for t in case.transitions],
            "notes": [_note_to_dict(n) for n in sorted(case.notes, key=lambda n: n.id)],
            "audit_logs": [_audit_log_row_to_dict(r) for r in audit_rows],
        }


def export_case_history(
    case_id: int,
    out_path: str | Path | None = None,
    config: dict[str, Any] | None = None,
) -> str:
    """Write the case history bundle as JSON and log the export. Returns the resolved path."""
    bundle = build_case_history(case_id, config)
    if out_path is None:
        out_path = Path(".") / f"case_history_{case_id}.json"
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(bundle, f, indent=2)

    with session_scope() as session:
        session.add(
            AuditLog(
                correlation_id=get_correlation_id(),
                action="case_history_export",
                entity_type="case",
                entity_id=str(case_id),
                actor=get_actor(),
                details_json={
                    "transition_count": len(bundle["transitions"]),
                    "output_path": str(out_path.resolve()),
                    "config_hash": bundle["metadata"]["config_hash"],
                },
            )
        )
    return str(out_path.resolve())
