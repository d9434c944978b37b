"""Typer CLI: create-case, change-status, show-case, case-history, export-history, verify-audit-chain, serve-api."""

from __future__ import annotations

import json
from pathlib import Path

import typer
from sqlalchemy.exc import IntegrityError

from case_workflow.audit_context import audit_scope
from case_workflow.case_lifecycle import (
    CASE_STATUS_VALUES,
    KNOWN_OUTCOMES,
    allowed_transitions,
)
from case_workflow.config import get_config
from case_workflow.db import init_db, session_scope, verify_audit_chain
from case_workflow.errors import CaseNotFound
from case_workflow.history import export_case_history
from case_workflow.logging_config import setup_logging
from case_workflow.repository import SqlCaseStore
from case_workflow.service import StatusChangeFailure, build_service

app = typer.Typer(help="Legal case lifecycle workflow CLI")

_ACTOR_OPTION = typer.Option(
    "dev", "--actor", envvar="CASEFLOW_ACTOR", help="Acting user id (must be a known actor)"
)
_CONFIG_OPTION = typer.Option(None, "--config", "-c", help="Config YAML path")


def _ensure_db(config_path: str | None = None) -> dict:
    config = get_config(config_path)
    db_url = config.get("database", {}).get("url", "sqlite:///./data/cases.db")
    if db_url.startswith("sqlite:///") and ":memory:" not in db_url:
        Path(db_url.replace("sqlite:///", "")).parent.mkdir(parents=True, exist_ok=True)
    echo = config.get("database", {}).get("echo", False)
    setup_logging(config.get("app", {}).get("log_level", "INFO"))
    init_db(db_url, echo=echo)
    return config


@app.command("create-case")
def create_case_cmd(
    case_number: str = typer.Option(..., "--number", help="Unique case number, e.g. 2026-CV-0042"),
    title: str = typer.Option(..., "--title", help="Case title"),
    department: str | None = typer.Option(None, "--department", help="Department id"),
    assigned_to: str | None = typer.Option(None, "--assigned-to", help="Assignee actor id"),
    actor: str = _ACTOR_OPTION,
    config: str | None = _CONFIG_OPTION,
) -> None:
    """Create an OPEN case at version 0 (audited)."""
    _ensure_db(config)
    with audit_scope(actor) as cid:
        try:
            case_id = SqlCaseStore().create_case(
                case_number=case_number,
                title=title,
                created_by_id=actor,
                assigned_to_id=assigned_to,
                department_id=department,
                correlation_id=cid,
            )
        except IntegrityError as e:
            typer.echo(f"Case number {case_number!r} already exists", err=True)
            raise typer.Exit(1) from e
    typer.echo(f"Created case {case_id} (status=OPEN, version=0)")


@app.command("change-status")
def change_status_cmd(
    case_id: int = typer.Option(..., "--id", help="Case ID"),
    status: str = typer.Option(..., "--status", help=" | ".join(sorted(CASE_STATUS_VALUES))),
    expected_version: int = typer.Option(
        ..., "--expected-version", help="Version last read (see show-case)"
    ),
    outcome: str | None = typer.Option(
        None, "--outcome", help=f"Required for CLOSED/DISMISSED, e.g. {' | '.join(sorted(KNOWN_OUTCOMES))}"
    ),
    note: str | None = typer.Option(None, "--note", help="Reason for the change"),
    actor: str = _ACTOR_OPTION,
    config: str | None = _CONFIG_OPTION,
) -> None:
    """Move a case to a new status (audited). Fails on stale --expected-version."""
    cfg = _ensure_db(config)
    service = build_service(cfg)
    with audit_scope(actor):
        result = service.change_case_status(
            case_id,
            status,
            actor_id=actor,
            expected_version=expected_version,
            outcome=outcome,
            note=note,
        )
    if isinstance(result, StatusChangeFailure):
        typer.echo(f"{result.kind}: {result.message}", err=True)
        raise typer.Exit(1)
    typer.echo(
        f"Case {case_id} -> {result.new_status.value}"
        f"{f' (outcome={result.new_outcome})' if result.new_outcome else ''}"
        f", version={result.new_version}, record={result.record_id}"
    )


@app.command("show-case")
def show_case_cmd(
    case_id: int = typer.Option(..., "--id", help="Case ID"),
    config: str | None = _CONFIG_OPTION,
) -> None:
    """Print current status, version and allowed next statuses."""
    _ensure_db(config)
    try:
        snap = SqlCaseStore().load_case(case_id)
    except CaseNotFound as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(1) from e
    allowed = sorted(s.value for s in allowed_transitions(snap.state.status)) or ["none"]
    typer.echo(f"Case {case_id}: status={snap.state.status.value}, version={snap.state.version}")
    if snap.state.outcome:
        typer.echo(f"  outcome: {snap.state.outcome}")
    typer.echo(f"  allowed next: {', '.join(allowed)}")


@app.command("case-history")
def case_history_cmd(
    case_id: int = typer.Option(..., "--id", help="Case ID"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of text"),
    config: str | None = _CONFIG_OPTION,
) -> None:
    """List status transitions of a case, oldest first."""
    _ensure_db(config)
    try:
        rows = SqlCaseStore().list_transitions(case_id)
    except CaseNotFound as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(1) from e
    if as_json:
        typer.echo(
            json.dumps(
                [
                    {
                        "version": r.resulting_version,
                        "from": r.from_status,
                        "to": r.to_status,
                        "outcome": r.outcome,
                        "actor": r.actor_id,
                        "ts": r.ts.isoformat(),
                    }
                    for r in rows
                ],
                indent=2,
            )
        )
        return
    if not rows:
        typer.echo(f"Case {case_id} has no status changes")
    for r in rows:
        line = f"v{r.resulting_version} {r.ts.isoformat()} {r.actor_id}: {r.from_status} -> {r.to_status}"
        if r.outcome:
            line += f" [{r.outcome}]"
        typer.echo(line)


@app.command("export-history")
def export_history_cmd(
    case_id: int = typer.Option(..., "--id", help="Case ID"),
    out: str | None = typer.Option(None, "--out", help="Output JSON path"),
    actor: str = _ACTOR_OPTION,
    config: str | None = _CONFIG_OPTION,
) -> None:
    """Write a JSON bundle of a case's transitions, notes and audit logs (audited)."""
    cfg = _ensure_db(config)
    with audit_scope(actor):
        try:
            path = export_case_history(case_id, out_path=out, config=cfg)
        except CaseNotFound as e:
            typer.echo(str(e), err=True)
            raise typer.Exit(1) from e
    typer.echo(f"Wrote case history to {path}")


@app.command("verify-audit-chain")
def verify_audit_chain_cmd(config: str | None = _CONFIG_OPTION) -> None:
    """Recompute the audit log hash chain; exit 1 at the first broken link."""
    _ensure_db(config)
    with session_scope() as session:
        report = verify_audit_chain(session)
    if not report.ok:
        typer.echo(
            f"Audit chain broken at audit_logs.id={report.broken_at_id}: {report.reason}",
            err=True,
        )
        raise typer.Exit(1)
    typer.echo(f"Audit chain OK ({report.checked} rows)")


@app.command("serve-api")
def serve_api(
    host: str | None = typer.Option(None, "--host"),
    port: int | None = typer.Option(None, "--port"),
    config: str | None = _CONFIG_OPTION,
) -> None:
    """Run the HTTP API with uvicorn."""
    import os

    import uvicorn

    if config:
        os.environ["CASEFLOW_CONFIG_PATH"] = config
    cfg = get_config(config)
    api_cfg = cfg.get("api", {})
    uvicorn.run(
        "case_workflow.api:app",
        host=host or api_cfg.get("host", "0.0.0.0"),
        port=port or int(api_cfg.get("port", 8000)),
    )


if __name__ == "__main__":
    app()
