"""API tests with TestClient."""

import os
from datetime import UTC, datetime
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

from case_workflow.api import app
from case_workflow.cases_api import get_status_service
from case_workflow.config import get_config
from case_workflow.db import init_db, session_scope
from case_workflow.models import AuditLog
from case_workflow.recorder import FixedClock
from case_workflow.service import build_service

API_KEYS = (
    "admin:test_admin_key:ADMIN,"
    "alice:alice_key:ATTORNEY:civil,"
    "paula:paula_key:PARALEGAL:civil,"
    "carl:carl_key:ATTORNEY:criminal,"
    "vera:vera_key:CLIENT_DEPT:civil"
)
ADMIN = {"X-API-Key": "test_admin_key"}
ALICE = {"X-API-Key": "alice_key"}
PAULA = {"X-API-Key": "paula_key"}
CARL = {"X-API-Key": "carl_key"}
VERA = {"X-API-Key": "vera_key"}
T0 = datetime(2026, 3, 2, 9, 30, tzinfo=UTC)


@pytest.fixture
def api_client(tmp_path: Path):
    """Client with DB initialized; use file DB so app lifespan shares same DB as fixture."""
    os.environ["CASEFLOW_API_KEYS"] = API_KEYS
    db_file = tmp_path / "api_test.db"
    config_file = tmp_path / "api_config.yaml"
    config_file.write_text(
        f"""
app:
  log_level: INFO
database:
  url: "sqlite:///{db_file}"
  echo: false
workflow:
  note_max_length: 100
  extra_outcomes: [mediated]
"""
    )
    config_path = str(config_file)
    os.environ["CASEFLOW_CONFIG_PATH"] = config_path
    clock = FixedClock(T0)
    app.dependency_overrides[get_status_service] = lambda: build_service(
        get_config(config_path), clock=clock
    )
    try:
        cfg = get_config(config_path)
        init_db(cfg["database"]["url"], echo=False)
        with TestClient(app) as client:
            yield client
    finally:
        app.dependency_overrides.clear()
        os.environ.pop("CASEFLOW_CONFIG_PATH", None)
        os.environ.pop("CASEFLOW_API_KEYS", None)


def _create(client: TestClient, number: str = "2026-CV-0001", headers=PAULA, **extra) -> dict:
    resp = client.post(
        "/cases", json={"case_number": number, "title": "Smith v. City", **extra}, headers=headers
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def _put_status(client: TestClient, case_id: int, headers=ALICE, **body):
    return client.put(f"/cases/{case_id}/status", json=body, headers=headers)


def test_health(api_client: TestClient) -> None:
    resp = api_client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["db_status"] == "ok"
    assert "engine_version" in data


def test_create_case_starts_open_at_version_zero(api_client: TestClient) -> None:
    data = _create(api_client)
    assert data["status"] == "OPEN"
    assert data["version"] == 0
    assert data["outcome"] is None
    assert data["created_by_id"] == "paula"
    assert data["department_id"] == "civil"
    assert data["allowed_transitions"] == ["DISMISSED", "IN_PROGRESS", "ON_HOLD"]


def test_create_case_requires_key_and_role(api_client: TestClient) -> None:
    body = {"case_number": "X-1", "title": "t"}
    assert api_client.post("/cases", json=body).status_code == 401
    assert api_client.post("/cases", json=body, headers={"X-API-Key": "nope"}).status_code == 401
    assert api_client.post("/cases", json=body, headers=VERA).status_code == 403


def test_duplicate_case_number_conflicts(api_client: TestClient) -> None:
    _create(api_client, "DUP-1")
    resp = api_client.post("/cases", json={"case_number": "DUP-1", "title": "again"}, headers=PAULA)
    assert resp.status_code == 409


def test_status_change_success(api_client: TestClient) -> None:
    case = _create(api_client)
    resp = _put_status(api_client, case["id"], status="IN_PROGRESS", expected_version=0)
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data == {
        "case_id": case["id"],
        "status": "IN_PROGRESS",
        "outcome": None,
        "version": 1,
        "record_id": data["record_id"],
        "message": "Case status updated successfully",
    }
    got = api_client.get(f"/cases/{case['id']}").json()
    assert got["status"] == "IN_PROGRESS"
    assert got["version"] == 1


def test_close_requires_outcome(api_client: TestClient) -> None:
    case = _create(api_client)
    assert _put_status(api_client, case["id"], status="IN_PROGRESS", expected_version=0).status_code == 200
    resp = _put_status(api_client, case["id"], status="CLOSED", expected_version=1)
    assert resp.status_code == 400
    assert resp.json()["kind"] == "MissingOutcome"
    resp = _put_status(
        api_client, case["id"], status="CLOSED", expected_version=1, outcome="mediated"
    )
    assert resp.status_code == 200
    assert resp.json()["outcome"] == "MEDIATED"
    got = api_client.get(f"/cases/{case['id']}").json()
    assert got["closed_at"] is not None
    assert got["allowed_transitions"] == []


def test_error_kinds_map_to_http_status(api_client: TestClient) -> None:
    case = _create(api_client)
    cid = case["id"]
    resp = _put_status(api_client, cid, status="OPEN", expected_version=0)
    assert (resp.status_code, resp.json()["kind"]) == (400, "SelfTransition")
    resp = _put_status(api_client, cid, status="CLOSED", expected_version=0, outcome="SETTLED")
    assert (resp.status_code, resp.json()["kind"]) == (400, "InvalidTransition")
    resp = _put_status(api_client, cid, status="ON_HOLD", expected_version=0, outcome="SETTLED")
    assert (resp.status_code, resp.json()["kind"]) == (400, "OutcomeNotApplicable")
    resp = _put_status(api_client, cid, headers=CARL, status="ON_HOLD", expected_version=0)
    assert (resp.status_code, resp.json()["kind"]) == (403, "Forbidden")
    resp = _put_status(api_client, cid, status="ARCHIVED", expected_version=0)
    assert (resp.status_code, resp.json()["kind"]) == (422, "UnknownStatus")
    resp = _put_status(api_client, 9999, status="ON_HOLD", expected_version=0)
    assert (resp.status_code, resp.json()["kind"]) == (404, "CaseNotFound")
    resp = _put_status(api_client, cid, status="ON_HOLD", expected_version=7)
    assert (resp.status_code, resp.json()["kind"]) == (409, "ConcurrentModification")
    # nothing above changed the case
    assert api_client.get(f"/cases/{cid}").json()["version"] == 0
    assert api_client.get(f"/cases/{cid}/transitions").json() == []


def test_status_change_requires_api_key(api_client: TestClient) -> None:
    case = _create(api_client)
    resp = api_client.put(
        f"/cases/{case['id']}/status", json={"status": "ON_HOLD", "expected_version": 0}
    )
    assert resp.status_code == 401


def test_status_body_validation(api_client: TestClient) -> None:
    case = _create(api_client)
    resp = _put_status(api_client, case["id"], status="ON_HOLD")
    assert resp.status_code == 422
    resp = _put_status(api_client, case["id"], status="ON_HOLD", expected_version=-1)
    assert resp.status_code == 422


def test_transitions_history(api_client: TestClient) -> None:
    case = _create(api_client)
    cid = case["id"]
    _put_status(api_client, cid, status="IN_PROGRESS", expected_version=0)
    _put_status(api_client, cid, status="ON_HOLD", expected_version=1, note="Stay pending appeal")
    _put_status(
        api_client,
        cid,
        headers=ADMIN,
        status="DISMISSED",
        expected_version=2,
        outcome="DISMISSED_WITHOUT_PREJUDICE",
    )
    history = api_client.get(f"/cases/{cid}/transitions").json()
    assert [(h["from_status"], h["to_status"], h["resulting_version"]) for h in history] == [
        ("OPEN", "IN_PROGRESS", 1),
        ("IN_PROGRESS", "ON_HOLD", 2),
        ("ON_HOLD", "DISMISSED", 3),
    ]
    assert history[1]["note"] == "Stay pending appeal"
    assert history[2]["actor_id"] == "admin"
    assert history[2]["outcome"] == "DISMISSED_WITHOUT_PREJUDICE"
    assert api_client.get("/cases/9999/transitions").status_code == 404


def test_allowed_transitions_endpoint(api_client: TestClient) -> None:
    case = _create(api_client)
    data = api_client.get(f"/cases/{case['id']}/allowed-transitions").json()
    assert data["status"] == "OPEN"
    assert data["terminal"] is False
    assert data["allowed"] == ["DISMISSED", "IN_PROGRESS", "ON_HOLD"]
    assert data["outcome_required_for"] == ["DISMISSED"]
    assert "SETTLED" in data["known_outcomes"]
    assert "MEDIATED" in data["known_outcomes"]


def test_list_cases_filters(api_client: TestClient) -> None:
    a = _create(api_client, "L-1")
    _create(api_client, "L-2")
    _put_status(api_client, a["id"], status="ON_HOLD", expected_version=0)
    on_hold = api_client.get("/cases", params={"status": "on_hold"}).json()
    assert [c["case_number"] for c in on_hold] == ["L-1"]
    assert len(api_client.get("/cases").json()) == 2
    assert api_client.get("/cases", params={"status": "ARCHIVED"}).status_code == 422


def test_correlation_id_echoed_and_recorded(api_client: TestClient) -> None:
    case = _create(api_client)
    resp = api_client.put(
        f"/cases/{case['id']}/status",
        json={"status": "IN_PROGRESS", "expected_version": 0},
        headers={**ALICE, "X-Correlation-ID": "req-123"},
    )
    assert resp.status_code == 200
    assert resp.headers["X-Correlation-ID"] == "req-123"
    history = api_client.get(f"/cases/{case['id']}/transitions").json()
    assert history[0]["correlation_id"] == "req-123"
    with session_scope() as session:
        log = session.execute(
            select(AuditLog).where(AuditLog.action == "status_changed")
        ).scalar_one()
        assert log.correlation_id == "req-123"
        assert log.actor == "alice"
