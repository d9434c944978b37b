"""Pytest fixtures: file-backed SQLite per test, sample config, fixed clock, service."""

from __future__ import annotations

import os
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

import pytest

# Ensure all tests use SQLite; ignore DATABASE_URL from the environment.
os.environ.pop("DATABASE_URL", None)
os.environ.pop("CASEFLOW_DATABASE_URL", None)
os.environ.pop("CASEFLOW_API_KEYS", None)

from case_workflow.authorization import Actor, StaticActorDirectory, UserRole
from case_workflow.config import get_config
from case_workflow.db import init_db
from case_workflow.recorder import FixedClock
from case_workflow.repository import SqlCaseStore
from case_workflow.service import CaseStatusService

T0 = datetime(2026, 3, 2, 9, 30, tzinfo=UTC)


@pytest.fixture
def config_path(tmp_path: Path) -> str:
    """Return path to a temporary config dir with default.yaml (file DB in tmp_path)."""
    cfg_dir = tmp_path / "config"
    cfg_dir.mkdir()
    (cfg_dir / "default.yaml").write_text(
        f"""
app:
  log_level: INFO
database:
  url: "sqlite:///{tmp_path / 'cases.db'}"
  echo: false
workflow:
  note_max_length: 200
  extra_outcomes: [MEDIATED]
actors:
  admin: {{ role: ADMIN }}
  alice: {{ role: ATTORNEY, department: civil }}
  paula: {{ role: PARALEGAL, department: civil }}
  carl: {{ role: ATTORNEY, department: criminal }}
  viewer: {{ role: CLIENT_DEPT, department: civil }}
"""
    )
    return str(cfg_dir / "default.yaml")


@pytest.fixture
def db(config_path: str) -> str:
    """Initialize a fresh file-backed DB; return its URL."""
    config = get_config(config_path)
    url = config["database"]["url"]
    init_db(url, echo=False)
    return url


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(T0)


@pytest.fixture
def store(db: str) -> SqlCaseStore:
    return SqlCaseStore()


@pytest.fixture
def actors() -> StaticActorDirectory:
    return StaticActorDirectory(
        [
            Actor("admin", UserRole.ADMIN),
            Actor("alice", UserRole.ATTORNEY, "civil"),
            Actor("paula", UserRole.PARALEGAL, "civil"),
            Actor("carl", UserRole.ATTORNEY, "criminal"),
            Actor("viewer", UserRole.CLIENT_DEPT, "civil"),
        ]
    )


@pytest.fixture
def service(store: SqlCaseStore, actors: StaticActorDirectory, clock: FixedClock) -> CaseStatusService:
    return CaseStatusService(store=store, actors=actors, clock=clock, note_max_length=200)


@pytest.fixture
def make_case(store: SqlCaseStore) -> Callable[..., int]:
    """Factory: create a civil-department case owned by paula; returns case id."""
    counter = {"n": 0}

    def _make(
        created_by_id: str = "paula",
        department_id: str | None = "civil",
        assigned_to_id: str | None = None,
    ) -> int:
        counter["n"] += 1
        return store.create_case(
            case_number=f"2026-CV-{counter['n']:04d}",
            title=f"Matter {counter['n']}",
            created_by_id=created_by_id,
            assigned_to_id=assigned_to_id,
            department_id=department_id,
        )

    return _make


@pytest.fixture
def force_state(db: str) -> Callable[..., None]:
    """Overwrite a case's status/outcome/version directly (test setup only)."""
    from sqlalchemy import update

    from case_workflow.db import session_scope
    from case_workflow.models import Case

    def _force(case_id: int, status: str, version: int, outcome: str | None = None) -> None:
        with session_scope() as session:
            session.execute(
                update(Case)
                .where(Case.id == case_id)
                .values(status=status, version=version, outcome=outcome)
            )

    return _force
