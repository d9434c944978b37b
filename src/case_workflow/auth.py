"""API key authentication. Each key maps to an actor with a role and optional department."""

from __future__ import annotations

import os

from fastapi import HTTPException
from starlette.requests import Request

from case_workflow.audit_context import set_actor
from case_workflow.authorization import ROLE_VALUES, Actor, UserRole

# When CASEFLOW_API_KEYS is empty or unset, a single dev admin key is used (dev-only).
_DEFAULT_DEV_KEYS = {"dev_key": Actor(id="dev", role=UserRole.ADMIN)}


def parse_api_keys_env() -> dict[str, Actor]:
    """Parse CASEFLOW_API_KEYS into key -> Actor.

    Format: 'name:key:ROLE[:department]', comma separated, e.g.
    'alice:k1:ATTORNEY:civil,bob:k2:PARALEGAL:civil,root:k3:ADMIN'.
    Entries with an unknown role are skipped.
    """
    raw = os.environ.get("CASEFLOW_API_KEYS", "").strip()
    if not raw:
        return dict(_DEFAULT_DEV_KEYS)
    key_to_actor: dict[str, Actor] = {}
    for part in raw.split(","):
        parts = [p.strip() for p in part.strip().split(":")]
        if len(parts) < 3:
            continue
        name, key, role = parts[0], parts[1], parts[2].upper()
        department = parts[3] if len(parts) > 3 and parts[3] else None
        if not name or not key or role not in ROLE_VALUES:
            continue
        key_to_actor[key] = Actor(id=name, role=UserRole(role), department_id=department)
    return key_to_actor or dict(_DEFAULT_DEV_KEYS)


def api_key_actors() -> list[Actor]:
    return list(parse_api_keys_env().values())


def require_api_key(request: Request) -> Actor:
    """Validate X-API-Key header; bind the audit actor; return the Actor.
    Raises 401 if header missing or key invalid."""
    api_key = request.headers.get("X-API-Key")
    if not api_key:
        raise HTTPException(status_code=401, detail="Missing X-API-Key")
    actor = parse_api_keys_env().get(api_key)
    if actor is None:
        raise HTTPException(status_code=401, detail="Invalid API key")
    set_actor(actor.id)
    return actor
