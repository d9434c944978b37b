"""Per-request correlation id and acting user, carried into transition records and audit logs."""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

_correlation_id: ContextVar[str | None] = ContextVar("caseflow_correlation_id", default=None)
_actor: ContextVar[str | None] = ContextVar("caseflow_actor", default=None)


def set_audit_context(correlation_id: str | None, actor: str | None = None) -> None:
    """Set correlation_id and actor for the current CLI run or HTTP request."""
    _correlation_id.set(correlation_id)
    _actor.set(actor)


def set_actor(actor: str) -> None:
    """Bind the authenticated actor; correlation_id is left as is."""
    _actor.set(actor)


@contextmanager
def audit_scope(actor: str | None = None, correlation_id: str | None = None) -> Iterator[str]:
    """Bind a fresh (or given) correlation_id and actor for a block; restore on exit."""
    cid = correlation_id or str(uuid.uuid4())
    cid_token = _correlation_id.set(cid)
    actor_token = _actor.set(actor)
    try:
        yield cid
    finally:
        _correlation_id.reset(cid_token)
        _actor.reset(actor_token)


def get_correlation_id() -> str:
    """Current correlation_id. When unset, one is generated and bound so later calls agree."""
    cid = _correlation_id.get()
    if cid is None:
        cid = str(uuid.uuid4())
        _correlation_id.set(cid)
    return cid


def get_actor() -> str:
    """Current actor, 'system' if not set."""
    return _actor.get() or "system"


def get_audit_context() -> tuple[str, str]:
    return get_correlation_id(), get_actor()
