"""Tests for audit context (correlation_id and actor traceability)."""

from case_workflow.audit_context import (
    audit_scope,
    get_actor,
    get_audit_context,
    get_correlation_id,
    set_actor,
    set_audit_context,
)


def test_set_and_get_context() -> None:
    set_audit_context("corr-123", "alice")
    cid, actor = get_audit_context()
    assert cid == "corr-123"
    assert actor == "alice"
    assert get_correlation_id() == "corr-123"
    assert get_actor() == "alice"


def test_get_correlation_id_generated_when_unset() -> None:
    """When correlation_id is not set, a UUID is generated and then kept."""
    set_audit_context(None, "system")
    cid = get_correlation_id()
    assert len(cid) == 36
    assert cid.count("-") == 4
    assert get_correlation_id() == cid


def test_get_actor_default_system_when_unset() -> None:
    set_audit_context("x", None)
    assert get_actor() == "system"
    set_audit_context(None, None)
    _, actor = get_audit_context()
    assert actor == "system"


def test_set_actor_keeps_correlation_id() -> None:
    set_audit_context("req-9", "anonymous")
    set_actor("paula")
    assert get_audit_context() == ("req-9", "paula")


def test_audit_scope_binds_and_restores() -> None:
    set_audit_context("outer", "outer-actor")
    with audit_scope("alice") as cid:
        assert get_correlation_id() == cid
        assert cid != "outer"
        assert get_actor() == "alice"
        with audit_scope("admin", correlation_id="inner") as inner:
            assert inner == "inner"
            assert get_audit_context() == ("inner", "admin")
        assert get_audit_context() == (cid, "alice")
    assert get_audit_context() == ("outer", "outer-actor")
