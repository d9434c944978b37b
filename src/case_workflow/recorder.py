"""Transition audit records, clocks, and the recorder that commits them."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from logging import getLogger

from case_workflow.authorization import Actor
from case_workflow.case_lifecycle import (
    CaseStatus,
    CaseWorkflowState,
    TransitionRequest,
    normalize_outcome,
)
from case_workflow.ports import CaseStore, Clock

logger = getLogger(__name__)

DEFAULT_NOTE_MAX_LENGTH = 4000

# C0 control characters except tab, newline and carriage return
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


@dataclass(frozen=True)
class TransitionRecord:
    """One status change. Written once, never updated or deleted."""

    case_id: int
    from_status: CaseStatus
    to_status: CaseStatus
    outcome: str | None
    note: str | None
    actor_id: str
    timestamp: datetime
    resulting_version: int
    correlation_id: str | None = None


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(UTC)


class FixedClock:
    """Clock returning a set instant; advance() moves it forward."""

    def __init__(self, instant: datetime) -> None:
        self._instant = instant

    def now(self) -> datetime:
        return self._instant

    def advance(self, **delta: float) -> None:
        self._instant = self._instant + timedelta(**delta)


def sanitize_note(note: str | None, max_length: int = DEFAULT_NOTE_MAX_LENGTH) -> str | None:
    """Strip control characters and truncate to max_length. Blank notes become None."""
    if note is None:
        return None
    cleaned = _CONTROL_CHARS.sub("", note)
    if not cleaned.strip():
        return None
    if len(cleaned) > max_length:
        logger.info("Transition note truncated from %d to %d characters", len(cleaned), max_length)
        cleaned = cleaned[:max_length]
    return cleaned


class TransitionRecorder:
    """Turn an accepted transition into a durable record via the case store."""

    def __init__(
        self,
        store: CaseStore,
        clock: Clock | None = None,
        note_max_length: int = DEFAULT_NOTE_MAX_LENGTH,
    ) -> None:
        self._store = store
        self._clock = clock or SystemClock()
        self._note_max_length = note_max_length

    def build_record(
        self,
        case_id: int,
        from_status: CaseStatus,
        request: TransitionRequest,
        new_state: CaseWorkflowState,
        actor: Actor,
        clock: Clock | None = None,
        correlation_id: str | None = None,
    ) -> TransitionRecord:
        return TransitionRecord(
            case_id=case_id,
            from_status=from_status,
            to_status=new_state.status,
            outcome=normalize_outcome(request.outcome),
            note=sanitize_note(request.note, self._note_max_length),
            actor_id=actor.id,
            timestamp=(clock or self._clock).now(),
            resulting_version=new_state.version,
            correlation_id=correlation_id,
        )

    def record(
        self,
        case_id: int,
        from_status: CaseStatus,
        request: TransitionRequest,
        new_state: CaseWorkflowState,
        actor: Actor,
        clock: Clock | None = None,
        correlation_id: str | None = None,
    ) -> tuple[TransitionRecord, int]:
        """Build the record and commit it with new_state atomically.

        Returns (record, persisted record id). Store errors propagate unchanged.
        """
        rec = self.build_record(
            case_id, from_status, request, new_state, actor, clock, correlation_id
        )
        record_id = self._store.commit_transition(
            case_id, new_state, rec, request.expected_version
        )
        return rec, record_id
