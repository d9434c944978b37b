"""Pydantic v2 schemas for the HTTP API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class CaseCreateRequest(BaseModel):
    """Body for POST /cases. New cases start OPEN at version 0."""

    case_number: str = Field(..., min_length=1, max_length=64)
    title: str = Field(..., min_length=1, max_length=255)
    assigned_to_id: str | None = Field(None, max_length=128)
    department_id: str | None = Field(None, max_length=64)

    @field_validator("case_number", "title")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class StatusChangeRequest(BaseModel):
    """Body for PUT /cases/{id}/status."""

    status: str = Field(..., min_length=1)
    expected_version: int = Field(..., ge=0)
    outcome: str | None = Field(None, max_length=64)
    note: str | None = None


class StatusChangeResponse(BaseModel):
    case_id: int
    status: str
    outcome: str | None
    version: int
    record_id: int
    message: str = "Case status updated successfully"


class ErrorResponse(BaseModel):
    kind: str
    message: str


class TransitionResponse(BaseModel):
    id: int
    case_id: int
    from_status: str
    to_status: str
    outcome: str | None
    note: str | None
    actor_id: str
    ts: datetime
    resulting_version: int
    correlation_id: str | None

    model_config = {"from_attributes": True}


class CaseResponse(BaseModel):
    id: int
    case_number: str
    title: str
    status: str
    outcome: str | None
    version: int
    closed_at: datetime | None
    created_by_id: str | None
    assigned_to_id: str | None
    department_id: str | None
    created_at: datetime
    updated_at: datetime | None
    allowed_transitions: list[str] = []

    model_config = {"from_attributes": True}


class AllowedTransitionsResponse(BaseModel):
    case_id: int
    status: str
    version: int
    terminal: bool
    allowed: list[str]
    outcome_required_for: list[str]
    known_outcomes: list[str]
