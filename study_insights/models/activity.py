"""
Activity Models — Input records read from the study's Supabase tables.

Rows arrive either with the snake_case column names or with the camelCase
keys the dashboard and its JSON exports use, so every field accepts both.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field, field_validator

UserRole = Literal["admin", "instructor", "student"]
UserMode = Literal["CODE_BLOCK", "LINE_BY_LINE", "CODE_SELECTION"]


# =============================================================================
# DECISION EVENTS
# =============================================================================


class ActivityEvent(BaseModel):
    """A single logged suggestion event (accept, reject, shown, ...)."""

    id: str | int | None = None
    user_id: str | None = Field(
        default=None, validation_alias=AliasChoices("user_id", "userId")
    )
    event_type: str = Field(
        default="", validation_alias=AliasChoices("event_type", "event", "eventType")
    )
    # Kept raw: malformed timestamps are skipped by the aggregation, not rejected here
    created_at: datetime | str | None = Field(
        default=None, validation_alias=AliasChoices("created_at", "createdAt")
    )
    has_bug: bool = Field(
        default=False, validation_alias=AliasChoices("has_bug", "hasBug", "shown_bug")
    )
    duration_ms: float = Field(
        default=0.0,
        validation_alias=AliasChoices("duration_ms", "duration", "durationMs"),
    )

    class Config:
        populate_by_name = True

    @field_validator("event_type", mode="before")
    @classmethod
    def _event_or_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("has_bug", mode="before")
    @classmethod
    def _bug_default(cls, value: Any) -> Any:
        return False if value is None else value

    @field_validator("duration_ms", mode="before")
    @classmethod
    def _duration_default(cls, value: Any) -> Any:
        if value is None:
            return 0.0
        try:
            return max(float(value), 0.0)
        except (TypeError, ValueError):
            return 0.0


# =============================================================================
# TYPING LOGS
# =============================================================================


class TypingLogEntry(BaseModel):
    """Characters typed vs. accepted from suggestions, logged per edit burst."""

    id: str | int | None = None
    user_id: str | None = Field(
        default=None, validation_alias=AliasChoices("user_id", "userId")
    )
    typed_number: int = Field(
        default=0, validation_alias=AliasChoices("typed_number", "typedNumber")
    )
    accepted_number: int = Field(
        default=0, validation_alias=AliasChoices("accepted_number", "acceptedNumber")
    )
    created_at: datetime | str | None = Field(
        default=None, validation_alias=AliasChoices("created_at", "createdAt")
    )

    class Config:
        populate_by_name = True

    @field_validator("typed_number", "accepted_number", mode="before")
    @classmethod
    def _count_default(cls, value: Any) -> Any:
        return 0 if value is None else value


# =============================================================================
# USERS
# =============================================================================


class DashboardUser(BaseModel):
    """Row from the users table, joined with the participant's settings."""

    id: UUID
    role: UserRole = "student"
    first_name: str | None = None
    pid: str | None = None
    mode: UserMode | None = None
    class_id: str | None = None
    bug_percentage: int | None = None
    last_activity: datetime | None = None
    active: bool = True

    class Config:
        from_attributes = True

    @property
    def is_staff(self) -> bool:
        return self.role in ("admin", "instructor")
