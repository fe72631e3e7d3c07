"""
Dashboard Models — Pydantic response models for the chart endpoints.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

# =============================================================================
# SUMMARY (STAT CARDS)
# =============================================================================


class ProgressData(BaseModel):
    """Accepted-suggestion correctness for a user."""

    total_accepted: int
    correct_suggestions: int
    percentage_correct: float  # 0–100, 0 when nothing accepted


class ActivityStats(BaseModel):
    """Headline decision counts for the activity stats section."""

    total_interactions: int
    total_accepted: int
    total_rejected: int
    correct_decisions: int
    decision_accuracy: float  # 0–100
    last_activity: str | None = None


# =============================================================================
# TIME-BUCKETED CHARTS
# =============================================================================


class AccuracyTimeline(BaseModel):
    """Accuracy per time bucket over the default label range."""

    interval: str
    event_filter: str
    labels: list[str]
    accuracy: list[float]
    totals: list[int]


class DecisionTimeline(BaseModel):
    """Accepted vs. rejected decisions per minute (or hour) bucket."""

    interval: str
    labels: list[str]
    accepted: list[int]
    rejected: list[int]
    total_accepted: int
    total_rejected: int


# =============================================================================
# ROLLING-WINDOW CHARTS
# =============================================================================


class RollingWindowPoint(BaseModel):
    """One point of the learning-progress curve."""

    index: int  # 1-based position in the sorted, filtered sequence
    rolling_accuracy: float
    rolling_avg_duration: float


class LearningProgress(BaseModel):
    """Rolling accuracy curve for the selected event filter."""

    event_filter: str
    window_size: int
    points: list[RollingWindowPoint]


class SeriesPoint(BaseModel):
    x: int
    y: float


class ResponseTimeSeries(BaseModel):
    label: str
    data: list[SeriesPoint]


class ResponseTimeTrends(BaseModel):
    """Rolling average accept latency, split by correctness."""

    window_size: int
    series: list[ResponseTimeSeries]
    total_accepted: int
    correct_count: int
    incorrect_count: int


class ResponseTimeCategory(BaseModel):
    category: str
    avg_time: float
    count: int


class ResponseTimeBreakdown(BaseModel):
    """Average response time per decision category (bar chart)."""

    event_filter: str
    categories: list[ResponseTimeCategory]


# =============================================================================
# TYPING
# =============================================================================


class TypingBucket(BaseModel):
    label: str
    typed: int
    accepted: int
    typing_rate: float  # accepted / typed, 0–100
    typed_per_minute: float
    accepted_per_minute: float


class TypingSummary(BaseModel):
    """Totals over every typing log, regardless of chart range."""

    total_typed: int
    total_accepted: int
    typing_rate: float


class TypingActivity(BaseModel):
    interval: str
    total_typed: int
    total_accepted: int
    typing_rate: float
    buckets: list[TypingBucket]
    all_time: TypingSummary | None = None


# =============================================================================
# ADMIN
# =============================================================================


class UserProgressItem(BaseModel):
    """Single participant row in the admin/instructor users table."""

    id: UUID
    first_name: str | None = None
    pid: str | None = None
    role: str
    mode: str | None = None
    class_id: str | None = None
    last_activity: str | None = None
    progress: ProgressData


class PaginatedResponse(BaseModel):
    """Wrapper for paginated list responses."""

    items: list[Any] = Field(default_factory=list)
    total: int
    limit: int
    offset: int
