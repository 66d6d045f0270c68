"""
Pydantic schemas for admin endpoints.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Optional
from datetime import datetime


class SweepResponse(BaseModel):
    """Result of an expiry sweep."""

    evaluated: List[str] = Field(..., description="Sessions force-submitted on timeout")
    expired: List[str] = Field(..., description="Created sessions never begun in time")
    failed: List[str] = Field(..., description="Sessions that could not be settled")


class CohortStatsResponse(BaseModel):
    """Aggregate statistics over evaluated sessions."""

    model_config = ConfigDict(from_attributes=True)

    total_tests: int
    passed_tests: int
    pass_rate: float
    avg_score: Optional[float]
    avg_duration_minutes: Optional[float]
    max_score: Optional[int]
    min_score: Optional[int]


class TimelineEntry(BaseModel):
    occurred_at: datetime
    type: str
    severity: str


class ProctoringReportResponse(BaseModel):
    """Reviewer report of a session's proctoring violations."""

    session_id: str
    candidate_id: int
    status: str
    started_at: Optional[datetime]
    ended_at: Optional[datetime]
    total_violations: int
    violations_by_type: Dict[str, int]
    violations_by_severity: Dict[str, int]
    risk_level: str
    recommendations: List[str]
    timeline: List[TimelineEntry]
