"""
Pydantic schemas for request/response validation.
"""
from .test_sessions import (
    CreateSessionRequest,
    CreateSessionResponse,
    BeginSessionResponse,
    AnswerRequest,
    AnswerResponse,
    FlagRequest,
    FlagResponse,
    ViolationRequest,
    ViolationResponse,
    ScoreResponse,
    SubmitSessionResponse,
    SessionStatusResponse,
    SessionResultResponse,
    CancelSessionResponse,
    EligibilityResponse,
)
from .admin import (
    SweepResponse,
    CohortStatsResponse,
    ProctoringReportResponse,
)
