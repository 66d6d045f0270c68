"""
Operational endpoints for administrators.

All endpoints require the ``X-Admin-Token`` header to match ``ADMIN_TOKEN``.
"""
import logging
import secrets

from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from hiring_assessment.core import proctoring, session_engine
from hiring_assessment.core.config import settings
from hiring_assessment.core.datetime_utils import Clock, get_clock
from hiring_assessment.core.error_responses import (
    ErrorMessages,
    raise_not_configured,
    raise_unauthorized,
)
from hiring_assessment.core.statistics import load_evaluated_results, summarize
from hiring_assessment.models import get_db
from hiring_assessment.schemas.admin import (
    CohortStatsResponse,
    ProctoringReportResponse,
    SweepResponse,
)

logger = logging.getLogger(__name__)


def verify_admin_token(x_admin_token: str = Header(...)) -> bool:
    """
    Verify admin token from request header.

    Uses constant-time comparison to prevent timing attacks.

    Raises:
        HTTPException: 500 if no token is configured, 401 if it does not match
    """
    if not settings.ADMIN_TOKEN:
        raise_not_configured(ErrorMessages.ADMIN_TOKEN_NOT_CONFIGURED)

    if not secrets.compare_digest(x_admin_token, settings.ADMIN_TOKEN):
        raise_unauthorized(ErrorMessages.ADMIN_TOKEN_INVALID)

    return True


router = APIRouter(dependencies=[Depends(verify_admin_token)])


@router.post("/sessions/sweep", response_model=SweepResponse)
def sweep_expired_sessions(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Force-submit overdue sessions and expire unstarted ones."""
    result = session_engine.sweep_expired_sessions(db, now=clock.now())
    logger.info(
        f"Admin sweep: {len(result.evaluated)} evaluated, {len(result.expired)} expired"
    )
    return SweepResponse(
        evaluated=result.evaluated, expired=result.expired, failed=result.failed
    )


@router.get("/sessions/stats", response_model=CohortStatsResponse)
def get_session_stats(db: Session = Depends(get_db)):
    """Pass rate and score statistics over every evaluated session."""
    return CohortStatsResponse.model_validate(summarize(load_evaluated_results(db)))


@router.get(
    "/sessions/{session_id}/proctoring-report",
    response_model=ProctoringReportResponse,
)
def get_proctoring_report(session_id: str, db: Session = Depends(get_db)):
    """Violation summary, risk level and reviewer recommendations."""
    test_session = session_engine.get_session(db, session_id)
    return proctoring.build_report(test_session)
