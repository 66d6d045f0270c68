"""
Candidate endpoints owned by the assessment core.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from hiring_assessment.core.config import settings
from hiring_assessment.core.datetime_utils import Clock, get_clock
from hiring_assessment.core.eligibility import (
    EligibilityPolicy,
    check_eligibility,
    find_active_session,
)
from hiring_assessment.core.error_responses import ErrorMessages
from hiring_assessment.core.exceptions import NotFoundError
from hiring_assessment.core.session_engine import is_overdue
from hiring_assessment.models import Candidate, get_db
from hiring_assessment.schemas.test_sessions import EligibilityResponse

router = APIRouter()


@router.get("/{candidate_id}/eligibility", response_model=EligibilityResponse)
def get_eligibility(
    candidate_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Whether the candidate may start a new session right now.

    Read-only: no attempt is consumed. A session whose clock or begin window
    already ran out is not reported as active, since creating a session
    settles it first.
    """
    candidate = db.query(Candidate).filter(Candidate.id == candidate_id).first()
    if candidate is None:
        raise NotFoundError(ErrorMessages.candidate_not_found(candidate_id))

    now = clock.now()
    active = find_active_session(db, candidate_id)
    if active is not None and is_overdue(active, now):
        active = None
    result = check_eligibility(
        candidate,
        now,
        EligibilityPolicy.from_settings(settings),
        active_session_id=active.session_code if active else None,
    )
    return EligibilityResponse.model_validate(result)
