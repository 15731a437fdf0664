from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import Optional, Union
from enum import Enum
import logging

from warranty.db.session import get_db
from warranty.schemas.submission import SubmissionPublicOut, TrackingPendingOut, TrackingVerifiedOut
from warranty.schemas.admin_user import APIResponse
from warranty.models.submission import Submission
from warranty.crud import submission as crud_submission
from warranty.core import redis_utils

logger = logging.getLogger(__name__)

router = APIRouter()


class TrackingState(str, Enum):
    UNVERIFIED = "unverified"
    VERIFIED = "verified"
    REJECTED = "rejected"


def verify_tracking(submission: Submission, postal_code: Optional[str], email: Optional[str]) -> TrackingState:
    """
    Exact postal code and case-insensitive email must both match.

    With either of them missing the link is only looked at, not verified.
    """
    if not postal_code or not email:
        return TrackingState.UNVERIFIED
    if postal_code.strip() != submission.postal_code:
        return TrackingState.REJECTED
    if email.strip().lower() != submission.email.strip().lower():
        return TrackingState.REJECTED
    return TrackingState.VERIFIED


@router.get(
    "/track/{token}",
    response_model=Union[TrackingVerifiedOut, TrackingPendingOut],
    status_code=status.HTTP_200_OK,
    tags=["Tracking"],
    responses={
        403: {"model": APIResponse, "description": "Postal code or email do not match"},
        404: {"model": APIResponse, "description": "Unknown tracking link"},
        429: {"model": APIResponse, "description": "Too many failed verifications"},
    }
)
async def track_submission(
    token: str,
    plz: Optional[str] = Query(None, description="Postal code of the submission"),
    email: Optional[str] = Query(None, description="Email address of the submission"),
    db: Session = Depends(get_db),
):
    """
    Tokenized tracking link.

    Unless both `plz` and `email` are given only the TC number is returned. With both the
    full read-only detail is returned when they match the submission. A
    mismatch does not reveal which of the two was wrong.
    """
    submission = crud_submission.get_submission_by_token(db, token)
    if not submission:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Link nicht gefunden oder abgelaufen",
        )

    state = verify_tracking(submission, plz, email)
    if state == TrackingState.UNVERIFIED:
        return TrackingPendingOut(tc_number=submission.tc_number)

    if redis_utils.is_tracking_locked(token):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Zu viele Fehlversuche. Bitte versuchen Sie es später erneut.",
        )

    if state == TrackingState.REJECTED:
        redis_utils.register_failed_attempt(token)
        logger.info(f"Tracking verification failed for submission {submission.id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Postleitzahl oder E-Mail-Adresse stimmen nicht überein",
        )

    redis_utils.clear_failed_attempts(token)
    return TrackingVerifiedOut(submission=SubmissionPublicOut.from_submission(submission))
