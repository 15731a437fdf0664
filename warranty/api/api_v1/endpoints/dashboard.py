from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional
import logging

from warranty.db.session import get_db
from warranty.api.deps import require_role
from warranty.schemas.submission import SubmissionStatsOut
from warranty.schemas.activity_log import ActivityLogOut, ActivityLogListOut
from warranty.schemas.admin_user import APIResponse
from warranty.models.admin_user import AdminUser, AdminRole
from warranty.crud import submission as crud_submission
from warranty.crud import activity_log as crud_activity

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/stats",
    response_model=SubmissionStatsOut,
    status_code=status.HTTP_200_OK,
    tags=["Dashboard"],
    responses={
        401: {"model": APIResponse, "description": "No valid session"},
    }
)
async def get_stats(
    current_admin: AdminUser = Depends(require_role(AdminRole.STAFF)),
    db: Session = Depends(get_db),
):
    """
    Submission counts for the dashboard charts.

    Returns counts by trade, by construction supervisor, by contractor
    (grouped by trade) and by status.
    """
    return crud_submission.get_stats(db)


@router.get(
    "/activity",
    response_model=ActivityLogListOut,
    status_code=status.HTTP_200_OK,
    tags=["Dashboard"],
    responses={
        401: {"model": APIResponse, "description": "No valid session"},
    }
)
async def list_activity(
    entity_id: Optional[str] = Query(None, description="Only entries of this entity"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    current_admin: AdminUser = Depends(require_role(AdminRole.STAFF)),
    db: Session = Depends(get_db),
):
    """Activity log, newest first"""
    entries = crud_activity.get_activity(db, skip=skip, limit=limit, entity_id=entity_id)
    return {
        "entries": [
            ActivityLogOut(
                id=entry.id,
                user_id=entry.user_id,
                username=entry.user.username if entry.user else None,
                action=entry.action,
                entity_type=entry.entity_type,
                entity_id=entry.entity_id,
                old_value=entry.old_value,
                new_value=entry.new_value,
                ip_address=entry.ip_address,
                user_agent=entry.user_agent,
                description=crud_activity.describe_activity(entry),
                created_at=entry.created_at,
            )
            for entry in entries
        ],
        "total": crud_activity.count_activity(db, entity_id=entity_id),
    }
