from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from uuid import UUID
from typing import List
import logging

from warranty.db.session import get_db
from warranty.api.deps import require_role, get_actor_context
from warranty.schemas.admin_user import (
    AdminCreateRequest,
    AdminOut,
    PasswordResetRequest,
    Msg,
    APIResponse,
)
from warranty.schemas.activity_log import ActorContext
from warranty.models.admin_user import AdminUser, AdminRole
from warranty.models.activity_log import ActivityAction
from warranty.crud import admin_user as crud_admin
from warranty.crud.activity_log import log_activity

logger = logging.getLogger(__name__)

router = APIRouter()

ENTITY_TYPE = "admin_user"


@router.get(
    "/users",
    response_model=List[AdminOut],
    status_code=status.HTTP_200_OK,
    tags=["Admin Users"],
    responses={
        401: {"model": APIResponse, "description": "No valid session"},
    }
)
async def list_admin_users(
    current_admin: AdminUser = Depends(require_role(AdminRole.STAFF)),
    db: Session = Depends(get_db),
):
    """List all admin and staff accounts"""
    return crud_admin.get_admins(db)


@router.post(
    "/users",
    response_model=AdminOut,
    status_code=status.HTTP_201_CREATED,
    tags=["Admin Users"],
    responses={
        400: {"model": APIResponse, "description": "Invalid input"},
        403: {"model": APIResponse, "description": "ADMIN role required"},
        409: {"model": APIResponse, "description": "Username taken"},
    }
)
async def create_admin_user(
    user_data: AdminCreateRequest,
    current_admin: AdminUser = Depends(require_role(AdminRole.ADMIN, mutating=True)),
    actor: ActorContext = Depends(get_actor_context),
    db: Session = Depends(get_db),
):
    """
    Create an ADMIN or STAFF account.

    The new user must change the password on first login.
    """
    try:
        admin = crud_admin.create_admin(db, user_data, created_by=current_admin.id)
    except crud_admin.DuplicateUsernameError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    log_activity(db, actor, ActivityAction.created, ENTITY_TYPE, str(admin.id),
                 new_value={"username": admin.username, "role": admin.role.value})
    logger.info(f"Admin user {admin.username} ({admin.role.value}) created by {current_admin.username}")
    return admin


@router.delete(
    "/users/{user_id}",
    response_model=Msg,
    status_code=status.HTTP_200_OK,
    tags=["Admin Users"],
    responses={
        400: {"model": APIResponse, "description": "Cannot delete yourself"},
        403: {"model": APIResponse, "description": "ADMIN role required"},
        404: {"model": APIResponse, "description": "User not found"},
    }
)
async def delete_admin_user(
    user_id: UUID,
    current_admin: AdminUser = Depends(require_role(AdminRole.ADMIN, mutating=True)),
    actor: ActorContext = Depends(get_actor_context),
    db: Session = Depends(get_db),
):
    """Delete an admin or staff account (not your own)"""
    if user_id == current_admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Sie können sich nicht selbst löschen",
        )

    target = crud_admin.get_admin_by_id(db, user_id)
    if not target:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Benutzer nicht gefunden")
    username = target.username

    crud_admin.delete_admin(db, user_id)
    log_activity(db, actor, ActivityAction.deleted, ENTITY_TYPE, str(user_id),
                 old_value={"username": username})
    logger.info(f"Admin user {username} deleted by {current_admin.username}")
    return {"message": "Benutzer gelöscht"}


@router.post(
    "/users/{user_id}/reset-password",
    response_model=AdminOut,
    status_code=status.HTTP_200_OK,
    tags=["Admin Users"],
    responses={
        400: {"model": APIResponse, "description": "Invalid password"},
        403: {"model": APIResponse, "description": "ADMIN role required"},
        404: {"model": APIResponse, "description": "User not found"},
    }
)
async def reset_admin_password(
    user_id: UUID,
    reset_request: PasswordResetRequest,
    current_admin: AdminUser = Depends(require_role(AdminRole.ADMIN, mutating=True)),
    actor: ActorContext = Depends(get_actor_context),
    db: Session = Depends(get_db),
):
    """Set a new password for another user; they must change it on next login"""
    if user_id == current_admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Eigenes Passwort bitte über Passwort ändern setzen",
        )

    try:
        admin = crud_admin.reset_password(db, user_id, reset_request.new_password)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not admin:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Benutzer nicht gefunden")

    log_activity(db, actor, ActivityAction.updated, ENTITY_TYPE, str(user_id),
                 new_value={"password": "zurückgesetzt"})
    logger.info(f"Password of {admin.username} reset by {current_admin.username}")
    return admin
