from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session
import logging

from warranty.db.session import get_db
from warranty.api.deps import admin_sessions, get_current_admin
from warranty.schemas.admin_user import (
    AdminLoginRequest,
    AdminLoginResponse,
    AdminSessionPayload,
    AdminVerifyResponse,
    AdminOut,
    PasswordChangeRequest,
    Msg,
    APIResponse,
)
from warranty.models.admin_user import AdminUser
from warranty.crud import admin_user as crud_admin

logger = logging.getLogger(__name__)

router = APIRouter()


def _session_payload(admin: AdminUser) -> AdminSessionPayload:
    return AdminSessionPayload(admin_id=admin.id, username=admin.username, role=admin.role.value)


@router.post(
    "/login",
    response_model=AdminLoginResponse,
    status_code=status.HTTP_200_OK,
    tags=["Admin Authentication"],
    responses={
        401: {"model": APIResponse, "description": "Invalid credentials"},
    }
)
async def login(
    login_request: AdminLoginRequest,
    response: Response,
    db: Session = Depends(get_db),
):
    """
    Admin login endpoint.

    Sets the `admin_session` cookie (HTTP-only, 8 hours).

    Returns:
    - **admin**: The logged-in admin user
    - **must_change_password**: True while the initial password is still in use

    Example request:
    ```json
    {
        "username": "Admin",
        "password": "admin123"
    }
    ```
    """
    admin = crud_admin.authenticate_admin(db, login_request.username.strip(), login_request.password)
    if not admin:
        logger.warning(f"Failed admin login for '{login_request.username}'")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Ungültiger Benutzername oder Passwort",
        )

    admin_sessions.set_cookie(response, _session_payload(admin))
    logger.info(f"Admin {admin.username} logged in")

    return {
        "success": True,
        "admin": admin,
        "must_change_password": admin.must_change_password,
    }


@router.post(
    "/logout",
    response_model=Msg,
    status_code=status.HTTP_200_OK,
    tags=["Admin Authentication"],
)
async def logout(response: Response):
    """Clear the admin session cookie"""
    admin_sessions.clear_cookie(response)
    return {"message": "Abgemeldet"}


@router.get(
    "/verify",
    response_model=AdminVerifyResponse,
    status_code=status.HTTP_200_OK,
    tags=["Admin Authentication"],
    responses={
        401: {"model": APIResponse, "description": "No valid session"},
    }
)
async def verify(current_admin: AdminUser = Depends(get_current_admin)):
    """Return the admin of the current session"""
    return {"valid": True, "admin": current_admin}


@router.post(
    "/change-password",
    response_model=AdminOut,
    status_code=status.HTTP_200_OK,
    tags=["Admin Authentication"],
    responses={
        400: {"model": APIResponse, "description": "Invalid password"},
        401: {"model": APIResponse, "description": "No valid session"},
    }
)
async def change_password(
    password_request: PasswordChangeRequest,
    response: Response,
    current_admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """
    Change the password of the logged-in admin.

    Allowed while a password change is pending; clears the flag.
    """
    try:
        admin = crud_admin.change_password(
            db,
            current_admin,
            password_request.old_password,
            password_request.new_password,
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    admin_sessions.set_cookie(response, _session_payload(admin))
    logger.info(f"Admin {admin.username} changed password")
    return admin
