from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session
import logging

from warranty.db.session import get_db
from warranty.core.config import settings
from warranty.core.security import SessionCodec
from warranty.core.storage import blob_storage
from warranty.models.admin_user import AdminUser, AdminRole, has_required_role
from warranty.models.customer import Customer
from warranty.schemas.admin_user import AdminSessionPayload
from warranty.schemas.customer import CustomerSessionPayload
from warranty.schemas.activity_log import ActorContext
from warranty.crud import admin_user as crud_admin
from warranty.crud import submission as crud_submission
from warranty.crud import customer as crud_customer

logger = logging.getLogger(__name__)

admin_sessions = SessionCodec(
    AdminSessionPayload,
    settings.ADMIN_SESSION_COOKIE,
    settings.ADMIN_SESSION_MAX_AGE_SECONDS,
)
customer_sessions = SessionCodec(
    CustomerSessionPayload,
    settings.CUSTOMER_SESSION_COOKIE,
    settings.CUSTOMER_SESSION_MAX_AGE_SECONDS,
)


def get_blob_storage():
    """Blob storage backend (overridden in tests)"""
    return blob_storage


def get_current_admin(
    request: Request,
    db: Session = Depends(get_db),
) -> AdminUser:
    """Get the admin of the current session, re-fetched from the database"""
    payload = admin_sessions.decode(request.cookies.get(admin_sessions.cookie_name))
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Nicht angemeldet",
        )

    admin = crud_admin.get_admin_by_id(db, payload.admin_id)
    if admin is None:
        logger.warning(f"Session for deleted admin {payload.admin_id} rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Nicht angemeldet",
        )
    return admin


def require_role(min_role: AdminRole, mutating: bool = False):
    """
    Dependency factory for privileged routes.

    Args:
        min_role: Lowest role allowed on the route
        mutating: Route changes data; blocked while the admin still has to
            change the initial password
    """

    def _require_role(current_admin: AdminUser = Depends(get_current_admin)) -> AdminUser:
        if not has_required_role(current_admin.role, min_role):
            logger.warning(
                f"Unauthorized access attempt by {current_admin.username} "
                f"(role {current_admin.role.value}, required {min_role.value})"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Keine Berechtigung",
            )
        if mutating and current_admin.must_change_password:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Passwortänderung erforderlich",
            )
        return current_admin

    return _require_role


def get_actor_context(
    request: Request,
    current_admin: AdminUser = Depends(get_current_admin),
) -> ActorContext:
    """Admin id, IP and user agent for the activity log"""
    forwarded = request.headers.get("x-forwarded-for")
    ip_address = forwarded.split(",")[0].strip() if forwarded else None
    if not ip_address and request.client:
        ip_address = request.client.host
    return ActorContext(
        user_id=current_admin.id,
        ip_address=ip_address,
        user_agent=request.headers.get("user-agent"),
    )


def get_customer_session(request: Request) -> CustomerSessionPayload:
    payload = customer_sessions.decode(request.cookies.get(customer_sessions.cookie_name))
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Nicht angemeldet",
        )
    return payload


def get_current_customer(
    session: CustomerSessionPayload = Depends(get_customer_session),
    db: Session = Depends(get_db),
) -> CustomerSessionPayload:
    """Customer session whose submission still exists"""
    if crud_submission.get_submission(db, session.submission_id) is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Nicht angemeldet",
        )
    return session


def get_current_customer_account(
    session: CustomerSessionPayload = Depends(get_current_customer),
    db: Session = Depends(get_db),
) -> Customer:
    customer = crud_customer.get_customer_by_submission(db, session.submission_id)
    if customer is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Kein Kundenkonto vorhanden",
        )
    return customer
