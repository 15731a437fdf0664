from sqlalchemy.orm import Session
from warranty.models.admin_user import AdminUser, AdminRole
from warranty.schemas.admin_user import AdminCreateRequest
from warranty.core.security import get_password_hash, verify_password
from warranty.core.config import settings
from uuid import UUID
from typing import Optional, List


class DuplicateUsernameError(ValueError):
    pass


def _check_password_length(password: str) -> None:
    if len(password) < settings.MIN_PASSWORD_LENGTH:
        raise ValueError(f"Passwort muss mindestens {settings.MIN_PASSWORD_LENGTH} Zeichen haben")


def get_admin_by_id(db: Session, admin_id: UUID) -> Optional[AdminUser]:
    """Get admin user by ID"""
    return db.query(AdminUser).filter(AdminUser.id == admin_id).first()


def get_admin_by_username(db: Session, username: str) -> Optional[AdminUser]:
    """Get admin user by username"""
    return db.query(AdminUser).filter(AdminUser.username == username).first()


def get_admins(db: Session) -> List[AdminUser]:
    """Get all admin users, oldest first"""
    return db.query(AdminUser).order_by(AdminUser.created_at.asc(), AdminUser.username.asc()).all()


def authenticate_admin(db: Session, username: str, password: str) -> Optional[AdminUser]:
    """Return the admin if username and password match, otherwise None"""
    admin = get_admin_by_username(db, username)
    if not admin:
        return None
    if not verify_password(password, admin.password_hash):
        return None
    return admin


def create_admin(db: Session, data: AdminCreateRequest, created_by: Optional[UUID] = None) -> AdminUser:
    """Create a new admin user. New accounts must change their password on first login."""
    username = data.username.strip()
    if get_admin_by_username(db, username):
        raise DuplicateUsernameError("Benutzername bereits vergeben")
    _check_password_length(data.password)

    db_admin = AdminUser(
        username=username,
        password_hash=get_password_hash(data.password),
        role=AdminRole(data.role.value),
        must_change_password=True,
        created_by=created_by,
    )
    db.add(db_admin)
    db.commit()
    db.refresh(db_admin)
    return db_admin


def change_password(db: Session, admin: AdminUser, old_password: str, new_password: str) -> AdminUser:
    """Change own password; clears the must-change flag"""
    if not verify_password(old_password, admin.password_hash):
        raise ValueError("Aktuelles Passwort ist falsch")
    _check_password_length(new_password)
    if old_password == new_password:
        raise ValueError("Neues Passwort muss sich vom alten unterscheiden")

    admin.password_hash = get_password_hash(new_password)
    admin.must_change_password = False
    db.commit()
    db.refresh(admin)
    return admin


def reset_password(db: Session, admin_id: UUID, new_password: str) -> Optional[AdminUser]:
    """Set another user's password; the user has to change it on next login"""
    admin = get_admin_by_id(db, admin_id)
    if not admin:
        return None
    _check_password_length(new_password)

    admin.password_hash = get_password_hash(new_password)
    admin.must_change_password = True
    db.commit()
    db.refresh(admin)
    return admin


def delete_admin(db: Session, admin_id: UUID) -> bool:
    """Delete an admin user"""
    admin = get_admin_by_id(db, admin_id)
    if not admin:
        return False

    db.delete(admin)
    db.commit()
    return True
