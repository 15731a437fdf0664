from sqlalchemy import Column, String, Boolean, DateTime, func, Enum, ForeignKey, Uuid
from warranty.db.session import Base
import uuid
import enum


class AdminRole(str, enum.Enum):
    ADMIN = "ADMIN"
    STAFF = "STAFF"


# Higher rank means more privileges. Authorization checks compare ranks,
# never role names.
ROLE_RANK = {
    AdminRole.STAFF: 0,
    AdminRole.ADMIN: 1,
}


def has_required_role(role: AdminRole, required: AdminRole) -> bool:
    """Return True if ``role`` is at least as privileged as ``required``"""
    role_value = role.value if hasattr(role, "value") else str(role)
    required_value = required.value if hasattr(required, "value") else str(required)
    return ROLE_RANK[AdminRole(role_value)] >= ROLE_RANK[AdminRole(required_value)]


class AdminUser(Base):
    __tablename__ = "admin_users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(Enum(AdminRole, name="adminrole"), default=AdminRole.STAFF, nullable=False)
    must_change_password = Column(Boolean, default=True, nullable=False)
    created_by = Column(Uuid, ForeignKey("admin_users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<AdminUser(id={self.id}, username={self.username}, role={self.role})>"
