from pydantic import BaseModel, Field
from typing import Optional
from uuid import UUID
from datetime import datetime

from warranty.models.admin_user import AdminRole


# ============= REQUEST SCHEMAS =============

class AdminLoginRequest(BaseModel):
    """Admin login request"""
    username: str = Field(..., description="Username")
    password: str = Field(..., description="Password")

    class Config:
        json_schema_extra = {
            "example": {
                "username": "Admin",
                "password": "admin123"
            }
        }

class AdminCreateRequest(BaseModel):
    """Create a new admin or staff account (ADMIN only)"""
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., description="Initial password, at least 8 characters")
    role: AdminRole = Field(default=AdminRole.STAFF)

class PasswordChangeRequest(BaseModel):
    """Password change request"""
    old_password: str = Field(..., description="Current password")
    new_password: str = Field(..., description="New password (minimum 8 characters)")

    class Config:
        json_schema_extra = {
            "example": {
                "old_password": "admin123",
                "new_password": "neuesPasswort456"
            }
        }

class PasswordResetRequest(BaseModel):
    """Set another user's password without knowing the old one (ADMIN only)"""
    new_password: str = Field(..., description="New password (minimum 8 characters)")

# ============= SESSION =============

class AdminSessionPayload(BaseModel):
    """Contents of the signed admin_session cookie"""
    admin_id: UUID
    username: str
    role: AdminRole

# ============= RESPONSE SCHEMAS =============

class AdminOut(BaseModel):
    """Admin user response"""
    id: UUID
    username: str
    role: AdminRole
    must_change_password: bool
    created_at: datetime
    created_by: Optional[UUID] = None

    class Config:
        from_attributes = True

class AdminLoginResponse(BaseModel):
    """Admin login response"""
    success: bool = True
    admin: AdminOut
    must_change_password: bool

class AdminVerifyResponse(BaseModel):
    valid: bool
    admin: AdminOut

class Msg(BaseModel):
    """Generic message response"""
    message: str

class APIResponse(BaseModel):
    """Generic API response model for errors"""
    error: str
