from pydantic import BaseModel
from typing import Optional, List
from uuid import UUID
from datetime import datetime


class ActorContext(BaseModel):
    """Who performed a change, recorded with each activity log entry"""
    user_id: UUID
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class ActivityLogOut(BaseModel):
    """Activity log entry with a human-readable description"""
    id: UUID
    user_id: Optional[UUID] = None
    username: Optional[str] = None
    action: str
    entity_type: str
    entity_id: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    description: str
    created_at: datetime


class ActivityLogListOut(BaseModel):
    entries: List[ActivityLogOut]
    total: int
