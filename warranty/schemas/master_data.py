from pydantic import BaseModel, Field, field_validator
from typing import List
from uuid import UUID
from datetime import datetime

from warranty.models.master_data import MasterDataType


class MasterDataCreate(BaseModel):
    """Master data creation request"""
    type: MasterDataType
    name: str = Field(..., min_length=1, max_length=200)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        if isinstance(v, str):
            v = v.strip()
        if not v:
            raise ValueError("Name ist erforderlich")
        return v


class MasterDataOut(BaseModel):
    """Master data item response schema"""
    id: UUID
    name: str
    active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class MasterDataListOut(BaseModel):
    items: List[MasterDataOut]


class MasterDataAllOut(BaseModel):
    bauleitung: List[MasterDataOut]
    verantwortlicher: List[MasterDataOut]
    gewerk: List[MasterDataOut]
    firma: List[MasterDataOut]
