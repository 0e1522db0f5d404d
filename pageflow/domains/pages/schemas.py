from pydantic import BaseModel, Field, field_validator, ConfigDict
from typing import Optional
import uuid
from datetime import datetime

from pageflow.domains.pages.entities import PageRole


class PageCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    workspace_id: Optional[uuid.UUID] = None

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        if not v.strip():
            raise ValueError('Title cannot be empty')
        return v.strip()


class PageResponse(BaseModel):
    uuid: uuid.UUID
    title: str
    owner_id: uuid.UUID
    workspace_id: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CollaboratorAdd(BaseModel):
    """Invite a user to a page"""
    user_id: uuid.UUID
    role: PageRole = PageRole.EDITOR


class CollaboratorResponse(BaseModel):
    page_id: uuid.UUID
    user_id: uuid.UUID
    role: PageRole
