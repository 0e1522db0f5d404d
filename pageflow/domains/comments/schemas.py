from pydantic import BaseModel, Field, field_validator, ConfigDict
from typing import List, Optional
import uuid
from datetime import datetime


def _not_blank(v: str) -> str:
    if not v.strip():
        raise ValueError('Comment content is required')
    return v.strip()


class CommentCreate(BaseModel):
    content: str = Field(..., max_length=10000)
    block_id: Optional[uuid.UUID] = None
    parent_id: Optional[uuid.UUID] = None

    @field_validator('content')
    @classmethod
    def validate_content(cls, v):
        return _not_blank(v)


class CommentUpdate(BaseModel):
    content: str = Field(..., max_length=10000)

    @field_validator('content')
    @classmethod
    def validate_content(cls, v):
        return _not_blank(v)


class CommentResponse(BaseModel):
    uuid: uuid.UUID
    page_id: uuid.UUID
    author_id: uuid.UUID
    content: str
    block_id: Optional[uuid.UUID] = None
    parent_id: Optional[uuid.UUID] = None
    mentions: List[uuid.UUID] = Field(default_factory=list)
    is_resolved: bool
    resolved_by: Optional[uuid.UUID] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CommentThreadResponse(CommentResponse):
    replies: List["CommentThreadResponse"] = Field(default_factory=list)


class CommentDeleteResponse(BaseModel):
    deleted: List[uuid.UUID]


def threads_to_response(nodes) -> List[CommentThreadResponse]:
    """Convert ``build_threads`` output into response models"""
    return [
        CommentThreadResponse.model_validate(node["comment"]).model_copy(
            update={"replies": threads_to_response(node["replies"])}
        )
        for node in nodes
    ]
