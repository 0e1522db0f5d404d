from pydantic import BaseModel, EmailStr, Field, field_validator, ConfigDict
from typing import Optional
from datetime import datetime
import uuid


class UserBase(BaseModel):
    """Shared user fields"""
    email: EmailStr
    username: str = Field(..., min_length=3, max_length=100)

    @field_validator('username')
    @classmethod
    def validate_username(cls, v):
        # Usernames are matched by @mentions, which only see word characters
        if not v.replace('_', '').isalnum():
            raise ValueError('Username must contain only alphanumeric characters and underscores')
        return v


class UserCreate(UserBase):
    password: str = Field(..., min_length=8, max_length=128)
    avatar: Optional[str] = Field(None, max_length=512)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserResponse(UserBase):
    uuid: uuid.UUID
    avatar: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Token(BaseModel):
    """JWT access token"""
    access_token: str
    token_type: str = "bearer"
