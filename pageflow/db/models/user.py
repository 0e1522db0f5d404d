from sqlalchemy import Column, String, Boolean
from sqlalchemy.orm import relationship

from pageflow.db.base import BaseModel


class User(BaseModel):
    __tablename__ = "users"

    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(100), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    avatar = Column(String(512), nullable=True)
    is_active = Column(Boolean, default=True)

    # Relationships
    owned_pages = relationship("Page", back_populates="owner", cascade="all, delete-orphan")
