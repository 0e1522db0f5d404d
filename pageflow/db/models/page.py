from sqlalchemy import Column, String, ForeignKey, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship

from pageflow.db.base import BaseModel


class Page(BaseModel):
    __tablename__ = "pages"

    title = Column(String(255), nullable=False)
    workspace_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    owner_id = Column(Uuid(as_uuid=True), ForeignKey("users.uuid"), nullable=False)

    # Relationships
    owner = relationship("User", back_populates="owned_pages")
    collaborators = relationship("PageCollaborator", back_populates="page", cascade="all, delete-orphan")
    blocks = relationship("Block", back_populates="page", cascade="all, delete-orphan")
    comments = relationship("Comment", back_populates="page", cascade="all, delete-orphan")


class PageCollaborator(BaseModel):
    __tablename__ = "page_collaborators"
    __table_args__ = (UniqueConstraint("page_id", "user_id", name="uq_page_collaborator"),)

    page_id = Column(Uuid(as_uuid=True), ForeignKey("pages.uuid", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.uuid"), nullable=False)
    role = Column(String(20), nullable=False, default="viewer")

    # Relationships
    page = relationship("Page", back_populates="collaborators")
    user = relationship("User")
