from sqlalchemy import Column, Text, Boolean, DateTime, ForeignKey, Uuid, JSON, Index
from sqlalchemy.orm import relationship

from pageflow.db.base import BaseModel


class Comment(BaseModel):
    __tablename__ = "comments"
    __table_args__ = (
        Index("ix_comments_page_created", "page_id", "created_at"),
        Index("ix_comments_block_created", "block_id", "created_at"),
    )

    content = Column(Text, nullable=False)
    page_id = Column(Uuid(as_uuid=True), ForeignKey("pages.uuid", ondelete="CASCADE"), nullable=False)
    block_id = Column(Uuid(as_uuid=True), ForeignKey("blocks.uuid", ondelete="SET NULL"), nullable=True)
    author_id = Column(Uuid(as_uuid=True), ForeignKey("users.uuid"), nullable=False)
    parent_id = Column(Uuid(as_uuid=True), ForeignKey("comments.uuid", ondelete="CASCADE"), nullable=True)
    # User ids as strings, resolved from @username tokens at write time
    mentions = Column(JSON, nullable=False, default=list)
    is_resolved = Column(Boolean, nullable=False, default=False)
    resolved_by = Column(Uuid(as_uuid=True), ForeignKey("users.uuid"), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    page = relationship("Page", back_populates="comments")
