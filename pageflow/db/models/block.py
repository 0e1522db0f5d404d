from sqlalchemy import Column, String, Integer, ForeignKey, Uuid, JSON, Index
from sqlalchemy.orm import relationship

from pageflow.db.base import BaseModel


class Block(BaseModel):
    __tablename__ = "blocks"
    __table_args__ = (
        Index("ix_blocks_page_order", "page_id", "order"),
        Index("ix_blocks_parent_order", "parent_id", "order"),
    )

    type = Column(String(20), nullable=False)
    content = Column(JSON, nullable=False, default=dict)
    metadata_ = Column("metadata", JSON, nullable=False, default=dict)
    order = Column(Integer, nullable=False)
    version = Column(Integer, nullable=False, default=1)
    page_id = Column(Uuid(as_uuid=True), ForeignKey("pages.uuid", ondelete="CASCADE"), nullable=False)
    parent_id = Column(Uuid(as_uuid=True), ForeignKey("blocks.uuid", ondelete="CASCADE"), nullable=True)
    created_by = Column(Uuid(as_uuid=True), ForeignKey("users.uuid"), nullable=False)
    last_modified_by = Column(Uuid(as_uuid=True), ForeignKey("users.uuid"), nullable=False)

    # Relationships
    page = relationship("Page", back_populates="blocks")
