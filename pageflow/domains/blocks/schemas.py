from pydantic import BaseModel, Field, ConfigDict
from typing import Any, Dict, List, Optional
import uuid
from datetime import datetime

from pageflow.domains.blocks.entities import BlockType


class BlockCreate(BaseModel):
    type: BlockType
    content: Dict[str, Any] = Field(default_factory=dict)
    parent_id: Optional[uuid.UUID] = None
    order: Optional[int] = Field(None, ge=0)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class BlockUpdate(BaseModel):
    """Partial update; ``base_version`` opts into optimistic concurrency"""
    content: Optional[Dict[str, Any]] = None
    type: Optional[BlockType] = None
    order: Optional[int] = Field(None, ge=0)
    base_version: Optional[int] = Field(None, ge=1)


class BlockMove(BaseModel):
    """One entry of a reorder batch"""
    id: uuid.UUID
    order: int = Field(..., ge=0)
    parent_id: Optional[uuid.UUID] = None


class BlockReorder(BaseModel):
    blocks: List[BlockMove] = Field(..., min_length=1)


class BlockResponse(BaseModel):
    uuid: uuid.UUID
    page_id: uuid.UUID
    parent_id: Optional[uuid.UUID] = None
    type: BlockType
    content: Dict[str, Any]
    order: int
    metadata: Dict[str, Any]
    version: int
    created_by: uuid.UUID
    last_modified_by: uuid.UUID
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BlockTreeResponse(BlockResponse):
    children: List["BlockTreeResponse"] = Field(default_factory=list)


class BlockDeleteResponse(BaseModel):
    deleted: List[uuid.UUID]


def tree_to_response(nodes: List[Dict[str, Any]]) -> List[BlockTreeResponse]:
    """Convert ``build_tree`` output into response models"""
    return [
        BlockTreeResponse.model_validate(node["block"]).model_copy(
            update={"children": tree_to_response(node["children"])}
        )
        for node in nodes
    ]
