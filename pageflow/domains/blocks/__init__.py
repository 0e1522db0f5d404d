from pageflow.domains.blocks.entities import Block, BlockType, build_tree
from pageflow.domains.blocks.schemas import (
    BlockCreate, BlockUpdate, BlockMove, BlockReorder,
    BlockResponse, BlockTreeResponse, BlockDeleteResponse
)

__all__ = [
    "Block", "BlockType", "build_tree",
    "BlockCreate", "BlockUpdate", "BlockMove", "BlockReorder",
    "BlockResponse", "BlockTreeResponse", "BlockDeleteResponse"
]
