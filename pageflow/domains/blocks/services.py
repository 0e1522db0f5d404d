from typing import Any, Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
import logging
import uuid

from pageflow.core.errors import VersionConflict
from pageflow.db.repositories.block_repository import BlockRepository
from pageflow.domains.blocks.entities import (
    Block, build_tree, creates_cycle, descendants_of, document_order
)
from pageflow.domains.blocks.schemas import BlockCreate, BlockUpdate, BlockReorder
from pageflow.domains.pages.services import PageService

logger = logging.getLogger(__name__)


class BlockService:
    """Block tree reads and writes. Every write is authorized and committed
    before it returns, so callers may broadcast the result right away."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.block_repository = BlockRepository(session)
        self.page_service = PageService(session)

    async def get_tree(self, page_id: uuid.UUID, user_id: uuid.UUID) -> Optional[List[Dict[str, Any]]]:
        """Nested block tree of a page"""
        if not await self.page_service.require_access(page_id, user_id):
            return None
        blocks = await self.block_repository.get_by_page(page_id)
        return build_tree(blocks)

    async def create_block(self, page_id: uuid.UUID, block_data: BlockCreate, user_id: uuid.UUID) -> Optional[Block]:
        """Create a block; appends after the last sibling unless an order is given"""
        if not await self.page_service.require_edit(page_id, user_id):
            return None

        if block_data.parent_id is not None:
            parent = await self.block_repository.get_by_uuid(block_data.parent_id)
            if not parent or parent.page_id != page_id:
                raise ValueError("Parent block must belong to the same page")

        order = block_data.order
        if order is None:
            order = await self.block_repository.next_order(page_id, block_data.parent_id)

        block = Block.create_block(
            page_id=page_id,
            type=block_data.type,
            order=order,
            created_by=user_id,
            content=block_data.content,
            parent_id=block_data.parent_id,
            metadata=block_data.metadata
        )
        created = await self.block_repository.create(block)
        logger.info(f"Block {created.uuid} created on page {page_id} by {user_id}")
        return created

    async def update_block(self, block_id: uuid.UUID, update_data: BlockUpdate, user_id: uuid.UUID) -> Optional[Block]:
        """Overwrite content/type/order. Last writer wins unless ``base_version`` is sent."""
        block = await self.block_repository.get_by_uuid(block_id)
        if not block:
            return None

        await self.page_service.require_edit(block.page_id, user_id)

        if update_data.base_version is not None and update_data.base_version != block.version:
            raise VersionConflict(update_data.base_version, block.version)

        order_changed = update_data.order is not None and update_data.order != block.order
        block.apply_update(
            modified_by=user_id,
            content=update_data.content,
            type=update_data.type,
            order=update_data.order
        )
        updated = await self.block_repository.update(
            block, order_changed=order_changed, base_version=update_data.base_version
        )
        if updated is None and update_data.base_version is not None:
            # Another writer got in between the read above and the write
            current = await self.block_repository.get_by_uuid(block_id)
            if current is not None:
                raise VersionConflict(update_data.base_version, current.version)
        return updated

    async def delete_block(self, block_id: uuid.UUID, user_id: uuid.UUID) -> Optional[List[uuid.UUID]]:
        """Delete a block with its whole subtree; returns every deleted id"""
        block = await self.block_repository.get_by_uuid(block_id)
        if not block:
            return None

        await self.page_service.require_edit(block.page_id, user_id)

        page_blocks = await self.block_repository.get_by_page(block.page_id)
        deleted = [block.uuid] + descendants_of(block.uuid, page_blocks)
        await self.block_repository.delete_many(deleted)
        logger.info(f"Block {block_id} and {len(deleted) - 1} descendants deleted by {user_id}")
        return deleted

    async def reorder_blocks(self, page_id: uuid.UUID, reorder: BlockReorder, user_id: uuid.UUID) -> Optional[List[Block]]:
        """Apply a batch of (order, parent) moves atomically.

        The batch is validated against the resulting tree before anything
        is written: every block must belong to the page, parents must too,
        nobody may become their own ancestor and sibling orders must stay
        unique.
        """
        if not await self.page_service.require_edit(page_id, user_id):
            return None

        blocks = {block.uuid: block for block in await self.block_repository.get_by_page(page_id)}
        moves = []
        for move in reorder.blocks:
            if move.id not in blocks:
                raise ValueError(f"Block {move.id} does not belong to this page")
            if move.parent_id is not None and move.parent_id not in blocks:
                raise ValueError(f"Parent block {move.parent_id} does not belong to this page")
            moves.append((move.id, move.order, move.parent_id))

        parents = {block_id: block.parent_id for block_id, block in blocks.items()}
        orders = {block_id: block.order for block_id, block in blocks.items()}
        for block_id, order, parent_id in moves:
            parents[block_id] = parent_id
            orders[block_id] = order

        for block_id, _, parent_id in moves:
            if creates_cycle(block_id, parent_id, parents):
                raise ValueError(f"Block {block_id} cannot be moved under its own descendant")

        seen = set()
        for block_id in blocks:
            slot = (parents[block_id], orders[block_id])
            if slot in seen:
                raise ValueError("Sibling blocks must have distinct orders")
            seen.add(slot)

        await self.block_repository.apply_moves(moves, modified_by=user_id)

        reordered = await self.block_repository.get_by_page(page_id)
        return document_order(reordered)
