from typing import Iterable, List, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func
import uuid

from pageflow.db.models.block import Block as BlockModel
from pageflow.db.models.comment import Comment as CommentModel
from pageflow.domains.blocks.entities import Block, BlockType


class BlockRepository:
    """Blocks table access. Multi-row writes commit once, at the end."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _siblings(self, page_id: uuid.UUID, parent_id: Optional[uuid.UUID]):
        condition = BlockModel.page_id == page_id
        if parent_id is None:
            return condition & BlockModel.parent_id.is_(None)
        return condition & (BlockModel.parent_id == parent_id)

    async def get_by_uuid(self, block_uuid: uuid.UUID) -> Optional[Block]:
        result = await self.session.execute(
            select(BlockModel)
            .where(BlockModel.uuid == block_uuid)
            .execution_options(populate_existing=True)
        )
        db_block = result.scalar_one_or_none()
        return self._to_domain(db_block) if db_block else None

    async def get_by_page(self, page_id: uuid.UUID) -> List[Block]:
        result = await self.session.execute(
            select(BlockModel)
            .where(BlockModel.page_id == page_id)
            .order_by(BlockModel.order, BlockModel.created_at)
            .execution_options(populate_existing=True)
        )
        return [self._to_domain(db_block) for db_block in result.scalars().all()]

    async def next_order(self, page_id: uuid.UUID, parent_id: Optional[uuid.UUID]) -> int:
        """Order that appends after the last sibling"""
        result = await self.session.execute(
            select(func.max(BlockModel.order)).where(self._siblings(page_id, parent_id))
        )
        last = result.scalar()
        return 0 if last is None else last + 1

    async def _make_room(
        self,
        page_id: uuid.UUID,
        parent_id: Optional[uuid.UUID],
        order: int,
        exclude: Optional[uuid.UUID] = None
    ) -> None:
        """Shift siblings at ``order`` and after it down by one, if the slot is taken"""
        taken = select(BlockModel.uuid).where(self._siblings(page_id, parent_id), BlockModel.order == order)
        if exclude is not None:
            taken = taken.where(BlockModel.uuid != exclude)
        result = await self.session.execute(taken.limit(1))
        if result.scalar_one_or_none() is None:
            return

        stmt = (
            update(BlockModel)
            .where(self._siblings(page_id, parent_id), BlockModel.order >= order)
            .values(order=BlockModel.order + 1)
        )
        if exclude is not None:
            stmt = stmt.where(BlockModel.uuid != exclude)
        await self.session.execute(stmt)

    async def create(self, block: Block) -> Block:
        """Insert a block, making room among its siblings when needed"""
        await self._make_room(block.page_id, block.parent_id, block.order)

        db_block = BlockModel(
            uuid=block.uuid,
            type=block.type.value,
            content=block.content,
            metadata_=block.metadata,
            order=block.order,
            version=block.version,
            page_id=block.page_id,
            parent_id=block.parent_id,
            created_by=block.created_by,
            last_modified_by=block.last_modified_by
        )
        self.session.add(db_block)
        await self.session.commit()
        await self.session.refresh(db_block)
        return self._to_domain(db_block)

    async def update(
        self,
        block: Block,
        order_changed: bool = False,
        base_version: Optional[int] = None
    ) -> Optional[Block]:
        """Write content/type/order of an existing block.

        With ``base_version`` the row is only written while its stored version
        still equals it; ``None`` is returned (and nothing is written) otherwise.
        """
        if order_changed:
            await self._make_room(block.page_id, block.parent_id, block.order, exclude=block.uuid)

        stmt = (
            update(BlockModel)
            .where(BlockModel.uuid == block.uuid)
            .values(
                type=block.type.value,
                content=block.content,
                order=block.order,
                version=BlockModel.version + 1,
                last_modified_by=block.last_modified_by,
                updated_at=block.updated_at
            )
        )
        if base_version is not None:
            stmt = stmt.where(BlockModel.version == base_version)

        result = await self.session.execute(stmt)
        if result.rowcount == 0:
            await self.session.rollback()
            return None
        await self.session.commit()

        return await self.get_by_uuid(block.uuid)

    async def delete_many(self, block_ids: Iterable[uuid.UUID]) -> int:
        """Delete blocks and detach comments that pointed at them"""
        ids = list(block_ids)
        if not ids:
            return 0
        await self.session.execute(
            update(CommentModel).where(CommentModel.block_id.in_(ids)).values(block_id=None)
        )
        result = await self.session.execute(delete(BlockModel).where(BlockModel.uuid.in_(ids)))
        await self.session.commit()
        return result.rowcount

    async def apply_moves(
        self,
        moves: Iterable[Tuple[uuid.UUID, int, Optional[uuid.UUID]]],
        modified_by: uuid.UUID
    ) -> None:
        """Write a whole reorder batch in one transaction; every moved block gets a new version"""
        try:
            for block_id, order, parent_id in moves:
                await self.session.execute(
                    update(BlockModel)
                    .where(BlockModel.uuid == block_id)
                    .values(
                        order=order,
                        parent_id=parent_id,
                        version=BlockModel.version + 1,
                        last_modified_by=modified_by
                    )
                )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

    def _to_domain(self, db_block: BlockModel) -> Block:
        return Block(
            uuid=db_block.uuid,
            page_id=db_block.page_id,
            type=BlockType(db_block.type),
            content=db_block.content,
            order=db_block.order,
            parent_id=db_block.parent_id,
            metadata=db_block.metadata_,
            created_by=db_block.created_by,
            last_modified_by=db_block.last_modified_by,
            version=db_block.version,
            created_at=db_block.created_at,
            updated_at=db_block.updated_at
        )
