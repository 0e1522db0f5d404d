from typing import Iterable, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete
import uuid

from pageflow.db.models.comment import Comment as CommentModel
from pageflow.domains.comments.entities import Comment


class CommentRepository:
    """Comments table access"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, comment: Comment) -> Comment:
        db_comment = CommentModel(
            uuid=comment.uuid,
            page_id=comment.page_id,
            author_id=comment.author_id,
            content=comment.content,
            block_id=comment.block_id,
            parent_id=comment.parent_id,
            mentions=[str(user_id) for user_id in comment.mentions],
            is_resolved=comment.is_resolved
        )
        self.session.add(db_comment)
        await self.session.commit()
        await self.session.refresh(db_comment)
        return self._to_domain(db_comment)

    async def get_by_uuid(self, comment_uuid: uuid.UUID) -> Optional[Comment]:
        result = await self.session.execute(
            select(CommentModel)
            .where(CommentModel.uuid == comment_uuid)
            .execution_options(populate_existing=True)
        )
        db_comment = result.scalar_one_or_none()
        return self._to_domain(db_comment) if db_comment else None

    async def get_by_page(self, page_id: uuid.UUID, block_id: Optional[uuid.UUID] = None) -> List[Comment]:
        query = select(CommentModel).where(CommentModel.page_id == page_id)
        if block_id is not None:
            query = query.where(CommentModel.block_id == block_id)
        result = await self.session.execute(query.order_by(CommentModel.created_at))
        return [self._to_domain(db_comment) for db_comment in result.scalars().all()]

    async def update(self, comment: Comment) -> Comment:
        stmt = (
            update(CommentModel)
            .where(CommentModel.uuid == comment.uuid)
            .values(
                content=comment.content,
                mentions=[str(user_id) for user_id in comment.mentions],
                is_resolved=comment.is_resolved,
                resolved_by=comment.resolved_by,
                resolved_at=comment.resolved_at,
                updated_at=comment.updated_at
            )
        )
        await self.session.execute(stmt)
        await self.session.commit()
        return await self.get_by_uuid(comment.uuid)

    async def delete_many(self, comment_ids: Iterable[uuid.UUID]) -> int:
        ids = list(comment_ids)
        if not ids:
            return 0
        result = await self.session.execute(delete(CommentModel).where(CommentModel.uuid.in_(ids)))
        await self.session.commit()
        return result.rowcount

    def _to_domain(self, db_comment: CommentModel) -> Comment:
        return Comment(
            uuid=db_comment.uuid,
            page_id=db_comment.page_id,
            author_id=db_comment.author_id,
            content=db_comment.content,
            block_id=db_comment.block_id,
            parent_id=db_comment.parent_id,
            mentions=[uuid.UUID(user_id) for user_id in (db_comment.mentions or [])],
            is_resolved=db_comment.is_resolved,
            resolved_by=db_comment.resolved_by,
            resolved_at=db_comment.resolved_at,
            created_at=db_comment.created_at,
            updated_at=db_comment.updated_at
        )
