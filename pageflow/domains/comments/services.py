from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
import logging
import uuid

from pageflow.core.errors import AuthorizationFailure
from pageflow.db.repositories.block_repository import BlockRepository
from pageflow.db.repositories.comment_repository import CommentRepository
from pageflow.db.repositories.user_repository import UserRepository
from pageflow.domains.comments.entities import (
    Comment, CommentNotification, build_threads, extract_mentions, reply_ids
)
from pageflow.domains.comments.schemas import CommentCreate, CommentUpdate
from pageflow.domains.identity.entities import User
from pageflow.domains.pages.services import PageService

logger = logging.getLogger(__name__)


class CommentService:
    """Comment threads on pages and blocks"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.comment_repository = CommentRepository(session)
        self.block_repository = BlockRepository(session)
        self.user_repository = UserRepository(session)
        self.page_service = PageService(session)

    async def _resolve_mentions(self, content: str) -> List[User]:
        usernames = extract_mentions(content)
        if not usernames:
            return []
        return await self.user_repository.get_by_usernames(usernames)

    async def list_threads(
        self,
        page_id: uuid.UUID,
        user_id: uuid.UUID,
        block_id: Optional[uuid.UUID] = None
    ) -> Optional[List[Dict[str, Any]]]:
        """Root comments with nested replies, oldest first"""
        if not await self.page_service.require_access(page_id, user_id):
            return None
        comments = await self.comment_repository.get_by_page(page_id, block_id)
        if block_id is not None:
            # Replies inherit the anchor of their thread
            roots = {comment.uuid for comment in comments}
            everything = await self.comment_repository.get_by_page(page_id)
            comments = comments + [
                comment for comment in everything
                if comment.uuid not in roots and comment.parent_id is not None
                and _root_of(comment, everything) in roots
            ]
        return build_threads(comments)

    async def create_comment(
        self,
        page_id: uuid.UUID,
        comment_data: CommentCreate,
        author: User
    ) -> Optional[Tuple[Comment, List[CommentNotification]]]:
        """Create a comment and work out who has to be notified about it"""
        if not await self.page_service.require_access(page_id, author.uuid):
            return None

        if comment_data.block_id is not None:
            block = await self.block_repository.get_by_uuid(comment_data.block_id)
            if not block or block.page_id != page_id:
                raise ValueError("Block must belong to the same page")

        parent = None
        if comment_data.parent_id is not None:
            parent = await self.comment_repository.get_by_uuid(comment_data.parent_id)
            if not parent or parent.page_id != page_id:
                raise ValueError("Parent comment must belong to the same page")

        mentioned = await self._resolve_mentions(comment_data.content)
        comment = Comment.create_comment(
            page_id=page_id,
            author_id=author.uuid,
            content=comment_data.content,
            block_id=comment_data.block_id,
            parent_id=comment_data.parent_id,
            mentions=[user.uuid for user in mentioned]
        )
        created = await self.comment_repository.create(comment)
        logger.info(f"Comment {created.uuid} added to page {page_id} by {author.uuid}")

        notifications = []
        notified = {author.uuid}
        for user in mentioned:
            if user.uuid in notified:
                continue
            notified.add(user.uuid)
            notifications.append(CommentNotification(
                recipient_id=user.uuid,
                kind="comment_mention",
                message=f"{author.username} mentioned you in a comment",
                data={"pageId": str(page_id), "commentId": str(created.uuid)}
            ))
        if parent and parent.author_id not in notified:
            notifications.append(CommentNotification(
                recipient_id=parent.author_id,
                kind="comment_reply",
                message=f"{author.username} replied to your comment",
                data={"pageId": str(page_id), "commentId": str(created.uuid), "parentId": str(parent.uuid)}
            ))
        return created, notifications

    async def update_comment(
        self,
        comment_id: uuid.UUID,
        update_data: CommentUpdate,
        user_id: uuid.UUID
    ) -> Optional[Comment]:
        """Edit a comment; only its author may"""
        comment = await self.comment_repository.get_by_uuid(comment_id)
        if not comment:
            return None

        if comment.author_id != user_id:
            raise AuthorizationFailure("Only the author can edit this comment")

        mentioned = await self._resolve_mentions(update_data.content)
        comment.edit(update_data.content, [user.uuid for user in mentioned])
        return await self.comment_repository.update(comment)

    async def delete_comment(self, comment_id: uuid.UUID, user_id: uuid.UUID) -> Optional[List[uuid.UUID]]:
        """Delete a comment and its replies; author or page owner only"""
        comment = await self.comment_repository.get_by_uuid(comment_id)
        if not comment:
            return None

        loaded = await self.page_service.load_access(comment.page_id)
        is_owner = loaded is not None and loaded[1].is_owner(user_id)
        if comment.author_id != user_id and not is_owner:
            raise AuthorizationFailure("Only the author or the page owner can delete this comment")

        page_comments = await self.comment_repository.get_by_page(comment.page_id)
        deleted = [comment.uuid] + reply_ids(comment.uuid, page_comments)
        await self.comment_repository.delete_many(deleted)
        logger.info(f"Comment {comment_id} and {len(deleted) - 1} replies deleted by {user_id}")
        return deleted

    async def toggle_resolve(self, comment_id: uuid.UUID, user_id: uuid.UUID) -> Optional[Comment]:
        """Flip the resolved flag; page owner or comment author only"""
        comment = await self.comment_repository.get_by_uuid(comment_id)
        if not comment:
            return None

        loaded = await self.page_service.load_access(comment.page_id)
        is_owner = loaded is not None and loaded[1].is_owner(user_id)
        if comment.author_id != user_id and not is_owner:
            raise AuthorizationFailure("Only the author or the page owner can resolve this comment")

        comment.toggle_resolved(user_id)
        return await self.comment_repository.update(comment)


def _root_of(comment: Comment, comments: List[Comment]) -> uuid.UUID:
    by_id = {item.uuid: item for item in comments}
    current = comment
    while current.parent_id is not None and current.parent_id in by_id:
        current = by_id[current.parent_id]
    return current.uuid
