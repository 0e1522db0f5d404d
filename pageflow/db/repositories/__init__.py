from pageflow.db.repositories.user_repository import UserRepository
from pageflow.db.repositories.page_repository import PageRepository
from pageflow.db.repositories.block_repository import BlockRepository
from pageflow.db.repositories.comment_repository import CommentRepository

__all__ = ["UserRepository", "PageRepository", "BlockRepository", "CommentRepository"]
