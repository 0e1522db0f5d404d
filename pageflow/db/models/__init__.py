from pageflow.db.models.user import User
from pageflow.db.models.page import Page, PageCollaborator
from pageflow.db.models.block import Block
from pageflow.db.models.comment import Comment

__all__ = [
    "User",
    "Page",
    "PageCollaborator",
    "Block",
    "Comment",
]
