from pageflow.domains.comments.entities import Comment, CommentNotification, extract_mentions
from pageflow.domains.comments.schemas import (
    CommentCreate, CommentUpdate, CommentResponse, CommentThreadResponse, CommentDeleteResponse
)

__all__ = [
    "Comment", "CommentNotification", "extract_mentions",
    "CommentCreate", "CommentUpdate", "CommentResponse", "CommentThreadResponse", "CommentDeleteResponse"
]
