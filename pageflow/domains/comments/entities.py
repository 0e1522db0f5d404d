import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

MENTION_PATTERN = re.compile(r"@(\w+)")


def extract_mentions(content: str) -> List[str]:
    """Usernames referenced as ``@username``, first occurrence order, no repeats"""
    seen = []
    for name in MENTION_PATTERN.findall(content or ""):
        if name not in seen:
            seen.append(name)
    return seen


class Comment:
    """Threaded annotation on a page or on one of its blocks"""

    def __init__(
        self,
        uuid: uuid.UUID,
        page_id: uuid.UUID,
        author_id: uuid.UUID,
        content: str,
        block_id: Optional[uuid.UUID] = None,
        parent_id: Optional[uuid.UUID] = None,
        mentions: Optional[List[uuid.UUID]] = None,
        is_resolved: bool = False,
        resolved_by: Optional[uuid.UUID] = None,
        resolved_at: Optional[datetime] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None
    ):
        self.uuid = uuid
        self.page_id = page_id
        self.author_id = author_id
        self.content = content
        self.block_id = block_id
        self.parent_id = parent_id
        self.mentions = list(mentions or [])
        self.is_resolved = is_resolved
        self.resolved_by = resolved_by
        self.resolved_at = resolved_at
        self.created_at = created_at or datetime.now(timezone.utc)
        self.updated_at = updated_at or datetime.now(timezone.utc)

    def edit(self, content: str, mentions: List[uuid.UUID]) -> None:
        self.content = content
        self.mentions = list(mentions)
        self.updated_at = datetime.now(timezone.utc)

    def toggle_resolved(self, user_id: uuid.UUID) -> bool:
        """Flip the resolved flag; returns the new state"""
        self.is_resolved = not self.is_resolved
        if self.is_resolved:
            self.resolved_by = user_id
            self.resolved_at = datetime.now(timezone.utc)
        else:
            self.resolved_by = None
            self.resolved_at = None
        self.updated_at = datetime.now(timezone.utc)
        return self.is_resolved

    @classmethod
    def create_comment(
        cls,
        page_id: uuid.UUID,
        author_id: uuid.UUID,
        content: str,
        block_id: Optional[uuid.UUID] = None,
        parent_id: Optional[uuid.UUID] = None,
        mentions: Optional[List[uuid.UUID]] = None
    ) -> "Comment":
        return cls(
            uuid=uuid.uuid4(),
            page_id=page_id,
            author_id=author_id,
            content=content,
            block_id=block_id,
            parent_id=parent_id,
            mentions=mentions
        )

    def __repr__(self) -> str:
        return f"Comment(uuid={self.uuid}, page={self.page_id}, resolved={self.is_resolved})"


@dataclass
class CommentNotification:
    """Notification owed to a user after a comment write"""
    recipient_id: uuid.UUID
    kind: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, "message": self.message, "data": self.data}


def build_threads(comments: Iterable[Comment]) -> List[Dict[str, Any]]:
    """Root comments with nested ``replies``, oldest first"""
    ordered = sorted(comments, key=lambda comment: comment.created_at)
    nodes = {comment.uuid: {"comment": comment, "replies": []} for comment in ordered}
    roots = []
    for comment in ordered:
        if comment.parent_id is None:
            roots.append(nodes[comment.uuid])
        elif comment.parent_id in nodes:
            nodes[comment.parent_id]["replies"].append(nodes[comment.uuid])
    return roots


def reply_ids(comment_id: uuid.UUID, comments: Iterable[Comment]) -> List[uuid.UUID]:
    """Ids of every reply below a comment, at any depth"""
    children: Dict[uuid.UUID, List[uuid.UUID]] = {}
    for comment in comments:
        if comment.parent_id is not None:
            children.setdefault(comment.parent_id, []).append(comment.uuid)

    found = []
    stack = list(children.get(comment_id, []))
    while stack:
        current = stack.pop()
        found.append(current)
        stack.extend(children.get(current, []))
    return found
