import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional


class PageRole(Enum):
    """Collaborator role on a page"""
    EDITOR = "editor"
    VIEWER = "viewer"


class Page:
    """Page that owns a block tree and its comments"""

    def __init__(
        self,
        uuid: uuid.UUID,
        title: str,
        owner_id: uuid.UUID,
        workspace_id: Optional[uuid.UUID] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None
    ):
        self.uuid = uuid
        self.title = title
        self.owner_id = owner_id
        self.workspace_id = workspace_id
        self.created_at = created_at or datetime.now(timezone.utc)
        self.updated_at = updated_at or datetime.now(timezone.utc)

    @classmethod
    def create_page(cls, title: str, owner_id: uuid.UUID, workspace_id: Optional[uuid.UUID] = None) -> "Page":
        return cls(uuid=uuid.uuid4(), title=title, owner_id=owner_id, workspace_id=workspace_id)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Page):
            return False
        return self.uuid == other.uuid

    def __repr__(self) -> str:
        return f"Page(uuid={self.uuid}, title={self.title})"


class PageAccess:
    """Access rules for one page: owner plus invited collaborators"""

    def __init__(self, page_id: uuid.UUID, owner_id: uuid.UUID, collaborators: Optional[Dict[uuid.UUID, PageRole]] = None):
        self.page_id = page_id
        self.owner_id = owner_id
        self._collaborators: Dict[uuid.UUID, PageRole] = dict(collaborators or {})

    def add_collaborator(self, user_id: uuid.UUID, role: PageRole) -> None:
        self._collaborators[user_id] = role

    def can_access(self, user_id: uuid.UUID) -> bool:
        return user_id == self.owner_id or user_id in self._collaborators

    def can_edit(self, user_id: uuid.UUID) -> bool:
        return user_id == self.owner_id or self._collaborators.get(user_id) == PageRole.EDITOR

    def is_owner(self, user_id: uuid.UUID) -> bool:
        return user_id == self.owner_id

    def role_of(self, user_id: uuid.UUID) -> Optional[PageRole]:
        return self._collaborators.get(user_id)
