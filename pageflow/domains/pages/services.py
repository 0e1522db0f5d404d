from typing import Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
import uuid

from pageflow.core.errors import AuthorizationFailure
from pageflow.db.repositories.page_repository import PageRepository
from pageflow.db.repositories.user_repository import UserRepository
from pageflow.domains.pages.entities import Page, PageAccess, PageRole
from pageflow.domains.pages.schemas import PageCreate


class PageService:
    """Pages and page-level authorization"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.page_repository = PageRepository(session)
        self.user_repository = UserRepository(session)

    async def create_page(self, page_data: PageCreate, owner_id: uuid.UUID) -> Page:
        page = Page.create_page(
            title=page_data.title,
            owner_id=owner_id,
            workspace_id=page_data.workspace_id
        )
        return await self.page_repository.create(page)

    async def get_page(self, page_uuid: uuid.UUID) -> Optional[Page]:
        return await self.page_repository.get_by_uuid(page_uuid)

    async def load_access(self, page_uuid: uuid.UUID) -> Optional[Tuple[Page, PageAccess]]:
        """Page with its access rules, or None when the page does not exist"""
        page = await self.page_repository.get_by_uuid(page_uuid)
        if not page:
            return None
        return page, await self.page_repository.get_access(page)

    async def require_access(self, page_uuid: uuid.UUID, user_id: uuid.UUID) -> Optional[Tuple[Page, PageAccess]]:
        """Page and access rules when the user may read it; None when missing"""
        loaded = await self.load_access(page_uuid)
        if loaded and not loaded[1].can_access(user_id):
            raise AuthorizationFailure("You don't have access to this page")
        return loaded

    async def require_edit(self, page_uuid: uuid.UUID, user_id: uuid.UUID) -> Optional[Tuple[Page, PageAccess]]:
        """Page and access rules when the user may edit it; None when missing"""
        loaded = await self.load_access(page_uuid)
        if loaded and not loaded[1].can_edit(user_id):
            raise AuthorizationFailure("You don't have permission to edit this page")
        return loaded

    async def add_collaborator(
        self,
        page_uuid: uuid.UUID,
        owner_id: uuid.UUID,
        user_id: uuid.UUID,
        role: PageRole
    ) -> bool:
        """Invite a user; only the owner may do so. False when page or user is missing"""
        page = await self.page_repository.get_by_uuid(page_uuid)
        if not page:
            return False

        if page.owner_id != owner_id:
            raise AuthorizationFailure("Only the owner can invite collaborators")

        if user_id == owner_id:
            raise ValueError("The owner is already a member of this page")

        if not await self.user_repository.get_by_uuid(user_id):
            return False

        await self.page_repository.set_collaborator(page_uuid, user_id, role)
        return True
