from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
import uuid

from pageflow.db.models.page import Page as PageModel, PageCollaborator as PageCollaboratorModel
from pageflow.domains.pages.entities import Page, PageAccess, PageRole


class PageRepository:
    """Pages and their collaborators"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, page: Page) -> Page:
        db_page = PageModel(
            uuid=page.uuid,
            title=page.title,
            owner_id=page.owner_id,
            workspace_id=page.workspace_id
        )
        self.session.add(db_page)
        await self.session.commit()
        await self.session.refresh(db_page)
        return self._to_domain(db_page)

    async def get_by_uuid(self, page_uuid: uuid.UUID) -> Optional[Page]:
        result = await self.session.execute(
            select(PageModel).where(PageModel.uuid == page_uuid)
        )
        db_page = result.scalar_one_or_none()
        return self._to_domain(db_page) if db_page else None

    async def get_access(self, page: Page) -> PageAccess:
        """Build the access rules of a page"""
        result = await self.session.execute(
            select(PageCollaboratorModel).where(PageCollaboratorModel.page_id == page.uuid)
        )
        collaborators = {row.user_id: PageRole(row.role) for row in result.scalars().all()}
        return PageAccess(page.uuid, page.owner_id, collaborators)

    async def set_collaborator(self, page_id: uuid.UUID, user_id: uuid.UUID, role: PageRole) -> None:
        """Add a collaborator or change their role"""
        result = await self.session.execute(
            select(PageCollaboratorModel).where(
                PageCollaboratorModel.page_id == page_id,
                PageCollaboratorModel.user_id == user_id
            )
        )
        db_collaborator = result.scalar_one_or_none()
        if db_collaborator:
            db_collaborator.role = role.value
        else:
            self.session.add(PageCollaboratorModel(page_id=page_id, user_id=user_id, role=role.value))
        await self.session.commit()

    def _to_domain(self, db_page: PageModel) -> Page:
        return Page(
            uuid=db_page.uuid,
            title=db_page.title,
            owner_id=db_page.owner_id,
            workspace_id=db_page.workspace_id,
            created_at=db_page.created_at,
            updated_at=db_page.updated_at
        )
