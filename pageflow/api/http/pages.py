from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
import logging
import uuid

from pageflow.api.dependencies import get_broadcaster
from pageflow.core.auth import get_current_user
from pageflow.core.db import get_db
from pageflow.core.errors import AuthorizationFailure
from pageflow.domains.collaboration.services import CollaborationBroadcaster
from pageflow.domains.identity.entities import User
from pageflow.domains.pages.schemas import PageCreate, PageResponse, CollaboratorAdd, CollaboratorResponse
from pageflow.domains.pages.services import PageService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pages", tags=["pages"])


@router.post("", response_model=PageResponse, status_code=status.HTTP_201_CREATED)
async def create_page(
    page_data: PageCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: CollaborationBroadcaster = Depends(get_broadcaster)
):
    page = await PageService(db).create_page(page_data, current_user.uuid)

    if page.workspace_id is not None:
        broadcaster.send_workspace_notification(page.workspace_id, {
            "type": "page_created",
            "message": f"{current_user.username} created {page.title}",
            "data": {"pageId": str(page.uuid), "title": page.title, "user": current_user.identity().to_dict()}
        })

    return PageResponse.model_validate(page)


@router.get("/{page_id}", response_model=PageResponse)
async def get_page(
    page_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        loaded = await PageService(db).require_access(page_id, current_user.uuid)
    except AuthorizationFailure as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

    if not loaded:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Page not found")

    return PageResponse.model_validate(loaded[0])


@router.post("/{page_id}/collaborators", response_model=CollaboratorResponse, status_code=status.HTTP_201_CREATED)
async def add_collaborator(
    page_id: uuid.UUID,
    collaborator: CollaboratorAdd,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: CollaborationBroadcaster = Depends(get_broadcaster)
):
    """Invite a user to the page (owner only)"""
    try:
        added = await PageService(db).add_collaborator(page_id, current_user.uuid, collaborator.user_id, collaborator.role)
    except AuthorizationFailure as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if not added:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Page or user not found")

    broadcaster.send_user_notification(collaborator.user_id, {
        "type": "page_shared",
        "message": f"{current_user.username} shared a page with you",
        "data": {"pageId": str(page_id), "role": collaborator.role.value}
    })
    broadcaster.send_page_notification(page_id, {
        "type": "collaborator_added",
        "message": f"{current_user.username} invited a new {collaborator.role.value}",
        "data": {"pageId": str(page_id), "userId": str(collaborator.user_id), "role": collaborator.role.value}
    })
    logger.info(f"User {collaborator.user_id} invited to page {page_id} as {collaborator.role.value}")

    return CollaboratorResponse(page_id=page_id, user_id=collaborator.user_id, role=collaborator.role)
