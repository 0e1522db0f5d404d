from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
import uuid

from pageflow.api.dependencies import get_broadcaster
from pageflow.core.auth import get_current_user
from pageflow.core.db import get_db
from pageflow.core.errors import AuthorizationFailure
from pageflow.domains.collaboration.services import CollaborationBroadcaster
from pageflow.domains.comments.schemas import (
    CommentCreate, CommentUpdate, CommentResponse, CommentThreadResponse,
    CommentDeleteResponse, threads_to_response
)
from pageflow.domains.comments.services import CommentService
from pageflow.domains.identity.entities import User

router = APIRouter(tags=["comments"])


@router.get("/pages/{page_id}/comments", response_model=List[CommentThreadResponse])
async def list_comments(
    page_id: uuid.UUID,
    block_id: Optional[uuid.UUID] = Query(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Comment threads of a page, optionally only those on one block"""
    try:
        threads = await CommentService(db).list_threads(page_id, current_user.uuid, block_id)
    except AuthorizationFailure as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

    if threads is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Page not found")

    return threads_to_response(threads)


@router.post("/pages/{page_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def create_comment(
    page_id: uuid.UUID,
    comment_data: CommentCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: CollaborationBroadcaster = Depends(get_broadcaster)
):
    try:
        created = await CommentService(db).create_comment(page_id, comment_data, current_user)
    except AuthorizationFailure as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if not created:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Page not found")

    comment, notifications = created
    for notification in notifications:
        broadcaster.send_user_notification(notification.recipient_id, notification.to_dict())

    return CommentResponse.model_validate(comment)


@router.patch("/comments/{comment_id}", response_model=CommentResponse)
async def update_comment(
    comment_id: uuid.UUID,
    update_data: CommentUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        comment = await CommentService(db).update_comment(comment_id, update_data, current_user.uuid)
    except AuthorizationFailure as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

    if not comment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")

    return CommentResponse.model_validate(comment)


@router.delete("/comments/{comment_id}", response_model=CommentDeleteResponse)
async def delete_comment(
    comment_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        deleted = await CommentService(db).delete_comment(comment_id, current_user.uuid)
    except AuthorizationFailure as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

    if deleted is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")

    return CommentDeleteResponse(deleted=deleted)


@router.post("/comments/{comment_id}/resolve", response_model=CommentResponse)
async def resolve_comment(
    comment_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Toggle the resolved flag"""
    try:
        comment = await CommentService(db).toggle_resolve(comment_id, current_user.uuid)
    except AuthorizationFailure as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

    if not comment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")

    return CommentResponse.model_validate(comment)
