from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
import uuid

from pageflow.core.auth import get_current_user
from pageflow.core.db import get_db
from pageflow.core.errors import AuthorizationFailure, VersionConflict
from pageflow.domains.blocks.schemas import (
    BlockCreate, BlockUpdate, BlockReorder, BlockResponse,
    BlockTreeResponse, BlockDeleteResponse, tree_to_response
)
from pageflow.domains.blocks.services import BlockService
from pageflow.domains.identity.entities import User

router = APIRouter(tags=["blocks"])


def _forbidden(e: AuthorizationFailure) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))


@router.get("/pages/{page_id}/blocks", response_model=List[BlockTreeResponse])
async def get_blocks(
    page_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Block tree of a page, siblings in order"""
    try:
        tree = await BlockService(db).get_tree(page_id, current_user.uuid)
    except AuthorizationFailure as e:
        raise _forbidden(e)

    if tree is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Page not found")

    return tree_to_response(tree)


@router.post("/pages/{page_id}/blocks", response_model=BlockResponse, status_code=status.HTTP_201_CREATED)
async def create_block(
    page_id: uuid.UUID,
    block_data: BlockCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        block = await BlockService(db).create_block(page_id, block_data, current_user.uuid)
    except AuthorizationFailure as e:
        raise _forbidden(e)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if not block:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Page not found")

    return BlockResponse.model_validate(block)


@router.put("/pages/{page_id}/blocks/reorder", response_model=List[BlockResponse])
async def reorder_blocks(
    page_id: uuid.UUID,
    reorder: BlockReorder,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Apply a batch of moves; returns the page's blocks in order"""
    try:
        blocks = await BlockService(db).reorder_blocks(page_id, reorder, current_user.uuid)
    except AuthorizationFailure as e:
        raise _forbidden(e)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if blocks is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Page not found")

    return [BlockResponse.model_validate(block) for block in blocks]


@router.patch("/blocks/{block_id}", response_model=BlockResponse)
async def update_block(
    block_id: uuid.UUID,
    update_data: BlockUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        block = await BlockService(db).update_block(block_id, update_data, current_user.uuid)
    except AuthorizationFailure as e:
        raise _forbidden(e)
    except VersionConflict as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": str(e), "expected": e.expected, "actual": e.actual}
        )

    if not block:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Block not found")

    return BlockResponse.model_validate(block)


@router.delete("/blocks/{block_id}", response_model=BlockDeleteResponse)
async def delete_block(
    block_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Delete a block together with its subtree"""
    try:
        deleted = await BlockService(db).delete_block(block_id, current_user.uuid)
    except AuthorizationFailure as e:
        raise _forbidden(e)

    if deleted is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Block not found")

    return BlockDeleteResponse(deleted=deleted)
