from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from blogpress.database import get_db
from blogpress.dependencies import PaginationParams, get_current_user
from blogpress.models import User
from blogpress.schemas import CommentCreate, CommentUpdate, PaginatedResponse
from blogpress.services import comment_service

router = APIRouter(prefix="/api/comments", tags=["comments"])

@router.post("", status_code=201)
async def create_comment(
    data: CommentCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await comment_service.create_comment(db, current_user, data)

@router.get("/article/{article_id}", response_model=PaginatedResponse)
# Older clients list comments at /api/comments/{article_id}.
@router.get("/{article_id}", response_model=PaginatedResponse, include_in_schema=False)
async def list_article_comments(
    article_id: int,
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    return await comment_service.get_article_comments(
        db, article_id, pagination.page, pagination.limit
    )

@router.put("/{comment_id}")
async def update_comment(
    comment_id: int,
    data: CommentUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await comment_service.update_comment(db, current_user, comment_id, data)

@router.delete("/{comment_id}", status_code=204)
async def delete_comment(
    comment_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await comment_service.delete_comment(db, current_user, comment_id)
