from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from blogpress.database import get_db
from blogpress.dependencies import PaginationParams, get_current_user, get_optional_user, require_admin
from blogpress.models import ArticleStatus, User
from blogpress.schemas import ArticleCreate, ArticleUpdate, LikeList, LikeStatus, PaginatedResponse
from blogpress.services import article_service

router = APIRouter(prefix="/api/articles", tags=["articles"])

@router.get("", response_model=PaginatedResponse)
async def list_articles(
    pagination: PaginationParams = Depends(),
    status: Optional[ArticleStatus] = Query(None),
    author: Optional[str] = Query(None, description="Author username (substring)."),
    search: Optional[str] = Query(None, description="Text to find in title or content."),
    caller: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.get_articles(
        db, caller, pagination.page, pagination.limit,
        status=status, author=author, search=search,
    )

@router.get("/{article_id}")
async def get_article(
    article_id: int,
    caller: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.get_article(db, caller, article_id)

@router.post("", status_code=201)
async def create_article(
    data: ArticleCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.create_article(db, current_user, data)

@router.put("/{article_id}")
async def update_article(
    article_id: int,
    data: ArticleUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.update_article(db, current_user, article_id, data)

@router.delete("/{article_id}", status_code=204)
async def delete_article(
    article_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await article_service.delete_article(db, current_user, article_id)

@router.post("/{article_id}/publish")
async def publish_article(
    article_id: int,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.publish_article(db, admin, article_id)

@router.post("/{article_id}/like", response_model=LikeStatus)
async def like_article(
    article_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.like_article(db, current_user, article_id)

@router.delete("/{article_id}/like", response_model=LikeStatus)
async def unlike_article(
    article_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.unlike_article(db, current_user, article_id)

@router.get("/{article_id}/likes", response_model=LikeList)
async def list_article_likes(article_id: int, db: AsyncSession = Depends(get_db)):
    return await article_service.get_article_likes(db, article_id)
