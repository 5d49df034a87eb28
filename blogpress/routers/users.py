from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from blogpress.database import get_db
from blogpress.dependencies import PaginationParams, get_optional_user, require_admin
from blogpress.models import User, UserRole
from blogpress.schemas import PaginatedResponse
from blogpress.services import article_service, user_service

router = APIRouter(prefix="/api/users", tags=["users"])

@router.get("", response_model=PaginatedResponse)
async def list_users(
    pagination: PaginationParams = Depends(),
    role: Optional[UserRole] = Query(None),
    search: Optional[str] = Query(None, description="Username, first or last name."),
    caller: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.get_users(
        db, caller, pagination.page, pagination.limit, role=role, search=search
    )

@router.get("/{user_id}")
async def get_user(
    user_id: int,
    caller: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.get_user(db, caller, user_id)

@router.get("/{user_id}/articles", response_model=PaginatedResponse)
async def list_user_articles(
    user_id: int,
    pagination: PaginationParams = Depends(),
    caller: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    await user_service.get_user_or_404(db, user_id)
    return await article_service.get_articles(
        db, caller, pagination.page, pagination.limit, author_id=user_id
    )

@router.delete("/{user_id}", status_code=204)
async def delete_user(
    user_id: int,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await user_service.delete_user(db, admin, user_id)
