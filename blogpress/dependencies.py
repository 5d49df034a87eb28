from typing import Optional

from fastapi import Depends, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from blogpress.config import settings
from blogpress.database import get_db
from blogpress.exceptions import ForbiddenError, UnauthorizedError
from blogpress.models import User
from blogpress.permissions import is_admin
from blogpress.security import decode_access_token


class PaginationParams:
    """
    Reusable FastAPI dependency that parses pagination query parameters.

    Usage in a router::

        @router.get("/articles")
        async def list_articles(pagination: PaginationParams = Depends()):
            ...

    Attributes
    ----------
    page:
        1-based page number (minimum 1).
    limit:
        Number of items per page, capped at ``settings.MAX_PAGE_SIZE``
        instead of being rejected when the caller asks for more.
    offset:
        Computed SQL OFFSET derived from *page* and *limit*.
    """

    def __init__(
        self,
        page: int = Query(1, ge=1, description="Page number (1-based)."),
        limit: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            description="Items per page (capped at 100).",
        ),
    ) -> None:
        self.page = page
        self.limit = min(limit, settings.MAX_PAGE_SIZE)

    @property
    def offset(self) -> int:
        """SQL OFFSET value computed from the current page and limit."""
        return (self.page - 1) * self.limit


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

bearer_scheme = HTTPBearer(auto_error=False)


async def _resolve_user(db: AsyncSession, token: str) -> Optional[User]:
    user_id = decode_access_token(token)
    if user_id is None:
        return None
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the bearer token to a live user or fail with 401."""
    if credentials is None:
        raise UnauthorizedError("Access token required")
    user = await _resolve_user(db, credentials.credentials)
    if user is None:
        raise UnauthorizedError("Invalid or expired token")
    return user


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """Like ``get_current_user`` but anonymous (or a bad token) yields None."""
    if credentials is None:
        return None
    return await _resolve_user(db, credentials.credentials)


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if not is_admin(current_user):
        raise ForbiddenError("Admin privileges required")
    return current_user
