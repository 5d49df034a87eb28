"""
User service: directory listing, detail and admin removal for the User
aggregate.

Email addresses are only serialised when the authorization policy allows
the caller to see them (the subject themself or an admin).  The password
hash never leaves this module's serialisers.
"""
import logging
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from blogpress.exceptions import NotFoundError, ValidationError
from blogpress.models import Article, Comment, Like, User, UserRole
from blogpress.permissions import Action, authorize, can
from blogpress.schemas import PaginatedResponse

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def serialize_author(user: Optional[User], include_bio: bool = False) -> dict | None:
    """Public summary of a user, embedded in articles, comments and likes."""
    if user is None:
        return None
    data = {
        "id": user.id,
        "username": user.username,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "avatar": user.avatar,
    }
    if include_bio:
        data["bio"] = user.bio
    return data


def user_to_dict(user: User, caller: Optional[User], counts: dict | None = None) -> dict:
    """Serialise a User for the directory / profile views."""
    data = {
        "id": user.id,
        "username": user.username,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "role": user.role.value,
        "bio": user.bio,
        "avatar": user.avatar,
        "created_at": user.created_at.isoformat() if user.created_at else None,
        "counts": counts or {"articles": 0, "comments": 0, "likes": 0},
    }
    if can(caller, user, Action.VIEW_EMAIL):
        data["email"] = user.email
    return data


async def activity_counts(db: AsyncSession, user_ids: list[int]) -> dict[int, dict]:
    """
    Return ``{user_id: {"articles": n, "comments": n, "likes": n}}`` using
    one grouped COUNT per table rather than one query per user.
    """
    counts = {uid: {"articles": 0, "comments": 0, "likes": 0} for uid in user_ids}
    if not user_ids:
        return counts

    for key, column in (
        ("articles", Article.author_id),
        ("comments", Comment.user_id),
        ("likes", Like.user_id),
    ):
        q = (
            select(column, func.count())
            .where(column.in_(user_ids))
            .group_by(column)
        )
        for uid, total in (await db.execute(q)).all():
            counts[uid][key] = total
    return counts


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_user_or_404(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User", user_id)
    return user


async def get_users(
    db: AsyncSession,
    caller: Optional[User],
    page: int = 1,
    limit: int = 10,
    role: Optional[UserRole] = None,
    search: Optional[str] = None,
) -> PaginatedResponse:
    """
    Return a page of users ordered by creation date (newest first).

    *search* matches username, first name or last name case-insensitively.
    """
    conditions = []
    if role is not None:
        conditions.append(User.role == role)
    if search:
        conditions.append(
            or_(
                User.username.icontains(search, autoescape=True),
                User.first_name.icontains(search, autoescape=True),
                User.last_name.icontains(search, autoescape=True),
            )
        )

    count_q = select(func.count()).select_from(User).where(*conditions)
    total: int = (await db.execute(count_q)).scalar_one()

    q = (
        select(User)
        .where(*conditions)
        .order_by(User.created_at.desc(), User.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    users = (await db.execute(q)).scalars().all()
    counts = await activity_counts(db, [u.id for u in users])

    return PaginatedResponse.build(
        items=[user_to_dict(u, caller, counts[u.id]) for u in users],
        total=total,
        page=page,
        limit=limit,
    )


async def get_user(db: AsyncSession, caller: Optional[User], user_id: int) -> dict:
    """Return the detail dict for *user_id*; raises ``NotFoundError``."""
    user = await get_user_or_404(db, user_id)
    counts = await activity_counts(db, [user.id])
    return user_to_dict(user, caller, counts[user.id])


async def delete_user(db: AsyncSession, caller: User, user_id: int) -> None:
    """
    Remove *user_id* and, through the foreign-key cascades, every article,
    comment and like they own.

    Admins cannot remove themselves through this path.
    """
    user = await get_user_or_404(db, user_id)
    if user.id == caller.id:
        raise ValidationError("Cannot delete your own account")
    authorize(caller, user, Action.DELETE)

    await db.delete(user)
    await db.flush()
    logger.info("User %s (id=%d) deleted by %s", user.username, user.id, caller.username)
