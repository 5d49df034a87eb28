"""
Auth service: registration, login and the caller's own profile.

Login failures never reveal whether the email exists; both an unknown
address and a wrong password produce the same ``UnauthorizedError``.
"""
import logging
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from blogpress.exceptions import ConflictError, UnauthorizedError
from blogpress.models import User
from blogpress.schemas import LoginRequest, ProfileUpdate, RegisterRequest
from blogpress.security import create_access_token, hash_password, verify_password
from blogpress.services.user_service import activity_counts, user_to_dict

logger = logging.getLogger(__name__)


def _session_payload(user: User) -> dict:
    return {
        "user": user_to_dict(user, user),
        "token": create_access_token(user.id),
        "token_type": "bearer",
    }


async def _find_existing_user(db: AsyncSession, email: str, username: str) -> Optional[User]:
    q = select(User).where(or_(User.email == email, User.username == username))
    return (await db.execute(q)).scalars().first()


async def register(db: AsyncSession, data: RegisterRequest) -> dict:
    """
    Create an account and return it together with a fresh access token.

    Raises ``ConflictError`` (naming the clashing field) when the email or
    username is taken.
    """
    existing = await _find_existing_user(db, data.email, data.username)
    if existing is not None:
        field = "email" if existing.email == data.email else "username"
        raise ConflictError("User already exists", field=field)

    user = User(
        email=data.email,
        username=data.username,
        password=hash_password(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        role=data.role,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as exc:
        logger.warning("Integrity error on registration: %s", exc.orig)
        raise ConflictError("User already exists") from exc

    logger.info("Registered user %s (id=%d, role=%s)", user.username, user.id, user.role.value)
    return _session_payload(user)


async def login(db: AsyncSession, data: LoginRequest) -> dict:
    user = (
        await db.execute(select(User).where(User.email == data.email))
    ).scalar_one_or_none()
    if user is None or not verify_password(data.password, user.password):
        raise UnauthorizedError("Invalid email or password")
    return _session_payload(user)


async def get_profile(db: AsyncSession, user: User) -> dict:
    counts = await activity_counts(db, [user.id])
    return user_to_dict(user, user, counts[user.id])


async def update_profile(db: AsyncSession, user: User, data: ProfileUpdate) -> dict:
    """Apply the fields present in *data* to the caller's own record."""
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(user, field, value)
    await db.flush()
    return await get_profile(db, user)
