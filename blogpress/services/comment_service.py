"""
Comment service: threaded comments on published articles.

Threads are one level deep: a reply must point at a top-level comment on
the same article.  Listings return top-level comments newest first, each
with its replies oldest first.
"""
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from blogpress.exceptions import ForbiddenError, NotFoundError, ValidationError
from blogpress.models import Article, ArticleStatus, Comment, User
from blogpress.permissions import Action, authorize
from blogpress.schemas import CommentCreate, CommentUpdate, PaginatedResponse
from blogpress.services.user_service import serialize_author

# Eager-load options shared by every comment read.
COMMENT_LOAD_OPTIONS = (
    selectinload(Comment.user),
    selectinload(Comment.replies).selectinload(Comment.user),
)


def serialize_comment(comment: Comment) -> dict:
    return {
        "id": comment.id,
        "content": comment.content,
        "article_id": comment.article_id,
        "user_id": comment.user_id,
        "parent_id": comment.parent_id,
        "created_at": comment.created_at.isoformat() if comment.created_at else None,
        "updated_at": comment.updated_at.isoformat() if comment.updated_at else None,
        "user": serialize_author(comment.user),
        "replies": [serialize_comment(r) for r in comment.replies],
    }


async def _load_comment(db: AsyncSession, comment_id: int) -> Comment:
    q = (
        select(Comment)
        .where(Comment.id == comment_id)
        .options(*COMMENT_LOAD_OPTIONS)
        .execution_options(populate_existing=True)
    )
    comment = (await db.execute(q)).scalar_one_or_none()
    if comment is None:
        raise NotFoundError("Comment", comment_id)
    return comment


async def top_level_comments(
    db: AsyncSession, article_id: int, offset: int = 0, limit: int | None = None
) -> list[Comment]:
    """Top-level comments of *article_id*, newest first, replies eager-loaded."""
    q = (
        select(Comment)
        .where(Comment.article_id == article_id, Comment.parent_id.is_(None))
        .options(*COMMENT_LOAD_OPTIONS)
        .order_by(Comment.created_at.desc(), Comment.id.desc())
        .offset(offset)
        .execution_options(populate_existing=True)
    )
    if limit is not None:
        q = q.limit(limit)
    return list((await db.execute(q)).scalars().all())


async def create_comment(db: AsyncSession, user: User, data: CommentCreate) -> dict:
    """
    Add a comment (or a reply when ``parent_id`` is set) to a published
    article.
    """
    article = (
        await db.execute(select(Article).where(Article.id == data.article_id))
    ).scalar_one_or_none()
    if article is None:
        raise NotFoundError("Article", data.article_id)
    if article.status != ArticleStatus.PUBLISHED:
        raise ForbiddenError("Cannot comment on unpublished article")

    if data.parent_id is not None:
        parent = (
            await db.execute(select(Comment).where(Comment.id == data.parent_id))
        ).scalar_one_or_none()
        if parent is None:
            raise ValidationError("Parent comment not found", field="parent_id")
        if parent.article_id != article.id:
            raise ValidationError(
                "Parent comment must be on the same article", field="parent_id"
            )
        if parent.parent_id is not None:
            raise ValidationError("Replies cannot be nested further", field="parent_id")

    comment = Comment(
        content=data.content,
        article_id=article.id,
        user_id=user.id,
        parent_id=data.parent_id,
    )
    db.add(comment)
    await db.flush()

    return serialize_comment(await _load_comment(db, comment.id))


async def get_article_comments(
    db: AsyncSession, article_id: int, page: int = 1, limit: int = 10
) -> PaginatedResponse:
    exists = (
        await db.execute(select(Article.id).where(Article.id == article_id))
    ).scalar_one_or_none()
    if exists is None:
        raise NotFoundError("Article", article_id)

    count_q = (
        select(func.count())
        .select_from(Comment)
        .where(Comment.article_id == article_id, Comment.parent_id.is_(None))
    )
    total: int = (await db.execute(count_q)).scalar_one()
    comments = await top_level_comments(db, article_id, (page - 1) * limit, limit)

    return PaginatedResponse.build(
        items=[serialize_comment(c) for c in comments],
        total=total,
        page=page,
        limit=limit,
    )


async def update_comment(
    db: AsyncSession, caller: User, comment_id: int, data: CommentUpdate
) -> dict:
    comment = await _load_comment(db, comment_id)
    authorize(caller, comment, Action.UPDATE)

    comment.content = data.content
    await db.flush()
    return serialize_comment(comment)


async def delete_comment(db: AsyncSession, caller: User, comment_id: int) -> None:
    """Delete a comment; its replies go with it via the foreign-key cascade."""
    comment = (
        await db.execute(select(Comment).where(Comment.id == comment_id))
    ).scalar_one_or_none()
    if comment is None:
        raise NotFoundError("Comment", comment_id)
    authorize(caller, comment, Action.DELETE)

    await db.delete(comment)
    await db.flush()
