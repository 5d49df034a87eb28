"""
Article service: business logic for the Article aggregate.

Design notes
------------
- Relationships are declared ``lazy="noload"``; every read spells out its
  eager loading with ``selectinload`` and ``populate_existing`` so objects
  already sitting in the session's identity map are refreshed.
- Like and comment counts are fetched with one grouped COUNT per page
  rather than per article.
- Slugs are made unique by probing ``base``, ``base-1``, ``base-2``, ...
  The unique index on ``articles.slug`` still backs this up for
  concurrent writers.
- Service functions flush but do not commit; the transaction boundary
  is owned by the ``get_db`` dependency in the router layer.
"""
import logging
import re
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from blogpress.config import settings
from blogpress.exceptions import ConflictError, NotFoundError, ValidationError
from blogpress.models import Article, ArticleStatus, Comment, Like, Tag, User
from blogpress.permissions import Action, authorize, visible_articles_clause
from blogpress.schemas import ArticleCreate, ArticleUpdate, PaginatedResponse
from blogpress.services.comment_service import serialize_comment, top_level_comments
from blogpress.services.user_service import serialize_author

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_SLUG_STRIP_RE = re.compile(r"[^\w\s-]", re.ASCII)
_SLUG_SEPARATOR_RE = re.compile(r"[\s_-]+", re.ASCII)


def slugify(text: str) -> str:
    """Return a URL-safe, lowercase slug derived from *text*."""
    text = _SLUG_STRIP_RE.sub("", text.lower().strip())
    text = _SLUG_SEPARATOR_RE.sub("-", text)
    return text.strip("-")


async def generate_unique_slug(
    db: AsyncSession, title: str, current_slug: Optional[str] = None
) -> str:
    """
    Return the first free slug among ``base``, ``base-1``, ``base-2``, ...

    *current_slug* is the slug of the article being renamed; it counts as
    free so an article can keep its own slug.
    """
    base = slugify(title) or "article"
    slug = base
    counter = 1
    while True:
        existing = (
            await db.execute(select(Article.id).where(Article.slug == slug))
        ).scalar_one_or_none()
        if existing is None or slug == current_slug:
            return slug
        slug = f"{base}-{counter}"
        counter += 1


def make_excerpt(content: str) -> str:
    return content.strip()[: settings.EXCERPT_LENGTH]


# Eager-load options for every serialised article.
ARTICLE_LOAD_OPTIONS = (
    selectinload(Article.author),
    selectinload(Article.tags),
)


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _article_to_dict(article: Article, like_count: int = 0, comment_count: int = 0) -> dict:
    """Serialise an Article ORM instance to a plain dict (list view)."""
    return {
        "id": article.id,
        "title": article.title,
        "slug": article.slug,
        "excerpt": article.excerpt,
        "featured_image": article.featured_image,
        "status": article.status.value,
        "published_at": article.published_at.isoformat() if article.published_at else None,
        "created_at": article.created_at.isoformat() if article.created_at else None,
        "updated_at": article.updated_at.isoformat() if article.updated_at else None,
        "author_id": article.author_id,
        "author": serialize_author(article.author),
        "tags": [{"id": t.id, "name": t.name, "slug": t.slug} for t in article.tags],
        "like_count": like_count,
        "comment_count": comment_count,
    }


async def _counts(db: AsyncSession, model, article_ids: list[int]) -> dict[int, int]:
    """Return ``{article_id: row count}`` of *model* rows for the given articles."""
    if not article_ids:
        return {}
    q = (
        select(model.article_id, func.count())
        .where(model.article_id.in_(article_ids))
        .group_by(model.article_id)
    )
    return {aid: total for aid, total in (await db.execute(q)).all()}


async def _find_like(db: AsyncSession, article_id: int, user_id: int) -> Optional[int]:
    """Return the id of *user_id*'s like on *article_id*, if any."""
    q = select(Like.id).where(Like.article_id == article_id, Like.user_id == user_id)
    return (await db.execute(q)).scalar_one_or_none()


async def _like_count(db: AsyncSession, article_id: int) -> int:
    q = select(func.count()).select_from(Like).where(Like.article_id == article_id)
    return (await db.execute(q)).scalar_one()


async def _serialize_articles(db: AsyncSession, articles: list[Article]) -> list[dict]:
    ids = [a.id for a in articles]
    likes = await _counts(db, Like, ids)
    comments = await _counts(db, Comment, ids)
    return [_article_to_dict(a, likes.get(a.id, 0), comments.get(a.id, 0)) for a in articles]


async def _serialize_full(db: AsyncSession, article: Article) -> dict:
    """List-view dict plus ``content``: the body returned by writes."""
    data = (await _serialize_articles(db, [article]))[0]
    data["content"] = article.content
    return data


# ---------------------------------------------------------------------------
# Loading helpers
# ---------------------------------------------------------------------------

async def _load_article(db: AsyncSession, article_id: int, *options) -> Article:
    q = (
        select(Article)
        .where(Article.id == article_id)
        .options(*options)
        .execution_options(populate_existing=True)
    )
    article = (await db.execute(q)).scalar_one_or_none()
    if article is None:
        raise NotFoundError("Article", article_id)
    return article


async def _resolve_tags(db: AsyncSession, tag_names: list[str]) -> list[Tag]:
    """
    Return Tag ORM instances for each distinct name in *tag_names*,
    creating any that do not yet exist.  All inserts are flushed within
    the caller's transaction.
    """
    tags: list[Tag] = []
    seen: set[str] = set()
    for raw in tag_names:
        name = raw.strip()
        if not name or name in seen:
            continue
        seen.add(name)

        tag = (await db.execute(select(Tag).where(Tag.name == name))).scalar_one_or_none()
        if tag is None:
            base = slugify(name) or "tag"
            slug, counter = base, 1
            while (
                await db.execute(select(Tag.id).where(Tag.slug == slug))
            ).scalar_one_or_none() is not None:
                slug = f"{base}-{counter}"
                counter += 1
            tag = Tag(name=name, slug=slug)
            db.add(tag)
            await db.flush()
        tags.append(tag)
    return tags


async def _flush_or_conflict(db: AsyncSession, message: str) -> None:
    try:
        await db.flush()
    except IntegrityError as exc:
        logger.warning("Integrity error on flush: %s", exc.orig)
        raise ConflictError(message) from exc


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_articles(
    db: AsyncSession,
    caller: Optional[User],
    page: int = 1,
    limit: int = 10,
    status: Optional[ArticleStatus] = None,
    author: Optional[str] = None,
    search: Optional[str] = None,
    author_id: Optional[int] = None,
) -> PaginatedResponse:
    """
    Return a page of the articles *caller* may see, newest first.

    Filters
    -------
    status:
        Honoured for authenticated callers; anonymous callers only ever
        see PUBLISHED articles.
    author:
        Case-insensitive substring of the author's username.
    search:
        Case-insensitive substring of the title or the content.
    author_id:
        Restrict to one author (per-user listing).
    """
    conditions = [visible_articles_clause(caller)]
    if status is not None and caller is not None:
        conditions.append(Article.status == status)
    if author:
        conditions.append(Article.author.has(User.username.icontains(author, autoescape=True)))
    if search:
        conditions.append(
            or_(
                Article.title.icontains(search, autoescape=True),
                Article.content.icontains(search, autoescape=True),
            )
        )
    if author_id is not None:
        conditions.append(Article.author_id == author_id)

    count_q = select(func.count()).select_from(Article).where(*conditions)
    total: int = (await db.execute(count_q)).scalar_one()

    articles_q = (
        select(Article)
        .where(*conditions)
        .options(*ARTICLE_LOAD_OPTIONS)
        .order_by(Article.created_at.desc(), Article.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    articles = list((await db.execute(articles_q)).scalars().all())

    return PaginatedResponse.build(
        items=await _serialize_articles(db, articles),
        total=total,
        page=page,
        limit=limit,
    )


async def get_article(db: AsyncSession, caller: Optional[User], article_id: int) -> dict:
    """
    Return the full detail dict for *article_id*: content, author with
    bio, tags, threaded comments, counts, and whether *caller* liked it.

    Raises ``NotFoundError`` for a missing article and ``ForbiddenError``
    for an unpublished one the caller does not own.
    """
    article = await _load_article(db, article_id, *ARTICLE_LOAD_OPTIONS)
    authorize(caller, article, Action.VIEW)

    data = await _serialize_full(db, article)
    data["author"] = serialize_author(article.author, include_bio=True)
    data["comments"] = [serialize_comment(c) for c in await top_level_comments(db, article.id)]
    data["is_liked"] = (
        caller is not None and await _find_like(db, article.id, caller.id) is not None
    )
    return data


async def create_article(db: AsyncSession, author: User, data: ArticleCreate) -> dict:
    """Create a new article owned by *author* and return its dict."""
    article = Article(
        title=data.title,
        slug=await generate_unique_slug(db, data.title),
        content=data.content,
        excerpt=data.excerpt if data.excerpt is not None else make_excerpt(data.content),
        featured_image=data.featured_image,
        status=data.status,
        author_id=author.id,
    )
    if data.tags:
        article.tags.extend(await _resolve_tags(db, data.tags))

    db.add(article)
    await _flush_or_conflict(db, "An article with this slug already exists")
    logger.info("Article %d (%s) created by %s", article.id, article.slug, author.username)

    article = await _load_article(db, article.id, *ARTICLE_LOAD_OPTIONS)
    return await _serialize_full(db, article)


async def update_article(
    db: AsyncSession, caller: User, article_id: int, data: ArticleUpdate
) -> dict:
    """
    Partially update an article.  Only fields explicitly set in the
    request payload are modified (``model_dump(exclude_unset=True)``).

    - The slug is regenerated only when the title actually changes.
    - New content without an explicit excerpt regenerates the excerpt.
    - A tag list, when given, replaces the previous tags entirely.
    - Status may move between DRAFT and SUBMITTED; a PUBLISHED article
      keeps its status.
    """
    article = await _load_article(db, article_id, *ARTICLE_LOAD_OPTIONS)
    authorize(caller, article, Action.UPDATE)

    update_data = data.model_dump(exclude_unset=True)
    tags_data: list[str] | None = update_data.pop("tags", None)
    new_status: ArticleStatus | None = update_data.pop("status", None)

    title = update_data.pop("title", None)
    if title is not None and title != article.title:
        article.slug = await generate_unique_slug(db, title, current_slug=article.slug)
        article.title = title

    content = update_data.pop("content", None)
    if content is not None:
        article.content = content
        if "excerpt" not in update_data:
            article.excerpt = make_excerpt(content)

    for field, value in update_data.items():
        setattr(article, field, value)

    if new_status is not None and new_status != article.status:
        if article.status == ArticleStatus.PUBLISHED:
            raise ValidationError("Published articles cannot change status", field="status")
        article.status = new_status

    if tags_data is not None:
        article.tags.clear()
        article.tags.extend(await _resolve_tags(db, tags_data))

    await _flush_or_conflict(db, "An article with this slug already exists")
    article = await _load_article(db, article.id, *ARTICLE_LOAD_OPTIONS)
    return await _serialize_full(db, article)


async def delete_article(db: AsyncSession, caller: User, article_id: int) -> None:
    """Delete an article; comments, likes and tag links cascade in the database."""
    article = await _load_article(db, article_id)
    authorize(caller, article, Action.DELETE)

    await db.delete(article)
    await db.flush()
    logger.info("Article %d deleted by %s", article_id, caller.username)


async def publish_article(db: AsyncSession, caller: User, article_id: int) -> dict:
    """Mark an article PUBLISHED and stamp ``published_at`` (admin only)."""
    article = await _load_article(db, article_id, *ARTICLE_LOAD_OPTIONS)
    authorize(caller, article, Action.PUBLISH)

    article.status = ArticleStatus.PUBLISHED
    article.published_at = datetime.now(timezone.utc)
    await db.flush()
    logger.info("Article %d published by %s", article.id, caller.username)
    return await _serialize_full(db, article)


# ---------------------------------------------------------------------------
# Likes
# ---------------------------------------------------------------------------

async def like_article(db: AsyncSession, user: User, article_id: int) -> dict:
    """
    Record that *user* likes *article_id*.

    A second like from the same user is a conflict, whether it is caught
    by the lookup or, for two racing requests, by the unique constraint.
    """
    await _load_article(db, article_id)

    if await _find_like(db, article_id, user.id) is not None:
        raise ConflictError("Article already liked")

    db.add(Like(article_id=article_id, user_id=user.id))
    await _flush_or_conflict(db, "Article already liked")

    return {"like_count": await _like_count(db, article_id), "is_liked": True}


async def unlike_article(db: AsyncSession, user: User, article_id: int) -> dict:
    await _load_article(db, article_id)

    result = await db.execute(
        delete(Like).where(Like.article_id == article_id, Like.user_id == user.id)
    )
    if result.rowcount == 0:
        raise NotFoundError("Like")

    return {"like_count": await _like_count(db, article_id), "is_liked": False}


async def get_article_likes(db: AsyncSession, article_id: int) -> dict:
    """Users who liked *article_id*, most recent first."""
    await _load_article(db, article_id)

    q = (
        select(Like)
        .where(Like.article_id == article_id)
        .options(selectinload(Like.user))
        .order_by(Like.created_at.desc(), Like.id.desc())
    )
    likes = (await db.execute(q)).scalars().all()
    return {
        "likes": [
            {
                "user": serialize_author(like.user),
                "created_at": like.created_at.isoformat() if like.created_at else None,
            }
            for like in likes
        ],
        "count": len(likes),
    }
