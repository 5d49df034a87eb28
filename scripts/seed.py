"""Seed the database with demo accounts, articles, comments and likes."""
import argparse
import asyncio
import time
from datetime import datetime, timezone

from blogpress.database import engine, async_session, Base
from blogpress.models import (
    Article,
    ArticleStatus,
    Comment,
    Like,
    Tag,
    User,
    UserRole,
)
from blogpress.security import hash_password
from blogpress.services.article_service import make_excerpt, slugify

TAGS = ["nodejs", "express", "react", "javascript", "typescript", "prisma",
        "database", "api", "python", "testing"]

ARTICLES = [
    {
        "title": "Getting Started with Node.js and Express",
        "content": "Node.js is a JavaScript runtime built on Chrome's V8 engine. "
                   "In this guide we build a small REST API with Express. " * 5,
        "status": ArticleStatus.PUBLISHED,
        "tags": ["nodejs", "express", "javascript", "api"],
    },
    {
        "title": "Modern React Development Patterns",
        "content": "Custom hooks and the context API make state easy to share. " * 5,
        "status": ArticleStatus.PUBLISHED,
        "tags": ["react", "javascript"],
    },
    {
        "title": "Building Type-Safe APIs",
        "content": "Type-safe data access removes a whole class of runtime errors. " * 5,
        "status": ArticleStatus.SUBMITTED,
        "tags": ["typescript", "database", "api"],
    },
    {
        "title": "Notes on Testing Async Python",
        "content": "pytest-asyncio and httpx make endpoint tests fast and isolated. " * 5,
        "status": ArticleStatus.DRAFT,
        "tags": ["python", "testing"],
    },
]


async def seed(reset: bool = False):
    start = time.perf_counter()

    async with engine.begin() as conn:
        if reset:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        tags = {name: Tag(name=name, slug=slugify(name)) for name in TAGS}
        session.add_all(tags.values())

        admin = User(
            email="admin@example.com",
            username="admin",
            password=hash_password("admin123"),
            first_name="Admin",
            last_name="User",
            role=UserRole.ADMIN,
            bio="System administrator",
        )
        john = User(
            email="john@example.com",
            username="johndoe",
            password=hash_password("author123"),
            first_name="John",
            last_name="Doe",
            bio="Tech writer and software developer",
        )
        jane = User(
            email="jane@example.com",
            username="janesmith",
            password=hash_password("author123"),
            first_name="Jane",
            last_name="Smith",
            bio="Frontend engineer",
        )
        session.add_all([admin, john, jane])
        await session.flush()
        print("  Created 3 users")

        articles = []
        for i, entry in enumerate(ARTICLES):
            author = john if i % 2 == 0 else jane
            published = entry["status"] == ArticleStatus.PUBLISHED
            article = Article(
                title=entry["title"],
                slug=slugify(entry["title"]),
                content=entry["content"],
                excerpt=make_excerpt(entry["content"]),
                status=entry["status"],
                published_at=datetime.now(timezone.utc) if published else None,
                author_id=author.id,
            )
            article.tags.extend(tags[name] for name in entry["tags"])
            session.add(article)
            articles.append(article)
        await session.flush()
        print(f"  Created {len(articles)} articles")

        first = articles[0]
        comment = Comment(content="Great introduction!", article_id=first.id, user_id=jane.id)
        session.add(comment)
        await session.flush()
        session.add(Comment(
            content="Thanks, glad it helped.",
            article_id=first.id,
            user_id=john.id,
            parent_id=comment.id,
        ))
        session.add(Comment(content="Very clear.", article_id=articles[1].id, user_id=admin.id))
        print("  Created 3 comments")

        session.add_all([
            Like(article_id=first.id, user_id=jane.id),
            Like(article_id=first.id, user_id=admin.id),
            Like(article_id=articles[1].id, user_id=john.id),
        ])
        print("  Created 3 likes")

        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print("  admin@example.com / admin123 (ADMIN)")
    print("  john@example.com / author123 (AUTHOR)")
    print("  jane@example.com / author123 (AUTHOR)")


def main():
    parser = argparse.ArgumentParser(description="Seed the blog database")
    parser.add_argument("--reset", action="store_true", help="Drop all tables first")
    args = parser.parse_args()
    asyncio.run(seed(reset=args.reset))


if __name__ == "__main__":
    main()
