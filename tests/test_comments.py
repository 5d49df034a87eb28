"""
Comment endpoint tests: creation rules, one-level threading, listing
order, ownership checks and reply cascades.
"""
import pytest
from httpx import AsyncClient


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _published_article(client: AsyncClient, register_user, title: str = "Post") -> tuple:
    """Create and publish an article; return ``(article, author_headers, admin_headers)``."""
    _, author = await register_user("writer")
    _, admin = await register_user("editor", role="ADMIN")
    article = (await client.post(
        "/api/articles", json={"title": title, "content": "Body"}, headers=author,
    )).json()
    resp = await client.post(f"/api/articles/{article['id']}/publish", headers=admin)
    assert resp.status_code == 200
    return article, author, admin


async def _comment(client: AsyncClient, headers: dict, article_id: int, content: str, parent_id=None):
    payload = {"content": content, "article_id": article_id}
    if parent_id is not None:
        payload["parent_id"] = parent_id
    return await client.post("/api/comments", json=payload, headers=headers)


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_comment(async_client: AsyncClient, register_user):
    article, _, _ = await _published_article(async_client, register_user)
    reader, headers = await register_user("reader")

    resp = await _comment(async_client, headers, article["id"], "  Great post!  ")
    assert resp.status_code == 201
    comment = resp.json()
    assert comment["content"] == "Great post!"
    assert comment["user"]["username"] == "reader"
    assert comment["user_id"] == reader["id"]
    assert comment["parent_id"] is None
    assert comment["replies"] == []


@pytest.mark.asyncio
async def test_create_comment_requires_auth(async_client: AsyncClient, register_user):
    article, _, _ = await _published_article(async_client, register_user)
    resp = await async_client.post(
        "/api/comments", json={"content": "Hi", "article_id": article["id"]}
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_comment_on_unpublished_article_forbidden(async_client: AsyncClient, register_user):
    _, author = await register_user("writer")
    draft = (await async_client.post(
        "/api/articles", json={"title": "Draft", "content": "Body"}, headers=author,
    )).json()

    resp = await _comment(async_client, author, draft["id"], "Talking to myself")
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_comment_on_missing_article(async_client: AsyncClient, register_user):
    _, headers = await register_user("reader")
    resp = await _comment(async_client, headers, 99999, "Hello?")
    assert resp.status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ["", "   ", "x" * 1001])
async def test_comment_content_bounds(async_client: AsyncClient, register_user, content):
    article, author, _ = await _published_article(async_client, register_user)
    resp = await _comment(async_client, author, article["id"], content)
    assert resp.status_code == 400


# ---------------------------------------------------------------------------
# Threading
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_reply_to_top_level_comment(async_client: AsyncClient, register_user):
    article, author, _ = await _published_article(async_client, register_user)
    _, reader = await register_user("reader")
    parent = (await _comment(async_client, reader, article["id"], "Question?")).json()

    resp = await _comment(async_client, author, article["id"], "Answer.", parent_id=parent["id"])
    assert resp.status_code == 201
    assert resp.json()["parent_id"] == parent["id"]


@pytest.mark.asyncio
async def test_reply_to_reply_rejected(async_client: AsyncClient, register_user):
    article, author, _ = await _published_article(async_client, register_user)
    parent = (await _comment(async_client, author, article["id"], "Top")).json()
    reply = (await _comment(async_client, author, article["id"], "Reply", parent["id"])).json()

    resp = await _comment(async_client, author, article["id"], "Too deep", reply["id"])
    assert resp.status_code == 400
    assert resp.json()["details"]["field"] == "parent_id"


@pytest.mark.asyncio
async def test_reply_across_articles_rejected(async_client: AsyncClient, register_user):
    article, author, admin = await _published_article(async_client, register_user)
    other = (await async_client.post(
        "/api/articles", json={"title": "Other", "content": "Body"}, headers=author,
    )).json()
    await async_client.post(f"/api/articles/{other['id']}/publish", headers=admin)
    parent = (await _comment(async_client, author, other["id"], "Elsewhere")).json()

    resp = await _comment(async_client, author, article["id"], "Reply", parent["id"])
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_reply_to_missing_parent_rejected(async_client: AsyncClient, register_user):
    article, author, _ = await _published_article(async_client, register_user)
    resp = await _comment(async_client, author, article["id"], "Orphan", parent_id=99999)
    assert resp.status_code == 400


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_comments_threaded_and_ordered(async_client: AsyncClient, register_user):
    article, author, _ = await _published_article(async_client, register_user)
    first = (await _comment(async_client, author, article["id"], "first")).json()
    second = (await _comment(async_client, author, article["id"], "second")).json()
    await _comment(async_client, author, article["id"], "reply-a", first["id"])
    await _comment(async_client, author, article["id"], "reply-b", first["id"])

    resp = await async_client.get(f"/api/comments/article/{article['id']}")
    assert resp.status_code == 200
    data = resp.json()
    # Only top-level comments are counted and paginated.
    assert data["total"] == 2
    assert [c["id"] for c in data["items"]] == [second["id"], first["id"]]
    replies = data["items"][1]["replies"]
    assert [r["content"] for r in replies] == ["reply-a", "reply-b"]


@pytest.mark.asyncio
async def test_list_comments_paginates(async_client: AsyncClient, register_user):
    article, author, _ = await _published_article(async_client, register_user)
    for i in range(3):
        await _comment(async_client, author, article["id"], f"c{i}")

    resp = await async_client.get(f"/api/comments/article/{article['id']}?page=2&limit=2")
    data = resp.json()
    assert [c["content"] for c in data["items"]] == ["c0"]
    assert data["pages"] == 2
    assert data["has_prev"] is True


@pytest.mark.asyncio
async def test_list_comments_missing_article(async_client: AsyncClient):
    resp = await async_client.get("/api/comments/article/99999")
    assert resp.status_code == 404
    resp = await async_client.get("/api/comments/99999")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_list_comments_short_path(async_client: AsyncClient, register_user):
    article, author, _ = await _published_article(async_client, register_user)
    await _comment(async_client, author, article["id"], "via alias")

    canonical = await async_client.get(f"/api/comments/article/{article['id']}")
    short = await async_client.get(f"/api/comments/{article['id']}?limit=5")
    assert short.status_code == 200
    assert short.json()["items"] == canonical.json()["items"]
    assert short.json()["limit"] == 5


@pytest.mark.asyncio
async def test_article_detail_embeds_comments(async_client: AsyncClient, register_user):
    article, author, _ = await _published_article(async_client, register_user)
    parent = (await _comment(async_client, author, article["id"], "top")).json()
    await _comment(async_client, author, article["id"], "nested", parent["id"])

    detail = (await async_client.get(f"/api/articles/{article['id']}")).json()
    assert len(detail["comments"]) == 1
    assert detail["comments"][0]["replies"][0]["content"] == "nested"
    assert detail["comment_count"] == 2


# ---------------------------------------------------------------------------
# Update / delete
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_comment_owner_only(async_client: AsyncClient, register_user):
    article, author, admin = await _published_article(async_client, register_user)
    _, stranger = await register_user("stranger")
    comment = (await _comment(async_client, author, article["id"], "Original")).json()

    resp = await async_client.put(
        f"/api/comments/{comment['id']}", json={"content": "Defaced"}, headers=stranger
    )
    assert resp.status_code == 403

    resp = await async_client.put(
        f"/api/comments/{comment['id']}", json={"content": "Edited"}, headers=author
    )
    assert resp.status_code == 200
    assert resp.json()["content"] == "Edited"
    assert resp.json()["updated_at"] is not None

    resp = await async_client.put(
        f"/api/comments/{comment['id']}", json={"content": "Moderated"}, headers=admin
    )
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_update_missing_comment(async_client: AsyncClient, register_user):
    _, headers = await register_user("reader")
    resp = await async_client.put("/api/comments/99999", json={"content": "x"}, headers=headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_delete_comment_cascades_replies(async_client: AsyncClient, register_user):
    article, author, _ = await _published_article(async_client, register_user)
    _, stranger = await register_user("stranger")
    parent = (await _comment(async_client, author, article["id"], "top")).json()
    reply = (await _comment(async_client, author, article["id"], "reply", parent["id"])).json()

    resp = await async_client.delete(f"/api/comments/{parent['id']}", headers=stranger)
    assert resp.status_code == 403

    resp = await async_client.delete(f"/api/comments/{parent['id']}", headers=author)
    assert resp.status_code == 204

    resp = await async_client.put(
        f"/api/comments/{reply['id']}", json={"content": "still?"}, headers=author
    )
    assert resp.status_code == 404
    listing = (await async_client.get(f"/api/comments/article/{article['id']}")).json()
    assert listing["total"] == 0


@pytest.mark.asyncio
async def test_admin_can_delete_any_comment(async_client: AsyncClient, register_user):
    article, author, admin = await _published_article(async_client, register_user)
    comment = (await _comment(async_client, author, article["id"], "spam")).json()

    resp = await async_client.delete(f"/api/comments/{comment['id']}", headers=admin)
    assert resp.status_code == 204
