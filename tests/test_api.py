"""API endpoint tests with the stores and provider swapped out."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from bholo.api.app import app, get_llm_provider, get_post_store, get_topic_store
from bholo.core.time import utcnow
from bholo.feed.models import Comment, Post
from bholo.trending.llm_provider import DummyLLMProvider, NoLLMProvider


def make_post(post_id, content="Derby day"):
    return Post(
        id=post_id,
        author_id="user-author",
        author_name="Author",
        author_handle="author",
        content=content,
        created_at=utcnow(),
    )


@pytest.fixture
def post_store():
    store = MagicMock()
    store.get_page = AsyncMock(return_value=[make_post("p1"), make_post("p2")])
    store.get_video_page = AsyncMock(return_value=[])
    store.get_by_id = AsyncMock(return_value=None)
    store.create = AsyncMock(return_value="new-id")
    return store


@pytest.fixture
def fake_topic_store():
    topic_store = MagicMock()
    topic_store.since = AsyncMock(return_value=[])
    topic_store.record = AsyncMock(return_value=0)
    return topic_store


@pytest.fixture
def provider():
    return DummyLLMProvider()


@pytest.fixture
def client(post_store, fake_topic_store, provider):
    app.dependency_overrides[get_post_store] = lambda: post_store
    app.dependency_overrides[get_topic_store] = lambda: fake_topic_store
    app.dependency_overrides[get_llm_provider] = lambda: provider
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_healthz(client):
    response = client.get("/healthz")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == "api"
    assert data["llm"]["provider"] == "DummyLLM"


def test_list_posts(client, post_store):
    response = client.get("/posts", params={"limit": 2})

    assert response.status_code == 200
    data = response.json()
    assert [post["id"] for post in data["posts"]] == ["p1", "p2"]
    assert data["next_cursor"] == "p2"
    assert data["posts"][0]["timestamp"] == "now"
    post_store.get_page.assert_awaited_once_with(cursor=None, limit=2)


def test_empty_video_page(client, post_store):
    response = client.get("/posts/videos", params={"cursor": "p9"})

    assert response.status_code == 200
    assert response.json() == {"posts": [], "next_cursor": None}
    post_store.get_video_page.assert_awaited_once_with(cursor="p9", limit=10)


def test_get_post(client, post_store):
    assert client.get("/posts/missing").status_code == 404

    post_store.get_by_id.return_value = make_post("p1")
    response = client.get("/posts/p1")

    assert response.status_code == 200
    assert response.json()["id"] == "p1"


def test_create_post_records_topics(client, post_store, fake_topic_store):
    post_store.get_by_id.return_value = make_post("new-id", "Inter Miami win again")

    response = client.post("/posts", json={
        "author_id": "user-author",
        "content": "  Inter Miami win again ",
        "media": [{"url": "https://cdn.example.com/a.jpg", "type": "image"}],
    })

    assert response.status_code == 201
    assert response.json()["id"] == "new-id"
    document = post_store.create.await_args.args[0]
    assert document["content"] == "Inter Miami win again"
    assert document["media"] == [{"url": "https://cdn.example.com/a.jpg", "type": "image", "width": None, "height": None}]
    assert "inter miami" in fake_topic_store.record.await_args.args[0]


def test_create_empty_post_is_rejected(client, post_store):
    response = client.post("/posts", json={"author_id": "user-author", "content": "   "})

    assert response.status_code == 422
    post_store.create.assert_not_called()


def test_create_post_store_failure(client, post_store):
    post_store.create.return_value = None

    response = client.post("/posts", json={"author_id": "user-author", "content": "Hello"})

    assert response.status_code == 500


def test_trending_keywords(client, fake_topic_store):
    fake_topic_store.since.return_value = ["var"] * 3 + ["goal"] * 2

    response = client.get("/trending/keywords")

    assert response.status_code == 200
    assert response.json()["keywords"] == [
        {"topic": "Var", "category": "Football · Trending", "post_count": "3 posts"}
    ]


def test_trending_topics(client, fake_topic_store):
    assert client.get("/trending/topics").json() == {"topics": []}

    fake_topic_store.since.return_value = ["soweto derby"] * 5
    response = client.get("/trending/topics")

    assert response.status_code == 200
    topics = response.json()["topics"]
    assert len(topics) == 1
    assert topics[0]["post_count"] == "5 posts"


def test_trending_topics_provider_failure(client, fake_topic_store):
    fake_topic_store.since.return_value = ["soweto derby"] * 5
    app.dependency_overrides[get_llm_provider] = lambda: NoLLMProvider()

    response = client.get("/trending/topics")

    assert response.status_code == 503


def test_trending_hashtags(client):
    response = client.get("/trending/hashtags", params={"limit": 2})

    assert response.status_code == 200
    assert response.json() == {"hashtags": ["#MatchDay", "#Football"]}


def test_bot_post(client, post_store):
    response = client.post("/bot/posts")

    assert response.status_code == 201
    assert response.json()["post_id"] == "new-id"
    assert post_store.create.await_args.args[0]["author_id"] == "bholo-bot"


def test_bot_post_failures(client, post_store):
    post_store.create.return_value = None
    assert client.post("/bot/posts").status_code == 500

    app.dependency_overrides[get_llm_provider] = lambda: NoLLMProvider()
    assert client.post("/bot/posts").status_code == 503


def make_comment(comment_id, content="Unreal"):
    return Comment(
        id=comment_id,
        post_id="p1",
        author_id="user-author",
        author_name="Author",
        author_handle="author",
        content=content,
        created_at=utcnow(),
    )


def test_comments(client, post_store):
    post_store.get_comments = AsyncMock(return_value=[make_comment("c1")])
    post_store.add_comment = AsyncMock(return_value=(make_comment("c2", "Worldie"), 2))

    assert client.post("/posts/missing/comments", json={"author_id": "u", "content": "Hi"}).status_code == 404

    post_store.get_by_id.return_value = make_post("p1")
    assert client.post("/posts/p1/comments", json={"author_id": "u", "content": "  "}).status_code == 422

    response = client.post("/posts/p1/comments", json={"author_id": "u", "content": " Worldie "})
    assert response.status_code == 201
    assert response.json()["id"] == "c2"
    assert post_store.add_comment.await_args.args[1]["content"] == "Worldie"

    response = client.get("/posts/p1/comments")
    assert [comment["id"] for comment in response.json()["comments"]] == ["c1"]


def test_comment_like(client, post_store):
    post_store.like_comment = AsyncMock(return_value=3)

    response = client.post("/posts/p1/comments/c1/like", json={"is_liked": False})

    assert response.json() == {"likes": 3}
    post_store.like_comment.assert_awaited_once_with("p1", "c1", False)

    post_store.like_comment.return_value = None
    assert client.post("/posts/p1/comments/c9/like", json={"is_liked": True}).status_code == 404


def test_following_feed_and_follow(client, post_store):
    post_store.get_following_page = AsyncMock(return_value=[make_post("p1")])
    post_store.set_follow = AsyncMock(return_value=True)

    response = client.get("/users/user-1/following/posts")
    assert [post["id"] for post in response.json()["posts"]] == ["p1"]
    post_store.get_following_page.assert_awaited_once_with("user-1", cursor=None, limit=50)

    assert client.put("/users/user-1/following/user-2").status_code == 204
    post_store.set_follow.assert_awaited_with("user-1", "user-2", True)

    post_store.set_follow.return_value = False
    assert client.delete("/users/user-1/following/user-2").status_code == 500
