"""HTTP tests for the composer service."""
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from conftest import NOW, make_article
from services.composer.app.activity import ActivityService
from services.composer.app.feed import FeedComposer
from services.composer.app.main import app, get_activity_service, get_feed_composer
from shared.config.settings import FeedSettings
from shared.database.seed import seed_categories
from shared.schemas.messages import Sentiment
from shared.utils.errors import StoreUnavailable


@pytest.fixture
def client(stores, clock):
    articles, users = stores
    articles.put(make_article("good", category="health"))
    articles.put(make_article("bad", category="health", sentiment=Sentiment.NEGATIVE,
                              published_at=NOW - timedelta(hours=2)))
    seed_categories(articles)

    app.dependency_overrides[get_feed_composer] = lambda: FeedComposer(articles, users, FeedSettings(), clock=clock)
    app.dependency_overrides[get_activity_service] = lambda: ActivityService(articles, users)
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_liveness(client):
    response = client.get("/api/news/health/live")
    assert response.status_code == 200
    assert response.json()["status"] == "alive"


def test_feed_with_mood_and_user(client):
    client.put("/api/news/preferences", json={"categories": ["health"]}, headers={"X-User-Id": "u1"})

    response = client.get("/api/news/articles", params={"mood": "sad"}, headers={"X-User-Id": "u1"})

    assert response.status_code == 200
    body = response.json()
    assert [a["id"] for a in body["articles"]] == ["good"]
    assert body["pagination"]["total_count"] == 2
    assert body["articles"][0]["is_bookmarked"] is False
    assert "X-Correlation-ID" in response.headers


def test_feed_category_filter_is_comma_separated(client):
    response = client.get("/api/news/articles", params={"categories": "health,sports"})
    assert [a["id"] for a in response.json()["articles"]] == ["good", "bad"]


def test_unknown_mood_is_a_bad_request(client):
    response = client.get("/api/news/articles", params={"mood": "grumpy"})
    assert response.status_code == 400
    assert "grumpy" in response.json()["detail"]


def test_mood_endpoint_requires_user(client):
    assert client.get("/api/news/articles/mood/happy").status_code == 400
    response = client.get("/api/news/articles/mood/happy", headers={"X-User-Id": "u1"})
    assert response.status_code == 200


def test_category_endpoint_pages_with_cursor(client):
    first = client.get("/api/news/articles/category/health", params={"limit": 1}).json()
    assert [a["id"] for a in first["articles"]] == ["good"]

    second = client.get(
        "/api/news/articles/category/health", params={"limit": 1, "cursor": first["cursor"]}
    ).json()
    assert [a["id"] for a in second["articles"]] == ["bad"]
    assert second["cursor"] is None


def test_recent_endpoint(client):
    response = client.get("/api/news/articles/recent", params={"limit": 1})
    assert [a["id"] for a in response.json()] == ["good"]


def test_bookmark_lifecycle(client):
    headers = {"X-User-Id": "u1"}

    assert client.post("/api/news/articles/good/bookmark", headers=headers).json()["status"] == "ok"
    assert [a["id"] for a in client.get("/api/news/bookmarks", headers=headers).json()] == ["good"]

    assert client.delete("/api/news/articles/good/bookmark", headers=headers).status_code == 200
    missing = client.delete("/api/news/articles/good/bookmark", headers=headers)
    assert missing.status_code == 404
    assert missing.json() == {"status": "not_found", "article_id": "good"}


def test_bookmark_without_user_is_rejected(client):
    assert client.post("/api/news/articles/good/bookmark").status_code == 400


def test_activity_and_view(client):
    headers = {"X-User-Id": "u1"}

    response = client.post(
        "/api/news/articles/good/activity", json={"action_type": "like", "mood": "happy"}, headers=headers
    )
    assert response.status_code == 200
    assert client.post("/api/news/articles/nope/view", headers=headers).status_code == 404
    assert client.post("/api/news/articles/good/view", headers=headers).json()["status"] == "ok"

    bad = client.post("/api/news/articles/good/activity", json={"action_type": "poke"}, headers=headers)
    assert bad.status_code == 422


def test_categories(client):
    categories = client.get("/api/news/categories").json()["categories"]
    assert categories[0]["name"] == "technology"
    assert [c["sort_order"] for c in categories] == sorted(c["sort_order"] for c in categories)


def test_preferences_are_replaced_wholesale(client):
    headers = {"X-User-Id": "u9"}
    client.put("/api/news/preferences", json={"categories": ["health"], "setup_complete": True}, headers=headers)
    client.put("/api/news/preferences", json={"categories": ["travel"]}, headers=headers)

    body = client.get("/api/news/preferences", headers=headers).json()
    assert body["categories"] == ["travel"]
    assert body["setup_complete"] is False


def test_store_outage_is_a_retryable_503():
    class DownComposer:
        def get_feed(self, request):
            raise StoreUnavailable("connection refused")

    app.dependency_overrides[get_feed_composer] = lambda: DownComposer()
    try:
        response = TestClient(app).get("/api/news/articles")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "5"


def test_bookmark_with_mood_and_paged_list(client, stores):
    _, users = stores
    headers = {"X-User-Id": "u1"}

    client.post("/api/news/articles/bad/bookmark", headers=headers)
    response = client.post("/api/news/articles/good/bookmark", json={"mood": "relaxed"}, headers=headers)
    assert response.status_code == 200
    moods = {e.article_id: e.mood_at_time for e in users.list_activity("u1")}
    assert moods["good"].value == "relaxed"
    assert moods["bad"] is None

    assert client.post("/api/news/articles/good/bookmark", json={"mood": "grumpy"}, headers=headers).status_code == 422

    page = client.get("/api/news/bookmarks", params={"limit": 1, "offset": 1}, headers=headers).json()
    assert [a["id"] for a in page] == ["bad"]
    assert client.get("/api/news/bookmarks", params={"limit": 0}, headers=headers).status_code == 400
