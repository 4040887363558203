from datetime import datetime, timedelta, timezone

import fakeredis
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from shared.database.session import init_db
from shared.schemas.messages import EnrichedArticle, Sentiment
from shared.store.kv import RedisArticleStore, RedisUserStore
from shared.store.sql import SqlArticleStore, SqlUserStore

NOW = datetime(2025, 7, 20, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def make_article(article_id, category="technology", published_at=None, **overrides):
    fields = dict(
        id=article_id,
        title=f"Headline {article_id}",
        description="Something happened today",
        url=f"https://example.com/{article_id}",
        image_url="https://example.com/img.png",
        source="Example News",
        author="Reporter",
        published_at=published_at or NOW - timedelta(hours=1),
        category=category,
        sentiment=Sentiment.NEUTRAL,
        mood_tags=["neutral"],
        read_time=1,
        is_healthy_content=True,
    )
    fields.update(overrides)
    return EnrichedArticle(**fields)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def fake_redis():
    client = fakeredis.FakeRedis(decode_responses=True)
    client.flushall()
    yield client
    client.flushall()


@pytest.fixture(params=["sql", "redis"])
def stores(request, clock):
    """(article store, user store) for each backend, sharing the fake clock."""
    if request.param == "sql":
        factory = request.getfixturevalue("session_factory")
        return (
            SqlArticleStore(factory, ttl_days=10, clock=clock),
            SqlUserStore(factory, activity_ttl_days=90, clock=clock),
        )
    client = request.getfixturevalue("fake_redis")
    return (
        RedisArticleStore(client, ttl_days=10, clock=clock),
        RedisUserStore(client, activity_ttl_days=90, clock=clock),
    )


@pytest.fixture
def article_store(stores):
    return stores[0]


@pytest.fixture
def user_store(stores):
    return stores[1]
