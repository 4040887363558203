from datetime import datetime, timezone

import httpx
import pytest

from services.collector.pipeline import IngestionPipeline
from services.collector.providers import default_providers
from shared.config.settings import ProviderSettings
from shared.schemas.messages import RawArticle
from shared.utils.errors import ProviderUnavailable

PUBLISHED = datetime(2025, 7, 20, 9, tzinfo=timezone.utc)


def _raw(url, provider, title=None):
    return RawArticle(
        title=f"Story at {url}" if title is None else title,
        url=url,
        published_at=PUBLISHED,
        provider=provider,
    )


class StubProvider:
    def __init__(self, name, by_category=None, error=None):
        self.name = name
        self.by_category = by_category or {}
        self.error = error
        self.calls = []

    async def fetch(self, category):
        self.calls.append(category)
        if self.error:
            raise self.error
        return self.by_category.get(category, [])


@pytest.mark.asyncio
async def test_run_dedupes_enriches_and_stores(article_store):
    newsapi = StubProvider("newsapi", {"technology": [_raw("https://x/1", "na"), _raw("https://x/2", "na")]})
    gnews = StubProvider("gnews", {"technology": [_raw("https://x/2", "gn"), _raw("https://x/3", "gn")]})
    pipeline = IngestionPipeline(article_store, [newsapi, gnews], ["technology", "health"])

    report = await pipeline.run()

    assert report.stored == 3
    assert report.duplicates == 0
    assert newsapi.calls == ["technology", "health"]
    stored = article_store.query_by_category("technology", 10).items
    assert sorted(a.url for a in stored) == ["https://x/1", "https://x/2", "https://x/3"]
    second = next(a for a in stored if a.url == "https://x/2")
    assert second.id.startswith("na_")
    assert "innovative" in second.mood_tags


@pytest.mark.asyncio
async def test_second_run_skips_stored_urls(article_store):
    provider = StubProvider("newsapi", {"sports": [_raw("https://x/1", "na")]})
    pipeline = IngestionPipeline(article_store, [provider], ["sports"])

    await pipeline.run()
    report = await pipeline.run()

    assert report.stored == 0
    assert report.duplicates == 1
    assert len(article_store.query_by_category("sports", 10).items) == 1


@pytest.mark.asyncio
async def test_failing_provider_does_not_stop_the_run(article_store):
    broken = StubProvider("newsapi", error=ProviderUnavailable("newsapi", "timeout"))
    working = StubProvider("gnews", {"health": [_raw("https://x/h", "gn")]})
    pipeline = IngestionPipeline(article_store, [broken, working], ["health"])

    report = await pipeline.run()

    assert report.stored == 1
    assert report.as_dict()["categories"]["health"]["fetched"] == 1


@pytest.mark.asyncio
async def test_articles_without_title_or_url_are_skipped(article_store):
    provider = StubProvider("newsapi", {"science": [
        _raw("https://x/ok", "na"),
        _raw("https://x/untitled", "na", title=""),
        RawArticle(title="No link", url=None, published_at=PUBLISHED, provider="na"),
    ]})
    pipeline = IngestionPipeline(article_store, [provider], ["science"])

    report = await pipeline.run()

    assert report.stored == 1
    assert report.categories[0].invalid == 2


@pytest.mark.asyncio
async def test_malformed_provider_response_is_not_fatal(article_store):
    def handler(request):
        if request.url.host == "newsapi.test":
            return httpx.Response(200, json=[{"title": "top-level list"}])
        category = request.url.params["category"]
        return httpx.Response(200, json={"articles": [{
            "title": f"{category} story",
            "url": f"https://example.com/{category}",
            "source": "Wire",
            "publishedAt": "2025-07-20T09:00:00Z",
        }]})

    settings = ProviderSettings(
        news_api_key="key", gnews_api_key="key", news_api_url="https://newsapi.test",
        gnews_url="https://gnews.test", max_attempts=1, retry_wait=0,
    )
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        pipeline = IngestionPipeline(article_store, default_providers(settings, client), ["health", "sports"])
        report = await pipeline.run()

    assert report.stored == 2
    assert [c.category for c in report.categories] == ["health", "sports"]
    assert article_store.query_by_category("sports", 10).items[0].source == "Wire"
