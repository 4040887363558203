from datetime import datetime, timezone

import httpx
import pytest

from services.collector.providers import GNewsProvider, NewsApiProvider, parse_timestamp
from shared.config.settings import ProviderSettings
from shared.utils.errors import ProviderUnavailable

NEWSAPI_PAYLOAD = {
    "status": "ok",
    "articles": [
        {
            "title": "Chip maker unveils new processor",
            "description": "Faster and cooler",
            "url": "https://example.com/chip",
            "urlToImage": "https://example.com/chip.jpg",
            "source": {"name": "Tech Daily"},
            "author": "A. Writer",
            "publishedAt": "2025-07-20T08:00:00Z",
        },
        {
            "title": "No date on this one",
            "url": "https://example.com/undated",
            "source": {"name": "Tech Daily"},
            "publishedAt": None,
        },
    ],
}

GNEWS_PAYLOAD = {
    "totalArticles": 1,
    "articles": [
        {
            "title": "Senate passes budget",
            "description": "Late night vote",
            "url": "https://example.com/budget",
            "image": None,
            "source": {"name": "Capitol Wire", "url": "https://capitol.example.com"},
            "publishedAt": "2025-07-20T06:15:00+02:00",
        }
    ],
}


def _settings(**overrides):
    values = dict(max_attempts=2, retry_wait=0, page_size=5)
    values.update(overrides)
    return ProviderSettings(**values)


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_parse_timestamp():
    assert parse_timestamp("2025-07-20T08:00:00Z") == datetime(2025, 7, 20, 8, tzinfo=timezone.utc)
    assert parse_timestamp("2025-07-20T10:00:00+02:00") == datetime(2025, 7, 20, 8, tzinfo=timezone.utc)
    assert parse_timestamp("yesterday") is None
    assert parse_timestamp(None) is None


@pytest.mark.asyncio
async def test_newsapi_maps_category_and_parses_articles():
    seen = {}

    def handler(request):
        seen.update(request.url.params)
        return httpx.Response(200, json=NEWSAPI_PAYLOAD)

    async with _client(handler) as client:
        provider = NewsApiProvider("key", "https://newsapi.test/v2/top-headlines", _settings(), client)
        articles = await provider.fetch("politics")

    assert seen["category"] == "general"
    assert seen["apiKey"] == "key"
    assert seen["pageSize"] == "5"
    assert seen["country"] == "us"
    assert len(articles) == 1
    article = articles[0]
    assert article.provider == "na"
    assert article.source == "Tech Daily"
    assert article.image_url == "https://example.com/chip.jpg"
    assert article.published_at == datetime(2025, 7, 20, 8, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_gnews_maps_politics_to_nation():
    seen = {}

    def handler(request):
        seen.update(request.url.params)
        return httpx.Response(200, json=GNEWS_PAYLOAD)

    async with _client(handler) as client:
        provider = GNewsProvider("key", "https://gnews.test/api/v4/top-headlines", _settings(), client)
        articles = await provider.fetch("politics")

    assert seen["category"] == "nation"
    assert seen["apikey"] == "key"
    assert seen["lang"] == "en"
    assert seen["max"] == "5"
    assert [a.provider for a in articles] == ["gn"]
    assert articles[0].published_at == datetime(2025, 7, 20, 4, 15, tzinfo=timezone.utc)
    assert articles[0].image_url is None


@pytest.mark.asyncio
async def test_missing_api_key_skips_without_calling():
    def handler(request):
        raise AssertionError("provider should not be called")

    async with _client(handler) as client:
        provider = NewsApiProvider(None, "https://newsapi.test", _settings(), client)
        assert await provider.fetch("technology") == []


@pytest.mark.asyncio
async def test_http_error_raises_provider_unavailable():
    async with _client(lambda request: httpx.Response(500)) as client:
        provider = GNewsProvider("key", "https://gnews.test", _settings(), client)
        with pytest.raises(ProviderUnavailable):
            await provider.fetch("sports")


@pytest.mark.asyncio
async def test_newsapi_error_status_raises_provider_unavailable():
    payload = {"status": "error", "code": "apiKeyInvalid", "message": "Your API key is invalid"}
    async with _client(lambda request: httpx.Response(200, json=payload)) as client:
        provider = NewsApiProvider("key", "https://newsapi.test", _settings(), client)
        with pytest.raises(ProviderUnavailable, match="invalid"):
            await provider.fetch("sports")


@pytest.mark.asyncio
async def test_transport_errors_are_retried_then_reported():
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ConnectTimeout("timed out", request=request)

    async with _client(handler) as client:
        provider = NewsApiProvider("key", "https://newsapi.test", _settings(max_attempts=3), client)
        with pytest.raises(ProviderUnavailable):
            await provider.fetch("health")

    assert len(calls) == 3


@pytest.mark.asyncio
async def test_transient_failure_recovers():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            raise httpx.ReadTimeout("slow", request=request)
        return httpx.Response(200, json=GNEWS_PAYLOAD)

    async with _client(handler) as client:
        provider = GNewsProvider("key", "https://gnews.test", _settings(), client)
        articles = await provider.fetch("world")

    assert len(articles) == 1
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_malformed_articles_are_skipped():
    payload = {
        "status": "ok",
        "articles": [
            dict(NEWSAPI_PAYLOAD["articles"][0], source="CNN"),
            dict(NEWSAPI_PAYLOAD["articles"][0], url="https://example.com/bad-title", title=["not", "text"]),
            "just a string",
        ],
    }
    async with _client(lambda request: httpx.Response(200, json=payload)) as client:
        provider = NewsApiProvider("key", "https://newsapi.test", _settings(), client)
        articles = await provider.fetch("technology")

    assert [a.url for a in articles] == ["https://example.com/chip"]
    assert articles[0].source == "CNN"


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [[{"title": "x"}], {"articles": "none today"}, "ok"])
async def test_unexpected_payload_shape_raises_provider_unavailable(payload):
    async with _client(lambda request: httpx.Response(200, json=payload)) as client:
        provider = GNewsProvider("key", "https://gnews.test", _settings(), client)
        with pytest.raises(ProviderUnavailable):
            await provider.fetch("sports")
