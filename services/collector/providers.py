"""
HTTP clients for the external news providers.

Each provider turns one category into a list of ``RawArticle``. Transport
errors are retried with tenacity; anything still failing surfaces as
``ProviderUnavailable`` so the ingestion pipeline can carry on without it.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from shared.app_logging.logger import get_logger
from shared.config.categories import GNEWS_CATEGORY_MAPPING, NEWSAPI_CATEGORY_MAPPING
from shared.config.settings import ProviderSettings
from shared.schemas.messages import RawArticle
from shared.utils.errors import ProviderUnavailable

logger = get_logger("collector.providers")


def parse_timestamp(ts_raw: Optional[str]) -> Optional[datetime]:
    """Parse an ISO8601 provider timestamp into an aware UTC datetime."""
    if not isinstance(ts_raw, str) or not ts_raw.strip():
        return None
    try:
        dt = datetime.fromisoformat(ts_raw.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class NewsProvider:
    """Base class for a top-headlines style provider."""

    name = "provider"
    prefix = "xx"

    def __init__(self, api_key: Optional[str], url: str, settings: ProviderSettings,
                 client: Optional[httpx.AsyncClient] = None):
        self.api_key = api_key
        self.url = url
        self.settings = settings
        self._client = client

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def build_params(self, category: str) -> Dict[str, Any]:
        raise NotImplementedError

    def parse(self, payload: Any) -> List[RawArticle]:
        raise NotImplementedError

    async def _get(self, client: httpx.AsyncClient, params: Dict[str, Any]) -> httpx.Response:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.settings.max_attempts),
            wait=wait_fixed(self.settings.retry_wait),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        ):
            with attempt:
                response = await client.get(self.url, params=params)
                response.raise_for_status()
                return response

    async def fetch(self, category: str) -> List[RawArticle]:
        if not self.enabled:
            logger.info(f"{self.name} has no API key configured; skipping {category}")
            return []

        params = self.build_params(category)
        try:
            if self._client is not None:
                response = await self._get(self._client, params)
            else:
                async with httpx.AsyncClient(timeout=self.settings.http_timeout) as client:
                    response = await self._get(client, params)
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ProviderUnavailable(self.name, f"{category}: {e}") from e

        articles = self.parse(payload)
        logger.info(f"{self.name} returned {len(articles)} articles for {category}")
        return articles

    def _items(self, payload: Any) -> List[Any]:
        """The ``articles`` array of a response; any other shape is ProviderUnavailable."""
        if not isinstance(payload, dict):
            raise ProviderUnavailable(self.name, f"unexpected payload type: {type(payload).__name__}")
        items = payload.get("articles") or []
        if not isinstance(items, list):
            raise ProviderUnavailable(self.name, "articles is not a list")
        return items

    def _article(self, item: Any, image_field: str) -> Optional[RawArticle]:
        if not isinstance(item, dict):
            logger.warning(f"{self.name} returned a non-object article, skipping it")
            return None
        published_at = parse_timestamp(item.get("publishedAt"))
        if published_at is None:
            return None
        source = item.get("source")
        if isinstance(source, dict):
            source = source.get("name")
        try:
            return RawArticle(
                title=item.get("title"),
                description=item.get("description"),
                url=item.get("url"),
                image_url=item.get(image_field),
                source=source or "Unknown",
                author=item.get("author"),
                published_at=published_at,
                provider=self.prefix,
            )
        except ValidationError as e:
            logger.warning(f"{self.name} returned a malformed article, skipping it: {e.error_count()} errors")
            return None


class NewsApiProvider(NewsProvider):
    name = "newsapi"
    prefix = "na"

    def build_params(self, category: str) -> Dict[str, Any]:
        return {
            "category": NEWSAPI_CATEGORY_MAPPING.get(category, "general"),
            "country": self.settings.country,
            "pageSize": self.settings.page_size,
            "apiKey": self.api_key,
        }

    def parse(self, payload: Any) -> List[RawArticle]:
        items = self._items(payload)
        if payload.get("status") != "ok":
            raise ProviderUnavailable(self.name, payload.get("message") or "unexpected status")
        articles = (self._article(item, "urlToImage") for item in items)
        return [a for a in articles if a is not None]


class GNewsProvider(NewsProvider):
    name = "gnews"
    prefix = "gn"

    def build_params(self, category: str) -> Dict[str, Any]:
        return {
            "category": GNEWS_CATEGORY_MAPPING.get(category, "general"),
            "lang": self.settings.language,
            "country": self.settings.country,
            "max": self.settings.page_size,
            "apikey": self.api_key,
        }

    def parse(self, payload: Any) -> List[RawArticle]:
        articles = (self._article(item, "image") for item in self._items(payload))
        return [a for a in articles if a is not None]


def default_providers(settings: ProviderSettings, client: Optional[httpx.AsyncClient] = None) -> List[NewsProvider]:
    return [
        NewsApiProvider(settings.news_api_key, settings.news_api_url, settings, client),
        GNewsProvider(settings.gnews_api_key, settings.gnews_url, settings, client),
    ]
