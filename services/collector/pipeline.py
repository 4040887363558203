"""
One ingestion pass: fetch every provider per category, dedupe, enrich, store.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from prometheus_client import Counter

from services.analyzer.enrich import ContentEnricher
from services.collector.dedupe import dedupe_by_url
from services.collector.providers import NewsProvider
from shared.app_logging.logger import get_logger
from shared.schemas.messages import RawArticle
from shared.store.base import ArticleStore
from shared.utils.errors import ProviderUnavailable

logger = get_logger("collector.pipeline")

ARTICLES_STORED = Counter("collector_articles_stored_total", "Articles written to the store", ["category"])
ARTICLES_DUPLICATE = Counter("collector_articles_duplicate_total", "Articles skipped because the URL was already stored")
ARTICLES_INVALID = Counter("collector_articles_invalid_total", "Provider articles without a title or url")
PROVIDER_FAILURES = Counter("collector_provider_failures_total", "Provider fetches that failed", ["provider"])


@dataclass
class CategoryResult:
    category: str
    fetched: int = 0
    stored: int = 0
    duplicates: int = 0
    invalid: int = 0


@dataclass
class IngestionReport:
    categories: List[CategoryResult] = field(default_factory=list)

    @property
    def stored(self) -> int:
        return sum(c.stored for c in self.categories)

    @property
    def duplicates(self) -> int:
        return sum(c.duplicates for c in self.categories)

    def as_dict(self) -> Dict:
        return {
            "stored": self.stored,
            "duplicates": self.duplicates,
            "categories": {
                c.category: {
                    "fetched": c.fetched,
                    "stored": c.stored,
                    "duplicates": c.duplicates,
                    "invalid": c.invalid,
                }
                for c in self.categories
            },
        }


class IngestionPipeline:
    def __init__(
        self,
        store: ArticleStore,
        providers: Sequence[NewsProvider],
        categories: Sequence[str],
        enricher: Optional[ContentEnricher] = None,
        category_delay: float = 0.0,
    ):
        self.store = store
        self.providers = list(providers)
        self.categories = list(categories)
        self.enricher = enricher or ContentEnricher()
        self.category_delay = category_delay

    async def _fetch_one(self, provider: NewsProvider, category: str) -> List[RawArticle]:
        try:
            return await provider.fetch(category)
        except ProviderUnavailable as e:
            logger.warning(f"Provider failed, continuing without it: {e}")
            PROVIDER_FAILURES.labels(provider=provider.name).inc()
            return []

    async def fetch_category(self, category: str) -> List[RawArticle]:
        """All providers concurrently, merged in provider order and deduped by URL."""
        results = await asyncio.gather(*(self._fetch_one(p, category) for p in self.providers))
        merged = [article for batch in results for article in batch]
        return dedupe_by_url(merged)

    def store_category(self, category: str, articles: Sequence[RawArticle]) -> CategoryResult:
        result = CategoryResult(category=category, fetched=len(articles))
        for raw in articles:
            if not raw.title or not raw.url:
                result.invalid += 1
                ARTICLES_INVALID.inc()
                continue
            article = self.enricher.enrich(raw, category)
            if self.store.put(article):
                result.stored += 1
                ARTICLES_STORED.labels(category=category).inc()
            else:
                result.duplicates += 1
                ARTICLES_DUPLICATE.inc()
        return result

    async def run(self) -> IngestionReport:
        report = IngestionReport()
        for index, category in enumerate(self.categories):
            if index and self.category_delay:
                await asyncio.sleep(self.category_delay)
            articles = await self.fetch_category(category)
            result = self.store_category(category, articles)
            logger.info(
                f"{category}: fetched {result.fetched}, stored {result.stored}, "
                f"duplicates {result.duplicates}, invalid {result.invalid}"
            )
            report.categories.append(result)
        logger.info(f"Ingestion finished: {report.stored} stored, {report.duplicates} duplicates")
        return report
