"""
Heuristic enrichment for raw provider articles.

Everything here is plain substring matching over the lower-cased title and
description. Keyword tables come from a ``Lexicon`` so they can be swapped
without code changes.
"""

import hashlib
import math
from typing import List, Optional

from shared.app_logging.logger import get_logger
from shared.config.lexicon import DEFAULT_LEXICON, Lexicon
from shared.schemas.messages import EnrichedArticle, RawArticle, Sentiment

logger = get_logger("analyzer.enrich")


def _text(title: Optional[str], description: Optional[str]) -> str:
    return f"{title or ''} {description or ''}".lower()


def analyze_sentiment(title: str, description: Optional[str], lexicon: Lexicon = DEFAULT_LEXICON) -> Sentiment:
    """Count distinct positive and negative keywords; the strictly larger side wins."""
    text = _text(title, description)
    positive = sum(1 for word in lexicon.positive_words if word in text)
    negative = sum(1 for word in lexicon.negative_words if word in text)
    if positive > negative:
        return Sentiment.POSITIVE
    if negative > positive:
        return Sentiment.NEGATIVE
    return Sentiment.NEUTRAL


def derive_mood_tags(
    title: str,
    description: Optional[str],
    category: str,
    sentiment: Sentiment,
    lexicon: Lexicon = DEFAULT_LEXICON,
) -> List[str]:
    tags = [sentiment.value]
    tags.extend(lexicon.category_tags.get(category, ()))
    text = _text(title, description)
    for keyword, tag in lexicon.keyword_tags.items():
        if keyword in text:
            tags.append(tag)
    # First occurrence wins
    return list(dict.fromkeys(tags))


def estimate_read_time(description: Optional[str], lexicon: Lexicon = DEFAULT_LEXICON) -> int:
    words = len((description or "").split())
    return max(1, math.ceil(words / lexicon.words_per_minute))


def is_healthy_content(title: str, description: Optional[str], lexicon: Lexicon = DEFAULT_LEXICON) -> bool:
    text = _text(title, description)
    return not any(keyword in text for keyword in lexicon.unhealthy_keywords)


def resolve_image(candidate_url: Optional[str], category: str, lexicon: Lexicon = DEFAULT_LEXICON) -> str:
    if (
        candidate_url
        and candidate_url.lower().startswith(("http://", "https://"))
        and lexicon.placeholder_marker not in candidate_url.lower()
    ):
        return candidate_url
    return lexicon.category_images.get(category, lexicon.default_image)


def article_id(raw: RawArticle) -> str:
    """Stable id: provider prefix plus a hash of title, publish time and provider."""
    digest = hashlib.sha1(
        f"{raw.title}|{raw.published_at.isoformat()}|{raw.provider}".encode("utf-8")
    ).hexdigest()
    return f"{raw.provider}_{digest[:16]}"


class ContentEnricher:
    """Turns provider articles into stored articles."""

    def __init__(self, lexicon: Lexicon = DEFAULT_LEXICON):
        self.lexicon = lexicon

    def enrich(self, raw: RawArticle, category: str) -> EnrichedArticle:
        if not raw.title or not raw.url:
            raise ValueError("article needs a title and a url")

        description = raw.description or ""
        sentiment = analyze_sentiment(raw.title, description, self.lexicon)
        article = EnrichedArticle(
            id=article_id(raw),
            title=raw.title,
            description=description,
            url=raw.url,
            image_url=resolve_image(raw.image_url, category, self.lexicon),
            source=raw.source or "Unknown",
            author=raw.author or "Unknown",
            published_at=raw.published_at,
            category=category,
            sentiment=sentiment,
            mood_tags=derive_mood_tags(raw.title, description, category, sentiment, self.lexicon),
            read_time=estimate_read_time(description, self.lexicon),
            is_healthy_content=is_healthy_content(raw.title, description, self.lexicon),
        )
        logger.debug(f"Enriched {article.id}: sentiment={sentiment.value} tags={article.mood_tags}")
        return article
