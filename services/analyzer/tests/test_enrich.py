from datetime import datetime, timezone

import pytest

from services.analyzer.enrich import (
    ContentEnricher,
    analyze_sentiment,
    article_id,
    derive_mood_tags,
    estimate_read_time,
    is_healthy_content,
    resolve_image,
)
from shared.config.lexicon import CATEGORY_IMAGES, DEFAULT_IMAGE, Lexicon
from shared.schemas.messages import RawArticle, Sentiment

PUBLISHED = datetime(2025, 7, 20, 9, 30, tzinfo=timezone.utc)


def _raw(**overrides):
    fields = dict(
        title="Startup celebrates record growth",
        description="A great quarter for the team",
        url="https://example.com/a",
        image_url="https://cdn.example.com/a.jpg",
        source="Example",
        author=None,
        published_at=PUBLISHED,
        provider="na",
    )
    fields.update(overrides)
    return RawArticle(**fields)


def test_sentiment_positive_negative_and_tie():
    assert analyze_sentiment("Team celebrates a win", "") is Sentiment.POSITIVE
    assert analyze_sentiment("War threatens region", "A growing crisis") is Sentiment.NEGATIVE
    assert analyze_sentiment("Great success amid crisis", "a real problem and a worry") is Sentiment.NEGATIVE
    assert analyze_sentiment("Weather update", None) is Sentiment.NEUTRAL
    assert analyze_sentiment("Good news and bad risk", "") is Sentiment.NEUTRAL


def test_sentiment_counts_each_keyword_once():
    # "great" three times still counts as one positive keyword against two negatives
    assert analyze_sentiment("great great great", "war and crisis") is Sentiment.NEGATIVE


def test_mood_tags_order_and_dedupe():
    tags = derive_mood_tags(
        "An exciting adventure to inspire you",
        "Find calm and motivation",
        "entertainment",
        Sentiment.POSITIVE,
    )
    assert tags == ["positive", "happy", "relaxed", "inspired", "calm", "excited"]


def test_mood_tags_for_unmapped_category():
    assert derive_mood_tags("Plain title", "", "politics", Sentiment.NEUTRAL) == ["neutral"]


def test_mood_tags_with_custom_lexicon():
    lexicon = Lexicon(category_tags={"politics": ("civic",)}, keyword_tags={"vote": "engaged"})
    assert derive_mood_tags("Go vote", "", "politics", Sentiment.NEUTRAL, lexicon) == [
        "neutral", "civic", "engaged",
    ]


@pytest.mark.parametrize(
    "description,expected",
    [("", 1), (None, 1), ("word " * 200, 1), ("word " * 201, 2), ("word " * 400, 2), ("word " * 401, 3)],
)
def test_read_time(description, expected):
    assert estimate_read_time(description) == expected


def test_healthy_content():
    assert is_healthy_content("Local bakery opens", "Fresh bread daily")
    assert not is_healthy_content("Report on Drug Abuse", "")
    assert not is_healthy_content("Court case", "details of the assault")


def test_resolve_image():
    assert resolve_image("https://cdn.example.com/x.jpg", "sports") == "https://cdn.example.com/x.jpg"
    assert resolve_image("https://via.placeholder.com/300", "sports") == CATEGORY_IMAGES["sports"]
    assert resolve_image(None, "health") == CATEGORY_IMAGES["health"]
    assert resolve_image("/relative/path.jpg", "technology") == CATEGORY_IMAGES["technology"]
    assert resolve_image("", "unknown-category") == DEFAULT_IMAGE


def test_article_id_is_stable_and_prefixed():
    assert article_id(_raw()) == article_id(_raw(url="https://elsewhere.com"))
    assert article_id(_raw()).startswith("na_")
    assert article_id(_raw(provider="gn")).startswith("gn_")
    assert article_id(_raw()) != article_id(_raw(title="Different"))


def test_enrich_combines_all_fields():
    article = ContentEnricher().enrich(_raw(description=None, image_url=None), "technology")

    assert article.id == article_id(_raw())
    assert article.description == ""
    assert article.author == "Unknown"
    assert article.sentiment is Sentiment.POSITIVE
    assert article.mood_tags == ["positive", "innovative", "progressive"]
    assert article.read_time == 1
    assert article.is_healthy_content is True
    assert article.image_url == CATEGORY_IMAGES["technology"]
    assert article.category == "technology"


def test_enrich_requires_title_and_url():
    with pytest.raises(ValueError):
        ContentEnricher().enrich(_raw(title=None), "technology")
