"""
Storage contracts shared by the SQL and Redis backends.

Articles are always ordered newest first, with ties broken by id descending.
Pagination cursors are opaque to callers: a urlsafe base64 JSON blob holding
the published timestamp (epoch microseconds) and id of the last item served.
"""

import base64
import binascii
import json
import math
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional, Sequence, Set, Tuple

from shared.schemas.messages import (
    ActivityEvent,
    ArticlePage,
    Bookmark,
    Category,
    EnrichedArticle,
    UserPreference,
)
from shared.utils.errors import InvalidRequest, Outcome

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC and normalise aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_micros(dt: datetime) -> int:
    delta = as_utc(dt) - datetime(1970, 1, 1, tzinfo=timezone.utc)
    return (delta.days * 86400 + delta.seconds) * 1_000_000 + delta.microseconds


def from_micros(value: int) -> datetime:
    return datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(microseconds=int(value))


def sort_key(article: EnrichedArticle) -> Tuple[int, str]:
    return to_micros(article.published_at), article.id


def encode_cursor(article: EnrichedArticle) -> str:
    payload = json.dumps({"p": to_micros(article.published_at), "id": article.id})
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")


def decode_cursor(cursor: str) -> Tuple[int, str]:
    """Return ``(published_micros, article_id)``; raises InvalidRequest on garbage."""
    try:
        data = json.loads(base64.urlsafe_b64decode(cursor.encode("ascii")))
        return int(data["p"]), str(data["id"])
    except (binascii.Error, ValueError, KeyError, TypeError, UnicodeError) as e:
        raise InvalidRequest(f"Malformed cursor: {cursor!r}") from e


def after_cursor(published_micros: int, article_id: str, position: Tuple[int, str]) -> bool:
    """True when an item sorts strictly after the cursor position."""
    last_micros, last_id = position
    return published_micros < last_micros or (published_micros == last_micros and article_id < last_id)


def page_from(items: List[EnrichedArticle], limit: int) -> ArticlePage:
    """Build a page from up to ``limit + 1`` ordered items."""
    if len(items) > limit:
        items = items[:limit]
        return ArticlePage(items=items, cursor=encode_cursor(items[-1]))
    return ArticlePage(items=items, cursor=None)


class ArticleStore(ABC):
    """Persistence for enriched articles and the category reference table."""

    def __init__(self, ttl_days: int, clock: Clock = utcnow):
        self.ttl = timedelta(days=ttl_days)
        self.clock = clock

    def expiry_for(self, ingested_at: datetime) -> datetime:
        return ingested_at + self.ttl

    @abstractmethod
    def put(self, article: EnrichedArticle) -> bool:
        """Store the article unless its URL is already present.

        Returns True when created and False for a duplicate (a no-op).
        ``expires_at`` is set to ingestion time plus the configured TTL.
        """

    @abstractmethod
    def get(self, article_id: str) -> Optional[EnrichedArticle]:
        """Return an active, unexpired article or None."""

    @abstractmethod
    def query_by_category(self, category: str, limit: int, cursor: Optional[str] = None) -> ArticlePage:
        """Page through a category newest first, resuming strictly after ``cursor``."""

    @abstractmethod
    def query_by_mood(self, mood: str, limit: int) -> List[EnrichedArticle]:
        """Newest articles carrying the given mood tag."""

    @abstractmethod
    def query_feed(
        self,
        categories: Optional[Sequence[str]],
        source: Optional[str],
        since: datetime,
        limit: int,
        offset: int,
    ) -> Tuple[List[EnrichedArticle], int]:
        """Offset page of active articles published at or after ``since``.

        Returns the page and the total number of matching articles.
        """

    @abstractmethod
    def _query_recent_all(self, limit: int) -> List[EnrichedArticle]:
        """Newest articles across every category."""

    def query_recent(self, limit: int, categories: Optional[Sequence[str]] = None) -> List[EnrichedArticle]:
        """Newest articles, optionally restricted to ``categories``.

        Each category gets a budget of ``ceil(limit / len(categories))``; the
        partial results are merged, re-sorted and truncated to ``limit``.
        """
        if limit <= 0:
            return []
        if not categories:
            return self._query_recent_all(limit)

        budget = math.ceil(limit / len(categories))
        merged: List[EnrichedArticle] = []
        for category in dict.fromkeys(categories):
            merged.extend(self.query_by_category(category, budget).items)
        merged.sort(key=sort_key, reverse=True)
        return merged[:limit]

    @abstractmethod
    def increment_view_count(self, article_id: str) -> bool:
        """Atomically add one view to a live article. False when it is unknown, expired or inactive."""

    @abstractmethod
    def purge_expired(self) -> int:
        """Delete every article past its expiry and return how many were removed."""

    @abstractmethod
    def seed_categories(self, categories: Iterable[Category]) -> int:
        """Insert categories that do not exist yet; returns the number created."""

    @abstractmethod
    def list_categories(self) -> List[Category]:
        """Active categories ordered by ``sort_order``."""

    @abstractmethod
    def ping(self) -> bool:
        pass


class UserStore(ABC):
    """Per-user preferences, bookmarks and the append-only activity log."""

    def __init__(self, activity_ttl_days: int, clock: Clock = utcnow):
        self.activity_ttl = timedelta(days=activity_ttl_days)
        self.clock = clock

    def new_activity(self, user_id: str, article_id: str, action_type, mood_at_time=None) -> ActivityEvent:
        now = self.clock()
        return ActivityEvent(
            user_id=user_id,
            article_id=article_id,
            action_type=action_type,
            mood_at_time=mood_at_time,
            timestamp=now,
            expires_at=now + self.activity_ttl,
        )

    @abstractmethod
    def get_preferences(self, user_id: str) -> UserPreference:
        """Stored preferences, or empty defaults for a new user."""

    @abstractmethod
    def save_preferences(self, preference: UserPreference) -> UserPreference:
        """Replace the user's preferences wholesale."""

    @abstractmethod
    def add_bookmark(self, user_id: str, article_id: str) -> bool:
        """Find-or-create; True when a new bookmark was written."""

    @abstractmethod
    def remove_bookmark(self, user_id: str, article_id: str) -> Outcome:
        pass

    @abstractmethod
    def list_bookmarks(self, user_id: str, limit: Optional[int] = None, offset: int = 0) -> List[Bookmark]:
        """Most recent first, optionally one ``limit``/``offset`` page."""

    @abstractmethod
    def bookmarked_ids(self, user_id: str, article_ids: Sequence[str]) -> Set[str]:
        pass

    @abstractmethod
    def record_activity(self, event: ActivityEvent) -> None:
        pass

    @abstractmethod
    def list_activity(self, user_id: str, limit: int = 50) -> List[ActivityEvent]:
        """Most recent first, unexpired only."""

    @abstractmethod
    def purge_expired_activity(self) -> int:
        pass
