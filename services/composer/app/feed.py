"""
Feed composition: category resolution, store query, mood safety gate,
bookmark flags and pagination.
"""

from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from services.composer.app.mood import resolve_categories
from services.composer.app.schema import FeedArticle, FeedRequest, FeedResponse, Pagination
from shared.app_logging.logger import get_logger
from shared.config.categories import MOOD_CATEGORY_MAPPING, UPLIFTING_MOODS, VULNERABLE_MOODS
from shared.config.settings import FeedSettings
from shared.schemas.messages import Category, EnrichedArticle, Mood, Sentiment
from shared.store.base import ArticleStore, Clock, UserStore, utcnow
from shared.utils.errors import InvalidRequest

logger = get_logger("composer.feed")

_MOODS = {m.value for m in Mood}


class MoodSafetyFilter:
    """Hard gate on what a reader in a given mood may see."""

    def __init__(self, title_denylist: Iterable[str] = ("crisis",)):
        self.title_denylist = tuple(word.lower() for word in title_denylist)

    def allows(self, mood: str, article: EnrichedArticle) -> bool:
        if mood in VULNERABLE_MOODS:
            title = article.title.lower()
            return (
                article.sentiment != Sentiment.NEGATIVE
                and article.is_healthy_content
                and not any(word in title for word in self.title_denylist)
            )
        if mood in UPLIFTING_MOODS:
            return article.sentiment != Sentiment.NEGATIVE
        return article.is_healthy_content

    def apply(self, mood: str, articles: Iterable[EnrichedArticle]) -> List[EnrichedArticle]:
        return [a for a in articles if self.allows(mood, a)]


class FeedComposer:
    def __init__(
        self,
        articles: ArticleStore,
        users: UserStore,
        settings: FeedSettings,
        mood_table: Dict[str, List[str]] = MOOD_CATEGORY_MAPPING,
        clock: Clock = utcnow,
    ):
        self.articles = articles
        self.users = users
        self.settings = settings
        self.mood_table = mood_table
        self.safety = MoodSafetyFilter(settings.title_denylist)
        self.clock = clock

    def _validate(self, request: FeedRequest) -> int:
        if request.mood is not None and request.mood not in _MOODS:
            raise InvalidRequest(f"Unknown mood: {request.mood}")
        if request.offset < 0:
            raise InvalidRequest("offset must be zero or greater")
        limit = self.settings.default_limit if request.limit is None else request.limit
        if limit < 1:
            raise InvalidRequest("limit must be at least 1")
        return min(limit, self.settings.max_limit)

    def _target_categories(self, request: FeedRequest) -> Optional[List[str]]:
        explicit = list(dict.fromkeys(request.categories)) if request.categories else None
        if request.mood and request.user_id:
            preference = self.users.get_preferences(request.user_id)
            return resolve_categories(
                request.mood,
                preference.categories,
                explicit,
                mood_table=self.mood_table,
                fallback_size=self.settings.mood_fallback_size,
            )
        return explicit

    def _with_bookmarks(self, user_id: Optional[str], articles: Sequence[EnrichedArticle]) -> List[FeedArticle]:
        bookmarked = set()
        if user_id and articles:
            bookmarked = self.users.bookmarked_ids(user_id, [a.id for a in articles])
        return [
            FeedArticle(**a.model_dump(), is_bookmarked=a.id in bookmarked)
            for a in articles
        ]

    def get_feed(self, request: FeedRequest) -> FeedResponse:
        limit = self._validate(request)
        categories = self._target_categories(request)
        since = self.clock() - timedelta(days=self.settings.freshness_days)

        page, total = self.articles.query_feed(categories, request.source, since, limit, request.offset)
        if request.mood:
            kept = self.safety.apply(request.mood, page)
            if len(kept) != len(page):
                logger.debug(f"Safety filter removed {len(page) - len(kept)} articles for mood {request.mood}")
            page = kept

        logger.info(
            f"Feed mood={request.mood} categories={categories} returned {len(page)} of {total}"
        )
        return FeedResponse(
            articles=self._with_bookmarks(request.user_id, page),
            pagination=Pagination(
                limit=limit,
                offset=request.offset,
                total_count=total,
                has_more=request.offset + limit < total,
                next_offset=request.offset + limit,
            ),
            mood=request.mood,
            categories=categories,
        )

    def get_articles_by_mood(self, mood: str, user_id: str, limit: Optional[int] = None, offset: int = 0) -> FeedResponse:
        if not user_id:
            raise InvalidRequest("A user id is required for a personalised mood feed")
        return self.get_feed(FeedRequest(mood=mood, user_id=user_id, limit=limit, offset=offset))

    def get_categories(self) -> List[Category]:
        return self.articles.list_categories()
