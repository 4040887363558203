"""
Redis implementation of the article and user stores.

Key layout::

    article:{id}                 hash with the article fields
    article:url:{sha1(url)}      id of the article owning a URL
    articles:category:{name}     zset id -> published micros
    articles:mood:{tag}          zset id -> published micros
    articles:source:{name}       zset id -> published micros
    articles:recent              zset id -> published micros
    articles:expiry              zset id -> expiry micros
    categories                   hash name -> category JSON
    user:{id}:preferences        preference JSON
    user:{id}:bookmarks          zset article id -> bookmarked micros
    user:{id}:activity           zset activity key -> timestamp micros
    activity:{uuid}              activity JSON, native TTL
    activity:expiry              zset "{uuid}|{user id}" -> expiry micros

ZREVRANGEBYSCORE orders equal scores by member descending, which matches the
(published desc, id desc) ordering used everywhere.
"""

import hashlib
import json
import uuid
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

import redis

from shared.app_logging.logger import get_logger
from shared.schemas.messages import (
    ActivityEvent,
    ArticlePage,
    Bookmark,
    Category,
    EnrichedArticle,
    UserPreference,
)
from shared.store.base import (
    ArticleStore,
    Clock,
    UserStore,
    after_cursor,
    decode_cursor,
    from_micros,
    page_from,
    sort_key,
    to_micros,
    utcnow,
)
from shared.utils.errors import Outcome, StoreUnavailable
from shared.utils.retry import retry

logger = get_logger("store.redis")

store_retry = retry(
    retryable_exceptions=(redis.ConnectionError, redis.TimeoutError),
    exhausted_error=StoreUnavailable,
)

RECENT_KEY = "articles:recent"
EXPIRY_KEY = "articles:expiry"
CATEGORIES_KEY = "categories"
ACTIVITY_EXPIRY_KEY = "activity:expiry"

SCAN_BATCH = 100


def article_key(article_id: str) -> str:
    return f"article:{article_id}"


def url_key(url: str) -> str:
    return f"article:url:{hashlib.sha1(url.encode('utf-8')).hexdigest()}"


def category_key(category: str) -> str:
    return f"articles:category:{category}"


def source_key(source: str) -> str:
    return f"articles:source:{source}"


def mood_key(tag: str) -> str:
    return f"articles:mood:{tag}"


def _encode(article: EnrichedArticle) -> Dict[str, str]:
    return {
        "id": article.id,
        "title": article.title,
        "description": article.description,
        "url": article.url,
        "image_url": article.image_url,
        "source": article.source,
        "author": article.author,
        "published_at": article.published_at.isoformat(),
        "category": article.category,
        "sentiment": article.sentiment.value,
        "mood_tags": json.dumps(article.mood_tags),
        "read_time": str(article.read_time),
        "is_healthy_content": "1" if article.is_healthy_content else "0",
        "is_active": "1" if article.is_active else "0",
        "view_count": str(article.view_count),
        "expires_at": article.expires_at.isoformat(),
        "created_at": article.created_at.isoformat(),
    }


def _decode(fields: Dict[str, str]) -> EnrichedArticle:
    data = dict(fields)
    data["mood_tags"] = json.loads(data["mood_tags"])
    data["is_healthy_content"] = data["is_healthy_content"] == "1"
    data["is_active"] = data["is_active"] == "1"
    return EnrichedArticle.model_validate(data)


class RedisArticleStore(ArticleStore):
    def __init__(self, client: redis.Redis, ttl_days: int, clock: Clock = utcnow):
        super().__init__(ttl_days, clock)
        self.client = client

    def _load_many(self, ids: Sequence[str]) -> List[EnrichedArticle]:
        """Fetch hashes in one round trip, dropping missing, inactive and expired ones."""
        if not ids:
            return []
        pipe = self.client.pipeline(transaction=False)
        for article_id in ids:
            pipe.hgetall(article_key(article_id))
        now = self.clock()
        articles = []
        for fields in pipe.execute():
            if not fields:
                continue
            article = _decode(fields)
            if article.is_active and article.expires_at > now:
                articles.append(article)
        return articles

    def _scan_index(self, key: str, limit: int, position: Optional[Tuple[int, str]] = None,
                    min_score="-inf") -> List[EnrichedArticle]:
        """Walk a score-ordered index newest first, collecting up to ``limit`` live articles."""
        max_score = position[0] if position else "+inf"
        offset = 0
        found: List[EnrichedArticle] = []
        while len(found) < limit:
            batch = self.client.zrevrangebyscore(
                key, max_score, min_score, start=offset, num=SCAN_BATCH, withscores=True
            )
            if not batch:
                break
            offset += len(batch)
            ids = [
                member for member, score in batch
                if position is None or after_cursor(int(score), member, position)
            ]
            found.extend(self._load_many(ids))
        return found[:limit]

    @store_retry
    def put(self, article: EnrichedArticle) -> bool:
        now = self.clock()
        article = article.model_copy(update={"created_at": now, "expires_at": self.expiry_for(now)})
        guard = url_key(article.url)
        key = article_key(article.id)
        published = to_micros(article.published_at)

        with self.client.pipeline() as pipe:
            while True:
                try:
                    pipe.watch(guard, key)
                    if pipe.exists(guard) or pipe.exists(key):
                        pipe.unwatch()
                        logger.debug(f"Article already stored, skipping: {article.url}")
                        return False
                    pipe.multi()
                    pipe.set(guard, article.id)
                    pipe.hset(key, mapping=_encode(article))
                    pipe.zadd(category_key(article.category), {article.id: published})
                    for tag in article.mood_tags:
                        pipe.zadd(mood_key(tag), {article.id: published})
                    pipe.zadd(source_key(article.source), {article.id: published})
                    pipe.zadd(RECENT_KEY, {article.id: published})
                    pipe.zadd(EXPIRY_KEY, {article.id: to_micros(article.expires_at)})
                    pipe.execute()
                    logger.debug(f"Stored article {article.id}: {article.title[:50]}")
                    return True
                except redis.WatchError:
                    # Another writer touched the URL or id; re-check
                    continue

    @store_retry
    def get(self, article_id: str) -> Optional[EnrichedArticle]:
        found = self._load_many([article_id])
        return found[0] if found else None

    @store_retry
    def query_by_category(self, category: str, limit: int, cursor: Optional[str] = None) -> ArticlePage:
        position = decode_cursor(cursor) if cursor else None
        items = self._scan_index(category_key(category), limit + 1, position)
        return page_from(items, limit)

    @store_retry
    def query_by_mood(self, mood: str, limit: int) -> List[EnrichedArticle]:
        return self._scan_index(mood_key(mood), limit)

    @store_retry
    def query_feed(
        self,
        categories: Optional[Sequence[str]],
        source: Optional[str],
        since: datetime,
        limit: int,
        offset: int,
    ) -> Tuple[List[EnrichedArticle], int]:
        """Build the matching set in a short-lived zset, then load only the requested page."""
        keys = [category_key(c) for c in dict.fromkeys(categories)] if categories else [RECENT_KEY]
        expired = self.client.zrangebyscore(EXPIRY_KEY, "-inf", to_micros(self.clock()))
        scratch = f"tmp:feed:{uuid.uuid4().hex}"

        pipe = self.client.pipeline(transaction=True)
        pipe.zunionstore(scratch, keys, aggregate="MAX")
        if source:
            # Weight 0 keeps the publish-time scores from the category side
            pipe.zinterstore(scratch, {scratch: 1, source_key(source): 0})
        pipe.zremrangebyscore(scratch, "-inf", f"({to_micros(since)}")
        if expired:
            pipe.zrem(scratch, *expired)
        pipe.zcard(scratch)
        pipe.zrevrange(scratch, offset, offset + limit - 1)
        pipe.delete(scratch)
        total, ids = pipe.execute()[-3:-1]
        return self._load_many(ids), total

    @store_retry
    def _query_recent_all(self, limit: int) -> List[EnrichedArticle]:
        return self._scan_index(RECENT_KEY, limit)

    @store_retry
    def increment_view_count(self, article_id: str) -> bool:
        key = article_key(article_id)
        with self.client.pipeline() as pipe:
            while True:
                try:
                    pipe.watch(key)
                    expires_at, is_active = pipe.hmget(key, "expires_at", "is_active")
                    if expires_at is None or is_active != "1" or datetime.fromisoformat(expires_at) <= self.clock():
                        pipe.unwatch()
                        return False
                    pipe.multi()
                    pipe.hincrby(key, "view_count", 1)
                    pipe.execute()
                    return True
                except redis.WatchError:
                    continue

    @store_retry
    def purge_expired(self) -> int:
        cutoff = to_micros(self.clock())
        expired = self.client.zrangebyscore(EXPIRY_KEY, "-inf", cutoff)
        purged = 0
        for article_id in expired:
            key = article_key(article_id)
            fields = self.client.hmget(key, "url", "category", "source", "mood_tags")
            url, category, source, mood_tags = fields
            pipe = self.client.pipeline(transaction=True)
            pipe.delete(key)
            if url:
                pipe.delete(url_key(url))
            if category:
                pipe.zrem(category_key(category), article_id)
            if source:
                pipe.zrem(source_key(source), article_id)
            for tag in json.loads(mood_tags) if mood_tags else []:
                pipe.zrem(mood_key(tag), article_id)
            pipe.zrem(RECENT_KEY, article_id)
            pipe.zrem(EXPIRY_KEY, article_id)
            results = pipe.execute()
            purged += results[0]
        if purged:
            logger.info(f"Purged {purged} expired articles")
        return purged

    @store_retry
    def seed_categories(self, categories: Iterable[Category]) -> int:
        created = 0
        for category in categories:
            created += self.client.hsetnx(CATEGORIES_KEY, category.name, category.model_dump_json())
        return created

    @store_retry
    def list_categories(self) -> List[Category]:
        categories = [Category.model_validate_json(raw) for raw in self.client.hvals(CATEGORIES_KEY)]
        return sorted((c for c in categories if c.is_active), key=lambda c: c.sort_order)

    def ping(self) -> bool:
        return self.client.ping()


class RedisUserStore(UserStore):
    def __init__(self, client: redis.Redis, activity_ttl_days: int, clock: Clock = utcnow):
        super().__init__(activity_ttl_days, clock)
        self.client = client

    @store_retry
    def get_preferences(self, user_id: str) -> UserPreference:
        raw = self.client.get(f"user:{user_id}:preferences")
        if raw is None:
            return UserPreference(user_id=user_id)
        return UserPreference.model_validate_json(raw)

    @store_retry
    def save_preferences(self, preference: UserPreference) -> UserPreference:
        self.client.set(f"user:{preference.user_id}:preferences", preference.model_dump_json())
        return preference

    @store_retry
    def add_bookmark(self, user_id: str, article_id: str) -> bool:
        added = self.client.zadd(
            f"user:{user_id}:bookmarks", {article_id: to_micros(self.clock())}, nx=True
        )
        return bool(added)

    @store_retry
    def remove_bookmark(self, user_id: str, article_id: str) -> Outcome:
        removed = self.client.zrem(f"user:{user_id}:bookmarks", article_id)
        return Outcome.OK if removed else Outcome.NOT_FOUND

    @store_retry
    def list_bookmarks(self, user_id: str, limit: Optional[int] = None, offset: int = 0) -> List[Bookmark]:
        stop = -1 if limit is None else offset + limit - 1
        entries = self.client.zrevrange(f"user:{user_id}:bookmarks", offset, stop, withscores=True)
        return [
            Bookmark(user_id=user_id, article_id=member, bookmarked_at=from_micros(int(score)))
            for member, score in entries
        ]

    @store_retry
    def bookmarked_ids(self, user_id: str, article_ids: Sequence[str]) -> Set[str]:
        if not article_ids:
            return set()
        key = f"user:{user_id}:bookmarks"
        pipe = self.client.pipeline(transaction=False)
        for article_id in article_ids:
            pipe.zscore(key, article_id)
        return {aid for aid, score in zip(article_ids, pipe.execute()) if score is not None}

    @store_retry
    def record_activity(self, event: ActivityEvent) -> None:
        event_id = uuid.uuid4().hex
        key = f"activity:{event_id}"
        ttl_seconds = max(1, int((event.expires_at - event.timestamp).total_seconds()))
        pipe = self.client.pipeline(transaction=True)
        pipe.set(key, event.model_dump_json(), ex=ttl_seconds)
        pipe.zadd(f"user:{event.user_id}:activity", {key: to_micros(event.timestamp)})
        pipe.zadd(ACTIVITY_EXPIRY_KEY, {f"{event_id}|{event.user_id}": to_micros(event.expires_at)})
        pipe.execute()

    @store_retry
    def list_activity(self, user_id: str, limit: int = 50) -> List[ActivityEvent]:
        keys = self.client.zrevrange(f"user:{user_id}:activity", 0, limit - 1)
        if not keys:
            return []
        now = self.clock()
        events = [ActivityEvent.model_validate_json(raw) for raw in self.client.mget(keys) if raw]
        return [e for e in events if e.expires_at > now]

    @store_retry
    def purge_expired_activity(self) -> int:
        expired = self.client.zrangebyscore(ACTIVITY_EXPIRY_KEY, "-inf", to_micros(self.clock()))
        for member in expired:
            event_id, user_id = member.split("|", 1)
            key = f"activity:{event_id}"
            pipe = self.client.pipeline(transaction=True)
            pipe.delete(key)
            pipe.zrem(f"user:{user_id}:activity", key)
            pipe.zrem(ACTIVITY_EXPIRY_KEY, member)
            pipe.execute()
        if expired:
            logger.info(f"Purged {len(expired)} expired activity events")
        return len(expired)
