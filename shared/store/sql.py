"""
SQLAlchemy implementation of the article and user stores.

Datetimes are persisted as naive UTC and returned as aware UTC.
"""

import json
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from sqlalchemy import and_, or_, text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from shared.app_logging.logger import get_logger
from shared.database.models.article import Article, ArticleMoodTag
from shared.database.models.category import NewsCategory
from shared.database.models.user import UserBookmark, UserNewsActivity, UserNewsPreference
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
    as_utc,
    decode_cursor,
    from_micros,
    page_from,
    utcnow,
)
from shared.utils.errors import Outcome, StoreUnavailable
from shared.utils.retry import retry

logger = get_logger("store.sql")

store_retry = retry(retryable_exceptions=(OperationalError,), exhausted_error=StoreUnavailable)


def _naive(dt: datetime) -> datetime:
    return as_utc(dt).replace(tzinfo=None)


def _to_row(article: EnrichedArticle) -> Article:
    return Article(
        id=article.id,
        title=article.title,
        description=article.description,
        url=article.url,
        image_url=article.image_url,
        source=article.source,
        author=article.author,
        published_at=_naive(article.published_at),
        category=article.category,
        sentiment=article.sentiment.value,
        mood_tags=json.dumps(article.mood_tags),
        read_time=article.read_time,
        is_healthy_content=article.is_healthy_content,
        is_active=article.is_active,
        view_count=article.view_count,
        expires_at=_naive(article.expires_at),
        created_at=_naive(article.created_at),
    )


def _from_row(row: Article) -> EnrichedArticle:
    return EnrichedArticle(
        id=row.id,
        title=row.title,
        description=row.description,
        url=row.url,
        image_url=row.image_url,
        source=row.source,
        author=row.author,
        published_at=as_utc(row.published_at),
        category=row.category,
        sentiment=row.sentiment,
        mood_tags=json.loads(row.mood_tags),
        read_time=row.read_time,
        is_healthy_content=row.is_healthy_content,
        is_active=row.is_active,
        view_count=row.view_count,
        expires_at=as_utc(row.expires_at),
        created_at=as_utc(row.created_at) if row.created_at else None,
    )


class SqlArticleStore(ArticleStore):
    def __init__(self, session_factory: sessionmaker, ttl_days: int, clock: Clock = utcnow):
        super().__init__(ttl_days, clock)
        self.session_factory = session_factory

    def _live(self, session: Session):
        return session.query(Article).filter(
            Article.is_active.is_(True),
            Article.expires_at > _naive(self.clock()),
        )

    @staticmethod
    def _newest_first(query):
        return query.order_by(Article.published_at.desc(), Article.id.desc())

    @store_retry
    def put(self, article: EnrichedArticle) -> bool:
        now = self.clock()
        article = article.model_copy(update={"created_at": now, "expires_at": self.expiry_for(now)})
        session = self.session_factory()
        try:
            session.add(_to_row(article))
            # Flush the article first so the tag rows satisfy the foreign key
            session.flush()
            for tag in article.mood_tags:
                session.add(ArticleMoodTag(
                    article_id=article.id,
                    tag=tag,
                    published_at=_naive(article.published_at),
                ))
            session.commit()
            logger.debug(f"Stored article {article.id}: {article.title[:50]}")
            return True
        except IntegrityError:
            session.rollback()
            logger.debug(f"Article already stored, skipping: {article.url}")
            return False
        except Exception as e:
            session.rollback()
            logger.error(f"Error saving article {article.id}: {e}")
            raise
        finally:
            session.close()

    @store_retry
    def get(self, article_id: str) -> Optional[EnrichedArticle]:
        with self.session_factory() as session:
            row = self._live(session).filter(Article.id == article_id).one_or_none()
            return _from_row(row) if row else None

    @store_retry
    def query_by_category(self, category: str, limit: int, cursor: Optional[str] = None) -> ArticlePage:
        position = decode_cursor(cursor) if cursor else None
        with self.session_factory() as session:
            query = self._live(session).filter(Article.category == category)
            if position:
                last_published = _naive(from_micros(position[0]))
                query = query.filter(or_(
                    Article.published_at < last_published,
                    and_(Article.published_at == last_published, Article.id < position[1]),
                ))
            rows = self._newest_first(query).limit(limit + 1).all()
            return page_from([_from_row(r) for r in rows], limit)

    @store_retry
    def query_by_mood(self, mood: str, limit: int) -> List[EnrichedArticle]:
        with self.session_factory() as session:
            rows = (
                self._live(session)
                .join(ArticleMoodTag, ArticleMoodTag.article_id == Article.id)
                .filter(ArticleMoodTag.tag == mood)
                .order_by(ArticleMoodTag.published_at.desc(), Article.id.desc())
                .limit(limit)
                .all()
            )
            return [_from_row(r) for r in rows]

    @store_retry
    def query_feed(
        self,
        categories: Optional[Sequence[str]],
        source: Optional[str],
        since: datetime,
        limit: int,
        offset: int,
    ) -> Tuple[List[EnrichedArticle], int]:
        with self.session_factory() as session:
            query = self._live(session).filter(Article.published_at >= _naive(since))
            if categories:
                query = query.filter(Article.category.in_(list(categories)))
            if source:
                query = query.filter(Article.source == source)
            total = query.count()
            rows = self._newest_first(query).offset(offset).limit(limit).all()
            return [_from_row(r) for r in rows], total

    @store_retry
    def _query_recent_all(self, limit: int) -> List[EnrichedArticle]:
        with self.session_factory() as session:
            rows = self._newest_first(self._live(session)).limit(limit).all()
            return [_from_row(r) for r in rows]

    @store_retry
    def increment_view_count(self, article_id: str) -> bool:
        with self.session_factory() as session:
            updated = (
                self._live(session)
                .filter(Article.id == article_id)
                .update({Article.view_count: Article.view_count + 1}, synchronize_session=False)
            )
            session.commit()
        return bool(updated)

    @store_retry
    def purge_expired(self) -> int:
        cutoff = _naive(self.clock())
        with self.session_factory() as session:
            with session.begin():
                ids = [row.id for row in session.query(Article.id).filter(Article.expires_at <= cutoff)]
                if not ids:
                    return 0
                session.query(ArticleMoodTag).filter(
                    ArticleMoodTag.article_id.in_(ids)
                ).delete(synchronize_session=False)
                deleted = session.query(Article).filter(
                    Article.id.in_(ids)
                ).delete(synchronize_session=False)
        logger.info(f"Purged {deleted} expired articles")
        return deleted

    @store_retry
    def seed_categories(self, categories: Iterable[Category]) -> int:
        created = 0
        with self.session_factory() as session:
            for category in categories:
                if session.get(NewsCategory, category.name) is None:
                    session.add(NewsCategory(**category.model_dump()))
                    created += 1
            session.commit()
        return created

    @store_retry
    def list_categories(self) -> List[Category]:
        with self.session_factory() as session:
            rows = (
                session.query(NewsCategory)
                .filter(NewsCategory.is_active.is_(True))
                .order_by(NewsCategory.sort_order)
                .all()
            )
            return [Category.model_validate(r) for r in rows]

    def ping(self) -> bool:
        with self.session_factory() as session:
            session.execute(text("SELECT 1"))
        return True


class SqlUserStore(UserStore):
    def __init__(self, session_factory: sessionmaker, activity_ttl_days: int, clock: Clock = utcnow):
        super().__init__(activity_ttl_days, clock)
        self.session_factory = session_factory

    @store_retry
    def get_preferences(self, user_id: str) -> UserPreference:
        with self.session_factory() as session:
            row = session.get(UserNewsPreference, user_id)
            if row is None:
                return UserPreference(user_id=user_id)
            return UserPreference(
                user_id=row.user_id,
                categories=json.loads(row.categories),
                setup_complete=row.setup_complete,
                preferences=json.loads(row.preferences),
            )

    @store_retry
    def save_preferences(self, preference: UserPreference) -> UserPreference:
        with self.session_factory() as session:
            session.merge(UserNewsPreference(
                user_id=preference.user_id,
                categories=json.dumps(preference.categories),
                setup_complete=preference.setup_complete,
                preferences=json.dumps(preference.preferences),
            ))
            session.commit()
        return preference

    @store_retry
    def add_bookmark(self, user_id: str, article_id: str) -> bool:
        session = self.session_factory()
        try:
            exists = (
                session.query(UserBookmark.id)
                .filter(UserBookmark.user_id == user_id, UserBookmark.article_id == article_id)
                .first()
            )
            if exists:
                return False
            session.add(UserBookmark(user_id=user_id, article_id=article_id, bookmarked_at=_naive(self.clock())))
            session.commit()
            return True
        except IntegrityError:
            # Lost a race with a concurrent bookmark of the same article
            session.rollback()
            return False
        finally:
            session.close()

    @store_retry
    def remove_bookmark(self, user_id: str, article_id: str) -> Outcome:
        with self.session_factory() as session:
            deleted = (
                session.query(UserBookmark)
                .filter(UserBookmark.user_id == user_id, UserBookmark.article_id == article_id)
                .delete(synchronize_session=False)
            )
            session.commit()
        return Outcome.OK if deleted else Outcome.NOT_FOUND

    @store_retry
    def list_bookmarks(self, user_id: str, limit: Optional[int] = None, offset: int = 0) -> List[Bookmark]:
        with self.session_factory() as session:
            query = (
                session.query(UserBookmark)
                .filter(UserBookmark.user_id == user_id)
                .order_by(UserBookmark.bookmarked_at.desc(), UserBookmark.id.desc())
                .offset(offset)
            )
            if limit is not None:
                query = query.limit(limit)
            return [
                Bookmark(user_id=r.user_id, article_id=r.article_id, bookmarked_at=as_utc(r.bookmarked_at))
                for r in query.all()
            ]

    @store_retry
    def bookmarked_ids(self, user_id: str, article_ids: Sequence[str]) -> Set[str]:
        if not article_ids:
            return set()
        with self.session_factory() as session:
            rows = (
                session.query(UserBookmark.article_id)
                .filter(UserBookmark.user_id == user_id, UserBookmark.article_id.in_(list(article_ids)))
                .all()
            )
            return {r.article_id for r in rows}

    @store_retry
    def record_activity(self, event: ActivityEvent) -> None:
        with self.session_factory() as session:
            session.add(UserNewsActivity(
                user_id=event.user_id,
                article_id=event.article_id,
                action_type=event.action_type.value,
                mood_at_time=event.mood_at_time.value if event.mood_at_time else None,
                timestamp=_naive(event.timestamp),
                expires_at=_naive(event.expires_at),
            ))
            session.commit()

    @store_retry
    def list_activity(self, user_id: str, limit: int = 50) -> List[ActivityEvent]:
        with self.session_factory() as session:
            rows = (
                session.query(UserNewsActivity)
                .filter(
                    UserNewsActivity.user_id == user_id,
                    UserNewsActivity.expires_at > _naive(self.clock()),
                )
                .order_by(UserNewsActivity.timestamp.desc(), UserNewsActivity.id.desc())
                .limit(limit)
                .all()
            )
            return [
                ActivityEvent(
                    user_id=r.user_id,
                    article_id=r.article_id,
                    action_type=r.action_type,
                    mood_at_time=r.mood_at_time,
                    timestamp=as_utc(r.timestamp),
                    expires_at=as_utc(r.expires_at),
                )
                for r in rows
            ]

    @store_retry
    def purge_expired_activity(self) -> int:
        with self.session_factory() as session:
            deleted = (
                session.query(UserNewsActivity)
                .filter(UserNewsActivity.expires_at <= _naive(self.clock()))
                .delete(synchronize_session=False)
            )
            session.commit()
        if deleted:
            logger.info(f"Purged {deleted} expired activity events")
        return deleted
