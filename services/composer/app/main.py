from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, Query, Request, Response, status
from fastapi.responses import JSONResponse

from services.composer.app.activity import ActivityService
from services.composer.app.feed import FeedComposer
from services.composer.app.schema import (
    ActivityIn,
    BookmarkIn,
    CategoriesOut,
    CategoryPageOut,
    FeedRequest,
    FeedResponse,
    PreferencesIn,
    StatusOut,
)
from shared.app_logging.logger import CorrelationContext, setup_logging
from shared.config.settings import get_settings
from shared.database.seed import seed_categories
from shared.schemas.messages import EnrichedArticle, UserPreference
from shared.store import build_stores
from shared.utils.errors import InvalidRequest, Outcome, StoreUnavailable
from shared.utils.health import create_composer_health_checker

# Setup logging
logger = setup_logging("composer")

settings = get_settings()

health_checker = create_composer_health_checker()

_stores = None


def get_stores():
    global _stores
    if _stores is None:
        _stores = build_stores("composer")
    return _stores


def get_feed_composer() -> FeedComposer:
    articles, users = get_stores()
    return FeedComposer(articles, users, settings.feed)


def get_activity_service() -> ActivityService:
    articles, users = get_stores()
    return ActivityService(articles, users, settings.feed.max_limit)


@asynccontextmanager
async def lifespan(app: FastAPI):
    articles, _ = get_stores()
    seed_categories(articles)
    logger.info("Composer ready")
    try:
        yield
    finally:
        from shared.utils.redis_client import close_all_redis_clients

        close_all_redis_clients()
        logger.info("Redis connections closed")


app = FastAPI(title="MoodFeed Composer", lifespan=lifespan)


@app.middleware("http")
async def correlation_middleware(request: Request, call_next):
    with CorrelationContext(request.headers.get("X-Correlation-ID")) as correlation_id:
        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response


@app.exception_handler(InvalidRequest)
async def invalid_request_handler(request: Request, exc: InvalidRequest):
    logger.info(f"Rejected {request.url.path}: {exc}")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    logger.error(f"Store unavailable while serving {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Article store temporarily unavailable"},
        headers={"Retry-After": str(exc.retry_after)},
    )


def _split(value: Optional[str]) -> Optional[List[str]]:
    if not value:
        return None
    return [item.strip() for item in value.split(",") if item.strip()] or None


def _outcome_response(outcome: Outcome, article_id: str, response: Response) -> StatusOut:
    if outcome is Outcome.NOT_FOUND:
        response.status_code = status.HTTP_404_NOT_FOUND
    return StatusOut(status=outcome.value, article_id=article_id)


@app.get("/api/news/health")
def health():
    """Comprehensive health check endpoint."""
    return health_checker.run_all_checks()


@app.get("/api/news/health/live")
def liveness_check():
    """Liveness check endpoint."""
    return {"status": "alive", "service": "composer"}


@app.get("/api/news/health/ready")
def readiness_check():
    """Readiness check endpoint."""
    return health_checker.readiness()


@app.get("/api/news/articles", response_model=FeedResponse)
def get_articles(
    mood: Optional[str] = None,
    categories: Optional[str] = Query(None, description="Comma-separated category names"),
    source: Optional[str] = None,
    limit: Optional[int] = None,
    offset: int = 0,
    x_user_id: Optional[str] = Header(None),
    composer: FeedComposer = Depends(get_feed_composer),
):
    return composer.get_feed(FeedRequest(
        mood=mood,
        categories=_split(categories),
        source=source,
        limit=limit,
        offset=offset,
        user_id=x_user_id,
    ))


@app.get("/api/news/articles/recent", response_model=List[EnrichedArticle])
def get_recent(
    limit: int = 20,
    categories: Optional[str] = None,
    composer: FeedComposer = Depends(get_feed_composer),
):
    if limit < 1:
        raise InvalidRequest("limit must be at least 1")
    limit = min(limit, settings.feed.max_limit)
    return composer.articles.query_recent(limit, _split(categories))


@app.get("/api/news/articles/mood/{mood}", response_model=FeedResponse)
def get_articles_by_mood(
    mood: str,
    limit: Optional[int] = None,
    offset: int = 0,
    x_user_id: Optional[str] = Header(None),
    composer: FeedComposer = Depends(get_feed_composer),
):
    return composer.get_articles_by_mood(mood, x_user_id, limit, offset)


@app.get("/api/news/articles/category/{category}", response_model=CategoryPageOut)
def get_articles_by_category(
    category: str,
    limit: int = 20,
    cursor: Optional[str] = None,
    composer: FeedComposer = Depends(get_feed_composer),
):
    if limit < 1:
        raise InvalidRequest("limit must be at least 1")
    page = composer.articles.query_by_category(category, min(limit, settings.feed.max_limit), cursor)
    return CategoryPageOut(articles=page.items, cursor=page.cursor)


@app.post("/api/news/articles/{article_id}/bookmark", response_model=StatusOut)
def bookmark_article(
    article_id: str,
    response: Response,
    body: Optional[BookmarkIn] = None,
    x_user_id: Optional[str] = Header(None),
    service: ActivityService = Depends(get_activity_service),
):
    mood = body.mood if body else None
    return _outcome_response(service.bookmark(x_user_id, article_id, mood), article_id, response)


@app.delete("/api/news/articles/{article_id}/bookmark", response_model=StatusOut)
def unbookmark_article(
    article_id: str,
    response: Response,
    x_user_id: Optional[str] = Header(None),
    service: ActivityService = Depends(get_activity_service),
):
    return _outcome_response(service.unbookmark(x_user_id, article_id), article_id, response)


@app.get("/api/news/bookmarks", response_model=List[EnrichedArticle])
def list_bookmarks(
    limit: int = 20,
    offset: int = 0,
    x_user_id: Optional[str] = Header(None),
    service: ActivityService = Depends(get_activity_service),
):
    return service.list_bookmarks(x_user_id, limit, offset)


@app.post("/api/news/articles/{article_id}/activity", response_model=StatusOut)
def track_activity(
    article_id: str,
    body: ActivityIn,
    response: Response,
    x_user_id: Optional[str] = Header(None),
    service: ActivityService = Depends(get_activity_service),
):
    outcome = service.track_activity(x_user_id, article_id, body.action_type, body.mood)
    return _outcome_response(outcome, article_id, response)


@app.post("/api/news/articles/{article_id}/view", response_model=StatusOut)
def track_view(
    article_id: str,
    response: Response,
    x_user_id: Optional[str] = Header(None),
    service: ActivityService = Depends(get_activity_service),
):
    return _outcome_response(service.track_view(x_user_id, article_id), article_id, response)


@app.get("/api/news/categories", response_model=CategoriesOut)
def get_categories(composer: FeedComposer = Depends(get_feed_composer)):
    return CategoriesOut(categories=composer.get_categories())


@app.get("/api/news/preferences", response_model=UserPreference)
def get_preferences(
    x_user_id: Optional[str] = Header(None),
    service: ActivityService = Depends(get_activity_service),
):
    return service.get_preferences(x_user_id)


@app.put("/api/news/preferences", response_model=UserPreference)
def save_preferences(
    body: PreferencesIn,
    x_user_id: Optional[str] = Header(None),
    service: ActivityService = Depends(get_activity_service),
):
    return service.save_preferences(x_user_id, body.categories, body.setup_complete, body.preferences)
