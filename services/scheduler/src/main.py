import asyncio
import threading
import time
from datetime import datetime
from enum import Enum
from threading import Thread
from typing import Any, Callable, Dict, Optional

import schedule
import uvicorn
from fastapi import FastAPI, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest
from redis.exceptions import LockNotOwnedError

from services.collector.pipeline import IngestionPipeline
from services.collector.providers import default_providers
from shared.app_logging.logger import CorrelationContext, setup_logging
from shared.config.settings import Settings, get_settings
from shared.database.seed import seed_categories
from shared.store import build_stores
from shared.store.base import ArticleStore, UserStore, utcnow
from shared.utils.errors import Outcome, StoreUnavailable
from shared.utils.health import create_scheduler_health_checker
from shared.utils.redis_client import get_redis_client

# Setup logging
logger = setup_logging("scheduler")

INGESTION_RUNS = Counter("scheduler_ingestion_runs_total", "Ingestion runs by outcome", ["outcome"])
PURGED_ARTICLES = Counter("scheduler_purged_articles_total", "Articles removed by the purge job")


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class LocalRunGuard:
    """Single-flight guard for one scheduler process."""

    def __init__(self):
        self._lock = threading.Lock()

    def acquire(self) -> bool:
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        self._lock.release()


class RedisRunGuard:
    """Single-flight guard shared by every scheduler instance pointing at one Redis."""

    def __init__(self, lock):
        self._lock = lock

    def acquire(self) -> bool:
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        try:
            self._lock.release()
        except LockNotOwnedError:
            # The run outlived the lock timeout; another instance may already hold it
            logger.warning("Ingestion lock expired before the run finished")


class IngestionScheduler:
    """Owns the ingestion run state, the single-flight guard and the purge job."""

    def __init__(
        self,
        articles: ArticleStore,
        users: Optional[UserStore],
        pipeline_factory: Callable[[], IngestionPipeline],
        guard=None,
    ):
        self.articles = articles
        self.users = users
        self.pipeline_factory = pipeline_factory
        self.guard = guard or LocalRunGuard()
        self.state = RunState.IDLE
        self.last_run_time: Optional[datetime] = None
        self.last_result: Optional[Dict[str, Any]] = None
        self.last_purge_time: Optional[datetime] = None
        self.last_purge_result: Optional[Dict[str, Any]] = None

    @property
    def is_running(self) -> bool:
        return self.state is RunState.RUNNING

    def run_ingestion(self) -> Outcome:
        """Run one ingestion pass, or skip it if another is still running."""
        if not self.guard.acquire():
            logger.info("Ingestion already running; skipping this tick")
            INGESTION_RUNS.labels(outcome="skipped").inc()
            return Outcome.SKIPPED

        try:
            with CorrelationContext() as correlation_id:
                self.state = RunState.RUNNING
                self.last_run_time = utcnow()
                logger.info(f"Starting ingestion run {correlation_id}")
                try:
                    report = asyncio.run(self.pipeline_factory().run())
                except Exception as e:
                    self.state = RunState.FAILED
                    self.last_result = {"status": RunState.FAILED.value, "error": str(e)}
                    INGESTION_RUNS.labels(outcome="failed").inc()
                    logger.exception("Ingestion run failed")
                else:
                    self.state = RunState.SUCCESS
                    self.last_result = {"status": RunState.SUCCESS.value, **report.as_dict()}
                    INGESTION_RUNS.labels(outcome="success").inc()
                    logger.info(f"Ingestion run {correlation_id} finished")
        finally:
            self.state = RunState.IDLE
            self.guard.release()
        return Outcome.OK

    def run_purge(self) -> Dict[str, Any]:
        """Purge expired articles and activity; failures are logged and reported, not raised."""
        with CorrelationContext():
            self.last_purge_time = utcnow()
            try:
                articles = self.articles.purge_expired()
                activity = self.users.purge_expired_activity() if self.users else 0
            except Exception as e:
                self.last_purge_result = {"status": RunState.FAILED.value, "error": str(e)}
                if isinstance(e, StoreUnavailable):
                    self.last_purge_result["retry_after"] = e.retry_after
                logger.exception("Purge failed")
                return self.last_purge_result
            PURGED_ARTICLES.inc(articles)
            self.last_purge_result = {"status": RunState.SUCCESS.value, "articles": articles, "activity": activity}
            logger.info(f"Purge removed {articles} articles and {activity} activity events")
            return self.last_purge_result

    def status(self) -> Dict[str, Any]:
        next_run = schedule.next_run()
        return {
            "state": self.state.value,
            "is_running": self.is_running,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
            "last_result": self.last_result,
            "last_purge_time": self.last_purge_time.isoformat() if self.last_purge_time else None,
            "last_purge_result": self.last_purge_result,
            "next_run_time": next_run.isoformat() if next_run else None,
            "schedule": [repr(job) for job in schedule.get_jobs()],
        }


def run_threaded(job: Callable) -> None:
    """Dispatch a job on its own thread so a slow ingestion never delays a purge."""
    Thread(target=job, daemon=True).start()


def register_jobs(scheduler: IngestionScheduler, settings: Settings) -> None:
    cadence = settings.scheduler
    schedule.every(cadence.fetch_interval_hours).hours.do(run_threaded, scheduler.run_ingestion).tag("ingestion")
    schedule.every(cadence.purge_interval_hours).hours.do(run_threaded, scheduler.run_purge).tag("purge")
    logger.info(
        f"Scheduled ingestion every {cadence.fetch_interval_hours}h and purge every {cadence.purge_interval_hours}h"
    )


def run_schedule():
    """Run the scheduler."""
    while True:
        schedule.run_pending()
        time.sleep(1)


def build_scheduler(settings: Optional[Settings] = None) -> IngestionScheduler:
    settings = settings or get_settings()
    articles, users = build_stores("scheduler", settings)
    seed_categories(articles)

    def pipeline_factory() -> IngestionPipeline:
        return IngestionPipeline(
            store=articles,
            providers=default_providers(settings.providers),
            categories=settings.scheduler.categories,
            category_delay=settings.scheduler.category_delay_seconds,
        )

    guard = None
    if settings.scheduler.use_distributed_lock:
        guard = RedisRunGuard(
            get_redis_client("scheduler").lock(settings.scheduler.lock_name, timeout=settings.scheduler.lock_timeout)
        )
    return IngestionScheduler(articles, users, pipeline_factory, guard)


# FastAPI app for health checks and manual triggers
app = FastAPI(title="MoodFeed Scheduler")
health_checker = create_scheduler_health_checker()
_scheduler: Optional[IngestionScheduler] = None


def get_scheduler() -> IngestionScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = build_scheduler()
    return _scheduler


@app.get("/health")
def health_check():
    return health_checker.run_all_checks()


@app.get("/scheduler/status")
def scheduler_status():
    return get_scheduler().status()


@app.post("/scheduler/run")
def trigger_run():
    scheduler = get_scheduler()
    if scheduler.is_running:
        return {"status": Outcome.SKIPPED.value}
    run_threaded(scheduler.run_ingestion)
    return {"status": "started"}


@app.post("/scheduler/purge")
def trigger_purge():
    result = get_scheduler().run_purge()
    if result["status"] == RunState.FAILED.value:
        if "retry_after" in result:
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content=result,
                headers={"Retry-After": str(result["retry_after"])},
            )
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=result)
    return result


@app.get("/metrics")
def metrics():
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


def run_fastapi():
    """Run the FastAPI app."""
    uvicorn.run(app, host="0.0.0.0", port=8005)


if __name__ == "__main__":
    settings = get_settings()
    scheduler = get_scheduler()
    register_jobs(scheduler, settings)
    if settings.scheduler.run_on_start:
        run_threaded(scheduler.run_ingestion)

    scheduler_thread = Thread(target=run_schedule, daemon=True)
    scheduler_thread.start()

    run_fastapi()
