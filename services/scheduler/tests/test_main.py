"""Tests for the scheduler service."""
import pytest
import schedule
from fastapi.testclient import TestClient
from redis.exceptions import LockNotOwnedError

from conftest import make_article
from services.collector.pipeline import CategoryResult, IngestionReport
from services.scheduler.src import main
from services.scheduler.src.main import IngestionScheduler, RedisRunGuard, RunState
from shared.utils.errors import Outcome, StoreUnavailable


class StubPipeline:
    def __init__(self, report=None, error=None):
        self.report = report or IngestionReport([CategoryResult("technology", fetched=3, stored=2, duplicates=1)])
        self.error = error
        self.runs = 0

    async def run(self):
        self.runs += 1
        if self.error:
            raise self.error
        return self.report


class BusyGuard:
    def acquire(self):
        return False

    def release(self):
        raise AssertionError("release without acquire")


@pytest.fixture
def pipeline():
    return StubPipeline()


@pytest.fixture
def scheduler(stores, pipeline):
    articles, users = stores
    return IngestionScheduler(articles, users, lambda: pipeline)


def test_successful_run_records_report(scheduler, pipeline):
    assert scheduler.run_ingestion() is Outcome.OK

    assert pipeline.runs == 1
    assert scheduler.state is RunState.IDLE
    assert scheduler.last_run_time is not None
    assert scheduler.last_result["status"] == "success"
    assert scheduler.last_result["stored"] == 2
    assert scheduler.last_result["categories"]["technology"]["duplicates"] == 1


def test_failed_run_is_recorded_and_releases_guard(stores):
    articles, users = stores
    failing = StubPipeline(error=RuntimeError("provider exploded"))
    scheduler = IngestionScheduler(articles, users, lambda: failing)

    assert scheduler.run_ingestion() is Outcome.OK
    assert scheduler.last_result == {"status": "failed", "error": "provider exploded"}
    assert not scheduler.is_running

    # The guard was released, so the next tick runs again
    scheduler.run_ingestion()
    assert failing.runs == 2


def test_overlapping_run_is_skipped(stores, pipeline):
    articles, users = stores
    scheduler = IngestionScheduler(articles, users, lambda: pipeline, guard=BusyGuard())

    assert scheduler.run_ingestion() is Outcome.SKIPPED
    assert pipeline.runs == 0
    assert scheduler.last_result is None


def test_purge_removes_expired_articles_and_activity(stores, clock, scheduler):
    articles, users = stores
    articles.put(make_article("na_1"))
    users.record_activity(users.new_activity("u1", "na_1", "view"))
    clock.advance(days=11)
    articles.put(make_article("na_2"))

    assert scheduler.run_purge() == {"status": "success", "articles": 1, "activity": 0}
    assert articles.get("na_2") is not None
    assert scheduler.last_purge_time is not None


def test_status_reports_last_run(scheduler):
    scheduler.run_ingestion()
    status = scheduler.status()

    assert status["state"] == "idle"
    assert status["is_running"] is False
    assert status["last_result"]["status"] == "success"
    assert status["last_purge_time"] is None
    assert status["schedule"] == []


def test_http_endpoints(monkeypatch, scheduler):
    monkeypatch.setattr(main, "_scheduler", scheduler)
    client = TestClient(main.app)

    assert client.get("/scheduler/status").json()["state"] == "idle"
    assert client.post("/scheduler/purge").json() == {"status": "success", "articles": 0, "activity": 0}

    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "scheduler_ingestion_runs_total" in metrics.text


def test_register_jobs_uses_configured_cadence(scheduler):
    settings = main.get_settings()
    try:
        main.register_jobs(scheduler, settings)
        jobs = {next(iter(job.tags)): job for job in schedule.get_jobs()}

        assert jobs["ingestion"].interval == settings.scheduler.fetch_interval_hours
        assert jobs["purge"].interval == settings.scheduler.purge_interval_hours
        assert len(scheduler.status()["schedule"]) == 2
    finally:
        schedule.clear()


class DownArticleStore:
    def purge_expired(self):
        raise StoreUnavailable("connection refused")


def test_failed_purge_is_recorded_not_raised(stores, pipeline):
    _, users = stores
    scheduler = IngestionScheduler(DownArticleStore(), users, lambda: pipeline)

    result = scheduler.run_purge()

    assert result == {"status": "failed", "error": "connection refused", "retry_after": 5}
    assert scheduler.status()["last_purge_result"] == result
    assert scheduler.last_purge_time is not None


def test_purge_endpoint_maps_store_outage_to_503(monkeypatch, stores, pipeline):
    _, users = stores
    monkeypatch.setattr(main, "_scheduler", IngestionScheduler(DownArticleStore(), users, lambda: pipeline))

    response = TestClient(main.app).post("/scheduler/purge")

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "5"
    assert response.json()["status"] == "failed"


class ExpiredLock:
    def acquire(self, blocking=True):
        return True

    def release(self):
        raise LockNotOwnedError("Cannot release a lock that's no longer owned")


def test_expired_distributed_lock_does_not_break_the_run(stores, pipeline):
    articles, users = stores
    scheduler = IngestionScheduler(articles, users, lambda: pipeline, guard=RedisRunGuard(ExpiredLock()))

    assert scheduler.run_ingestion() is Outcome.OK
    assert scheduler.last_result["status"] == "success"
    assert scheduler.state is RunState.IDLE
