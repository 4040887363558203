"""
Health check utilities for MoodFeed services.
"""

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import httpx
from sqlalchemy import text

from shared.app_logging.logger import get_logger
from shared.config.settings import get_settings
from shared.utils.redis_client import get_redis_client

CRITICAL_CHECKS = ("database", "redis")


class HealthStatus(Enum):
    """Health status enumeration."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"
    UNKNOWN = "unknown"


@dataclass
class HealthCheck:
    """Individual health check result."""

    name: str
    status: HealthStatus
    message: str
    response_time_ms: Optional[float] = None
    details: Optional[Dict[str, Any]] = None
    timestamp: datetime = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now(timezone.utc)


def _timed(name: str, probe: Callable[[], None], ok: str, failed: str,
           failure_status: HealthStatus = HealthStatus.UNHEALTHY) -> HealthCheck:
    start = time.perf_counter()
    try:
        probe()
        status, message = HealthStatus.HEALTHY, ok
    except Exception as e:
        status, message = failure_status, f"{failed}: {e}"
    return HealthCheck(
        name=name,
        status=status,
        message=message,
        response_time_ms=(time.perf_counter() - start) * 1000,
    )


class HealthChecker:
    """Runs a service's registered dependency checks."""

    def __init__(self, service_name: str):
        self.service_name = service_name
        self.logger = get_logger(f"{service_name}.health")
        self.checks: List[Callable[[], HealthCheck]] = []
        self.settings = get_settings()

    def add_check(self, check_func: Callable[[], HealthCheck]):
        """Add a health check function."""
        self.checks.append(check_func)

    def check_database(self) -> HealthCheck:
        """Check database connectivity."""
        def probe():
            from shared.database.session import SessionLocal

            with SessionLocal() as session:
                session.execute(text("SELECT 1"))

        return _timed("database", probe, "Database connection successful", "Database connection failed")

    def check_redis(self) -> HealthCheck:
        """Check Redis connectivity."""
        return _timed(
            "redis",
            lambda: get_redis_client(self.service_name).ping(),
            "Redis connection successful",
            "Redis connection failed",
        )

    def check_http_endpoint(self, url: str, name: str = "http_endpoint") -> HealthCheck:
        """Check an upstream is reachable. Providers being down only degrades the service."""
        def probe():
            with httpx.Client(timeout=5.0) as client:
                client.head(url)

        return _timed(
            name, probe, f"HTTP endpoint {url} is accessible", f"HTTP endpoint {url} failed",
            failure_status=HealthStatus.DEGRADED,
        )

    def run_all_checks(self) -> Dict[str, Any]:
        """Run all registered health checks."""
        results = []
        overall_status = HealthStatus.HEALTHY

        for check_func in self.checks:
            result = check_func()
            results.append(result)

            if result.status == HealthStatus.UNHEALTHY:
                overall_status = HealthStatus.UNHEALTHY
            elif result.status == HealthStatus.DEGRADED and overall_status == HealthStatus.HEALTHY:
                overall_status = HealthStatus.DEGRADED

        if overall_status != HealthStatus.HEALTHY:
            self.logger.warning(f"Health status {overall_status.value}")

        return {
            "service": self.service_name,
            "status": overall_status.value,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "checks": [
                {
                    "name": check.name,
                    "status": check.status.value,
                    "message": check.message,
                    "response_time_ms": check.response_time_ms,
                    "details": check.details,
                    "timestamp": check.timestamp.isoformat(),
                }
                for check in results
            ],
        }

    def readiness(self) -> Dict[str, Any]:
        """Ready when every critical dependency is healthy."""
        health_data = self.run_all_checks()
        critical = [c for c in health_data["checks"] if c["name"] in CRITICAL_CHECKS]
        return {
            "status": "ready" if all(c["status"] == "healthy" for c in critical) else "not_ready",
            "service": self.service_name,
            "critical_dependencies": {c["name"]: c["status"] for c in critical},
        }


def create_health_checker(service_name: str) -> HealthChecker:
    """Checker for whichever storage backend is configured."""
    checker = HealthChecker(service_name)
    if checker.settings.storage.backend == "redis":
        checker.add_check(checker.check_redis)
    else:
        checker.add_check(checker.check_database)
    return checker


def create_composer_health_checker() -> HealthChecker:
    """Create health checker for composer service."""
    return create_health_checker("composer")


def create_scheduler_health_checker() -> HealthChecker:
    """Scheduler additionally reports whether the configured providers are reachable."""
    checker = create_health_checker("scheduler")
    providers = checker.settings.providers
    if providers.news_api_key:
        checker.add_check(lambda: checker.check_http_endpoint(providers.news_api_url, "newsapi"))
    if providers.gnews_api_key:
        checker.add_check(lambda: checker.check_http_endpoint(providers.gnews_url, "gnews"))
    if checker.settings.scheduler.use_distributed_lock and checker.settings.storage.backend != "redis":
        checker.add_check(checker.check_redis)
    return checker
