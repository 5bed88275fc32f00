"""
Health checks for the chat service.
Covers the message store, Redis and the change-feed backlog.
"""
import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional
from enum import Enum

from sqlalchemy import func, select, text

from classroom_chat.models.message_event import MessageEvent

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    """Health check status enumeration."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


class HealthCheckResult:
    """Health check result container."""

    def __init__(
        self,
        service: str,
        status: HealthStatus,
        response_time: float,
        message: str = "",
        details: Optional[Dict[str, Any]] = None
    ):
        self.service = service
        self.status = status
        self.response_time = response_time
        self.message = message
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "service": self.service,
            "status": self.status.value,
            "response_time_ms": round(self.response_time * 1000, 2),
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "healthy": self.status == HealthStatus.HEALTHY
        }


async def check_database(session_factory) -> HealthCheckResult:
    start_time = time.time()
    try:
        async with session_factory() as db:
            await db.execute(text("SELECT 1"))
        return HealthCheckResult(
            service="database",
            status=HealthStatus.HEALTHY,
            response_time=time.time() - start_time,
            message="Database connection successful"
        )
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return HealthCheckResult(
            service="database",
            status=HealthStatus.UNHEALTHY,
            response_time=time.time() - start_time,
            message=f"Database connection failed: {str(e)}",
            details={"error": str(e)}
        )


async def check_redis(redis_getter: Callable[[], Awaitable[Any]]) -> HealthCheckResult:
    start_time = time.time()
    try:
        redis = await redis_getter()
        if not await redis.ping():
            raise ConnectionError("Redis did not answer PING")
        return HealthCheckResult(
            service="redis",
            status=HealthStatus.HEALTHY,
            response_time=time.time() - start_time,
            message="Redis connection successful"
        )
    except Exception as e:
        logger.error(f"Redis health check failed: {e}")
        return HealthCheckResult(
            service="redis",
            status=HealthStatus.UNHEALTHY,
            response_time=time.time() - start_time,
            message=f"Redis connection failed: {str(e)}",
            details={"error": str(e)}
        )


async def check_change_feed(session_factory, backlog_threshold: int = 1000) -> HealthCheckResult:
    """Search lags behind the store while events are pending; a large backlog is degraded, not down."""
    start_time = time.time()
    try:
        async with session_factory() as db:
            pending = await db.scalar(
                select(func.count()).select_from(MessageEvent).where(MessageEvent.processed_at.is_(None))
            )
        status = HealthStatus.HEALTHY if pending < backlog_threshold else HealthStatus.DEGRADED
        return HealthCheckResult(
            service="change_feed",
            status=status,
            response_time=time.time() - start_time,
            message=f"{pending} change events awaiting indexing",
            details={"pending_events": pending, "threshold": backlog_threshold}
        )
    except Exception as e:
        logger.error(f"Change feed health check failed: {e}")
        return HealthCheckResult(
            service="change_feed",
            status=HealthStatus.UNKNOWN,
            response_time=time.time() - start_time,
            message=f"Change feed check failed: {str(e)}",
            details={"error": str(e)}
        )


class HealthCheckManager:
    """Runs the registered checks and folds them into one status."""

    def __init__(self, session_factory, redis_getter):
        self.checks = {
            "database": lambda: check_database(session_factory),
            "redis": lambda: check_redis(redis_getter),
            "change_feed": lambda: check_change_feed(session_factory),
        }

    async def run_checks(self) -> Dict[str, Any]:
        start_time = time.time()
        results = {}
        for check_name, check_func in self.checks.items():
            results[check_name] = (await check_func()).to_dict()

        return {
            "status": self._calculate_overall_status(results).value,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "total_response_time_ms": round((time.time() - start_time) * 1000, 2),
            "checks": results
        }

    def _calculate_overall_status(self, results: Dict[str, Any]) -> HealthStatus:
        if not results:
            return HealthStatus.UNKNOWN

        statuses = [result.get("status", "unknown") for result in results.values()]

        if all(status == "healthy" for status in statuses):
            return HealthStatus.HEALTHY
        elif any(status == "unhealthy" for status in statuses):
            return HealthStatus.UNHEALTHY
        elif any(status == "degraded" for status in statuses):
            return HealthStatus.DEGRADED
        else:
            return HealthStatus.UNKNOWN
