"""Health check registry: tagged checks behind readiness and liveness routes."""

import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)

LIVE_TAG = "live"


class HealthStatus(StrEnum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


@dataclass
class HealthCheckResult:
    status: HealthStatus
    message: str = ""
    timestamp: str = field(default_factory=lambda: datetime.now(tz=UTC).isoformat())
    details: dict[str, Any] | None = None

    @classmethod
    def healthy(cls, message: str = "", details: dict[str, Any] | None = None) -> "HealthCheckResult":
        return cls(HealthStatus.HEALTHY, message, details=details)

    @classmethod
    def unhealthy(cls, message: str = "", details: dict[str, Any] | None = None) -> "HealthCheckResult":
        return cls(HealthStatus.UNHEALTHY, message, details=details)

    def to_dict(self) -> dict[str, Any]:
        return {
            'status': self.status.value,
            'message': self.message,
            'timestamp': self.timestamp,
            'details': self.details or {},
        }


HealthCheckFunc = Callable[[], HealthCheckResult | Awaitable[HealthCheckResult]]


@dataclass(frozen=True)
class HealthCheckRegistration:
    name: str
    check: HealthCheckFunc
    tags: frozenset[str] = frozenset()


class HealthCheckProvider:
    """Abstract health check provider; implement check() for custom checks."""

    async def check(self) -> HealthCheckResult:
        raise NotImplementedError


class HealthCheckRegistry:
    """Named, tagged health checks evaluated on demand."""

    def __init__(self) -> None:
        self._registrations: dict[str, HealthCheckRegistration] = {}

    def add_check(self, name: str, check: HealthCheckFunc | HealthCheckProvider,
                  tags: Iterable[str] = ()) -> "HealthCheckRegistry":
        if isinstance(check, HealthCheckProvider):
            check = check.check
        tags = frozenset(tags)
        if name in self._registrations:
            logger.warning("Replacing health check: %s", name)
        self._registrations[name] = HealthCheckRegistration(name, check, tags)
        logger.info("Added health check: %s tags=%s", name, sorted(tags))
        return self

    @property
    def registrations(self) -> tuple[HealthCheckRegistration, ...]:
        return tuple(self._registrations.values())

    def names(self, predicate: Callable[[HealthCheckRegistration], bool] | None = None) -> list[str]:
        return [r.name for r in self.registrations if predicate is None or predicate(r)]

    async def check_health(
        self, predicate: Callable[[HealthCheckRegistration], bool] | None = None
    ) -> dict[str, Any]:
        """Run every check accepted by predicate; unhealthy if any of them is."""
        checks: dict[str, Any] = {}
        overall = HealthStatus.HEALTHY

        for registration in self.registrations:
            if predicate is not None and not predicate(registration):
                continue
            result = await self._run(registration)
            checks[registration.name] = {**result.to_dict(), 'tags': sorted(registration.tags)}
            if result.status == HealthStatus.UNHEALTHY:
                overall = HealthStatus.UNHEALTHY

        return {'status': overall.value, 'checks': checks, 'timestamp': datetime.now(tz=UTC).isoformat()}

    async def check_readiness(self) -> dict[str, Any]:
        return await self.check_health()

    async def check_liveness(self) -> dict[str, Any]:
        return await self.check_health(lambda r: LIVE_TAG in r.tags)

    async def _run(self, registration: HealthCheckRegistration) -> HealthCheckResult:
        try:
            result = registration.check()
            if inspect.isawaitable(result):
                result = await result
            if isinstance(result, bool):
                return HealthCheckResult.healthy() if result else HealthCheckResult.unhealthy()
            if not isinstance(result, HealthCheckResult):
                logger.error("Health check %s returned %r", registration.name, result)
                return HealthCheckResult.unhealthy(f"Check returned {type(result).__name__}")
            return result
        except Exception as e:
            logger.exception("Health check failed for %s: %s", registration.name, e)
            return HealthCheckResult.unhealthy(f"Check failed: {e}")


def _status_code(report: dict[str, Any]) -> int:
    return 200 if report['status'] == HealthStatus.HEALTHY.value else 503


def register_health_endpoints(app, registry: HealthCheckRegistry) -> None:
    """Register /health (every check) and /alive (checks tagged "live") with a FastAPI app."""
    from fastapi.responses import JSONResponse

    @app.get("/health", tags=["health"])
    async def readiness_probe() -> JSONResponse:
        report = await registry.check_readiness()
        return JSONResponse(content=report, status_code=_status_code(report))

    @app.get("/alive", tags=["health"])
    async def liveness_probe() -> JSONResponse:
        report = await registry.check_liveness()
        return JSONResponse(content=report, status_code=_status_code(report))

    logger.info("Health check endpoints registered: /health, /alive")
