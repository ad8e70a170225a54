"""
Resilient HTTP Transport
========================

httpx transport applying the standard outbound defaults to every request:

- service discovery: scheme://<service-name>/... resolved through
  ServiceEndpointResolver
- connection retries performed by httpx.HTTPTransport
- one circuit breaker (pybreaker) per target authority

Responses with a transient status (5xx, 408, 429) count as breaker failures
but are still handed back to the caller unchanged.
"""

import logging
import threading
from dataclasses import dataclass

import httpx
import pybreaker

from weatherstack.config.settings import Settings
from weatherstack.core.exceptions import CircuitOpenError

from .discovery import ServiceEndpointResolver

logger = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES = frozenset({408, 429})


def is_transient_status(status_code: int) -> bool:
    return status_code >= 500 or status_code in TRANSIENT_STATUS_CODES


@dataclass(frozen=True)
class HttpClientDefaults:
    timeout_seconds: float = 10.0
    retries: int = 3
    circuit_fail_max: int = 5
    circuit_reset_timeout: int = 30
    service_discovery: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "HttpClientDefaults":
        config = settings.http_client
        return cls(
            timeout_seconds=config.timeout_seconds,
            retries=config.retries,
            circuit_fail_max=config.circuit_fail_max,
            circuit_reset_timeout=config.circuit_reset_timeout,
        )


class _TransientResponse(Exception):
    """Carries a transient response out of a breaker call so it counts as a failure."""

    def __init__(self, response: httpx.Response) -> None:
        super().__init__(f"HTTP {response.status_code}")
        self.response = response


class _BreakerLogListener(pybreaker.CircuitBreakerListener):
    def state_change(self, cb, old_state, new_state) -> None:
        old_name = old_state.name if old_state else None
        logger.warning("Circuit %s: %s -> %s", cb.name, old_name, new_state.name)


class CircuitBreakerRegistry:
    """Circuit breakers keyed by target authority (host:port)."""

    def __init__(self, fail_max: int = 5, reset_timeout: int = 30) -> None:
        self.fail_max = fail_max
        self.reset_timeout = reset_timeout
        self._breakers: dict[str, pybreaker.CircuitBreaker] = {}
        self._lock = threading.Lock()

    def get(self, authority: str) -> pybreaker.CircuitBreaker:
        with self._lock:
            breaker = self._breakers.get(authority)
            if breaker is None:
                breaker = pybreaker.CircuitBreaker(
                    fail_max=self.fail_max,
                    reset_timeout=self.reset_timeout,
                    name=authority,
                    listeners=[_BreakerLogListener()],
                )
                self._breakers[authority] = breaker
                logger.debug("Created circuit breaker for %s", authority)
            return breaker

    def state(self, authority: str) -> str:
        breaker = self._breakers.get(authority)
        return breaker.current_state if breaker else pybreaker.STATE_CLOSED


class ResilientTransport(httpx.BaseTransport):
    """Discovery, retries and circuit breaking around an inner transport."""

    def __init__(
        self,
        defaults: HttpClientDefaults | None = None,
        resolver: ServiceEndpointResolver | None = None,
        transport: httpx.BaseTransport | None = None,
        breakers: CircuitBreakerRegistry | None = None,
    ) -> None:
        self.defaults = defaults or HttpClientDefaults()
        if resolver is None and self.defaults.service_discovery:
            resolver = ServiceEndpointResolver.from_environ()
        self.resolver = resolver
        self._transport = transport or httpx.HTTPTransport(retries=self.defaults.retries)
        self.breakers = breakers or CircuitBreakerRegistry(
            fail_max=self.defaults.circuit_fail_max,
            reset_timeout=self.defaults.circuit_reset_timeout,
        )

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        if self.resolver is not None:
            resolved = self.resolver.resolve(request.url)
            if resolved != request.url:
                logger.debug("Resolved %s -> %s", request.url, resolved)
                request.url = resolved
                request.headers["Host"] = resolved.netloc.decode("ascii")

        authority = request.url.netloc.decode("ascii")
        breaker = self.breakers.get(authority)

        try:
            return breaker.call(self._send, request)
        except _TransientResponse as e:
            return e.response
        except pybreaker.CircuitBreakerError as e:
            # The call that trips the breaker still produced a response
            tripped_by = e.__cause__ or e.__context__
            if isinstance(tripped_by, _TransientResponse):
                return tripped_by.response
            if e.__cause__ is not None:
                raise e.__cause__ from None
            raise CircuitOpenError(
                authority,
                f"Circuit open for {authority}",
                details={'url': str(request.url), 'reset_timeout': self.breakers.reset_timeout},
            ) from e

    def _send(self, request: httpx.Request) -> httpx.Response:
        response = self._transport.handle_request(request)
        if is_transient_status(response.status_code):
            response.read()
            raise _TransientResponse(response)
        return response

    def close(self) -> None:
        self._transport.close()
