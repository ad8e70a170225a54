"""Factory for outbound clients carrying the standard resilience defaults."""

from typing import Any

import httpx

from .discovery import ServiceEndpointResolver
from .resilience import HttpClientDefaults, ResilientTransport


def create_http_client(
    defaults: HttpClientDefaults | None = None,
    resolver: ServiceEndpointResolver | None = None,
    **kwargs: Any,
) -> httpx.Client:
    """
    Create an httpx.Client wired with discovery, retries and circuit breaking.

    Extra keyword arguments are passed through to httpx.Client; an explicit
    ``transport`` is wrapped rather than replaced.

    Example:
        client = create_http_client(base_url="http://weatherapi")
        client.get("/weatherforecast")
    """
    defaults = defaults or HttpClientDefaults()
    inner = kwargs.pop("transport", None)
    kwargs.setdefault("timeout", defaults.timeout_seconds)
    transport = ResilientTransport(defaults, resolver=resolver, transport=inner)
    return httpx.Client(transport=transport, **kwargs)
