"""Name-based endpoint resolution from services__<name>__<endpoint>__<n> configuration."""

import logging
import os
from collections.abc import Mapping

import httpx

logger = logging.getLogger(__name__)

SERVICES_PREFIX = "services__"


class ServiceEndpointResolver:
    """Maps scheme://<service-name>/path onto a configured endpoint URL.

    The configuration uses the layout a topology host injects into each
    process, one key per endpoint instance:

        services__weatherapi__http__0=http://localhost:8000
        services__grafana__grafana-http__0=http://localhost:3000

    A name with no configured endpoint is left untouched so plain host names
    keep working.
    """

    def __init__(self, services: Mapping[str, Mapping[str, list[str]]] | None = None) -> None:
        self._services = {
            name.lower(): {endpoint.lower(): list(urls) for endpoint, urls in endpoints.items()}
            for name, endpoints in (services or {}).items()
        }

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] | None = None) -> "ServiceEndpointResolver":
        environ = os.environ if environ is None else environ
        indexed: dict[str, dict[str, dict[int, str]]] = {}

        for key, value in environ.items():
            if not key.lower().startswith(SERVICES_PREFIX) or not value.strip():
                continue
            parts = key[len(SERVICES_PREFIX):].split("__")
            if len(parts) != 3 or not parts[2].isdigit():
                logger.debug("Ignoring malformed service key: %s", key)
                continue
            name, endpoint, index = parts
            indexed.setdefault(name, {}).setdefault(endpoint, {})[int(index)] = value.strip()

        services = {
            name: {endpoint: [urls[i] for i in sorted(urls)] for endpoint, urls in endpoints.items()}
            for name, endpoints in indexed.items()
        }
        return cls(services)

    @property
    def service_names(self) -> list[str]:
        return sorted(self._services)

    def endpoint_for(self, service: str, scheme: str = "http") -> str | None:
        endpoints = self._services.get(service.lower())
        if not endpoints:
            return None
        urls = endpoints.get(scheme.lower()) or next(iter(endpoints.values()))
        return urls[0] if urls else None

    def resolve(self, url: httpx.URL | str) -> httpx.URL:
        url = httpx.URL(url)
        target = self.endpoint_for(url.host, url.scheme)
        if target is None:
            return url

        base = httpx.URL(target)
        return url.copy_with(scheme=base.scheme, host=base.host, port=base.port)
