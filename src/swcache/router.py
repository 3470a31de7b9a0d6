"""Per-request strategy classification.

:class:`RequestRouter` decides, for each intercepted request, whether the
caching layer handles it at all and, if so, with which
:class:`~swcache.models.StrategyClass`:

1. Non-GET requests are never intercepted.
2. Requests to a streaming endpoint (server-sent events) are never
   intercepted, so a long-lived connection is not buffered into a store.
3. API paths and requests to the backend port are served network-first.
4. Everything else is served cache-first.

The first matching rule wins.
"""

from __future__ import annotations

from typing import Optional

import httpx

from swcache.models import RoutingConfig, StrategyClass

NAVIGATE = "navigate"


def is_navigation(request: httpx.Request) -> bool:
    """Whether *request* is a full document navigation.

    Browsers mark navigations with ``Sec-Fetch-Mode: navigate``.
    """
    return request.headers.get("sec-fetch-mode", "").lower() == NAVIGATE


class RequestRouter:
    """Classifies requests into strategy classes.

    Args:
        config: The API prefix, backend port and excluded streaming paths.
    """

    def __init__(self, config: RoutingConfig) -> None:
        self._config = config

    def classify(self, request: httpx.Request) -> Optional[StrategyClass]:
        """Return the strategy for *request*, or ``None`` to bypass the cache."""
        if request.method.upper() != "GET":
            return None

        path = request.url.path
        if any(excluded in path for excluded in self._config.excluded_paths):
            return None

        if path.startswith(self._config.api_prefix) or self._targets_backend(request.url):
            return StrategyClass.NETWORK_FIRST
        return StrategyClass.CACHE_FIRST

    def _targets_backend(self, url: httpx.URL) -> bool:
        return self._config.backend_port is not None and url.port == self._config.backend_port
