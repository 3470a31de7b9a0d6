"""Network-First, Cache-First and Precache resolution of intercepted requests.

:class:`StrategyEngine` executes the strategy the
:class:`~swcache.router.RequestRouter` picked for a request:

- **Network-First** -- one network attempt; if it fails for any reason
  (:class:`httpx.RequestError`) fall back to any stored copy, otherwise re-raise the original error.
- **Cache-First** -- serve a stored copy without touching the network; on
  a miss make one network attempt, and if that fails for a navigation,
  serve the stored root document as an offline shell.
- **Precache** -- one network attempt that must return 200; used by the
  install phase.

Only status-200 responses are ever written back, into the runtime store,
by a background task that hands the diskcache write to a worker thread;
the caller never waits for it. The delivered response
and the stored record are materialised from the same
:class:`~swcache.models.ResponseRecord` snapshot.

There is no retry: each request makes at most one network attempt.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from swcache.exceptions import InstallError
from swcache.models import (
    RequestKey,
    ResponseRecord,
    ResponseSource,
    StrategyClass,
    WorkerConfig,
)
from swcache.store import StoreRegistry

logger = logging.getLogger(__name__)

CACHEABLE_STATUS = 200


class StrategyEngine:
    """Executes caching strategies against the network and the store registry.

    Args:
        config: Worker configuration (runtime store name, offline fallback
            path).
        registry: The stores to read from and write back into.
        network: Client used for the single network attempt per request.

    Example::

        engine = StrategyEngine(config, registry, httpx.AsyncClient())
        response = await engine.network_first(httpx.Request("GET", url))
        await engine.drain()   # wait for write-back before shutting down
    """

    def __init__(
        self,
        config: WorkerConfig,
        registry: StoreRegistry,
        network: httpx.AsyncClient,
    ) -> None:
        self._config = config
        self._registry = registry
        self._network = network
        self._write_backs: set[asyncio.Task[None]] = set()

    @property
    def pending_write_backs(self) -> int:
        """Number of write-backs that have not finished yet."""
        return sum(1 for task in self._write_backs if not task.done())

    async def execute(
        self,
        strategy: StrategyClass,
        request: httpx.Request,
        navigate: bool = False,
    ) -> httpx.Response:
        """Resolve *request* with *strategy*."""
        if strategy is StrategyClass.NETWORK_FIRST:
            return await self.network_first(request)
        if strategy is StrategyClass.CACHE_FIRST:
            return await self.cache_first(request, navigate=navigate)
        record = await self.precache(request)
        return record.to_response(request, ResponseSource.NETWORK)

    async def network_first(self, request: httpx.Request) -> httpx.Response:
        """Prefer the network; fall back to any stored copy when it fails.

        Raises:
            httpx.RequestError: The original fetch error, when no
                stored copy exists.
        """
        key = RequestKey.from_request(request)
        try:
            record = await self._fetch(request)
        except httpx.RequestError as exc:
            cached = self._registry.match(key)
            if cached is None:
                logger.debug("Network failed for %s and nothing is cached: %s", key, exc)
                raise
            logger.info("Network failed for %s, serving cached copy", key)
            return cached.to_response(request, ResponseSource.CACHE)

        self._write_back(key, record)
        return record.to_response(request, ResponseSource.NETWORK)

    async def cache_first(self, request: httpx.Request, navigate: bool = False) -> httpx.Response:
        """Prefer any stored copy; go to the network only on a miss.

        Args:
            request: The intercepted GET request.
            navigate: Whether the request is a document navigation. Only
                navigations get the offline shell when the network fails;
                every other request type re-raises, whatever it was for.

        Raises:
            httpx.RequestError: The original fetch error, when neither
                a stored copy nor (for navigations) an offline shell exists.
        """
        key = RequestKey.from_request(request)
        cached = self._registry.match(key)
        if cached is not None:
            return cached.to_response(request, ResponseSource.CACHE)

        try:
            record = await self._fetch(request)
        except httpx.RequestError as exc:
            logger.warning("Fetch failed for %s: %s", key, exc)
            if navigate:
                shell = self._registry.match(self._fallback_key(request))
                if shell is not None:
                    return shell.to_response(request, ResponseSource.OFFLINE_FALLBACK)
            raise

        self._write_back(key, record)
        return record.to_response(request, ResponseSource.NETWORK)

    async def precache(self, request: httpx.Request) -> ResponseRecord:
        """Fetch one manifest entry for installation.

        Raises:
            InstallError: If the fetch fails or the status is not 200.
        """
        try:
            record = await self._fetch(request)
        except httpx.RequestError as exc:
            raise InstallError(f"Failed to precache {request.url}: {exc}") from exc
        if record.status_code != CACHEABLE_STATUS:
            raise InstallError(
                f"Failed to precache {request.url}: HTTP {record.status_code}"
            )
        return record

    async def drain(self) -> None:
        """Wait until every scheduled write-back has finished."""
        while True:
            pending = [task for task in self._write_backs if not task.done()]
            if not pending:
                return
            results = await asyncio.gather(*pending, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.warning("Write-back failed: %s", result)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _fetch(self, request: httpx.Request) -> ResponseRecord:
        response = await self._network.send(request)
        return ResponseRecord.from_response(response, request.url)

    def _write_back(self, key: RequestKey, record: ResponseRecord) -> None:
        """Schedule *record* to be stored without blocking the caller."""
        if record.status_code != CACHEABLE_STATUS:
            return
        task = asyncio.get_running_loop().create_task(self._persist(key, record))
        self._write_backs.add(task)
        task.add_done_callback(self._write_backs.discard)

    async def _persist(self, key: RequestKey, record: ResponseRecord) -> None:
        await asyncio.to_thread(
            self._registry.put,
            self._config.runtime_cache_name,
            key,
            record,
        )

    def _fallback_key(self, request: httpx.Request) -> RequestKey:
        return RequestKey.build("GET", request.url.join(self._config.offline_fallback_path))
