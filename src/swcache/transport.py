"""httpx transport that puts a :class:`~swcache.worker.CacheWorker` in the request path.

Plug it into the hosting application's client::

    client = httpx.AsyncClient(transport=worker.as_transport())

Intercepted GET requests are resolved by the worker. Everything else (other
methods, streaming endpoints, all traffic before the generation is active)
is handed to the wrapped transport untouched, so streamed responses are
never buffered. If the worker is absent the host simply uses the wrapped
transport directly and behaves the same, minus the caching.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

from swcache.events import FetchEvent

if TYPE_CHECKING:
    from swcache.worker import CacheWorker


class CachingTransport(httpx.AsyncBaseTransport):
    """Routes requests through *worker*, passing the rest to *inner*."""

    def __init__(self, worker: CacheWorker, inner: httpx.AsyncBaseTransport) -> None:
        self._worker = worker
        self._inner = inner

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        response = await self._worker.dispatch(FetchEvent(request))
        if response is None:
            return await self._inner.handle_async_request(request)
        return response

    async def aclose(self) -> None:
        # The wrapped transport belongs to the worker; CacheWorker.aclose closes it.
        return None
