"""The caching worker: one dispatch entry point for every event.

:class:`CacheWorker` wires the router, strategy engine, lifecycle manager
and control channel around one injected :class:`~swcache.models.WorkerConfig`
and one :class:`~swcache.store.StoreRegistry`. Nothing is shared through
module state, so several workers (for example one per test) can coexist.

The host talks to it through :meth:`CacheWorker.dispatch`, passing one of
the events in :mod:`swcache.events`, and awaits the result before moving
on to the next phase. Requests are only intercepted once the generation is
active; until then, and for anything the router declines, the fetch
handler returns ``None`` and the request goes straight to the network.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Optional

import httpx

from swcache.control import ControlChannel
from swcache.events import ActivateEvent, Event, FetchEvent, InstallEvent, MessageEvent
from swcache.lifecycle import ClientRegistry, LifecycleManager
from swcache.models import WorkerConfig
from swcache.router import RequestRouter
from swcache.store import StoreRegistry
from swcache.strategies import StrategyEngine
from swcache.transport import CachingTransport

logger = logging.getLogger(__name__)


class CacheWorker:
    """Request-interception and caching layer for one generation.

    Args:
        config: Worker configuration, injected into every component.
        registry: Stores shared by all generations using the same directory.
        transport: Transport for real network traffic. Defaults to an
            :class:`httpx.AsyncHTTPTransport`.
        clients: Open client contexts, for the activation wait and claim.

    Example::

        async with CacheWorker(config, registry) as worker:
            await worker.deploy()
            async with httpx.AsyncClient(transport=worker.as_transport()) as client:
                response = await client.get("https://home.example.com/api/bills")
    """

    def __init__(
        self,
        config: WorkerConfig,
        registry: StoreRegistry,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clients: Optional[ClientRegistry] = None,
    ) -> None:
        self._config = config
        self._registry = registry
        self._transport = transport or httpx.AsyncHTTPTransport(
            verify=config.request.verify_ssl
        )
        self._network = httpx.AsyncClient(
            transport=self._transport,
            timeout=config.request.timeout,
            follow_redirects=config.request.follow_redirects,
        )
        self.router = RequestRouter(config.routing)
        self.engine = StrategyEngine(config, registry, self._network)
        self.lifecycle = LifecycleManager(config, registry, self.engine, clients)
        self.control = ControlChannel(self.lifecycle, registry)

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> CacheWorker:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Finish pending write-backs and close the network client."""
        await self.drain()
        await self._network.aclose()

    # ------------------------------------------------------------------ #
    # Dispatch
    # ------------------------------------------------------------------ #

    @property
    def config(self) -> WorkerConfig:
        return self._config

    def dispatch(self, event: Event) -> Awaitable[Any]:
        """Route *event* to its handler and return the awaitable to wait on.

        - :class:`InstallEvent` -> ``None``; raises
          :class:`~swcache.exceptions.InstallError` on failure.
        - :class:`ActivateEvent` -> list of purged store names.
        - :class:`FetchEvent` -> :class:`httpx.Response`, or ``None`` when
          the request is not intercepted.
        - :class:`MessageEvent` -> the executed
          :class:`~swcache.models.ControlCommand`, or ``None``.
        """
        if isinstance(event, InstallEvent):
            return self.lifecycle.install()
        if isinstance(event, ActivateEvent):
            return self.lifecycle.activate()
        if isinstance(event, FetchEvent):
            return self.handle_fetch(event)
        if isinstance(event, MessageEvent):
            return self.control.handle(event.data)
        raise TypeError(f"Unsupported event: {event!r}")

    async def handle_fetch(self, event: FetchEvent) -> Optional[httpx.Response]:
        if not self.lifecycle.is_active:
            return None
        strategy = self.router.classify(event.request)
        if strategy is None:
            return None
        return await self.engine.execute(strategy, event.request, navigate=event.is_navigation)

    # ------------------------------------------------------------------ #
    # Host conveniences
    # ------------------------------------------------------------------ #

    async def deploy(self) -> list[str]:
        """Install this generation and activate it if nothing holds it back.

        Returns:
            Names of the stores purged by activation (empty if the
            generation is left waiting).
        """
        await self.dispatch(InstallEvent())
        if not self.lifecycle.ready_to_activate:
            logger.info("Generation %s installed and waiting", self._config.version)
            return []
        return await self.dispatch(ActivateEvent())

    async def start(self) -> None:
        """Resume an already deployed generation, or deploy it."""
        if not self.lifecycle.resume():
            await self.deploy()

    async def fetch(self, request: httpx.Request, mode: Optional[str] = None) -> httpx.Response:
        """Resolve *request* through the layer, or the network if not intercepted."""
        response = await self.dispatch(FetchEvent(request, mode))
        if response is None:
            response = await self._network.send(request)
        return response

    async def post_message(self, data: Any) -> Any:
        return await self.dispatch(MessageEvent(data))

    async def disconnect_client(self, client_id: str) -> None:
        """Forget a closed context; activate a waiting generation once unblocked."""
        self.lifecycle.clients.disconnect(client_id)
        if self.lifecycle.ready_to_activate:
            await self.dispatch(ActivateEvent())

    async def drain(self) -> None:
        """Wait for every pending write-back to finish."""
        await self.engine.drain()

    def as_transport(self) -> httpx.AsyncBaseTransport:
        """A transport that routes a host client's traffic through this worker."""
        return CachingTransport(self, self._transport)
