"""Generation lifecycle: install, activate, and control of client contexts.

A *generation* is one version of the caching layer, identified by
:attr:`~swcache.models.WorkerConfig.version`. :class:`LifecycleManager`
moves it through::

    parsed -> installing -> installed -> activating -> activated
                        \\-> redundant   (install failed)

Install populates the version-tagged precache store from the manifest,
all or nothing. Activate deletes every store that is neither this
generation's precache store nor the shared runtime store, then claims every
open client context. :class:`ClientRegistry` tracks those contexts and
which generation controls each.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import httpx

from swcache.exceptions import InstallError, LifecycleError, StoreWriteError, SwcacheError
from swcache.models import LifecycleState, RequestKey, WorkerConfig
from swcache.store import StoreRegistry
from swcache.strategies import StrategyEngine

logger = logging.getLogger(__name__)


class ClientRegistry:
    """Open application contexts and the generation that controls each.

    A controller of ``None`` means the context is not controlled by any
    generation (it was opened before the layer was active).
    """

    def __init__(self) -> None:
        self._controllers: dict[str, Optional[str]] = {}

    def connect(self, client_id: str, controller: Optional[str] = None) -> None:
        self._controllers[client_id] = controller

    def disconnect(self, client_id: str) -> None:
        self._controllers.pop(client_id, None)

    def controller(self, client_id: str) -> Optional[str]:
        return self._controllers.get(client_id)

    def controlled_by_other(self, version: str) -> bool:
        """Whether any context is still controlled by a different generation."""
        return any(
            controller is not None and controller != version
            for controller in self._controllers.values()
        )

    def claim(self, version: str) -> list[str]:
        """Make *version* the controller of every context; return their ids."""
        for client_id in self._controllers:
            self._controllers[client_id] = version
        return list(self._controllers)

    def __len__(self) -> int:
        return len(self._controllers)


class LifecycleManager:
    """Drives install and activate for one generation.

    Args:
        config: Worker configuration (version, store names, manifest).
        registry: The stores to populate and purge.
        engine: Used for the precache fetches.
        clients: Open client contexts; a fresh empty registry by default.
    """

    def __init__(
        self,
        config: WorkerConfig,
        registry: StoreRegistry,
        engine: StrategyEngine,
        clients: Optional[ClientRegistry] = None,
    ) -> None:
        self._config = config
        self._registry = registry
        self._engine = engine
        self._clients = clients if clients is not None else ClientRegistry()
        self._state = LifecycleState.PARSED
        self._skip_waiting = False
        self._install_lock = asyncio.Lock()

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def clients(self) -> ClientRegistry:
        return self._clients

    @property
    def is_active(self) -> bool:
        return self._state is LifecycleState.ACTIVATED

    @property
    def ready_to_activate(self) -> bool:
        """Installed, and either told to skip waiting or no longer waited on."""
        if self._state is not LifecycleState.INSTALLED:
            return False
        return self._skip_waiting or not self._clients.controlled_by_other(self._config.version)

    # ------------------------------------------------------------------ #
    # Phases
    # ------------------------------------------------------------------ #

    async def install(self) -> None:
        """Populate the precache store from the manifest.

        Installs of the same generation never overlap; installing an
        already installed generation does nothing.

        Raises:
            InstallError: If any manifest entry cannot be fetched with
                status 200 or the store cannot be written. Nothing is
                stored and the generation becomes redundant. Cancellation
                leaves the same clean state and propagates unwrapped.
        """
        async with self._install_lock:
            if self._state in (
                LifecycleState.INSTALLED,
                LifecycleState.ACTIVATING,
                LifecycleState.ACTIVATED,
            ):
                return

            self._state = LifecycleState.INSTALLING
            name = self._config.precache_name
            logger.info("Installing generation %s into '%s'", self._config.version, name)

            existed = self._registry.has(name)
            keys = [
                RequestKey.build("GET", path, origin=self._config.origin)
                for path in self._config.precache_assets
            ]
            try:
                results = await asyncio.gather(
                    *(self._engine.precache(httpx.Request("GET", key.url)) for key in keys),
                    return_exceptions=True,
                )
                for result in results:
                    if isinstance(result, BaseException):
                        raise result
                # The store only comes into existence once every asset is in hand.
                self._registry.open(name).put_all(zip(keys, results))
            except BaseException as exc:
                self._state = LifecycleState.REDUNDANT
                if not existed:
                    self._registry.delete(name)
                logger.error("Install of generation %s failed: %r", self._config.version, exc)
                if isinstance(exc, SwcacheError) and not isinstance(exc, StoreWriteError):
                    raise
                if isinstance(exc, Exception):
                    raise InstallError(f"Install of {name} failed: {exc}") from exc
                raise

            self._state = LifecycleState.INSTALLED
            if self._config.skip_waiting_on_install:
                self._skip_waiting = True
            logger.info("Cached %d precache assets", len(keys))

    async def activate(self) -> list[str]:
        """Purge superseded stores and take control of every client context.

        Returns:
            Names of the deleted stores. Activating an already active
            generation deletes nothing and returns an empty list.

        Raises:
            LifecycleError: If the generation has not been installed.
        """
        if self._state is LifecycleState.ACTIVATED:
            return []
        if self._state is not LifecycleState.INSTALLED:
            raise LifecycleError(
                f"Cannot activate generation {self._config.version} in state '{self._state.value}'"
            )

        self._state = LifecycleState.ACTIVATING
        keep = {self._config.precache_name, self._config.runtime_cache_name}
        purged: list[str] = []
        for name in self._registry.keys():
            if name in keep:
                continue
            logger.info("Deleting old cache: %s", name)
            self._registry.delete(name)
            purged.append(name)

        self._registry.mark_activated(self._config.precache_name)
        claimed = self._clients.claim(self._config.version)
        self._state = LifecycleState.ACTIVATED
        logger.info(
            "Generation %s active; purged %d stores, claimed %d clients",
            self._config.version,
            len(purged),
            len(claimed),
        )
        return purged

    async def skip_waiting(self) -> None:
        """Stop waiting for old contexts; activate now if already installed."""
        self._skip_waiting = True
        if self._state is LifecycleState.INSTALLED:
            await self.activate()

    def resume(self) -> bool:
        """Adopt an already deployed generation without reinstalling it.

        A generation whose precache store carries an activation marker is
        treated as active, as when a worker restarts after a previous
        deployment. A store left by an install that never reached
        activation is not enough.

        Returns:
            ``True`` if the generation is active.
        """
        if self._state is not LifecycleState.PARSED:
            return self.is_active
        if not self._registry.is_activated(self._config.precache_name):
            return False
        self._state = LifecycleState.ACTIVATED
        logger.debug("Resumed generation %s", self._config.version)
        return True
