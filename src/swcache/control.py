"""Out-of-band commands from the hosting application.

The host sends small messages shaped like ``{"type": "SKIP_WAITING"}`` or
``{"type": "CLEAR_CACHE"}``. Both are fire-and-forget: no reply is sent,
and the only contract is that the awaitable returned by
:meth:`ControlChannel.handle` completes once the operation has.

Messages with any other shape are ignored.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from swcache.lifecycle import LifecycleManager
from swcache.models import ControlCommand
from swcache.store import StoreRegistry

logger = logging.getLogger(__name__)


class ControlChannel:
    """Executes control messages against the lifecycle and the registry."""

    def __init__(self, lifecycle: LifecycleManager, registry: StoreRegistry) -> None:
        self._lifecycle = lifecycle
        self._registry = registry

    @staticmethod
    def parse(data: Any) -> Optional[ControlCommand]:
        """Return the command in *data*, or ``None`` if it carries none."""
        if not isinstance(data, dict):
            return None
        try:
            return ControlCommand(data.get("type"))
        except ValueError:
            return None

    async def handle(self, data: Any) -> Optional[ControlCommand]:
        """Execute the command carried by *data*.

        Returns:
            The command that was executed, or ``None`` if *data* was ignored.
        """
        command = self.parse(data)
        if command is None:
            logger.debug("Ignoring control message: %r", data)
            return None

        if command is ControlCommand.SKIP_WAITING:
            await self._lifecycle.skip_waiting()
        else:
            deleted = self._registry.clear_all()
            logger.info("Cleared %d stores", len(deleted))
        return command
