"""Events accepted by :meth:`swcache.worker.CacheWorker.dispatch`.

Every interaction with the caching layer is one of four events. The worker
routes each to its handler and returns an awaitable the host awaits before
treating the event as handled.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Union

import httpx

from swcache.router import NAVIGATE, is_navigation


@dataclass(frozen=True)
class InstallEvent:
    """Install the configured generation."""


@dataclass(frozen=True)
class ActivateEvent:
    """Activate the installed generation."""


@dataclass(frozen=True)
class FetchEvent:
    """A request issued by the hosting application.

    Attributes:
        request: The intercepted request.
        mode: Request mode; ``"navigate"`` for document navigations. Taken
            from the ``Sec-Fetch-Mode`` header when not given.
    """

    request: httpx.Request
    mode: Optional[str] = None

    @property
    def is_navigation(self) -> bool:
        if self.mode is not None:
            return self.mode == NAVIGATE
        return is_navigation(self.request)


@dataclass(frozen=True)
class MessageEvent:
    """A control message posted by the hosting application."""

    data: Any = field(default_factory=dict)


Event = Union[InstallEvent, ActivateEvent, FetchEvent, MessageEvent]
