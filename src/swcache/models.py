"""Canonical Pydantic models shared across all swcache modules.

The models fall into two groups:

**Configuration models** -- serialised as JSON in the user's config
directory and injected into every component at construction time (there is
no module-level configuration state):
    :class:`RoutingConfig`, :class:`RequestConfig`, :class:`WorkerConfig`,
    :class:`OutputConfig`, and :class:`GlobalConfig`.

**Cache models** -- the identities and snapshots that flow between the
router, the strategy engine and the store registry:
    :class:`StrategyClass`, :class:`LifecycleState`, :class:`ControlCommand`,
    :class:`ResponseSource`, :class:`RequestKey`, and :class:`ResponseRecord`.
"""

from __future__ import annotations

import enum
import time
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from swcache.exceptions import UncacheableRequestError


# --- Configuration ---


class RoutingConfig(BaseModel):
    """Rules the :class:`~swcache.router.RequestRouter` classifies requests by."""

    api_prefix: str = Field(
        default="/api", description="Path prefix served network-first"
    )
    backend_port: Optional[int] = Field(
        default=3000, description="Backend port served network-first"
    )
    excluded_paths: list[str] = Field(
        default_factory=lambda: ["/events/stream"],
        description="Streaming endpoints that are never intercepted",
    )


class RequestConfig(BaseModel):
    """Settings for the single network attempt made per request."""

    timeout: float = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    follow_redirects: bool = Field(default=True, description="Follow redirects")


class WorkerConfig(BaseModel):
    """Everything one generation of the caching layer needs to know.

    The precache store is named ``"{cache_prefix}-{version}"`` and is
    replaced on every new version; the runtime store keeps a fixed name and
    survives across generations.

    Example::

        WorkerConfig(version="v2", origin="https://home.example.com")
    """

    cache_prefix: str = Field(default="holy-home")
    version: str = Field(default="v1", description="Generation version tag")
    runtime_cache_name: str = Field(default="holy-home-runtime")
    origin: str = Field(
        default="http://localhost:5173",
        description="Origin the precache manifest is resolved against",
    )
    precache_assets: list[str] = Field(
        default_factory=lambda: ["/", "/index.html", "/manifest.json"]
    )
    offline_fallback_path: str = Field(
        default="/", description="Document returned to offline navigations"
    )
    skip_waiting_on_install: bool = Field(
        default=True,
        description="Supersede the previous generation without waiting for clients",
    )
    store_dir: Optional[str] = Field(
        default=None, description="Store directory (defaults to the XDG cache dir)"
    )
    routing: RoutingConfig = Field(default_factory=RoutingConfig)
    request: RequestConfig = Field(default_factory=RequestConfig)

    @property
    def precache_name(self) -> str:
        """Name of this generation's precache store."""
        return f"{self.cache_prefix}-{self.version}"

    @field_validator("precache_assets")
    @classmethod
    def _assets_are_paths(cls, value: list[str]) -> list[str]:
        for asset in value:
            if not asset.startswith("/"):
                raise ValueError(f"precache asset must be an absolute path: {asset!r}")
        return value

    @model_validator(mode="after")
    def _names_differ(self) -> WorkerConfig:
        if self.precache_name == self.runtime_cache_name:
            raise ValueError(
                f"precache store name {self.precache_name!r} collides with the runtime store"
            )
        return self


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/swcache/config.json``.

    See :func:`~swcache.config.resolve_config` for the precedence chain
    applied on top of it.
    """

    worker: WorkerConfig = Field(default_factory=WorkerConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


# --- Cache models ---


class StrategyClass(str, enum.Enum):
    """How a request is resolved; recomputed for every request."""

    PRECACHE = "precache"
    NETWORK_FIRST = "network_first"
    CACHE_FIRST = "cache_first"


class LifecycleState(str, enum.Enum):
    """Phases of one generation, in the order they are entered."""

    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    REDUNDANT = "redundant"


class ControlCommand(str, enum.Enum):
    """Commands accepted on the control channel (the message ``type``)."""

    SKIP_WAITING = "SKIP_WAITING"
    CLEAR_CACHE = "CLEAR_CACHE"


class ResponseSource(str, enum.Enum):
    """Where a delivered response came from.

    Exposed as ``response.extensions["swcache.source"]``.
    """

    NETWORK = "network"
    CACHE = "cache"
    OFFLINE_FALLBACK = "offline-fallback"


SOURCE_EXTENSION = "swcache.source"

# The body is stored decoded, so transfer framing headers no longer apply.
_TRANSFER_HEADERS = frozenset({"content-encoding", "content-length", "transfer-encoding"})


class RequestKey(BaseModel):
    """Canonical identity of a cacheable request.

    Only GET requests have a key. The URL is absolute, with the fragment
    dropped; scheme, host and default ports are normalised by
    :class:`httpx.URL`.
    """

    model_config = ConfigDict(frozen=True)

    method: str = "GET"
    url: str

    @classmethod
    def build(
        cls,
        method: str,
        url: str | httpx.URL,
        origin: Optional[str] = None,
    ) -> RequestKey:
        """Build a key, resolving a relative *url* against *origin*.

        Raises:
            UncacheableRequestError: For non-GET methods, or for a relative
                URL with no origin to resolve it against.
        """
        if method.upper() != "GET":
            raise UncacheableRequestError(f"{method.upper()} requests are never cached")

        parsed = httpx.URL(str(url))
        if not parsed.is_absolute_url:
            if origin is None:
                raise UncacheableRequestError(f"Cannot key relative URL without an origin: {url}")
            parsed = httpx.URL(origin).join(parsed)

        normalised = str(parsed).split("#", 1)[0]
        return cls(method="GET", url=normalised)

    @classmethod
    def from_request(cls, request: httpx.Request) -> RequestKey:
        """Key for an intercepted request."""
        return cls.build(request.method, request.url)

    def __str__(self) -> str:
        return f"{self.method} {self.url}"


class ResponseRecord(BaseModel):
    """Immutable snapshot of a response at the moment it was captured.

    A record is never mutated; re-caching a key stores a new record in its
    place. The same snapshot backs both the response delivered to the
    caller and the one persisted by write-back, so the two are
    byte-identical.
    """

    model_config = ConfigDict(frozen=True)

    url: str
    status_code: int
    headers: tuple[tuple[str, str], ...] = ()
    body: bytes = b""
    cached_at: float = Field(default_factory=time.time)

    @classmethod
    def from_response(cls, response: httpx.Response, url: str | httpx.URL) -> ResponseRecord:
        """Snapshot a fully read :class:`httpx.Response`."""
        headers = tuple(
            (name, value)
            for name, value in response.headers.multi_items()
            if name.lower() not in _TRANSFER_HEADERS
        )
        return cls(
            url=str(url),
            status_code=response.status_code,
            headers=headers,
            body=response.content,
        )

    def to_response(
        self,
        request: httpx.Request,
        source: ResponseSource = ResponseSource.CACHE,
    ) -> httpx.Response:
        """Materialise a fresh :class:`httpx.Response` for *request*."""
        return httpx.Response(
            status_code=self.status_code,
            headers=list(self.headers),
            content=self.body,
            request=request,
            extensions={SOURCE_EXTENSION: source.value},
        )
