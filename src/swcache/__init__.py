"""swcache -- a versioned request-interception and caching layer for httpx clients.

The layer sits in front of an application's HTTP traffic and decides, per
GET request, whether to answer from a local versioned store, from the
network, or from the network with the store as a fallback. It also manages
the stores across deployment generations: each new version installs a
fresh precache store and purges the previous generation's.

Typical use::

    async with CacheWorker(config, registry) as worker:
        await worker.deploy()
        client = httpx.AsyncClient(transport=worker.as_transport())

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration with precedence resolution.
    store: Persistent named response stores.
    router: Strategy classification per request.
    strategies: Network-First, Cache-First and Precache execution.
    lifecycle: Install and activate of generations.
    control: SKIP_WAITING and CLEAR_CACHE commands.
    worker: Event dispatch tying the components together.
    transport: httpx transport that intercepts a host client's requests.
"""

__version__ = "0.1.0"
