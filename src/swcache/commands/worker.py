"""Worker commands -- deploy a generation, fetch through it, send control messages.

Each command resolves the effective :class:`~swcache.models.WorkerConfig`
(see :func:`~swcache.config.resolve_config`), opens the
:class:`~swcache.store.StoreRegistry` in the configured store directory,
and runs one short-lived :class:`~swcache.worker.CacheWorker` on a fresh
event loop.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Optional

import httpx
import typer

from swcache.exceptions import InstallError, SwcacheError
from swcache.exit_codes import EXIT_INVALID_USAGE, EXIT_NETWORK_ERROR
from swcache.models import SOURCE_EXTENSION, WorkerConfig
from swcache.output import debug, error, format_response, info, success, warning


def resolve_worker_config(ctx: typer.Context) -> WorkerConfig:
    """Effective worker config for this invocation, honouring global CLI flags."""
    from swcache.config import resolve_config

    obj = ctx.obj or {}
    try:
        return resolve_config(
            cli_version=obj.get("cache_version"),
            cli_origin=obj.get("origin"),
        ).worker
    except SwcacheError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def deploy_command(ctx: typer.Context) -> None:
    """Install the configured generation and activate it.

    Populates the precache store from the manifest, then deletes the
    stores of every older generation. If any manifest asset cannot be
    fetched nothing changes and the previous generation stays in place.

    Example::

        swcache deploy
        swcache --cache-version v2 deploy
    """
    config = resolve_worker_config(ctx)
    info(f"Installing {config.precache_name} ({len(config.precache_assets)} assets)")
    try:
        purged = asyncio.run(_deploy(config))
    except SwcacheError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    for name in purged:
        info(f"Purged old store: {name}")
    success(f"Generation {config.version} is active")


def fetch_command(
    ctx: typer.Context,
    url: str = typer.Argument(help="Absolute URL, or a path resolved against the origin."),
    navigate: bool = typer.Option(
        False, "--navigate", help="Fetch as a document navigation."
    ),
) -> None:
    """Fetch a URL through the caching layer and print the body.

    The status line and the response source (``network``, ``cache`` or
    ``offline-fallback``) go to stderr; the body goes to stdout. The
    configured generation is deployed first if it is not yet active; if
    that install fails the request is still passed straight to the network.

    Example::

        swcache fetch /api/accounts
        swcache fetch / --navigate
    """
    config = resolve_worker_config(ctx)
    target = httpx.URL(config.origin).join(url)
    request = httpx.Request("GET", target)
    debug(f"Fetching {target}")

    try:
        response = asyncio.run(_fetch(config, request, "navigate" if navigate else None))
    except httpx.RequestError as exc:
        error(f"Network error and no cached copy: {exc}")
        raise typer.Exit(code=EXIT_NETWORK_ERROR) from None
    except SwcacheError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    source = response.extensions.get(SOURCE_EXTENSION, "passthrough")
    info(f"HTTP {response.status_code} {response.reason_phrase} ({source})")
    body = _decode_body(response)
    if body is not None:
        format_response(body)


def message_command(
    ctx: typer.Context,
    message_type: str = typer.Argument(help="SKIP_WAITING or CLEAR_CACHE."),
) -> None:
    """Send a control message to the worker.

    ``CLEAR_CACHE`` deletes every store of every generation.
    ``SKIP_WAITING`` activates an installed generation that is still
    waiting.

    Example::

        swcache message CLEAR_CACHE
    """
    from swcache.control import ControlChannel

    data = {"type": message_type.upper()}
    if ControlChannel.parse(data) is None:
        error(f"Unknown message type: {message_type}")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    config = resolve_worker_config(ctx)
    try:
        state = asyncio.run(_post_message(config, data))
    except SwcacheError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    success(f"Delivered {data['type']} (generation {config.version}: {state})")


# ------------------------------------------------------------------ #
# Async bodies
# ------------------------------------------------------------------ #


async def _deploy(config: WorkerConfig) -> list[str]:
    from swcache.config import get_store_dir
    from swcache.store import StoreRegistry
    from swcache.worker import CacheWorker

    with StoreRegistry(get_store_dir(config)) as registry:
        async with CacheWorker(config, registry) as worker:
            return await worker.deploy()


async def _fetch(config: WorkerConfig, request: httpx.Request, mode: Optional[str]) -> httpx.Response:
    from swcache.config import get_store_dir
    from swcache.store import StoreRegistry
    from swcache.worker import CacheWorker

    with StoreRegistry(get_store_dir(config)) as registry:
        async with CacheWorker(config, registry) as worker:
            try:
                await worker.start()
            except InstallError as exc:
                warning(f"{exc}; serving without generation {config.version}")
            return await worker.fetch(request, mode=mode)


async def _post_message(config: WorkerConfig, data: dict[str, Any]) -> str:
    from swcache.config import get_store_dir
    from swcache.store import StoreRegistry
    from swcache.worker import CacheWorker

    with StoreRegistry(get_store_dir(config)) as registry:
        async with CacheWorker(config, registry) as worker:
            if not worker.lifecycle.resume():
                warning(f"Generation {config.version} is not deployed")
            await worker.post_message(data)
            return worker.lifecycle.state.value


def _decode_body(response: httpx.Response) -> Any:
    """JSON-decode the body when possible, else return text; ``None`` when empty."""
    if not response.content:
        return None
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return response.text
