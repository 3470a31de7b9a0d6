"""Store commands -- inspect and delete the on-disk response stores.

Provides the ``swcache stores`` sub-command group. Every store is shown
with its role for the configured generation: ``precache`` (this
generation's version-tagged store), ``runtime`` (the shared store), or
``stale`` (left behind by an older generation and purged on the next
activation).
"""

from __future__ import annotations

from datetime import datetime

import typer

from swcache.exit_codes import EXIT_INVALID_USAGE
from swcache.output import error, info, print_table, success

stores_app = typer.Typer(no_args_is_help=True)


def _open_registry(ctx: typer.Context):  # noqa: ANN202
    from swcache.commands.worker import resolve_worker_config
    from swcache.config import get_store_dir
    from swcache.store import StoreRegistry

    config = resolve_worker_config(ctx)
    return config, StoreRegistry(get_store_dir(config))


@stores_app.command("list")
def stores_list(ctx: typer.Context) -> None:
    """List every store with its entry count and role.

    Example::

        swcache stores list
        swcache --json stores list
    """
    config, registry = _open_registry(ctx)
    with registry:
        rows = []
        for summary in registry.describe():
            name = summary["name"]
            if name == config.precache_name:
                role = "precache"
            elif name == config.runtime_cache_name:
                role = "runtime"
            else:
                role = "stale"
            rows.append([name, role, str(summary["entries"])])
        info(f"Store directory: {registry.directory}")

    print_table(["Name", "Role", "Entries"], rows, title="Stores")


@stores_app.command("show")
def stores_show(
    ctx: typer.Context,
    name: str = typer.Argument(help="Store name."),
) -> None:
    """Show the cached requests in one store.

    Example::

        swcache stores show holy-home-runtime
    """
    from swcache.models import RequestKey

    _, registry = _open_registry(ctx)
    with registry:
        if not registry.has(name):
            error(f"No store named '{name}'")
            raise typer.Exit(code=EXIT_INVALID_USAGE)
        store = registry.open(name)
        rows = []
        for raw_key in store.keys():
            method, _, url = raw_key.partition(" ")
            record = store.match(RequestKey(method=method, url=url))
            if record is None:
                continue
            cached_at = datetime.fromtimestamp(record.cached_at).isoformat(timespec="seconds")
            rows.append([url, str(record.status_code), str(len(record.body)), cached_at])

    print_table(["URL", "Status", "Bytes", "Cached at"], rows, title=name)


@stores_app.command("delete")
def stores_delete(
    ctx: typer.Context,
    name: str = typer.Argument(help="Store name."),
) -> None:
    """Delete one store and everything in it.

    Asks for confirmation unless ``--force`` is active.

    Example::

        swcache --force stores delete holy-home-v1
    """
    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force and not typer.confirm(f"Delete store '{name}'?"):
        info("Cancelled.")
        raise typer.Exit()

    _, registry = _open_registry(ctx)
    with registry:
        deleted = registry.delete(name)
    if not deleted:
        error(f"No store named '{name}'")
        raise typer.Exit(code=EXIT_INVALID_USAGE)
    success(f"Deleted store '{name}'")
