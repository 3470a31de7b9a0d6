"""Config commands -- view and modify the global configuration.

Provides the ``swcache config`` sub-command group for reading, updating
and resetting :class:`~swcache.models.GlobalConfig`. Changing
``worker.version`` is how a new generation is rolled out: the next
``swcache deploy`` installs it and purges the old precache store.
"""

from __future__ import annotations

import typer
from pydantic import ValidationError

from swcache.exit_codes import EXIT_INVALID_USAGE
from swcache.output import error, format_response, info, success

config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show() -> None:
    """Show the current global configuration.

    Example::

        swcache config show
        swcache --json config show
    """
    from swcache.config import get_config_dir, load_global_config

    config = load_global_config()
    info(f"Config directory: {get_config_dir()}")
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Config key in dot notation, e.g. 'worker.version'."),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    The value is coerced to the type of the existing field (bool, int,
    float or str). List fields such as ``worker.precache_assets`` take a
    comma-separated value.

    Example::

        swcache config set worker.version v2
        swcache config set worker.routing.backend_port 8080
        swcache config set worker.precache_assets /,/index.html,/manifest.json
    """
    from swcache.config import load_global_config, save_global_config
    from swcache.models import GlobalConfig

    data = load_global_config().model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=EXIT_INVALID_USAGE)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target:
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    current = target[final_key]
    coerced: object
    if isinstance(current, bool):
        coerced = value.lower() in ("true", "1", "yes")
    elif isinstance(current, list):
        coerced = [item.strip() for item in value.split(",") if item.strip()]
    elif isinstance(current, (int, float)):
        try:
            coerced = type(current)(value)
        except ValueError:
            error(f"Expected a number for {key}, got: {value}")
            raise typer.Exit(code=EXIT_INVALID_USAGE) from None
    else:
        coerced = value

    target[final_key] = coerced

    try:
        new_config = GlobalConfig.model_validate(data)
    except ValidationError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    save_global_config(new_config)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Reset the configuration to defaults.

    Asks for confirmation unless ``--force`` is active.

    Example::

        swcache --force config reset
    """
    from swcache.config import save_global_config
    from swcache.models import GlobalConfig

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force and not typer.confirm("Reset all config to defaults?"):
        info("Cancelled.")
        raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")
