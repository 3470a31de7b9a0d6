"""Where swcache keeps its files, and which settings win.

Three per-user directories are used: configuration (``config.json``),
cache (the response stores, in ``stores/``) and data (crash logs). On
Linux and the BSDs they follow the XDG base directory variables; elsewhere
everything lives under ``~/.swcache/``.

The effective :class:`~swcache.models.GlobalConfig` is layered, lowest
first: built-in defaults, the user's ``config.json``, a ``swcache.json``
in the working directory (worker fields only), ``SWCACHE_*`` environment
variables, and finally CLI flags. :func:`resolve_config` applies the
layers and validates the result once, so a bad value in any layer
surfaces as a single :class:`~swcache.exceptions.ConfigError`.
"""

from __future__ import annotations

import contextlib
import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from swcache.exceptions import ConfigError
from swcache.models import GlobalConfig, WorkerConfig

_APP_NAME = "swcache"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "swcache.json"

# Worker field fed by each environment variable.
_ENV_FIELDS = {
    "SWCACHE_VERSION": "version",
    "SWCACHE_ORIGIN": "origin",
    "SWCACHE_STORE_DIR": "store_dir",
}

# kind -> (XDG variable, default below $HOME, subdirectory of ~/.swcache)
_DIRS = {
    "config": ("XDG_CONFIG_HOME", (".config",), ()),
    "cache": ("XDG_CACHE_HOME", (".cache",), ("cache",)),
    "data": ("XDG_DATA_HOME", (".local", "share"), ("logs",)),
}


def _is_xdg_platform() -> bool:
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _app_dir(kind: str) -> Path:
    env_var, home_default, fallback = _DIRS[kind]
    if _is_xdg_platform():
        base = os.environ.get(env_var) or Path.home().joinpath(*home_default)
        path = Path(base) / _APP_NAME
    else:
        path = Path.home().joinpath(f".{_APP_NAME}", *fallback)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    """Directory holding ``config.json`` (created on demand)."""
    return _app_dir("config")


def get_cache_dir() -> Path:
    """Directory whose ``stores/`` holds the response stores by default."""
    return _app_dir("cache")


def get_data_dir() -> Path:
    return _app_dir("data")


def get_store_dir(worker: WorkerConfig) -> Path:
    """Directory the :class:`~swcache.store.StoreRegistry` persists into."""
    if worker.store_dir:
        return Path(worker.store_dir).expanduser()
    return get_cache_dir() / "stores"


def _atomic_write(path: Path, data: str) -> None:
    """Replace *path* with *data* in one rename; no temp file survives a failure."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_name)
        raise


def _read_json(path: Path, label: str) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid {label} config at {path}: {exc}") from exc


def load_global_config() -> GlobalConfig:
    """The user's ``config.json``, or defaults when there is none.

    Raises:
        ConfigError: If the file is not valid JSON or fails validation.
    """
    path = get_config_dir() / _CONFIG_FILENAME
    if not path.is_file():
        return GlobalConfig()
    data = _read_json(path, "global")
    try:
        return GlobalConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    payload = json.dumps(config.model_dump(mode="json"), indent=2) + "\n"
    _atomic_write(get_config_dir() / _CONFIG_FILENAME, payload)


def load_project_config() -> Optional[dict[str, Any]]:
    """Worker overrides from ``./swcache.json``; ``None`` if the file is absent.

    Raises:
        ConfigError: If the file is not a JSON object.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    data = _read_json(path, "project")
    if not isinstance(data, dict):
        raise ConfigError(f"Project config at {path} must be a JSON object")
    return data


def resolve_config(
    cli_version: Optional[str] = None,
    cli_origin: Optional[str] = None,
    cli_format: Optional[str] = None,
) -> GlobalConfig:
    """Apply every configuration layer and return the effective config.

    Empty environment variables are ignored.

    Raises:
        ConfigError: If the merged worker settings are invalid.
    """
    config = load_global_config()
    worker = config.worker.model_dump()

    worker.update(load_project_config() or {})
    for env_var, field in _ENV_FIELDS.items():
        value = os.environ.get(env_var)
        if value:
            worker[field] = value
    flags = {"version": cli_version, "origin": cli_origin}
    worker.update({field: value for field, value in flags.items() if value is not None})

    try:
        config.worker = WorkerConfig.model_validate(worker)
    except ValidationError as exc:
        raise ConfigError(f"Invalid worker configuration: {exc}") from exc

    if cli_format is not None:
        config.output.format = cli_format
    return config
