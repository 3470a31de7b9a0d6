"""Shared test fixtures for swcache.

Provides isolated config environments, output state management, a store
registry rooted in ``tmp_path``, and :class:`FakeNetwork`, an in-memory
origin server behind :class:`httpx.MockTransport` that can be switched
offline. These fixtures are discovered by pytest automatically.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import httpx
import pytest

from swcache.models import WorkerConfig
from swcache.output import OutputFormat, OutputManager, reset_output, set_output
from swcache.store import StoreRegistry

ORIGIN = "https://home.example.com"


# ---------------------------------------------------------------------------
# Auto-reset global output and logging state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager and the library logger after every test.

    The CLI binds both to the streams CliRunner redirects; once a test
    finishes those streams are closed.
    """
    yield
    reset_output()
    logger = logging.getLogger("swcache")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


# ---------------------------------------------------------------------------
# Fake network
# ---------------------------------------------------------------------------


class FakeNetwork:
    """In-memory origin server.

    Routes map a path (with query string, if any) to a
    ``(status_code, body)`` pair; unknown paths answer 404. Setting
    :attr:`offline` makes every request fail with
    :class:`httpx.ConnectError`, and :attr:`failing` does the same for
    selected paths only. Paths in :attr:`looping` redirect to themselves,
    so a client that follows redirects gives up with
    :class:`httpx.TooManyRedirects`. Every request that reaches the network is
    recorded in :attr:`calls`.
    """

    def __init__(self) -> None:
        self.routes: dict[str, tuple[int, Any]] = {}
        self.calls: list[httpx.Request] = []
        self.offline = False
        self.failing: set[str] = set()
        self.looping: set[str] = set()
        self.transport = httpx.MockTransport(self.handler)

    def add(self, path: str, body: Any = "", status_code: int = 200) -> None:
        self.routes[path] = (status_code, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        target = request.url.raw_path.decode()
        if self.offline or request.url.path in self.failing:
            raise httpx.ConnectError("network unreachable", request=request)
        if request.url.path in self.looping:
            return httpx.Response(302, headers={"location": str(request.url)})
        status_code, body = self.routes.get(target, (404, "not found"))
        if isinstance(body, (dict, list)):
            return httpx.Response(status_code, json=body)
        if isinstance(body, str):
            return httpx.Response(status_code, text=body)
        return httpx.Response(status_code, content=body)

    def paths(self, method: Optional[str] = None) -> list[str]:
        """Paths requested so far, optionally only those with *method*."""
        return [
            call.url.path
            for call in self.calls
            if method is None or call.method == method
        ]


@pytest.fixture
def network() -> FakeNetwork:
    """A FakeNetwork serving the default precache manifest."""
    net = FakeNetwork()
    net.add("/", "<html>shell</html>")
    net.add("/index.html", "<html>index</html>")
    net.add("/manifest.json", {"name": "Holy Home"})
    return net


# ---------------------------------------------------------------------------
# Worker configuration and stores
# ---------------------------------------------------------------------------


@pytest.fixture
def store_dir(tmp_path: Path) -> Path:
    return tmp_path / "stores"


@pytest.fixture
def worker_config(store_dir: Path) -> WorkerConfig:
    """Default worker config pointing at the fake origin and tmp_path stores."""
    return WorkerConfig(origin=ORIGIN, store_dir=str(store_dir))


@pytest.fixture
def registry(store_dir: Path) -> StoreRegistry:
    reg = StoreRegistry(store_dir)
    yield reg
    reg.close()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Points the XDG directories below tmp_path, clears all SWCACHE_*
    environment variables and changes the working directory to tmp_path.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("swcache.config._is_xdg_platform", lambda: True)

    for var in ["SWCACHE_VERSION", "SWCACHE_ORIGIN", "SWCACHE_STORE_DIR"]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def cli_runner():
    from typer.testing import CliRunner

    return CliRunner()
