"""End-to-end tests for CacheWorker: dispatch, interception, generation upgrades."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from swcache.events import ActivateEvent, FetchEvent, InstallEvent, MessageEvent
from swcache.models import (
    SOURCE_EXTENSION,
    LifecycleState,
    RequestKey,
    WorkerConfig,
)
from swcache.store import StoreRegistry
from swcache.worker import CacheWorker

ORIGIN = "https://home.example.com"


def _run(config: WorkerConfig, registry: StoreRegistry, network, scenario):
    async def _main():
        async with CacheWorker(config, registry, transport=network.transport) as worker:
            return await scenario(worker)

    return asyncio.run(_main())


def _request(path: str, method: str = "GET", **kwargs) -> httpx.Request:
    return httpx.Request(method, ORIGIN + path, **kwargs)


class TestDispatch:
    def test_events_in_order(self, worker_config, registry, network) -> None:
        network.add("/api/me", {"name": "Ada"})

        async def scenario(worker: CacheWorker):
            await worker.dispatch(InstallEvent())
            purged = await worker.dispatch(ActivateEvent())
            response = await worker.dispatch(FetchEvent(_request("/api/me")))
            command = await worker.dispatch(MessageEvent({"type": "NOPE"}))
            return purged, response, command, worker.lifecycle.state

        purged, response, command, state = _run(worker_config, registry, network, scenario)

        assert purged == []
        assert response.json() == {"name": "Ada"}
        assert command is None
        assert state is LifecycleState.ACTIVATED

    def test_unknown_event_rejected(self, worker_config, registry, network) -> None:
        async def scenario(worker: CacheWorker):
            worker.dispatch(object())  # type: ignore[arg-type]

        with pytest.raises(TypeError, match="Unsupported event"):
            _run(worker_config, registry, network, scenario)

    def test_fetch_not_intercepted_before_activation(self, worker_config, registry, network) -> None:
        async def scenario(worker: CacheWorker):
            return await worker.dispatch(FetchEvent(_request("/index.html")))

        assert _run(worker_config, registry, network, scenario) is None
        assert network.calls == []

    @pytest.mark.parametrize(
        "request_",
        [
            _request("/api/bills", "POST", json={"amount": 10}),
            _request("/api/bills/1", "DELETE"),
            _request("/events/stream"),
        ],
        ids=["post", "delete", "stream"],
    )
    def test_bypassed_requests_return_none(
        self, worker_config, registry, network, request_: httpx.Request
    ) -> None:
        async def scenario(worker: CacheWorker):
            await worker.deploy()
            return await worker.dispatch(FetchEvent(request_))

        assert _run(worker_config, registry, network, scenario) is None

    def test_mode_overrides_header(self, worker_config, registry, network) -> None:
        async def scenario(worker: CacheWorker):
            await worker.deploy()
            network.offline = True
            return await worker.fetch(_request("/bills/7"), mode="navigate")

        response = _run(worker_config, registry, network, scenario)

        assert response.text == "<html>shell</html>"
        assert response.extensions[SOURCE_EXTENSION] == "offline-fallback"


class TestThroughClient:
    """Traffic of a host httpx client routed through ``as_transport()``."""

    def _client_run(self, config, registry, network, scenario, deploy: bool = True):
        async def _main():
            async with CacheWorker(config, registry, transport=network.transport) as worker:
                if deploy:
                    await worker.deploy()
                network.calls.clear()
                async with httpx.AsyncClient(
                    base_url=ORIGIN, transport=worker.as_transport()
                ) as client:
                    result = await scenario(client, worker)
                await worker.drain()
                return result

        return asyncio.run(_main())

    def test_precached_shell_served_without_network(self, worker_config, registry, network) -> None:
        async def scenario(client: httpx.AsyncClient, worker: CacheWorker):
            return await client.get("/")

        response = self._client_run(worker_config, registry, network, scenario)

        assert response.text == "<html>shell</html>"
        assert response.extensions[SOURCE_EXTENSION] == "cache"
        assert network.calls == []

    def test_api_online_then_offline(self, worker_config, registry, network) -> None:
        network.add("/api/accounts", [{"id": 1}])

        async def scenario(client: httpx.AsyncClient, worker: CacheWorker):
            online = await client.get("/api/accounts")
            await worker.drain()
            network.offline = True
            offline = await client.get("/api/accounts")
            return online, offline

        online, offline = self._client_run(worker_config, registry, network, scenario)

        assert online.json() == offline.json() == [{"id": 1}]
        assert online.extensions[SOURCE_EXTENSION] == "network"
        assert offline.extensions[SOURCE_EXTENSION] == "cache"

    def test_api_offline_uncached_raises(self, worker_config, registry, network) -> None:
        network.offline = True

        async def scenario(client: httpx.AsyncClient, worker: CacheWorker):
            await client.get("/api/never-seen")

        with pytest.raises(httpx.ConnectError):
            self._client_run(worker_config, registry, network, scenario)

    def test_offline_navigation_gets_shell(self, worker_config, registry, network) -> None:
        network.offline = True

        async def scenario(client: httpx.AsyncClient, worker: CacheWorker):
            return await client.get("/bills/2024", headers={"Sec-Fetch-Mode": "navigate"})

        response = self._client_run(worker_config, registry, network, scenario)

        assert response.status_code == 200
        assert response.text == "<html>shell</html>"

    def test_offline_subresource_fails(self, worker_config, registry, network) -> None:
        network.offline = True

        async def scenario(client: httpx.AsyncClient, worker: CacheWorker):
            await client.get("/assets/chart.js")

        with pytest.raises(httpx.ConnectError):
            self._client_run(worker_config, registry, network, scenario)

    def test_post_passes_through_uncached(self, worker_config, registry, network) -> None:
        network.add("/api/bills", {"ok": True}, status_code=200)

        async def scenario(client: httpx.AsyncClient, worker: CacheWorker):
            return await client.post("/api/bills", json={"amount": 10})

        response = self._client_run(worker_config, registry, network, scenario)

        assert response.json() == {"ok": True}
        assert network.paths("POST") == ["/api/bills"]
        assert len(registry.open("holy-home-runtime")) == 0

    def test_stream_passes_through_every_time(self, worker_config, registry, network) -> None:
        network.add("/events/stream", "data: hello\n\n")

        async def scenario(client: httpx.AsyncClient, worker: CacheWorker):
            await client.get("/events/stream")
            await client.get("/events/stream")

        self._client_run(worker_config, registry, network, scenario)

        assert network.paths() == ["/events/stream", "/events/stream"]
        assert registry.match(RequestKey.build("GET", "/events/stream", origin=ORIGIN)) is None

    def test_inactive_worker_is_transparent(self, worker_config, registry, network) -> None:
        network.add("/assets/app.js", "js")

        async def scenario(client: httpx.AsyncClient, worker: CacheWorker):
            return await client.get("/assets/app.js")

        response = self._client_run(worker_config, registry, network, scenario, deploy=False)

        assert response.text == "js"
        assert SOURCE_EXTENSION not in response.extensions
        assert registry.keys() == []

    def test_backend_port_is_network_first(self, worker_config, registry, network) -> None:
        network.add("/health", "up")

        async def scenario(client: httpx.AsyncClient, worker: CacheWorker):
            first = await client.get("http://localhost:3000/health")
            second = await client.get("http://localhost:3000/health")
            return first, second

        first, second = self._client_run(worker_config, registry, network, scenario)

        assert first.extensions[SOURCE_EXTENSION] == second.extensions[SOURCE_EXTENSION] == "network"
        assert network.paths() == ["/health", "/health"]


class TestGenerationUpgrade:
    def test_upgrade_keeps_runtime_and_drops_old_precache(
        self, worker_config, registry, network
    ) -> None:
        network.add("/api/me", "me")

        async def first_generation(worker: CacheWorker):
            await worker.deploy()
            await worker.fetch(_request("/api/me"))

        _run(worker_config, registry, network, first_generation)
        assert sorted(registry.keys()) == ["holy-home-runtime", "holy-home-v1"]

        network.add("/", "<html>shell v2</html>")
        v2 = worker_config.model_copy(update={"version": "v2"})

        async def second_generation(worker: CacheWorker):
            purged = await worker.deploy()
            network.offline = True
            shell = await worker.fetch(_request("/"))
            me = await worker.fetch(_request("/api/me"))
            return purged, shell, me

        purged, shell, me = _run(v2, registry, network, second_generation)

        assert purged == ["holy-home-v1"]
        assert sorted(registry.keys()) == ["holy-home-runtime", "holy-home-v2"]
        assert shell.text == "<html>shell v2</html>"
        assert me.text == "me"

    def test_redeploying_same_version_refreshes_in_place(
        self, worker_config, registry, network
    ) -> None:
        _run(worker_config, registry, network, lambda worker: worker.deploy())
        network.add("/index.html", "<html>index 2</html>")
        _run(worker_config, registry, network, lambda worker: worker.deploy())

        record = registry.match(
            RequestKey.build("GET", "/index.html", origin=ORIGIN), store_name="holy-home-v1"
        )
        assert record.body == b"<html>index 2</html>"
        assert registry.keys() == ["holy-home-v1"]


class TestIsolation:
    def test_workers_with_separate_directories(self, tmp_path, network) -> None:
        config_a = WorkerConfig(origin=ORIGIN, version="a")
        config_b = WorkerConfig(origin=ORIGIN, version="b")

        async def _main():
            with StoreRegistry(tmp_path / "a") as reg_a, StoreRegistry(tmp_path / "b") as reg_b:
                async with CacheWorker(config_a, reg_a, network.transport) as a, CacheWorker(
                    config_b, reg_b, network.transport
                ) as b:
                    await a.deploy()
                    await b.deploy()
                    return reg_a.keys(), reg_b.keys()

        keys_a, keys_b = asyncio.run(_main())

        assert keys_a == ["holy-home-a"]
        assert keys_b == ["holy-home-b"]
