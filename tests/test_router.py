"""Tests for request classification."""

from __future__ import annotations

from typing import Optional

import httpx
import pytest

from swcache.models import RoutingConfig, StrategyClass
from swcache.router import RequestRouter, is_navigation


@pytest.fixture
def router() -> RequestRouter:
    return RequestRouter(RoutingConfig())


def _get(url: str, method: str = "GET", headers: Optional[dict] = None) -> httpx.Request:
    return httpx.Request(method, url, headers=headers)


class TestClassify:
    @pytest.mark.parametrize(
        "url",
        [
            "https://home.example.com/api/accounts",
            "https://home.example.com/api",
            "https://home.example.com/api/bills?page=2",
            "http://localhost:3000/health",
            "http://localhost:3000/",
        ],
    )
    def test_network_first(self, router: RequestRouter, url: str) -> None:
        assert router.classify(_get(url)) is StrategyClass.NETWORK_FIRST

    @pytest.mark.parametrize(
        "url",
        [
            "https://home.example.com/",
            "https://home.example.com/index.html",
            "https://home.example.com/assets/app.js",
            "https://cdn.example.com/fonts/inter.woff2",
            "http://localhost:5173/src/main.tsx",
        ],
    )
    def test_cache_first(self, router: RequestRouter, url: str) -> None:
        assert router.classify(_get(url)) is StrategyClass.CACHE_FIRST

    @pytest.mark.parametrize("method", ["POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"])
    def test_non_get_bypassed(self, router: RequestRouter, method: str) -> None:
        assert router.classify(_get("https://home.example.com/api/bills", method)) is None

    @pytest.mark.parametrize(
        "url",
        [
            "https://home.example.com/events/stream",
            "https://home.example.com/api/events/stream",
            "http://localhost:3000/events/stream?since=42",
        ],
    )
    def test_stream_endpoint_bypassed(self, router: RequestRouter, url: str) -> None:
        assert router.classify(_get(url)) is None

    def test_prefix_match_is_textual(self, router: RequestRouter) -> None:
        # "/apiary" starts with "/api", so it is treated as API traffic.
        assert (
            router.classify(_get("https://home.example.com/apiary"))
            is StrategyClass.NETWORK_FIRST
        )

    def test_custom_routing(self) -> None:
        router = RequestRouter(
            RoutingConfig(api_prefix="/v2", backend_port=None, excluded_paths=["/ws"])
        )
        assert router.classify(_get("https://x.test/v2/me")) is StrategyClass.NETWORK_FIRST
        assert router.classify(_get("http://x.test:3000/me")) is StrategyClass.CACHE_FIRST
        assert router.classify(_get("https://x.test/ws/live")) is None
        assert router.classify(_get("https://x.test/events/stream")) is StrategyClass.CACHE_FIRST


class TestIsNavigation:
    def test_navigate_header(self) -> None:
        request = _get("https://home.example.com/bills", headers={"Sec-Fetch-Mode": "navigate"})
        assert is_navigation(request)

    def test_other_modes(self) -> None:
        assert not is_navigation(_get("https://home.example.com/a.js", headers={"Sec-Fetch-Mode": "cors"}))
        assert not is_navigation(_get("https://home.example.com/a.js"))
