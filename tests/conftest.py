"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any ``booru_proxy`` import so the
module-level settings never pick up a developer's .env file values.
"""

import asyncio
import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("APP_RATE_LIMIT_REQUESTS", "1000")

from typing import Callable  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from booru_proxy.adapters.http.fetcher import UpstreamFetcher  # noqa: E402
from booru_proxy.core.app_factory import create_app  # noqa: E402
from booru_proxy.core.config import (  # noqa: E402
    AppSettings,
    LogSettings,
    Settings,
    UpstreamSettings,
)


class FakeUpstream:
    """Scriptable upstream used through ``httpx.MockTransport``.

    Records every request it receives so tests can assert on the URL the
    adapters built and on how many upstream calls were made.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.json_body: object = {"post": []}
        self.raw_body: bytes | None = None
        self.delay_seconds: float = 0.0
        self.cancelled = False

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.delay_seconds:
            try:
                await asyncio.sleep(self.delay_seconds)
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        if self.raw_body is not None:
            return httpx.Response(self.status_code, content=self.raw_body)
        return httpx.Response(self.status_code, json=self.json_body)

    @property
    def last_url(self) -> httpx.URL:
        return self.requests[-1].url


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Build Settings with per-test overrides of the app, upstream and log groups."""

    def _make(**overrides: object) -> Settings:
        app_fields = {k: v for k, v in overrides.items() if k in AppSettings.model_fields}
        upstream_fields = {
            k: v for k, v in overrides.items() if k in UpstreamSettings.model_fields
        }
        log_fields = {k: v for k, v in overrides.items() if k in LogSettings.model_fields}
        app_fields.setdefault("rate_limit_requests", 1000)
        return Settings(
            app=AppSettings(**app_fields),
            upstream=UpstreamSettings(**upstream_fields),
            log=LogSettings(**log_fields),
        )

    return _make


@pytest.fixture
def make_app(upstream: FakeUpstream, make_settings) -> Callable[..., FastAPI]:
    def _make(**overrides: object) -> FastAPI:
        client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
        return create_app(make_settings(**overrides), fetcher=UpstreamFetcher(client=client))

    return _make


@pytest.fixture
def client(make_app) -> TestClient:
    """Test client for an app with default settings and a fake upstream."""
    return TestClient(make_app())
