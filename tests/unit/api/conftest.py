"""Fixtures for API unit tests."""

from collections.abc import Callable

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from starlette.requests import Request


@pytest.fixture
def make_request() -> Callable[..., Request]:
    """Factory for bare Starlette requests used to call handlers directly.

    Returns:
        Callable[..., Request]: Builds a request for a method and path.
    """

    def _make(method: str = "GET", path: str = "/addresses/1") -> Request:
        return Request(
            {
                "type": "http",
                "method": method,
                "path": path,
                "query_string": b"",
                "headers": [],
                "scheme": "http",
                "server": ("testserver", 80),
                "client": ("127.0.0.1", 50000),
            }
        )

    return _make


@pytest.fixture
def client_for() -> Callable[[FastAPI], AsyncClient]:
    """Factory for an httpx client talking to an app in-process.

    Returns:
        Callable[[FastAPI], AsyncClient]: Builds a client for the app.
    """

    def _make(app: FastAPI) -> AsyncClient:
        return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    return _make
