"""Fixtures for API tests against the assembled application.

The application is built by ``create_app`` with its real middleware and
exception handlers. Storage is replaced by an in-memory repository and the
distance-matrix API by an ``httpx.MockTransport``, both through FastAPI
dependency overrides.
"""

from collections.abc import AsyncGenerator, Callable, Generator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import httpx
import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.orm.exc import StaleDataError

from addressbook.api.dependencies import get_address_repository, get_http_client
from addressbook.api.main import create_app
from addressbook.core.config import (
    DistanceMatrixConfig,
    ObservabilityConfig,
    Settings,
    get_settings,
)
from addressbook.core.context import RequestContext
from addressbook.domain.addresses.models import Address

DISTANCE_MATRIX_URL = "https://distancematrix.test/maps/api/distancematrix/json"
DISTANCE_MATRIX_KEY = "dm-test-key"


class InMemoryAddressRepository:
    """Dict-backed stand-in for AddressRepository.

    ``stale_ids`` makes ``replace`` fail for rows that still exist, and
    ``table_missing`` makes ``get_all`` fail the way a missing table does.
    """

    def __init__(self) -> None:
        self.rows: dict[int, Address] = {}
        self.next_id = 1
        self.stale_ids: set[int] = set()
        self.table_missing = False

    def add(self, **values: Any) -> Address:
        now = datetime.now(UTC)
        address = Address(id=self.next_id, created_at=now, updated_at=now, **values)
        self.rows[address.id] = address
        self.next_id += 1
        return address

    async def get_by_id(self, entity_id: int) -> Address | None:
        return self.rows.get(entity_id)

    async def get_all(self) -> list[Address]:
        if self.table_missing:
            raise ProgrammingError(
                "SELECT * FROM addresses",
                {},
                Exception('relation "addresses" does not exist'),
            )
        return [self.rows[key] for key in sorted(self.rows)]

    async def create(self, obj: Address) -> Address:
        values = {
            column: getattr(obj, column)
            for column in ("street", "house_number", "zip_code", "city", "country")
        }
        return self.add(**values)

    async def replace(self, obj: Address) -> Address:
        if obj.id not in self.rows or obj.id in self.stale_ids:
            msg = "UPDATE statement on table 'addresses' matched 0 rows"
            raise StaleDataError(msg)
        stored = self.rows[obj.id]
        obj.created_at = stored.created_at
        obj.updated_at = datetime.now(UTC)
        self.rows[obj.id] = obj
        return obj

    async def delete(self, entity_id: int) -> bool:
        return self.rows.pop(entity_id, None) is not None

    async def exists(self, entity_id: int) -> bool:
        return entity_id in self.rows


@dataclass
class DistanceMatrixStub:
    """Canned distance-matrix answer plus the requests that reached it."""

    status_code: int = 200
    content: bytes = (
        b'{"destination_addresses":["Berlin"],"origin_addresses":["Paris"],'
        b'"rows":[{"elements":[{"distance":{"text":"1,054 km","value":1054000},'
        b'"status":"OK"}]}],"status":"OK"}'
    )
    content_type: str = "application/json; charset=utf-8"
    unreachable: bool = False
    requests: list[httpx.Request] = field(default_factory=list)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.unreachable:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(
            self.status_code,
            content=self.content,
            headers={"content-type": self.content_type},
        )


@pytest.fixture(autouse=True)
def clean_state() -> Generator[None]:
    """Reset cached settings and the request context around each test."""
    get_settings.cache_clear()
    RequestContext.clear()
    yield
    get_settings.cache_clear()
    RequestContext.clear()


@pytest.fixture
def settings() -> Settings:
    """Settings for the app under test, with DEBUG on as in development."""
    return Settings(
        debug=True,
        observability_config=ObservabilityConfig(enable_tracing=False),
        distance_matrix_config=DistanceMatrixConfig(
            api_key=DISTANCE_MATRIX_KEY, base_url=DISTANCE_MATRIX_URL
        ),
    )


@pytest.fixture
def repository() -> InMemoryAddressRepository:
    """Empty in-memory address storage."""
    return InMemoryAddressRepository()


@pytest.fixture
def distance_matrix() -> DistanceMatrixStub:
    """Stubbed distance-matrix API answering 200 by default."""
    return DistanceMatrixStub()


@pytest.fixture
async def app(
    settings: Settings,
    repository: InMemoryAddressRepository,
    distance_matrix: DistanceMatrixStub,
) -> AsyncGenerator[FastAPI]:
    """Application with storage and the distance-matrix API replaced."""
    application = create_app(settings)
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(distance_matrix.handle)
    )

    application.dependency_overrides[get_address_repository] = lambda: repository
    application.dependency_overrides[get_http_client] = lambda: http_client
    application.dependency_overrides[get_settings] = lambda: settings

    yield application

    await http_client.aclose()


@pytest.fixture
def client_for() -> Callable[..., AsyncClient]:
    """Factory for in-process clients.

    Pass ``raise_app_exceptions=False`` to receive the 500 response the
    server would send instead of the exception.
    """

    def _make(app: FastAPI, *, raise_app_exceptions: bool = True) -> AsyncClient:
        transport = ASGITransport(app=app, raise_app_exceptions=raise_app_exceptions)
        return AsyncClient(transport=transport, base_url="http://testserver")

    return _make


@pytest.fixture
async def client(
    app: FastAPI, client_for: Callable[..., AsyncClient]
) -> AsyncGenerator[AsyncClient]:
    """Client for the application under test."""
    async with client_for(app) as http_client:
        yield http_client
