"""FastAPI dependencies that assemble the address service per request.

Tests replace ``get_address_repository`` and ``get_distance_client`` through
``app.dependency_overrides``.
"""

from typing import Annotated

import httpx
from fastapi import Depends, Request

from addressbook.core.config import Settings, get_settings
from addressbook.domain.addresses.repository import AddressRepository
from addressbook.domain.addresses.service import AddressService
from addressbook.infrastructure.database.dependencies import DatabaseSession
from addressbook.infrastructure.distance_matrix import DistanceMatrixClient


def get_address_repository(session: DatabaseSession) -> AddressRepository:
    """Bind an address repository to the request's database session."""
    return AddressRepository(session)


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Return the outbound HTTP client created by the application lifespan."""
    return request.app.state.http_client


def get_distance_client(
    http_client: Annotated[httpx.AsyncClient, Depends(get_http_client)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> DistanceMatrixClient:
    """Create a distance-matrix client on the shared HTTP client."""
    return DistanceMatrixClient(http_client, settings.distance_matrix_config)


def get_address_service(
    repository: Annotated[AddressRepository, Depends(get_address_repository)],
    distance_client: Annotated[DistanceMatrixClient, Depends(get_distance_client)],
) -> AddressService:
    """Assemble the address service for one request."""
    return AddressService(repository, distance_client)


AddressServiceDep = Annotated[AddressService, Depends(get_address_service)]
