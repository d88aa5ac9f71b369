"""Address endpoints mounted under ``/addresses``.

``/distance`` is declared before ``/{address_id}`` so it is not captured
as an address ID.
"""

from typing import Annotated

from fastapi import APIRouter, Query, Request, Response, status
from loguru import logger

from addressbook.api.constants import LOCATION_HEADER
from addressbook.api.dependencies import AddressServiceDep
from addressbook.api.schemas.addresses import AddressRead, AddressWrite
from addressbook.api.schemas.errors import ErrorResponse
from addressbook.domain.addresses.query import AddressQuery

router = APIRouter(prefix="/addresses", tags=["addresses"])

NOT_FOUND_RESPONSE = {status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}}
BAD_REQUEST_RESPONSE = {status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse}}


@router.get(
    "",
    response_model=list[AddressRead],
    responses={**NOT_FOUND_RESPONSE, **BAD_REQUEST_RESPONSE},
)
async def list_addresses(
    service: AddressServiceDep,
    filter_text: Annotated[
        str | None,
        Query(
            alias="filter",
            description="Keep addresses where any field equals this text exactly",
        ),
    ] = None,
    order_by: Annotated[
        str | None,
        Query(
            alias="orderBy",
            description=(
                "FieldName;asc or FieldName;desc. Anything but asc sorts descending"
            ),
            examples=["City;asc"],
        ),
    ] = None,
) -> list[AddressRead]:
    """List addresses, optionally filtered and sorted."""
    query = AddressQuery.from_params(filter_text, order_by)
    addresses = await service.list_addresses(query)
    return [AddressRead.model_validate(address) for address in addresses]


@router.get(
    "/distance",
    response_class=Response,
    responses={
        status.HTTP_200_OK: {
            "content": {"application/json": {}},
            "description": "The distance-matrix answer, relayed unchanged",
        },
        **BAD_REQUEST_RESPONSE,
    },
)
async def get_distance(
    service: AddressServiceDep,
    origin_id: Annotated[int, Query(alias="orgId")],
    destination_id: Annotated[int, Query(alias="destId")],
) -> Response:
    """Relay the distance between two stored addresses from distancematrix.ai."""
    result = await service.get_distance(origin_id, destination_id)
    return Response(content=result.body, media_type=result.content_type)


@router.get(
    "/{address_id}",
    name="get_address",
    response_model=AddressRead,
    responses=NOT_FOUND_RESPONSE,
)
async def get_address(address_id: int, service: AddressServiceDep) -> AddressRead:
    """Fetch one address."""
    address = await service.get_address(address_id)
    return AddressRead.model_validate(address)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=AddressRead,
)
async def create_address(
    payload: AddressWrite,
    request: Request,
    response: Response,
    service: AddressServiceDep,
) -> AddressRead:
    """Create an address. Any ``id`` in the body is ignored."""
    if payload.id:
        logger.debug("Ignoring client-supplied address id {}", payload.id)

    address = await service.create_address(payload.to_fields())
    response.headers[LOCATION_HEADER] = str(
        request.url_for("get_address", address_id=address.id)
    )
    return AddressRead.model_validate(address)


@router.put(
    "/{address_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses=NOT_FOUND_RESPONSE,
)
async def replace_address(
    address_id: int, payload: AddressWrite, service: AddressServiceDep
) -> None:
    """Replace every field of an address. The URL decides the identity."""
    await service.replace_address(address_id, payload.to_fields())


@router.delete(
    "/{address_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses=NOT_FOUND_RESPONSE,
)
async def delete_address(address_id: int, service: AddressServiceDep) -> None:
    """Delete an address."""
    await service.delete_address(address_id)
