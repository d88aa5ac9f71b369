"""Address use cases: CRUD, filtered listing and distance lookup."""

from collections.abc import Mapping
from typing import Any

from loguru import logger
from sqlalchemy.exc import OperationalError, ProgrammingError
from sqlalchemy.orm.exc import StaleDataError

from addressbook.core.exceptions import ErrorCode, NotFoundError, ValidationError
from addressbook.domain.addresses.models import Address
from addressbook.domain.addresses.query import AddressQuery
from addressbook.domain.addresses.repository import AddressRepository
from addressbook.infrastructure.distance_matrix import (
    DistanceMatrixClient,
    DistanceMatrixResponse,
)


class AddressService:
    """Coordinates address storage, querying and the distance-matrix client.

    Args:
        repository: Address storage accessor bound to the request session.
        distance_client: Client for the external distance-matrix API.
    """

    def __init__(
        self, repository: AddressRepository, distance_client: DistanceMatrixClient
    ) -> None:
        self.repository = repository
        self.distance_client = distance_client

    async def list_addresses(self, query: AddressQuery) -> list[Address]:
        """Return every stored address that passes ``query``.

        Raises:
            NotFoundError: If the addresses table is unavailable.
        """
        try:
            addresses = await self.repository.get_all()
        except (ProgrammingError, OperationalError) as e:
            logger.error("Address storage is unavailable: {}", type(e).__name__)
            raise NotFoundError(
                "Address storage is unavailable",
                context={"resource": "addresses"},
                cause=e,
            ) from e

        return query.apply(addresses)

    async def get_address(self, address_id: int) -> Address:
        """Return one address.

        Raises:
            NotFoundError: If no address has ``address_id``.
        """
        address = await self.repository.get_by_id(address_id)
        if address is None:
            raise NotFoundError(
                f"Address {address_id} not found",
                context={"address_id": address_id},
            )
        return address

    async def create_address(self, fields: Mapping[str, Any]) -> Address:
        """Store a new address.

        Any ``id`` in ``fields`` is discarded; the database assigns one.
        """
        values = {key: value for key, value in fields.items() if key != "id"}
        address = await self.repository.create(Address(**values))
        logger.info("Address created", address_id=address.id)
        return address

    async def replace_address(self, address_id: int, fields: Mapping[str, Any]) -> None:
        """Overwrite every descriptive field of an address.

        The stored identity is always ``address_id``, whatever ``fields``
        carries. If the UPDATE matches no row and the address is gone, the
        address counts as not found; if it still exists the conflict
        propagates.

        Raises:
            NotFoundError: If the address does not exist.
            StaleDataError: If the row exists but the UPDATE did not apply.
        """
        values = {key: value for key, value in fields.items() if key != "id"}
        address = Address(id=address_id, **values)

        try:
            await self.repository.replace(address)
        except StaleDataError:
            if not await self.repository.exists(address_id):
                raise NotFoundError(
                    f"Address {address_id} not found",
                    context={"address_id": address_id},
                ) from None
            logger.error(
                "Update conflict on existing address", address_id=address_id
            )
            raise

        logger.info("Address replaced", address_id=address_id)

    async def delete_address(self, address_id: int) -> None:
        """Remove an address.

        Raises:
            NotFoundError: If no address has ``address_id``.
        """
        if not await self.repository.delete(address_id):
            raise NotFoundError(
                f"Address {address_id} not found",
                context={"address_id": address_id},
            )
        logger.info("Address deleted", address_id=address_id)

    async def get_distance(
        self, origin_id: int, destination_id: int
    ) -> DistanceMatrixResponse:
        """Ask the distance-matrix API for the distance between two addresses.

        Args:
            origin_id: ID of the origin address.
            destination_id: ID of the destination address.

        Returns:
            DistanceMatrixResponse: The upstream answer, undecoded.

        Raises:
            ValidationError: If either address does not exist.
            ExternalServiceError: If the upstream call fails.
        """
        origin = await self.repository.get_by_id(origin_id)
        destination = await self.repository.get_by_id(destination_id)

        if origin is None or destination is None:
            raise ValidationError(
                "One of the addresses does not exist in the database",
                error_code=ErrorCode.ADDRESS_NOT_FOUND,
                context={"origin_id": origin_id, "destination_id": destination_id},
            )

        logger.info(
            "Looking up distance between addresses {} and {}",
            origin_id,
            destination_id,
            origin_id=origin_id,
            destination_id=destination_id,
        )

        return await self.distance_client.lookup(
            origin.as_single_line(), destination.as_single_line()
        )
