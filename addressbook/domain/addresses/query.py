"""Filter and sort rules for listing addresses.

List requests carry two optional free-form parameters:

- ``filter``: a record is kept when the string form of at least one of its
  fields equals the text exactly;
- ``orderBy``: ``FieldName;direction``, where ``direction`` is ``asc`` for
  ascending and anything else for descending.

``AddressQuery.from_params`` parses and validates both before storage is
touched. ``AddressQuery.apply`` then runs over the in-memory record list.
Fields are read through ``FIELD_ACCESSORS`` so the set of filterable and
sortable fields is fixed and explicit.
"""

from collections.abc import Callable, Sequence
from enum import Enum
from typing import Any, Final

from loguru import logger
from pydantic import BaseModel, ConfigDict

from addressbook.core.exceptions import ErrorCode, ValidationError
from addressbook.domain.addresses.models import Address

SORT_SEPARATOR: Final[str] = ";"


class AddressField(Enum):
    """Address fields that can be filtered on and sorted by."""

    ID = "Id"
    STREET = "Street"
    HOUSE_NUMBER = "HouseNumber"
    ZIP_CODE = "ZipCode"
    CITY = "City"
    COUNTRY = "Country"

    @property
    def json_name(self) -> str:
        """The camelCase name used in request and response bodies."""
        return self.value[0].lower() + self.value[1:]

    @classmethod
    def resolve(cls, name: str) -> "AddressField | None":
        """Look a field up by its PascalCase or camelCase name.

        Args:
            name: Field name as given by the client.

        Returns:
            AddressField | None: The matching field, or None if there is none.
        """
        for field in cls:
            if name in (field.value, field.json_name):
                return field
        return None


type FieldAccessor = Callable[[Address], Any]

FIELD_ACCESSORS: Final[dict[AddressField, FieldAccessor]] = {
    AddressField.ID: lambda address: address.id,
    AddressField.STREET: lambda address: address.street,
    AddressField.HOUSE_NUMBER: lambda address: address.house_number,
    AddressField.ZIP_CODE: lambda address: address.zip_code,
    AddressField.CITY: lambda address: address.city,
    AddressField.COUNTRY: lambda address: address.country,
}


class SortDirection(Enum):
    """Sort order for list results."""

    ASC = "asc"
    DESC = "desc"

    @classmethod
    def parse(cls, token: str) -> "SortDirection":
        """Map a direction token to a direction.

        Only ``asc`` sorts ascending. Every other token, including an empty
        one or a misspelling, sorts descending.

        Args:
            token: Direction text after the separator.

        Returns:
            SortDirection: The direction to sort in.
        """
        if token == cls.ASC.value:
            return cls.ASC
        if token != cls.DESC.value:
            logger.warning(
                "Unrecognized sort direction '{}', sorting descending",
                token,
                sort_direction=token,
            )
        return cls.DESC


class SortSpec(BaseModel):
    """A validated ``orderBy`` parameter."""

    model_config = ConfigDict(frozen=True)

    field: AddressField
    direction: SortDirection = SortDirection.DESC

    @classmethod
    def parse(cls, order_by: str) -> "SortSpec":
        """Parse ``FieldName;direction``.

        The string is split on the first separator only. Without a separator
        the direction token is empty, which sorts descending.

        Args:
            order_by: Raw ``orderBy`` value.

        Returns:
            SortSpec: The parsed sort.

        Raises:
            ValidationError: If the field name does not resolve.
        """
        name, _, token = order_by.partition(SORT_SEPARATOR)

        field = AddressField.resolve(name)
        if field is None:
            raise ValidationError(
                f"Field {name} for ordering does not exist",
                error_code=ErrorCode.INVALID_SORT_FIELD,
                context={"field": name},
            )

        return cls(field=field, direction=SortDirection.parse(token))

    def apply(self, addresses: Sequence[Address]) -> list[Address]:
        """Return ``addresses`` sorted by this spec.

        The sort is stable in both directions.
        """
        accessor = FIELD_ACCESSORS[self.field]
        return sorted(
            addresses,
            key=accessor,
            reverse=self.direction is SortDirection.DESC,
        )


class AddressQuery(BaseModel):
    """Filter text and sort order for one list request."""

    model_config = ConfigDict(frozen=True)

    filter_text: str | None = None
    sort: SortSpec | None = None

    @classmethod
    def from_params(
        cls, filter_text: str | None = None, order_by: str | None = None
    ) -> "AddressQuery":
        """Build a query from raw request parameters.

        Empty strings count as absent.

        Raises:
            ValidationError: If ``order_by`` names an unknown field.
        """
        return cls(
            filter_text=filter_text or None,
            sort=SortSpec.parse(order_by) if order_by else None,
        )

    def matches(self, address: Address) -> bool:
        """Check whether any field of ``address`` equals the filter text."""
        if self.filter_text is None:
            return True
        return any(
            str(accessor(address)) == self.filter_text
            for accessor in FIELD_ACCESSORS.values()
        )

    def apply(self, addresses: Sequence[Address]) -> list[Address]:
        """Filter then sort ``addresses``.

        Filtered results keep their input order; each record appears at most
        once.

        Args:
            addresses: All records, in storage order.

        Returns:
            list[Address]: The records to return to the client.
        """
        result = [address for address in addresses if self.matches(address)]

        if self.sort is not None:
            result = self.sort.apply(result)

        logger.debug(
            "Address query kept {} of {} records",
            len(result),
            len(addresses),
            filter_applied=self.filter_text is not None,
            sort_field=self.sort.field.value if self.sort else None,
        )

        return result
