"""Request and response bodies for the addresses API.

JSON uses camelCase (``houseNumber``, ``zipCode``); snake_case attribute
names are accepted on input as well.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from addressbook.domain.addresses.models import (
    CITY_MAX_LENGTH,
    COUNTRY_MAX_LENGTH,
    STREET_MAX_LENGTH,
    ZIP_CODE_MAX_LENGTH,
)


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        validate_by_name=True,
        validate_by_alias=True,
        serialize_by_alias=True,
    )


class AddressWrite(_CamelModel):
    """Body of create and update requests.

    ``id`` is accepted so clients can send back what they read, but it is
    never used: the database assigns it on create and the path decides it
    on update.
    """

    id: int | None = Field(
        default=None,
        description="Ignored; the identity comes from the database or the URL",
        examples=[None],
    )
    street: str = Field(
        ..., max_length=STREET_MAX_LENGTH, examples=["Rue de Rivoli"]
    )
    house_number: int = Field(..., examples=[99])
    zip_code: str = Field(..., max_length=ZIP_CODE_MAX_LENGTH, examples=["75001"])
    city: str = Field(..., max_length=CITY_MAX_LENGTH, examples=["Paris"])
    country: str = Field(..., max_length=COUNTRY_MAX_LENGTH, examples=["France"])

    def to_fields(self) -> dict[str, Any]:
        """Return the descriptive fields keyed by model attribute name."""
        return self.model_dump(exclude={"id"}, by_alias=False)


class AddressRead(_CamelModel):
    """A stored address as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    street: str
    house_number: int
    zip_code: str
    city: str
    country: str
    created_at: datetime
    updated_at: datetime
