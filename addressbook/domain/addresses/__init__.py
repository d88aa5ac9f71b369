"""Address aggregate: model, repository, list query rules and service."""

from addressbook.domain.addresses.models import Address
from addressbook.domain.addresses.query import (
    AddressField,
    AddressQuery,
    SortDirection,
    SortSpec,
)
from addressbook.domain.addresses.repository import AddressRepository
from addressbook.domain.addresses.service import AddressService

__all__ = [
    "Address",
    "AddressField",
    "AddressQuery",
    "AddressRepository",
    "AddressService",
    "SortDirection",
    "SortSpec",
]
