"""ORM model for stored postal addresses."""

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from addressbook.infrastructure.database.base import BaseModel

STREET_MAX_LENGTH = 200
ZIP_CODE_MAX_LENGTH = 20
CITY_MAX_LENGTH = 100
COUNTRY_MAX_LENGTH = 100


class Address(BaseModel):
    """A postal address.

    ``id`` is assigned by the database on insert and never changes afterwards.
    """

    __tablename__ = "addresses"

    street: Mapped[str] = mapped_column(String(STREET_MAX_LENGTH), nullable=False)
    house_number: Mapped[int] = mapped_column(Integer, nullable=False)
    zip_code: Mapped[str] = mapped_column(String(ZIP_CODE_MAX_LENGTH), nullable=False)
    city: Mapped[str] = mapped_column(String(CITY_MAX_LENGTH), nullable=False)
    country: Mapped[str] = mapped_column(String(COUNTRY_MAX_LENGTH), nullable=False)

    def as_single_line(self) -> str:
        """Join the descriptive fields into one space-separated string."""
        return " ".join(
            [
                self.street,
                str(self.house_number),
                self.zip_code,
                self.city,
                self.country,
            ]
        )
